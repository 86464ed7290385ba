"""
Access Ledger - Error Kinds

Every failure is raised synchronously to the caller and never retried
inside the ledger. A failed operation commits nothing.

SPDX-License-Identifier: AGPL-3.0-or-later
"""


class AccessLedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class InvalidInput(AccessLedgerError):
    """Raised for empty names/descriptions or out-of-range levels."""
    pass


class NotFound(AccessLedgerError):
    """Raised when a resource, request or permission id was never allocated."""
    pass


class Unauthorized(AccessLedgerError):
    """Raised when the caller lacks standing for the operation."""
    pass


class AlreadyProcessed(AccessLedgerError):
    """Raised when processing a request that has already been processed."""
    pass


class AlreadyRevoked(AccessLedgerError):
    """Raised when revoking a permission that is no longer active."""
    pass


class AppendOnlyViolation(AccessLedgerError):
    """Raised when a write would delete or rewrite ledger history."""
    pass
