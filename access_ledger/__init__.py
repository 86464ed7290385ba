"""
Access Ledger - Reference Implementation

An access-control ledger for named resources:

- Resources with an immutable sensitivity level and creator
- Access requests, processed once by the resource creator
- Time-bounded (365-day), revocable permissions minted on approval
- Access verification combining the sensitivity ceiling with permissions
- Append-only SQLite storage with a single global lock
- Hash-chained, optionally signed audit journal of ledger events

SPDX-License-Identifier: AGPL-3.0-or-later
"""

__version__ = "1.0.0"

from .errors import (
    AccessLedgerError,
    InvalidInput,
    NotFound,
    Unauthorized,
    AlreadyProcessed,
    AlreadyRevoked,
    AppendOnlyViolation,
)
from .records import (
    Resource,
    AccessRequest,
    Permission,
    SensitivityLevel,
    RequestStatus,
    GRANT_DURATION,
)
from .events import (
    ResourceCreated,
    AccessRequested,
    AccessRequestProcessed,
    PermissionGranted,
    PermissionRevoked,
)
from .verify import AccessDecision, has_access
from .audit import AuditJournal
from .config import LedgerSettings, load_settings
from .service import AccessControlLedger

__all__ = [
    "AccessLedgerError",
    "InvalidInput",
    "NotFound",
    "Unauthorized",
    "AlreadyProcessed",
    "AlreadyRevoked",
    "AppendOnlyViolation",
    "Resource",
    "AccessRequest",
    "Permission",
    "SensitivityLevel",
    "RequestStatus",
    "GRANT_DURATION",
    "ResourceCreated",
    "AccessRequested",
    "AccessRequestProcessed",
    "PermissionGranted",
    "PermissionRevoked",
    "AccessDecision",
    "has_access",
    "AuditJournal",
    "LedgerSettings",
    "load_settings",
    "AccessControlLedger",
]
