"""
Access Ledger - Access Verification

Implements the access check that combines a resource's sensitivity
ceiling with the caller's permissions.

Verification is:
- Binary: true/false
- Read-only: never writes, never auto-revokes expired permissions
- Deterministic: same store state and same clock, same answer

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import logging
from datetime import datetime
from enum import Enum

from .errors import NotFound
from .records import NO_ID
from .store import AccessLedgerStore
from .timestamps import ensure_aware

logger = logging.getLogger(__name__)


class AccessDecision(str, Enum):
    """Why access was granted or denied."""
    CREATOR = "CREATOR"
    PERMISSION = "PERMISSION"
    SENSITIVITY_CEILING = "SENSITIVITY_CEILING"
    NO_PERMISSION = "NO_PERMISSION"
    PERMISSION_REVOKED = "PERMISSION_REVOKED"
    PERMISSION_EXPIRED = "PERMISSION_EXPIRED"


class AccessVerifier:
    """
    Access verifier.

    Conditions, in order:
    1. The resource exists (NotFound otherwise)
    2. The resource creator always passes
    3. Nobody else passes if required_level exceeds the sensitivity level
    4. Otherwise the caller needs at least one permission on the resource
       that is active and has expires_at strictly after ``now``
    """

    def __init__(self, store: AccessLedgerStore):
        self.store = store

    def evaluate(
        self,
        resource_id: int,
        required_level: int,
        caller: str,
        now: datetime,
    ) -> tuple[bool, AccessDecision]:
        """
        Check access and report the deciding reason.

        Returns (granted, decision).
        """
        ensure_aware(now, "now")

        with self.store.snapshot():
            resource = None
            if resource_id != NO_ID:
                resource = self.store.fetch_resource(resource_id)
            if resource is None:
                raise NotFound(f"Resource {resource_id} does not exist")

            if caller == resource.creator:
                return self._decide(resource_id, caller, True, AccessDecision.CREATOR)

            if resource.sensitivity_level < required_level:
                return self._decide(
                    resource_id, caller, False, AccessDecision.SENSITIVITY_CEILING
                )

            held = self.store.fetch_permissions_of(caller)

        # Existential scan over every entry; a revoked or lapsed entry
        # must not hide a later usable one.
        decision = AccessDecision.NO_PERMISSION
        for permission in held:
            if permission.resource_id != resource_id:
                continue
            if permission.is_usable(now):
                return self._decide(resource_id, caller, True, AccessDecision.PERMISSION)
            if permission.is_active:
                decision = AccessDecision.PERMISSION_EXPIRED
            elif decision is AccessDecision.NO_PERMISSION:
                decision = AccessDecision.PERMISSION_REVOKED

        return self._decide(resource_id, caller, False, decision)

    def verify(
        self,
        resource_id: int,
        required_level: int,
        caller: str,
        now: datetime,
    ) -> bool:
        """Return True if ``caller`` currently holds sufficient access."""
        granted, _ = self.evaluate(resource_id, required_level, caller, now)
        return granted

    def _decide(self, resource_id, caller, granted, decision):
        logger.debug(
            "Access to resource %d for %s: %s (%s)",
            resource_id, caller, "granted" if granted else "denied", decision.value,
        )
        return granted, decision


def has_access(
    store: AccessLedgerStore,
    resource_id: int,
    required_level: int,
    caller: str,
    now: datetime,
) -> bool:
    """
    Standalone access check.

    This is the minimal verification interface: returns only true/false.
    """
    return AccessVerifier(store).verify(resource_id, required_level, caller, now)
