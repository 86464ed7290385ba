"""
Access Ledger - Record Types

Implements Resource, AccessRequest and Permission, the three record kinds
held by the ledger, together with their lifecycle rules.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Optional


# Every permission lasts exactly this long; not configurable per grant.
GRANT_DURATION = timedelta(days=365)

MIN_LEVEL = 0
MAX_LEVEL = 255

# Id 0 is never allocated and stands for "no such record".
NO_ID = 0


class SensitivityLevel(IntEnum):
    """
    Conventional names for sensitivity ordinals.

    The ledger never interprets these names; any integer in [0, 255]
    is a valid sensitivity level.
    """
    PUBLIC = 0
    INTERNAL = 1
    CONFIDENTIAL = 2
    SECRET = 3
    TOP_SECRET = 4


class RequestStatus(str, Enum):
    """Derived state of an access request."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _is_level(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class Resource:
    """
    A named, classified resource.

    Resources are never updated or deleted once stored. The creator is the
    only principal who may process requests against the resource and always
    passes verification.
    """
    id: int
    name: str
    description: str
    creator: str
    sensitivity_level: int
    created_at: datetime

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        sensitivity_level: int,
        creator: str,
        now: datetime,
    ) -> "Resource":
        """Factory for a resource that has not been assigned an id yet."""
        return cls(
            id=NO_ID,
            name=name,
            description=description,
            creator=creator,
            sensitivity_level=sensitivity_level,
            created_at=now,
        )

    def validate(self) -> tuple[bool, list[str]]:
        """Returns (is_valid, list_of_errors)."""
        errors = []

        if not self.name:
            errors.append("name cannot be empty")

        if not self.description:
            errors.append("description cannot be empty")

        if not _is_level(self.sensitivity_level):
            errors.append("sensitivity_level must be an integer")
        elif not MIN_LEVEL <= self.sensitivity_level <= MAX_LEVEL:
            errors.append(
                f"sensitivity_level must be between {MIN_LEVEL} and {MAX_LEVEL}"
            )

        return (len(errors) == 0, errors)


@dataclass
class AccessRequest:
    """
    A principal's request for access to a resource.

    Pending until the resource creator processes it; processing is a
    single one-way transition to approved or rejected.
    """
    id: int
    resource_id: int
    requester: str
    requested_level: int
    created_at: datetime
    processed: bool = False
    approved: bool = False
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        resource_id: int,
        requested_level: int,
        requester: str,
        now: datetime,
    ) -> "AccessRequest":
        """Factory for a pending request that has not been assigned an id yet."""
        return cls(
            id=NO_ID,
            resource_id=resource_id,
            requester=requester,
            requested_level=requested_level,
            created_at=now,
        )

    @property
    def status(self) -> RequestStatus:
        if not self.processed:
            return RequestStatus.PENDING
        return RequestStatus.APPROVED if self.approved else RequestStatus.REJECTED

    def validate(self) -> tuple[bool, list[str]]:
        """Returns (is_valid, list_of_errors)."""
        errors = []

        # requested_level is informational; only its sign is checked.
        if not _is_level(self.requested_level):
            errors.append("requested_level must be an integer")
        elif self.requested_level <= 0:
            errors.append("requested_level must be positive")

        return (len(errors) == 0, errors)


@dataclass
class Permission:
    """
    A time-bounded, revocable grant for one principal on one resource.

    Only minted by approving an access request. ``is_active`` changes only
    through revocation; expiry is a predicate on ``expires_at`` and never
    flips ``is_active``.
    """
    id: int
    resource_id: int
    user: str
    granted_by: str
    request_id: int
    granted_at: datetime
    expires_at: datetime
    is_active: bool = True
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None

    @classmethod
    def create(
        cls,
        resource_id: int,
        user: str,
        granted_by: str,
        request_id: int,
        now: datetime,
    ) -> "Permission":
        """Factory for a fresh grant running GRANT_DURATION from now."""
        return cls(
            id=NO_ID,
            resource_id=resource_id,
            user=user,
            granted_by=granted_by,
            request_id=request_id,
            granted_at=now,
            expires_at=now + GRANT_DURATION,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_usable(self, now: datetime) -> bool:
        """Active and not yet expired."""
        return self.is_active and not self.is_expired(now)
