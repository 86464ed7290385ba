"""
Access Ledger - Timestamp Handling

The core never reads the clock on its own; every operation receives the
current time from the host. This module holds the small helpers used to
check and store those host-supplied timestamps.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

from datetime import datetime, timezone
from typing import Optional

from .errors import InvalidInput


def utc_now() -> datetime:
    """Default host clock: timezone-aware UTC wall-clock time."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime, field: str = "timestamp") -> datetime:
    """Reject naive datetimes; expiry comparisons need a fixed offset."""
    if not isinstance(value, datetime):
        raise InvalidInput(f"{field} must be a datetime, got {type(value).__name__}")
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise InvalidInput(f"{field} must be timezone-aware")
    return value


def to_storage(value: Optional[datetime]) -> Optional[str]:
    """Serialize a timestamp as ISO 8601 text in UTC."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def from_storage(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO 8601 timestamp."""
    if value is None:
        return None
    return datetime.fromisoformat(value)
