"""
Access Ledger - Hash Chain and Canonical Serialization

SHA-256 hash chaining and canonical JSON serialization for audit
journal entries.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import hashlib
import json
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable


# Genesis hash for the first entry in the chain
GENESIS_HASH = "0" * 64

# Never part of the hashed form: signatures are computed over it
UNHASHED_FIELDS = ("signature",)


def _serialize_value(value: Any) -> Any:
    """
    Convert a value to JSON-serializable form following canonical rules.

    - Datetimes in ISO 8601, converted to UTC, with a Z suffix
    - Enums as their value
    - Dataclasses as dictionaries
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValueError("Datetime must be timezone-aware for canonical serialization")
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, (list, tuple)):
        return [_serialize_value(item) for item in value]

    if isinstance(value, dict):
        return {k: _serialize_value(v) for k, v in value.items()}

    if is_dataclass(value) and not isinstance(value, type):
        return _serialize_value(asdict(value))

    return value


def canonical_serialize(record: Any, exclude: Iterable[str] = UNHASHED_FIELDS) -> bytes:
    """
    Serialize a record to canonical JSON bytes.

    Canonical format:
    1. JSON, UTF-8 encoded
    2. Keys sorted alphabetically (recursive)
    3. No whitespace between elements
    4. Datetimes in UTC with Z suffix
    """
    if is_dataclass(record) and not isinstance(record, type):
        obj = asdict(record)
    elif isinstance(record, dict):
        obj = dict(record)
    else:
        raise TypeError(f"Cannot serialize {type(record)}")

    for name in exclude:
        obj.pop(name, None)

    json_str = json.dumps(
        _serialize_value(obj),
        separators=(",", ":"),
        ensure_ascii=False,
        sort_keys=True,
    )
    return json_str.encode("utf-8")


def compute_hash(record: Any) -> str:
    """
    Compute the SHA-256 hash of a record's canonical serialization.

    Returns the hash as a lowercase hexadecimal string.
    """
    return hashlib.sha256(canonical_serialize(record)).hexdigest()


def verify_chain_link(current: Any, previous: Any) -> bool:
    """Check that ``current`` points at the hash of ``previous``."""
    actual_hash = getattr(current, "previous_entry_hash", None)
    if actual_hash is None:
        return False
    return actual_hash == compute_hash(previous)


def verify_chain(entries: list) -> tuple[bool, int, str]:
    """
    Verify the integrity of an entire hash chain.

    Returns (is_valid, break_index, error_message).
    If valid, break_index is -1.
    """
    if not entries:
        return True, -1, ""

    if getattr(entries[0], "previous_entry_hash", None) != GENESIS_HASH:
        return False, 0, "First entry does not chain to genesis hash"

    for i in range(1, len(entries)):
        if not verify_chain_link(entries[i], entries[i - 1]):
            expected = compute_hash(entries[i - 1])
            actual = getattr(entries[i], "previous_entry_hash", "MISSING")
            return False, i, f"Chain break at index {i}: expected {expected}, got {actual}"

    return True, -1, ""


def compute_state_hash(entries: list) -> str:
    """
    SHA-256 over the concatenated entry hashes, for external anchoring.

    Any altered, removed or reordered entry changes the state hash.
    """
    if not entries:
        return GENESIS_HASH

    hasher = hashlib.sha256()
    for entry in entries:
        hasher.update(compute_hash(entry).encode("utf-8"))
    return hasher.hexdigest()
