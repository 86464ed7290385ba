"""
Tests for hash chain and canonical serialization.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import pytest
from datetime import datetime, timezone, timedelta

from access_ledger.audit import JournalEntry
from access_ledger.hash_chain import (
    canonical_serialize,
    compute_hash,
    verify_chain_link,
    verify_chain,
    compute_state_hash,
    GENESIS_HASH,
)
from access_ledger.records import RequestStatus


def _chain(length):
    """Build a correctly linked list of journal entries."""
    entries = []
    previous = GENESIS_HASH
    for i in range(length):
        entry = JournalEntry(
            sequence=i + 1,
            event_type="ResourceCreated",
            payload={"resource_id": i + 1},
            occurred_at=datetime(2025, 1, 15, 10, i, tzinfo=timezone.utc),
            previous_entry_hash=previous,
        )
        entries.append(entry)
        previous = compute_hash(entry)
    return entries


class TestCanonicalSerialization:
    """Tests for canonical JSON serialization."""

    def test_keys_sorted_alphabetically(self):
        """Test that keys are sorted alphabetically."""
        result = canonical_serialize({"zebra": 1, "apple": 2, "mango": 3}).decode("utf-8")
        assert result.index("apple") < result.index("mango") < result.index("zebra")

    def test_no_whitespace(self):
        """Test that there's no whitespace between elements."""
        result = canonical_serialize({"a": 1, "b": [1, 2]}).decode("utf-8")
        assert " " not in result
        assert "\n" not in result

    def test_datetime_converted_to_utc(self):
        """Test datetimes in other offsets are normalized to UTC with Z."""
        dt = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        result = canonical_serialize({"date": dt}).decode("utf-8")
        assert "2025-01-15T10:00:00.000000Z" in result

    def test_naive_datetime_rejected(self):
        """Test naive datetimes cannot be serialized."""
        with pytest.raises(ValueError):
            canonical_serialize({"date": datetime(2025, 1, 15)})

    def test_enum_as_value(self):
        """Test enums are serialized by value."""
        result = canonical_serialize({"status": RequestStatus.APPROVED}).decode("utf-8")
        assert '"approved"' in result

    def test_signature_field_excluded(self):
        """Test the signature never enters the hashed form."""
        entry = _chain(1)[0]
        unsigned = compute_hash(entry)
        entry.signature = "anything"
        assert compute_hash(entry) == unsigned

    def test_unsupported_type(self):
        """Test non-record objects are refused."""
        with pytest.raises(TypeError):
            canonical_serialize(42)


class TestChainVerification:
    """Tests for hash chain verification."""

    def test_empty_chain_valid(self):
        """Test an empty chain is trivially valid."""
        assert verify_chain([]) == (True, -1, "")

    def test_valid_chain(self):
        """Test a properly linked chain verifies."""
        entries = _chain(4)
        assert verify_chain(entries) == (True, -1, "")
        assert verify_chain_link(entries[1], entries[0])

    def test_first_entry_must_chain_to_genesis(self):
        """Test the chain must start at the genesis hash."""
        entries = _chain(2)
        entries[0].previous_entry_hash = "f" * 64
        is_valid, index, _ = verify_chain(entries)
        assert not is_valid
        assert index == 0

    def test_tampered_entry_breaks_next_link(self):
        """Test altering a payload is detected at the following entry."""
        entries = _chain(3)
        entries[1].payload["resource_id"] = 99
        is_valid, index, message = verify_chain(entries)
        assert not is_valid
        assert index == 2
        assert "Chain break" in message

    def test_state_hash_changes_with_content(self):
        """Test the state hash reflects every entry."""
        entries = _chain(3)
        original = compute_state_hash(entries)
        assert compute_state_hash(entries[:2]) != original
        assert compute_state_hash([]) == GENESIS_HASH
