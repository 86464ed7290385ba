"""
Access Ledger - Audit Journal

An event observer that records every ledger notification as an
append-only, hash-chained and optionally signed journal entry.

No UPDATE, no DELETE, no overwrite: the journal's SQLite tables refuse
them with triggers, and ``verify_integrity`` re-checks the chain and every
signature.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import json
import logging
import sqlite3
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from .events import LedgerEvent
from .hash_chain import GENESIS_HASH, compute_hash, compute_state_hash, verify_chain
from .signatures import (
    PrivateKey,
    Signature,
    SignatureAlgorithm,
    sign_entry,
    verify_signature,
)
from .timestamps import from_storage, to_storage

logger = logging.getLogger(__name__)


@dataclass
class JournalEntry:
    """One audited event, chained to the entry before it."""
    sequence: int
    event_type: str
    payload: dict[str, Any]
    occurred_at: datetime
    previous_entry_hash: str
    signature: Optional[Signature] = None


class AuditJournal:
    """
    Append-only audit journal for ledger events.

    Instances are callables and can be passed straight to
    ``EventBus.subscribe``.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = ":memory:",
        signer_id: Optional[str] = None,
        private_key: Optional[PrivateKey] = None,
    ):
        if (signer_id is None) != (private_key is None):
            raise ValueError("signer_id and private_key must be given together")
        self.db_path = str(db_path)
        self.signer_id = signer_id
        self._private_key = private_key
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self):
        """Initialize the journal schema with append-only constraints."""
        with self._conn:
            self._conn.executescript("""
                CREATE TABLE IF NOT EXISTS journal_entries (
                    sequence INTEGER PRIMARY KEY,
                    event_type TEXT NOT NULL,
                    payload TEXT NOT NULL,  -- JSON object
                    occurred_at TEXT NOT NULL,
                    previous_entry_hash TEXT NOT NULL,
                    signature TEXT,  -- JSON object
                    entry_hash TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS journal_state (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    last_entry_hash TEXT NOT NULL,
                    entry_count INTEGER NOT NULL DEFAULT 0
                );

                INSERT OR IGNORE INTO journal_state (id, last_entry_hash, entry_count)
                VALUES (1, '""" + GENESIS_HASH + """', 0);

                CREATE TRIGGER IF NOT EXISTS prevent_journal_update
                BEFORE UPDATE ON journal_entries
                BEGIN
                    SELECT RAISE(ABORT, 'UPDATE not permitted on append-only journal');
                END;

                CREATE TRIGGER IF NOT EXISTS prevent_journal_delete
                BEFORE DELETE ON journal_entries
                BEGIN
                    SELECT RAISE(ABORT, 'DELETE not permitted on append-only journal');
                END;

                CREATE INDEX IF NOT EXISTS idx_journal_type ON journal_entries(event_type);
            """)

    def close(self):
        with self._lock:
            self._conn.close()

    def __call__(self, event: LedgerEvent):
        self.append(event)

    def append(self, event: LedgerEvent) -> str:
        """Append an event to the journal and return the new entry's hash."""
        payload = asdict(event)
        payload.pop("occurred_at")

        with self._lock:
            head, count = self._state()
            entry = JournalEntry(
                sequence=count + 1,
                event_type=event.event_type,
                payload=payload,
                occurred_at=event.occurred_at,
                previous_entry_hash=head,
            )
            if self._private_key is not None:
                entry.signature = sign_entry(
                    entry, self.signer_id, self._private_key, event.occurred_at
                )

            entry_hash = compute_hash(entry)

            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO journal_entries (
                        sequence, event_type, payload, occurred_at,
                        previous_entry_hash, signature, entry_hash
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.sequence,
                        entry.event_type,
                        json.dumps(entry.payload, sort_keys=True),
                        to_storage(entry.occurred_at),
                        entry.previous_entry_hash,
                        json.dumps(self._signature_to_dict(entry.signature)) if entry.signature else None,
                        entry_hash,
                    ),
                )
                self._conn.execute(
                    """
                    UPDATE journal_state
                    SET last_entry_hash = ?, entry_count = entry_count + 1
                    WHERE id = 1
                    """,
                    (entry_hash,),
                )

        logger.debug("Journaled %s as entry %d", entry.event_type, entry.sequence)
        return entry_hash

    def _state(self) -> tuple[str, int]:
        row = self._conn.execute(
            "SELECT last_entry_hash, entry_count FROM journal_state WHERE id = 1"
        ).fetchone()
        return row["last_entry_hash"], row["entry_count"]

    def head(self) -> dict:
        """Current chain head, for external anchoring."""
        with self._lock:
            head, count = self._state()
        return {"last_entry_hash": head, "entry_count": count}

    def entries(self, event_type: Optional[str] = None) -> list[JournalEntry]:
        """All entries in sequence order, optionally filtered by event type."""
        with self._lock:
            if event_type is None:
                rows = self._conn.execute(
                    "SELECT * FROM journal_entries ORDER BY sequence"
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT * FROM journal_entries WHERE event_type = ? ORDER BY sequence",
                    (event_type,),
                ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def state_hash(self) -> str:
        return compute_state_hash(self.entries())

    def verify_integrity(self) -> tuple[bool, int, str]:
        """
        Re-check the whole journal.

        Returns (is_valid, break_index, error_message) like ``verify_chain``;
        a missing or invalid signature on a signing journal is reported
        at the entry's index.
        """
        entries = self.entries()

        is_valid, index, message = verify_chain(entries)
        if not is_valid:
            return is_valid, index, message

        for i, entry in enumerate(entries):
            if entry.signature is None:
                if self._private_key is not None:
                    return False, i, f"Entry {entry.sequence} is not signed"
                continue
            if not verify_signature(entry, entry.signature):
                return False, i, f"Invalid signature on entry {entry.sequence}"

        if entries and self.head()["last_entry_hash"] != compute_hash(entries[-1]):
            return False, len(entries) - 1, "Journal head does not match last entry"

        return True, -1, ""

    def _signature_to_dict(self, sig: Signature) -> dict:
        return {
            "signer_id": sig.signer_id,
            "public_key": sig.public_key,
            "algorithm": sig.algorithm.value,
            "signature": sig.signature,
            "signed_at": to_storage(sig.signed_at),
        }

    def _row_to_entry(self, row) -> JournalEntry:
        signature = None
        if row["signature"]:
            s = json.loads(row["signature"])
            signature = Signature(
                signer_id=s["signer_id"],
                public_key=s["public_key"],
                algorithm=SignatureAlgorithm(s["algorithm"]),
                signature=s["signature"],
                signed_at=from_storage(s["signed_at"]),
            )

        return JournalEntry(
            sequence=row["sequence"],
            event_type=row["event_type"],
            payload=json.loads(row["payload"]),
            occurred_at=from_storage(row["occurred_at"]),
            previous_entry_hash=row["previous_entry_hash"],
            signature=signature,
        )
