"""
Access Ledger - Identifier Allocator

Three independent, strictly increasing id counters (resources, requests,
permissions) kept in the ledger database. Each counter starts at zero and
is pre-incremented, so the first id handed out is 1 and 0 stays reserved
as "no such record".

Allocation must run inside the store's exclusive transaction so that the
id and the record it names are committed (or rolled back) together.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import sqlite3
from enum import Enum


class EntityKind(str, Enum):
    """Record kinds with their own id space."""
    RESOURCE = "resource"
    REQUEST = "request"
    PERMISSION = "permission"


SCHEMA = """
    -- One row per entity kind
    CREATE TABLE IF NOT EXISTS id_counters (
        kind TEXT PRIMARY KEY,
        value INTEGER NOT NULL DEFAULT 0 CHECK (value >= 0)
    );

    INSERT OR IGNORE INTO id_counters (kind, value) VALUES ('resource', 0);
    INSERT OR IGNORE INTO id_counters (kind, value) VALUES ('request', 0);
    INSERT OR IGNORE INTO id_counters (kind, value) VALUES ('permission', 0);

    -- Counters only ever step forward by one
    CREATE TRIGGER IF NOT EXISTS prevent_counter_rewind
    BEFORE UPDATE ON id_counters
    WHEN NEW.value <> OLD.value + 1 OR NEW.kind <> OLD.kind
    BEGIN
        SELECT RAISE(ABORT, 'UPDATE not permitted: counters only advance by one');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_counter_delete
    BEFORE DELETE ON id_counters
    BEGIN
        SELECT RAISE(ABORT, 'DELETE not permitted on append-only ledger');
    END;
"""


class IdentifierAllocator:
    """Hands out ids from the counters table of a ledger connection."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def install(self):
        """Create the counters table if it does not exist yet."""
        self._conn.executescript(SCHEMA)

    def allocate(self, kind: EntityKind) -> int:
        """
        Advance the counter for ``kind`` and return the new value.

        Caller must hold the store transaction; the increment is undone
        if that transaction rolls back.
        """
        self._conn.execute(
            "UPDATE id_counters SET value = value + 1 WHERE kind = ?",
            (kind.value,),
        )
        return self.current(kind)

    def current(self, kind: EntityKind) -> int:
        """Last id issued for ``kind`` (0 if none)."""
        cursor = self._conn.execute(
            "SELECT value FROM id_counters WHERE kind = ?",
            (kind.value,),
        )
        row = cursor.fetchone()
        return row[0] if row else 0
