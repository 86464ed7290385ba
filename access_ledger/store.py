"""
Access Ledger - Durable Record Store

Implements the SQLite store behind the ledger: the resource, request and
permission tables, the three append-only indices and the id counters.

A single re-entrant lock guards the connection, so every mutation is
applied as one transaction in a total order and every read sees a
committed snapshot. Triggers refuse any write that would delete records
or move a record backwards through its lifecycle.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional, Union

from .allocator import EntityKind, IdentifierAllocator
from .errors import AppendOnlyViolation
from .records import AccessRequest, Permission, Resource
from .timestamps import from_storage, to_storage

logger = logging.getLogger(__name__)

SCHEMA = """
    -- Resources: immutable once inserted
    CREATE TABLE IF NOT EXISTS resources (
        id INTEGER PRIMARY KEY CHECK (id > 0),
        name TEXT NOT NULL CHECK (length(name) > 0),
        description TEXT NOT NULL CHECK (length(description) > 0),
        creator TEXT NOT NULL,
        sensitivity_level INTEGER NOT NULL
            CHECK (sensitivity_level BETWEEN 0 AND 255),
        created_at TEXT NOT NULL
    );

    -- Access requests: pending until processed exactly once
    CREATE TABLE IF NOT EXISTS access_requests (
        id INTEGER PRIMARY KEY CHECK (id > 0),
        resource_id INTEGER NOT NULL REFERENCES resources(id),
        requester TEXT NOT NULL,
        requested_level INTEGER NOT NULL CHECK (requested_level > 0),
        processed INTEGER NOT NULL DEFAULT 0,
        approved INTEGER NOT NULL DEFAULT 0,
        processed_by TEXT,
        processed_at TEXT,
        created_at TEXT NOT NULL
    );

    -- Permissions: active until revoked exactly once
    CREATE TABLE IF NOT EXISTS permissions (
        id INTEGER PRIMARY KEY CHECK (id > 0),
        resource_id INTEGER NOT NULL REFERENCES resources(id),
        user_id TEXT NOT NULL,
        granted_by TEXT NOT NULL,
        request_id INTEGER UNIQUE NOT NULL REFERENCES access_requests(id),
        granted_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        revoked_at TEXT,
        revoked_by TEXT
    );

    -- Secondary indices, append-only, ordered by seq
    CREATE TABLE IF NOT EXISTS creator_resources (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        principal TEXT NOT NULL,
        resource_id INTEGER NOT NULL REFERENCES resources(id)
    );

    CREATE TABLE IF NOT EXISTS user_permissions (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        principal TEXT NOT NULL,
        permission_id INTEGER NOT NULL REFERENCES permissions(id)
    );

    CREATE TABLE IF NOT EXISTS resource_permissions (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        resource_id INTEGER NOT NULL REFERENCES resources(id),
        permission_id INTEGER NOT NULL REFERENCES permissions(id)
    );

    -- Resources are never updated or deleted
    CREATE TRIGGER IF NOT EXISTS prevent_resource_update
    BEFORE UPDATE ON resources
    BEGIN
        SELECT RAISE(ABORT, 'UPDATE not permitted on append-only ledger');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_resource_delete
    BEFORE DELETE ON resources
    BEGIN
        SELECT RAISE(ABORT, 'DELETE not permitted on append-only ledger');
    END;

    -- A request may only move from pending to processed, once
    CREATE TRIGGER IF NOT EXISTS restrict_request_update
    BEFORE UPDATE ON access_requests
    WHEN OLD.processed = 1
        OR NEW.processed <> 1
        OR NEW.resource_id <> OLD.resource_id
        OR NEW.requester <> OLD.requester
        OR NEW.requested_level <> OLD.requested_level
        OR NEW.created_at <> OLD.created_at
    BEGIN
        SELECT RAISE(ABORT, 'UPDATE not permitted: request already processed');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_request_delete
    BEFORE DELETE ON access_requests
    BEGIN
        SELECT RAISE(ABORT, 'DELETE not permitted on append-only ledger');
    END;

    -- A permission may only move from active to revoked, once
    CREATE TRIGGER IF NOT EXISTS restrict_permission_update
    BEFORE UPDATE ON permissions
    WHEN OLD.is_active = 0
        OR NEW.is_active <> 0
        OR NEW.resource_id <> OLD.resource_id
        OR NEW.user_id <> OLD.user_id
        OR NEW.granted_by <> OLD.granted_by
        OR NEW.request_id <> OLD.request_id
        OR NEW.granted_at <> OLD.granted_at
        OR NEW.expires_at <> OLD.expires_at
    BEGIN
        SELECT RAISE(ABORT, 'UPDATE not permitted: permission already revoked');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_permission_delete
    BEFORE DELETE ON permissions
    BEGIN
        SELECT RAISE(ABORT, 'DELETE not permitted on append-only ledger');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_creator_index_update
    BEFORE UPDATE ON creator_resources
    BEGIN
        SELECT RAISE(ABORT, 'UPDATE not permitted on append-only ledger');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_creator_index_delete
    BEFORE DELETE ON creator_resources
    BEGIN
        SELECT RAISE(ABORT, 'DELETE not permitted on append-only ledger');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_user_index_update
    BEFORE UPDATE ON user_permissions
    BEGIN
        SELECT RAISE(ABORT, 'UPDATE not permitted on append-only ledger');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_user_index_delete
    BEFORE DELETE ON user_permissions
    BEGIN
        SELECT RAISE(ABORT, 'DELETE not permitted on append-only ledger');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_resource_index_update
    BEFORE UPDATE ON resource_permissions
    BEGIN
        SELECT RAISE(ABORT, 'UPDATE not permitted on append-only ledger');
    END;

    CREATE TRIGGER IF NOT EXISTS prevent_resource_index_delete
    BEFORE DELETE ON resource_permissions
    BEGIN
        SELECT RAISE(ABORT, 'DELETE not permitted on append-only ledger');
    END;

    -- Indexes for efficient queries
    CREATE INDEX IF NOT EXISTS idx_creator_principal ON creator_resources(principal);
    CREATE INDEX IF NOT EXISTS idx_user_principal ON user_permissions(principal);
    CREATE INDEX IF NOT EXISTS idx_resource_perm ON resource_permissions(resource_id);
    CREATE INDEX IF NOT EXISTS idx_request_resource ON access_requests(resource_id, processed);
"""


class AccessLedgerStore:
    """
    SQLite-backed store for resources, requests and permissions.

    All access goes through one connection guarded by one re-entrant lock.
    ``transaction()`` nests: only the outermost block commits, and any
    exception anywhere inside rolls the whole unit back.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        """Open (or create) the store at the given database path."""
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        self._depth = 0
        self._after_commit: list[tuple[Callable, tuple]] = []
        self._conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self.allocator = IdentifierAllocator(self._conn)
        self._init_db()

    def _init_db(self):
        """Initialize the schema with lifecycle constraints."""
        with self._lock:
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
            self.allocator.install()
        logger.debug("Access ledger store ready at %s", self.db_path)

    def close(self):
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self):
        """
        Exclusive, re-entrant transaction over the whole store.

        Callbacks registered with ``after_commit`` run once the outermost
        block has committed, still under the lock, in registration order.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self._conn
                finally:
                    self._depth -= 1
                return

            self._conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self._conn
            except sqlite3.IntegrityError as exc:
                self._rollback()
                if "not permitted" in str(exc):
                    raise AppendOnlyViolation(str(exc)) from exc
                raise
            except BaseException:
                self._rollback()
                raise
            else:
                try:
                    self._conn.execute("COMMIT")
                except BaseException:
                    self._rollback()
                    raise
                callbacks, self._after_commit = self._after_commit, []
            finally:
                self._depth = 0

            for callback, args in callbacks:
                callback(*args)

    @contextmanager
    def snapshot(self):
        """Hold the store lock across several reads so they agree."""
        with self._lock:
            yield self._conn

    def _rollback(self):
        self._after_commit = []
        self._conn.execute("ROLLBACK")

    def after_commit(self, callback: Callable, *args):
        """Defer ``callback(*args)`` until the current transaction commits."""
        with self._lock:
            if not self._depth:
                raise RuntimeError("after_commit() requires an open transaction")
            self._after_commit.append((callback, args))

    # -- counters --------------------------------------------------------

    def count(self, kind: EntityKind) -> int:
        """Number of ids issued for ``kind``."""
        with self._lock:
            return self.allocator.current(kind)

    # -- resources -------------------------------------------------------

    def insert_resource(self, resource: Resource) -> int:
        """Allocate an id, store the resource and index it under its creator."""
        with self.transaction() as conn:
            resource_id = self.allocator.allocate(EntityKind.RESOURCE)
            conn.execute(
                """
                INSERT INTO resources (
                    id, name, description, creator, sensitivity_level, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    resource_id,
                    resource.name,
                    resource.description,
                    resource.creator,
                    int(resource.sensitivity_level),
                    to_storage(resource.created_at),
                ),
            )
            conn.execute(
                "INSERT INTO creator_resources (principal, resource_id) VALUES (?, ?)",
                (resource.creator, resource_id),
            )
        return resource_id

    def fetch_resource(self, resource_id: int) -> Optional[Resource]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM resources WHERE id = ?",
                (resource_id,),
            ).fetchone()
        return self._row_to_resource(row) if row else None

    def resource_ids_created_by(self, principal: str) -> list[int]:
        """Resource ids created by ``principal``, in creation order."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT resource_id FROM creator_resources WHERE principal = ? ORDER BY seq",
                (principal,),
            ).fetchall()
        return [row["resource_id"] for row in rows]

    # -- requests --------------------------------------------------------

    def insert_request(self, request: AccessRequest) -> int:
        """Allocate an id and store a pending request."""
        with self.transaction() as conn:
            request_id = self.allocator.allocate(EntityKind.REQUEST)
            conn.execute(
                """
                INSERT INTO access_requests (
                    id, resource_id, requester, requested_level, created_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    request_id,
                    request.resource_id,
                    request.requester,
                    request.requested_level,
                    to_storage(request.created_at),
                ),
            )
        return request_id

    def fetch_request(self, request_id: int) -> Optional[AccessRequest]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM access_requests WHERE id = ?",
                (request_id,),
            ).fetchone()
        return self._row_to_request(row) if row else None

    def mark_request_processed(self, request_id: int, approved: bool, processed_by: str, now):
        """One-way pending -> processed transition."""
        with self.transaction() as conn:
            conn.execute(
                """
                UPDATE access_requests
                SET processed = 1, approved = ?, processed_by = ?, processed_at = ?
                WHERE id = ?
                """,
                (1 if approved else 0, processed_by, to_storage(now), request_id),
            )

    def fetch_pending_requests(self, resource_id: int) -> list[AccessRequest]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT * FROM access_requests
                WHERE resource_id = ? AND processed = 0
                ORDER BY id
                """,
                (resource_id,),
            ).fetchall()
        return [self._row_to_request(row) for row in rows]

    # -- permissions -----------------------------------------------------

    def insert_permission(self, permission: Permission) -> int:
        """Allocate an id, store the permission and append both indices."""
        with self.transaction() as conn:
            permission_id = self.allocator.allocate(EntityKind.PERMISSION)
            conn.execute(
                """
                INSERT INTO permissions (
                    id, resource_id, user_id, granted_by, request_id,
                    granted_at, expires_at, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, 1)
                """,
                (
                    permission_id,
                    permission.resource_id,
                    permission.user,
                    permission.granted_by,
                    permission.request_id,
                    to_storage(permission.granted_at),
                    to_storage(permission.expires_at),
                ),
            )
            conn.execute(
                "INSERT INTO user_permissions (principal, permission_id) VALUES (?, ?)",
                (permission.user, permission_id),
            )
            conn.execute(
                "INSERT INTO resource_permissions (resource_id, permission_id) VALUES (?, ?)",
                (permission.resource_id, permission_id),
            )
        return permission_id

    def fetch_permission(self, permission_id: int) -> Optional[Permission]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM permissions WHERE id = ?",
                (permission_id,),
            ).fetchone()
        return self._row_to_permission(row) if row else None

    def deactivate_permission(self, permission_id: int, revoked_by: str, now):
        """One-way active -> revoked transition; indices are left as they are."""
        with self.transaction() as conn:
            conn.execute(
                """
                UPDATE permissions
                SET is_active = 0, revoked_by = ?, revoked_at = ?
                WHERE id = ?
                """,
                (revoked_by, to_storage(now), permission_id),
            )

    def permission_ids_of(self, principal: str) -> list[int]:
        """Permission ids granted to ``principal``, in grant order."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT permission_id FROM user_permissions WHERE principal = ? ORDER BY seq",
                (principal,),
            ).fetchall()
        return [row["permission_id"] for row in rows]

    def permission_ids_for_resource(self, resource_id: int) -> list[int]:
        """Permission ids granted against ``resource_id``, in grant order."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT permission_id FROM resource_permissions WHERE resource_id = ? ORDER BY seq",
                (resource_id,),
            ).fetchall()
        return [row["permission_id"] for row in rows]

    def fetch_permissions_of(self, principal: str) -> list[Permission]:
        """Permissions granted to ``principal`` in index order, read as one snapshot."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT p.* FROM user_permissions u
                JOIN permissions p ON p.id = u.permission_id
                WHERE u.principal = ?
                ORDER BY u.seq
                """,
                (principal,),
            ).fetchall()
        return [self._row_to_permission(row) for row in rows]

    # -- row mapping -----------------------------------------------------

    def _row_to_resource(self, row) -> Resource:
        return Resource(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            creator=row["creator"],
            sensitivity_level=row["sensitivity_level"],
            created_at=from_storage(row["created_at"]),
        )

    def _row_to_request(self, row) -> AccessRequest:
        return AccessRequest(
            id=row["id"],
            resource_id=row["resource_id"],
            requester=row["requester"],
            requested_level=row["requested_level"],
            created_at=from_storage(row["created_at"]),
            processed=bool(row["processed"]),
            approved=bool(row["approved"]),
            processed_by=row["processed_by"],
            processed_at=from_storage(row["processed_at"]),
        )

    def _row_to_permission(self, row) -> Permission:
        return Permission(
            id=row["id"],
            resource_id=row["resource_id"],
            user=row["user_id"],
            granted_by=row["granted_by"],
            request_id=row["request_id"],
            granted_at=from_storage(row["granted_at"]),
            expires_at=from_storage(row["expires_at"]),
            is_active=bool(row["is_active"]),
            revoked_at=from_storage(row["revoked_at"]),
            revoked_by=row["revoked_by"],
        )
