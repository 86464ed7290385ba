"""
Access Ledger - Permission Ledger

Issues permissions for approved requests and revokes them. A permission
moves from active to revoked at most once; expiry is never written back,
it is judged against the caller's clock at verification time.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import logging
from datetime import datetime

from .allocator import EntityKind
from .errors import AccessLedgerError, AlreadyRevoked, NotFound, Unauthorized
from .events import EventBus, PermissionGranted, PermissionRevoked
from .records import NO_ID, AccessRequest, Permission
from .store import AccessLedgerStore
from .timestamps import ensure_aware

logger = logging.getLogger(__name__)


class PermissionLedger:
    """Grant, revoke and look up permissions."""

    def __init__(self, store: AccessLedgerStore, events: EventBus):
        self.store = store
        self.events = events

    def grant(self, request: AccessRequest, granted_by: str, now: datetime) -> int:
        """
        Mint the permission for an approved request.

        Only the request workflow calls this, inside the transaction that
        marks the request approved.
        """
        if not (request.processed and request.approved):
            raise AccessLedgerError(
                f"Request {request.id} is not approved; no permission can be granted"
            )

        permission = Permission.create(
            resource_id=request.resource_id,
            user=request.requester,
            granted_by=granted_by,
            request_id=request.id,
            now=now,
        )

        with self.store.transaction():
            permission_id = self.store.insert_permission(permission)
            self.store.after_commit(
                self.events.publish,
                PermissionGranted(
                    occurred_at=now,
                    permission_id=permission_id,
                    resource_id=permission.resource_id,
                    user=permission.user,
                    granted_by=granted_by,
                ),
            )

        logger.info(
            "Permission %d granted to %s on resource %d (expires %s)",
            permission_id, permission.user, permission.resource_id,
            permission.expires_at.isoformat(),
        )
        return permission_id

    def revoke(self, permission_id: int, caller: str, now: datetime):
        """
        Revoke an active permission.

        Allowed for the permission holder and for the creator of the
        resource it grants. Raises NotFound, AlreadyRevoked or
        Unauthorized, checked in that order.
        """
        ensure_aware(now, "now")

        with self.store.transaction():
            permission = self.get(permission_id)

            if not permission.is_active:
                raise AlreadyRevoked(f"Permission {permission_id} is already revoked")

            resource = self.store.fetch_resource(permission.resource_id)
            if caller != permission.user and caller != resource.creator:
                raise Unauthorized(
                    f"{caller} may not revoke permission {permission_id}"
                )

            self.store.deactivate_permission(permission_id, caller, now)
            self.store.after_commit(
                self.events.publish,
                PermissionRevoked(
                    occurred_at=now,
                    permission_id=permission_id,
                    revoked_by=caller,
                ),
            )

        logger.info("Permission %d revoked by %s", permission_id, caller)

    def get(self, permission_id: int) -> Permission:
        permission = None
        if permission_id != NO_ID:
            permission = self.store.fetch_permission(permission_id)
        if permission is None:
            raise NotFound(f"Permission {permission_id} does not exist")
        return permission

    def permissions_of(self, principal: str) -> list[int]:
        """Ids of permissions ever granted to ``principal``, revoked ones included."""
        return self.store.permission_ids_of(principal)

    def permissions_for_resource(self, resource_id: int) -> list[int]:
        return self.store.permission_ids_for_resource(resource_id)

    def count(self) -> int:
        return self.store.count(EntityKind.PERMISSION)
