"""
Access Ledger - Request Workflow

Submission and processing of access requests. Processing is the only
transition a request ever makes (pending -> approved or rejected) and,
on approval, mints the permission in the same transaction.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import logging
from datetime import datetime

from .allocator import EntityKind
from .errors import AlreadyProcessed, InvalidInput, NotFound, Unauthorized
from .events import AccessRequested, AccessRequestProcessed, EventBus
from .permissions import PermissionLedger
from .records import NO_ID, AccessRequest
from .registry import ResourceRegistry
from .store import AccessLedgerStore
from .timestamps import ensure_aware

logger = logging.getLogger(__name__)


class RequestWorkflow:
    """
    Request lifecycle.

    Anyone may submit a request for an existing resource; only the
    resource creator may process it. The requested level is recorded but
    not checked against the resource's sensitivity level at either step:
    approval is at the creator's discretion and the resulting permission
    carries no level.
    """

    def __init__(
        self,
        store: AccessLedgerStore,
        events: EventBus,
        registry: ResourceRegistry,
        permissions: PermissionLedger,
    ):
        self.store = store
        self.events = events
        self.registry = registry
        self.permissions = permissions

    def submit(
        self,
        resource_id: int,
        requested_level: int,
        requester: str,
        now: datetime,
    ) -> int:
        """Record a pending request; returns the new request id."""
        ensure_aware(now, "now")
        request = AccessRequest.create(resource_id, requested_level, requester, now)

        with self.store.transaction():
            self.registry.get(resource_id)

            is_valid, errors = request.validate()
            if not is_valid:
                raise InvalidInput("; ".join(errors))

            request_id = self.store.insert_request(request)
            self.store.after_commit(
                self.events.publish,
                AccessRequested(
                    occurred_at=now,
                    request_id=request_id,
                    resource_id=resource_id,
                    requester=requester,
                ),
            )

        logger.info(
            "Request %d submitted by %s for resource %d at level %d",
            request_id, requester, resource_id, requested_level,
        )
        return request_id

    def process(self, request_id: int, approve: bool, caller: str, now: datetime):
        """
        Approve or reject a pending request.

        Raises NotFound, AlreadyProcessed or Unauthorized, checked in that
        order. On approval exactly one permission is granted to the
        requester.
        """
        ensure_aware(now, "now")
        approve = bool(approve)

        with self.store.transaction():
            request = self.get(request_id)

            if request.processed:
                raise AlreadyProcessed(f"Request {request_id} has already been processed")

            resource = self.registry.get(request.resource_id)
            if caller != resource.creator:
                raise Unauthorized(
                    f"Only the creator of resource {resource.id} may process request {request_id}"
                )

            self.store.mark_request_processed(request_id, approve, caller, now)
            request.processed = True
            request.approved = approve
            request.processed_by = caller
            request.processed_at = now

            self.store.after_commit(
                self.events.publish,
                AccessRequestProcessed(
                    occurred_at=now,
                    request_id=request_id,
                    approved=approve,
                    processed_by=caller,
                ),
            )

            if approve:
                self.permissions.grant(request, caller, now)

        logger.info(
            "Request %d %s by %s",
            request_id, "approved" if approve else "rejected", caller,
        )

    def get(self, request_id: int) -> AccessRequest:
        request = None
        if request_id != NO_ID:
            request = self.store.fetch_request(request_id)
        if request is None:
            raise NotFound(f"Request {request_id} does not exist")
        return request

    def pending_requests(self, resource_id: int) -> list[AccessRequest]:
        """Unprocessed requests against an existing resource, oldest first."""
        self.registry.get(resource_id)
        return self.store.fetch_pending_requests(resource_id)

    def count(self) -> int:
        return self.store.count(EntityKind.REQUEST)
