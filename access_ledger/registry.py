"""
Access Ledger - Resource Registry

Owns resource creation and lookup. Resources are write-once: there is
no update or delete operation.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import logging
from datetime import datetime

from .allocator import EntityKind
from .errors import InvalidInput, NotFound
from .events import EventBus, ResourceCreated
from .records import NO_ID, Resource
from .store import AccessLedgerStore
from .timestamps import ensure_aware

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """Creates resources and answers lookups against the store."""

    def __init__(self, store: AccessLedgerStore, events: EventBus):
        self.store = store
        self.events = events

    def create(
        self,
        name: str,
        description: str,
        sensitivity_level: int,
        creator: str,
        now: datetime,
    ) -> int:
        """
        Register a new resource owned by ``creator``.

        Raises InvalidInput for an empty name or description, or for a
        sensitivity level outside [0, 255]. Returns the new resource id.
        """
        ensure_aware(now, "now")
        resource = Resource.create(name, description, sensitivity_level, creator, now)

        is_valid, errors = resource.validate()
        if not is_valid:
            raise InvalidInput("; ".join(errors))

        with self.store.transaction():
            resource_id = self.store.insert_resource(resource)
            self.store.after_commit(
                self.events.publish,
                ResourceCreated(
                    occurred_at=now,
                    resource_id=resource_id,
                    name=name,
                    creator=creator,
                ),
            )

        logger.info(
            "Resource %d created by %s (sensitivity %d)",
            resource_id, creator, sensitivity_level,
        )
        return resource_id

    def get(self, resource_id: int) -> Resource:
        """Return the stored resource or raise NotFound."""
        resource = None
        if resource_id != NO_ID:
            resource = self.store.fetch_resource(resource_id)
        if resource is None:
            raise NotFound(f"Resource {resource_id} does not exist")
        return resource

    def resources_of(self, principal: str) -> list[int]:
        """Ids of resources created by ``principal``, oldest first."""
        return self.store.resource_ids_created_by(principal)

    def count(self) -> int:
        return self.store.count(EntityKind.RESOURCE)
