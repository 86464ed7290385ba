"""
Access Ledger - Host Facade

Wires the store, registry, workflow, permission ledger, verifier and
event bus together and feeds every operation the host's clock.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from .allocator import EntityKind
from .audit import AuditJournal
from .config import LedgerSettings
from .events import EventBus, EventObserver
from .permissions import PermissionLedger
from .records import AccessRequest, Permission, Resource
from .registry import ResourceRegistry
from .signatures import load_private_key
from .store import AccessLedgerStore
from .timestamps import utc_now
from .verify import AccessDecision, AccessVerifier
from .workflow import RequestWorkflow

logger = logging.getLogger(__name__)


class AccessControlLedger:
    """
    Access-control ledger.

    Every call names the already-authenticated principal making it
    (``caller``); the current time comes from ``clock``.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = ":memory:",
        clock: Optional[Callable[[], datetime]] = None,
        observers: Iterable[EventObserver] = (),
    ):
        self.clock = clock or utc_now
        self.store = AccessLedgerStore(db_path)
        self.events = EventBus(observers)
        self.registry = ResourceRegistry(self.store, self.events)
        self.permissions = PermissionLedger(self.store, self.events)
        self.workflow = RequestWorkflow(
            self.store, self.events, self.registry, self.permissions
        )
        self.verifier = AccessVerifier(self.store)
        self.journal: Optional[AuditJournal] = None

    @classmethod
    def from_settings(
        cls,
        settings: LedgerSettings,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "AccessControlLedger":
        """Build a ledger from settings, attaching the audit journal if configured."""
        ledger = cls(settings.database_path, clock=clock)

        if settings.audit_database_path:
            private_key = None
            if settings.audit_signing_key_path:
                private_key = load_private_key(settings.audit_signing_key_path)
            ledger.journal = AuditJournal(
                settings.audit_database_path,
                signer_id=settings.audit_signer_id if private_key else None,
                private_key=private_key,
            )
            ledger.subscribe(ledger.journal)
            logger.info("Audit journal enabled at %s", settings.audit_database_path)

        return ledger

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        self.store.close()
        if self.journal is not None:
            self.journal.close()

    def subscribe(self, observer: EventObserver):
        self.events.subscribe(observer)

    # -- resources -------------------------------------------------------

    def create_resource(
        self,
        name: str,
        description: str,
        sensitivity_level: int,
        caller: str,
    ) -> int:
        return self.registry.create(name, description, sensitivity_level, caller, self.clock())

    def get_resource(self, resource_id: int) -> Resource:
        return self.registry.get(resource_id)

    def resources_of(self, principal: str) -> list[int]:
        return self.registry.resources_of(principal)

    # -- requests --------------------------------------------------------

    def submit_request(self, resource_id: int, requested_level: int, caller: str) -> int:
        return self.workflow.submit(resource_id, requested_level, caller, self.clock())

    def process_request(self, request_id: int, approve: bool, caller: str):
        self.workflow.process(request_id, approve, caller, self.clock())

    def get_request(self, request_id: int) -> AccessRequest:
        return self.workflow.get(request_id)

    def pending_requests(self, resource_id: int) -> list[AccessRequest]:
        return self.workflow.pending_requests(resource_id)

    # -- permissions -----------------------------------------------------

    def verify_access(self, resource_id: int, required_level: int, caller: str) -> bool:
        return self.verifier.verify(resource_id, required_level, caller, self.clock())

    def evaluate_access(
        self, resource_id: int, required_level: int, caller: str
    ) -> tuple[bool, AccessDecision]:
        return self.verifier.evaluate(resource_id, required_level, caller, self.clock())

    def revoke_permission(self, permission_id: int, caller: str):
        self.permissions.revoke(permission_id, caller, self.clock())

    def get_permission(self, permission_id: int) -> Permission:
        return self.permissions.get(permission_id)

    def permissions_of(self, principal: str) -> list[int]:
        return self.permissions.permissions_of(principal)

    def permissions_for_resource(self, resource_id: int) -> list[int]:
        return self.permissions.permissions_for_resource(resource_id)

    def counters(self) -> dict[str, int]:
        """Ids issued so far per record kind."""
        return {kind.value: self.store.count(kind) for kind in EntityKind}
