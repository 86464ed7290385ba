"""
Access Ledger - Notification Events

Informational, fire-and-forget events published after each committed
mutation. Observers are plain callables; nothing they do (or raise) flows
back into ledger state.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass
class LedgerEvent:
    """Base class for all ledger notifications."""
    occurred_at: datetime

    @property
    def event_type(self) -> str:
        return type(self).__name__


@dataclass
class ResourceCreated(LedgerEvent):
    resource_id: int
    name: str
    creator: str


@dataclass
class AccessRequested(LedgerEvent):
    request_id: int
    resource_id: int
    requester: str


@dataclass
class AccessRequestProcessed(LedgerEvent):
    request_id: int
    approved: bool
    processed_by: str


@dataclass
class PermissionGranted(LedgerEvent):
    permission_id: int
    resource_id: int
    user: str
    granted_by: str


@dataclass
class PermissionRevoked(LedgerEvent):
    permission_id: int
    revoked_by: str


EventObserver = Callable[[LedgerEvent], None]


class EventBus:
    """Synchronous fan-out of ledger events to registered observers."""

    def __init__(self, observers: Iterable[EventObserver] = ()):
        self._observers: list[EventObserver] = list(observers)
        self._lock = threading.Lock()

    def subscribe(self, observer: EventObserver):
        with self._lock:
            self._observers.append(observer)

    def unsubscribe(self, observer: EventObserver):
        with self._lock:
            self._observers.remove(observer)

    def publish(self, event: LedgerEvent):
        """
        Deliver ``event`` to every observer in subscription order.

        A failing observer is logged and skipped; later observers still
        receive the event.
        """
        with self._lock:
            observers = list(self._observers)

        logger.debug("Publishing %s to %d observer(s)", event.event_type, len(observers))
        for observer in observers:
            try:
                observer(event)
            except Exception:
                logger.exception(
                    "Observer %r failed while handling %s", observer, event.event_type
                )
