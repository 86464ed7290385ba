"""
Tests for the event bus.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import logging

from access_ledger.events import EventBus, PermissionRevoked, ResourceCreated

from conftest import START


def _event():
    return ResourceCreated(occurred_at=START, resource_id=1, name="Payroll", creator="alice")


class TestEventBus:
    """Tests for EventBus fan-out."""

    def test_event_type_is_class_name(self):
        """Test event_type names the notification."""
        assert _event().event_type == "ResourceCreated"
        assert PermissionRevoked(occurred_at=START, permission_id=1, revoked_by="a").event_type == "PermissionRevoked"

    def test_delivers_in_subscription_order(self):
        """Test every observer sees the event, in order."""
        calls = []
        bus = EventBus([lambda e: calls.append("first")])
        bus.subscribe(lambda e: calls.append("second"))
        bus.publish(_event())
        assert calls == ["first", "second"]

    def test_unsubscribe(self):
        """Test an unsubscribed observer is no longer called."""
        calls = []
        bus = EventBus()
        bus.subscribe(calls.append)
        bus.unsubscribe(calls.append)
        bus.publish(_event())
        assert calls == []

    def test_failing_observer_is_logged_and_skipped(self, caplog):
        """Test later observers still run after one raises."""
        calls = []

        def broken(event):
            raise ValueError("nope")

        bus = EventBus([broken, calls.append])
        with caplog.at_level(logging.ERROR, logger="access_ledger.events"):
            bus.publish(_event())

        assert calls == [_event()]
        assert "failed while handling ResourceCreated" in caplog.text
