"""
Pytest configuration and shared fixtures.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add the repository root to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from access_ledger.service import AccessControlLedger


ALICE = "principal-alice"
BOB = "principal-bob"
CAROL = "principal-carol"

START = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Host clock the tests can move forward by hand."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta):
        self.now = self.now + delta


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    """Collects every published event in order."""
    return []


@pytest.fixture
def ledger(clock, events):
    """In-memory ledger driven by the fake clock."""
    ledger = AccessControlLedger(":memory:", clock=clock, observers=[events.append])
    yield ledger
    ledger.close()


@pytest.fixture
def resource_id(ledger):
    """A confidential resource owned by Alice."""
    return ledger.create_resource("Payroll", "Quarterly payroll export", 100, ALICE)
