"""
Tests for access verification.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import pytest
from datetime import timedelta

from access_ledger.errors import InvalidInput, NotFound
from access_ledger.verify import AccessDecision, has_access

from conftest import ALICE, BOB, CAROL


def _grant(ledger, resource_id, user, creator=ALICE):
    """Submit and approve a request; returns the new permission id."""
    request_id = ledger.submit_request(resource_id, 1, user)
    ledger.process_request(request_id, True, creator)
    return ledger.permissions_of(user)[-1]


class TestCreatorBypass:
    """Tests for the creator always passing."""

    @pytest.mark.parametrize("level", [0, 1, 100, 255, 1000])
    def test_creator_passes_any_level(self, ledger, resource_id, level):
        """Test the creator passes regardless of the level asked."""
        assert ledger.verify_access(resource_id, level, ALICE)
        assert ledger.evaluate_access(resource_id, level, ALICE) == (True, AccessDecision.CREATOR)

    def test_creator_passes_without_permission_on_public(self, ledger):
        """Test the bypass does not depend on permissions."""
        resource_id = ledger.create_resource("Menu", "desc", 0, ALICE)
        assert ledger.verify_access(resource_id, 255, ALICE)


class TestSensitivityCeiling:
    """Tests for the sensitivity level gating non-creators."""

    @pytest.mark.parametrize("level", [101, 150, 255])
    def test_above_ceiling_denied_despite_permission(self, ledger, resource_id, level):
        """Test a valid permission never lifts access above the ceiling."""
        _grant(ledger, resource_id, BOB)
        assert not ledger.verify_access(resource_id, level, BOB)
        assert ledger.evaluate_access(resource_id, level, BOB) == (
            False, AccessDecision.SENSITIVITY_CEILING,
        )

    def test_at_ceiling_allowed(self, ledger, resource_id):
        """Test the ceiling itself is still reachable."""
        _grant(ledger, resource_id, BOB)
        assert ledger.verify_access(resource_id, 100, BOB)

    def test_public_resource_stranger(self, ledger):
        """Test level 1 on a level-0 resource is denied by the ceiling."""
        resource_id = ledger.create_resource("Menu", "Cafeteria menu", 0, ALICE)
        assert not ledger.verify_access(resource_id, 1, CAROL)
        assert ledger.evaluate_access(resource_id, 1, CAROL)[1] == AccessDecision.SENSITIVITY_CEILING


class TestPermissionScan:
    """Tests for the permission search behind verification."""

    def test_no_permission(self, ledger, resource_id):
        """Test a stranger with nothing is denied."""
        assert ledger.evaluate_access(resource_id, 50, CAROL) == (
            False, AccessDecision.NO_PERMISSION,
        )

    def test_permission_on_other_resource(self, ledger, resource_id):
        """Test a permission only counts for its own resource."""
        other = ledger.create_resource("Other", "desc", 100, ALICE)
        _grant(ledger, other, BOB)
        assert not ledger.verify_access(resource_id, 50, BOB)
        assert ledger.verify_access(other, 50, BOB)

    def test_valid_until_expiry(self, ledger, clock, resource_id):
        """Test access holds strictly before expires_at and lapses after."""
        permission_id = _grant(ledger, resource_id, BOB)
        expires_at = ledger.get_permission(permission_id).expires_at

        clock.now = expires_at - timedelta(seconds=1)
        assert ledger.verify_access(resource_id, 80, BOB)

        clock.now = expires_at
        assert not ledger.verify_access(resource_id, 80, BOB)

        clock.now = expires_at + timedelta(days=1)
        assert ledger.evaluate_access(resource_id, 80, BOB) == (
            False, AccessDecision.PERMISSION_EXPIRED,
        )
        assert ledger.get_permission(permission_id).is_active

    def test_later_valid_permission_found(self, ledger, clock, resource_id):
        """Test a revoked or lapsed entry does not hide a later valid one."""
        first = _grant(ledger, resource_id, BOB)
        ledger.revoke_permission(first, BOB)

        clock.advance(timedelta(days=200))
        second = _grant(ledger, resource_id, BOB)
        clock.advance(timedelta(days=200))
        third = _grant(ledger, resource_id, BOB)

        # first revoked, second lapsed, third usable
        clock.advance(timedelta(days=200))
        assert ledger.permissions_of(BOB) == [first, second, third]
        assert ledger.evaluate_access(resource_id, 80, BOB) == (True, AccessDecision.PERMISSION)

    def test_revoked_reason(self, ledger, resource_id):
        """Test a revoked-only history reports revocation."""
        permission_id = _grant(ledger, resource_id, BOB)
        ledger.revoke_permission(permission_id, ALICE)
        assert ledger.evaluate_access(resource_id, 80, BOB) == (
            False, AccessDecision.PERMISSION_REVOKED,
        )


class TestVerifyErrors:
    """Tests for verification failures."""

    @pytest.mark.parametrize("resource_id", [0, 3])
    def test_unknown_resource(self, ledger, resource_id):
        """Test verifying a missing resource raises NotFound."""
        with pytest.raises(NotFound):
            ledger.verify_access(resource_id, 1, ALICE)

    def test_naive_clock_rejected(self, ledger, clock, resource_id):
        """Test the host clock must be timezone-aware."""
        clock.now = clock.now.replace(tzinfo=None)
        with pytest.raises(InvalidInput):
            ledger.verify_access(resource_id, 1, BOB)

    def test_verify_writes_nothing(self, ledger, resource_id, events):
        """Test verification is side-effect free."""
        _grant(ledger, resource_id, BOB)
        before = (ledger.counters(), len(events), ledger.get_permission(1))
        ledger.verify_access(resource_id, 80, BOB)
        ledger.verify_access(resource_id, 255, CAROL)
        assert before == (ledger.counters(), len(events), ledger.get_permission(1))


class TestHasAccess:
    """Tests for the standalone check."""

    def test_has_access(self, ledger, clock, resource_id):
        """Test the standalone function agrees with the ledger."""
        _grant(ledger, resource_id, BOB)
        assert has_access(ledger.store, resource_id, 80, BOB, clock.now)
        assert not has_access(ledger.store, resource_id, 80, CAROL, clock.now)
