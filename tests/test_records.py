"""
Tests for Resource, AccessRequest and Permission records.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import pytest
from datetime import datetime, timezone, timedelta

from access_ledger.records import (
    AccessRequest,
    Permission,
    RequestStatus,
    Resource,
    SensitivityLevel,
    GRANT_DURATION,
    NO_ID,
)


@pytest.fixture
def now():
    return datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def valid_resource(now):
    """A valid, not yet stored resource."""
    return Resource.create("Payroll", "Quarterly payroll export", 3, "alice", now)


class TestResource:
    """Tests for Resource."""

    def test_create_has_no_id(self, valid_resource):
        """Test the factory leaves the id unset until stored."""
        assert valid_resource.id == NO_ID
        assert valid_resource.creator == "alice"

    def test_validate_valid_resource(self, valid_resource):
        """Test validation passes for a valid resource."""
        is_valid, errors = valid_resource.validate()
        assert is_valid
        assert errors == []

    def test_validate_empty_name(self, valid_resource):
        """Test validation fails for an empty name."""
        valid_resource.name = ""
        is_valid, errors = valid_resource.validate()
        assert not is_valid
        assert "name cannot be empty" in errors

    def test_validate_empty_description(self, valid_resource):
        """Test validation fails for an empty description."""
        valid_resource.description = ""
        is_valid, errors = valid_resource.validate()
        assert not is_valid
        assert "description cannot be empty" in errors

    @pytest.mark.parametrize("level", [0, 255, SensitivityLevel.TOP_SECRET])
    def test_validate_level_bounds_accepted(self, valid_resource, level):
        """Test the full [0, 255] range is accepted."""
        valid_resource.sensitivity_level = level
        is_valid, _ = valid_resource.validate()
        assert is_valid

    @pytest.mark.parametrize("level", [-1, 256, "3", True])
    def test_validate_level_rejected(self, valid_resource, level):
        """Test out-of-range and non-integer levels are rejected."""
        valid_resource.sensitivity_level = level
        is_valid, errors = valid_resource.validate()
        assert not is_valid
        assert any("sensitivity_level" in e for e in errors)


class TestAccessRequest:
    """Tests for AccessRequest."""

    def test_new_request_is_pending(self, now):
        """Test a new request starts unprocessed."""
        request = AccessRequest.create(1, 80, "bob", now)
        assert not request.processed
        assert not request.approved
        assert request.processed_by is None
        assert request.status == RequestStatus.PENDING

    def test_status_after_processing(self, now):
        """Test the derived status follows processed/approved."""
        request = AccessRequest.create(1, 80, "bob", now)
        request.processed = True
        assert request.status == RequestStatus.REJECTED
        request.approved = True
        assert request.status == RequestStatus.APPROVED

    @pytest.mark.parametrize("level", [0, -5])
    def test_validate_non_positive_level(self, now, level):
        """Test requested_level must be positive."""
        request = AccessRequest.create(1, level, "bob", now)
        is_valid, errors = request.validate()
        assert not is_valid
        assert "requested_level must be positive" in errors

    def test_validate_level_above_sensitivity_allowed(self, now):
        """Test the level is not compared to any resource at this point."""
        request = AccessRequest.create(1, 255, "bob", now)
        is_valid, _ = request.validate()
        assert is_valid

    def test_validate_level_has_no_upper_bound(self, now):
        """Test large requested levels are valid."""
        request = AccessRequest.create(1, 256, "bob", now)
        is_valid, _ = request.validate()
        assert is_valid


class TestPermission:
    """Tests for Permission."""

    def test_expiry_is_fixed_window(self, now):
        """Test expires_at is granted_at plus 365 days."""
        permission = Permission.create(1, "bob", "alice", 1, now)
        assert permission.expires_at == now + timedelta(days=365)
        assert GRANT_DURATION == timedelta(days=365)
        assert permission.expires_at > permission.granted_at
        assert permission.is_active

    def test_expiry_does_not_touch_is_active(self, now):
        """Test an expired permission is still flagged active."""
        permission = Permission.create(1, "bob", "alice", 1, now)
        later = permission.expires_at + timedelta(seconds=1)
        assert permission.is_expired(later)
        assert permission.is_active
        assert not permission.is_usable(later)

    def test_expiry_boundary(self, now):
        """Test a permission is expired exactly at expires_at."""
        permission = Permission.create(1, "bob", "alice", 1, now)
        assert permission.is_usable(permission.expires_at - timedelta(microseconds=1))
        assert not permission.is_usable(permission.expires_at)
