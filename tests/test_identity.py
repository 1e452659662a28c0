"""
Tests for identity resolution and profile upkeep.
"""
from unittest.mock import MagicMock

import pytest

from tools import (
    FALLBACK_NAME,
    Identity,
    IdentityResolver,
    IdentityStatus,
    StoreError,
    effective_name,
    ensure_user_profile,
)
from conftest import ADMIN_EMAIL, ADM, U1


@pytest.fixture
def spy_records(records):
    """Real record store wrapped so every call can be counted."""
    records.bind(U1.id)
    return MagicMock(wraps=records)


class TestEffectiveName:
    """Name chosen for a new profile."""

    def test_signup_name_wins(self):
        assert effective_name(U1, "Typed Name") == "Typed Name"

    def test_display_name_then_email(self):
        assert effective_name(U1) == "User One"
        assert effective_name(Identity(id="x", email="ravi@school.test")) == "ravi"

    def test_fallback(self):
        assert effective_name(Identity(id="x")) == FALLBACK_NAME


class TestEnsureUserProfile:
    """Create-or-patch of the signed-in user's profile."""

    def test_creates_missing_profile(self, spy_records):
        profile = ensure_user_profile(spy_records, U1)

        assert profile == {"id": U1.id, "email": U1.email, "name": "User One"}
        assert spy_records.get_profile(U1.id) == profile

    def test_second_call_writes_nothing(self, spy_records):
        ensure_user_profile(spy_records, U1)
        spy_records.reset_mock()

        ensure_user_profile(spy_records, U1)

        spy_records.set_profile.assert_not_called()
        spy_records.update_profile.assert_not_called()

    def test_patches_drifted_email_and_name(self, spy_records):
        ensure_user_profile(spy_records, U1)
        changed = Identity(id=U1.id, email="new@school.test", display_name="Renamed")

        profile = ensure_user_profile(spy_records, changed)

        assert profile["email"] == "new@school.test"
        assert profile["name"] == "Renamed"
        assert spy_records.get_profile(U1.id)["name"] == "Renamed"

    def test_fallback_name_never_overwrites(self, spy_records):
        ensure_user_profile(spy_records, U1)
        spy_records.reset_mock()

        ensure_user_profile(spy_records, Identity(id=U1.id))

        assert spy_records.get_profile(U1.id)["name"] == "User One"
        spy_records.update_profile.assert_not_called()


class TestIdentityResolver:
    """Transitions, admin flag and listener notification."""

    def test_starts_unresolved(self, records):
        resolver = IdentityResolver(records, ADMIN_EMAIL)
        assert resolver.status == IdentityStatus.UNRESOLVED
        assert not resolver.resolved

    def test_sign_in_binds_store_and_notifies(self, records):
        resolver = IdentityResolver(records, ADMIN_EMAIL)
        seen = []
        resolver.subscribe(lambda identity, is_admin: seen.append((identity, is_admin)))

        resolver.set_identity(U1)

        assert records.bound
        assert resolver.status == IdentityStatus.PRESENT
        assert seen == [(U1, False)]
        assert records.get_profile(U1.id)["name"] == "User One"

    def test_admin_flag_from_email(self, records):
        resolver = IdentityResolver(records, ADMIN_EMAIL)
        resolver.set_identity(ADM)
        assert resolver.is_admin

    def test_empty_admin_email_makes_nobody_admin(self, records):
        resolver = IdentityResolver(records, "")
        resolver.set_identity(Identity(id="x", email=""))
        assert not resolver.is_admin

    def test_sign_out_unbinds_and_notifies(self, records):
        resolver = IdentityResolver(records, ADMIN_EMAIL)
        seen = []
        resolver.subscribe(lambda identity, is_admin: seen.append((identity, is_admin)))
        resolver.set_identity(ADM)

        resolver.sign_out()

        assert not records.bound
        assert resolver.status == IdentityStatus.NONE
        assert seen[-1] == (None, False)

    def test_unsubscribe(self, records):
        resolver = IdentityResolver(records, ADMIN_EMAIL)
        seen = []
        unsubscribe = resolver.subscribe(lambda identity, is_admin: seen.append(identity))

        unsubscribe()
        resolver.set_identity(U1)

        assert seen == []

    def test_profile_failure_is_a_warning(self):
        records = MagicMock()
        records.get_profile.side_effect = StoreError("get user_profiles failed: disk full")
        resolver = IdentityResolver(records, ADMIN_EMAIL)
        seen = []
        resolver.subscribe(lambda identity, is_admin: seen.append(identity))

        resolver.set_identity(U1)

        assert seen == [U1]
        assert resolver.warnings[0].startswith("Profile Error")
