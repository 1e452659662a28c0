"""
Unit tests for the ownership rule.
Tests the AuthorizationService and that denied calls never reach the stores.
"""
import pytest

from tools import (
    AuthorizationService,
    PermissionDenied,
    UnauthenticatedError,
    get_authorization_service,
)
from conftest import ADM, U1, U2, make_photo


class TestAuthorizationService:
    """Tests for the ownership predicate."""

    def test_owner_is_permitted(self):
        """An identity may act on its own partition."""
        auth = AuthorizationService()
        auth.authorize(U1, False, U1.id, "add_school")

    def test_admin_is_permitted_on_any_partition(self):
        auth = AuthorizationService()
        auth.authorize(ADM, True, U1.id, "add_school")
        auth.authorize(ADM, True, U2.id, "delete_student")

    def test_non_admin_denied_on_foreign_partition(self):
        """A non-admin targeting another owner is denied with a 'Not authorized' message."""
        auth = AuthorizationService()
        with pytest.raises(PermissionDenied) as exc_info:
            auth.authorize(U1, False, U2.id, "add_school")

        assert str(exc_info.value).startswith("Not authorized")
        assert exc_info.value.user_id == U1.id
        assert exc_info.value.target_owner_id == U2.id
        assert exc_info.value.action == "add_school"

    def test_no_identity_is_unauthenticated(self):
        auth = AuthorizationService()
        with pytest.raises(UnauthenticatedError):
            auth.authorize(None, False, U1.id, "add_school")
        with pytest.raises(UnauthenticatedError):
            auth.resolve_owner(None, True, U1.id, "add_school")

    def test_resolve_owner_defaults_to_acting_identity(self):
        auth = get_authorization_service()
        assert auth.resolve_owner(U1, False, None, "add_school") == U1.id
        assert auth.resolve_owner(U1, False, U1.id, "add_school") == U1.id

    def test_resolve_owner_uses_explicit_target_for_admin(self):
        auth = AuthorizationService()
        assert auth.resolve_owner(ADM, True, U1.id, "add_school") == U1.id

    def test_resolve_owner_denies_foreign_target(self):
        auth = AuthorizationService()
        with pytest.raises(PermissionDenied):
            auth.resolve_owner(U1, False, U2.id, "add_school")

    def test_can_act_for(self):
        auth = AuthorizationService()
        assert auth.can_act_for(U1, False, U1.id)
        assert not auth.can_act_for(U1, False, U2.id)
        assert auth.can_act_for(ADM, True, U2.id)
        assert not auth.can_act_for(None, True, U1.id)


class TestDeniedBeforeStoreAccess:
    """A denied operation performs no record or asset I/O."""

    def test_denied_add_school_writes_nothing(self, make_state, records):
        state = make_state(U1)

        with pytest.raises(PermissionDenied):
            state.add_school({"name": "Intruder School"}, target_user_id=U2.id)

        records.bind(U2.id)
        assert records.query_all(U2.id, "schools") == []
        assert state.schools == []

    def test_denied_add_student_uploads_nothing(self, make_state, assets):
        state = make_state(U1)

        with pytest.raises(PermissionDenied):
            state.add_student(
                {"school_id": "s1", "class_name": "LKG", "name": "Ravi"},
                photo=make_photo(),
                school_name="Green Valley",
                target_user_id=U2.id,
            )

        assert assets.calls == []

    def test_denied_reads_for_other_owner(self, make_state):
        owner = make_state(U2)
        school = owner.add_school({"name": "Riverside"})

        state = make_state(U1)
        with pytest.raises(PermissionDenied):
            state.fetch_schools_for_user(U2.id)
        with pytest.raises(PermissionDenied):
            state.fetch_school_by_id_for_user(U2.id, school["id"])
        with pytest.raises(PermissionDenied):
            state.fetch_students_for_school(U2.id, school["id"])

    def test_signed_out_session_is_unauthenticated(self, make_state):
        state = make_state()

        with pytest.raises(UnauthenticatedError):
            state.add_school({"name": "Nobody's School"})
        with pytest.raises(UnauthenticatedError):
            state.fetch_schools_for_user(U1.id)

    def test_admin_reads_any_owner(self, make_state):
        owner = make_state(U1)
        school = owner.add_school({"name": "Hilltop", "class_names": ["LKG"]})

        admin = make_state(ADM)
        assert admin.is_admin
        assert [s["id"] for s in admin.fetch_schools_for_user(U1.id)] == [school["id"]]
        assert admin.fetch_school_by_id_for_user(U1.id, school["id"])["name"] == "Hilltop"
