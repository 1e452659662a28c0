"""
Tests for the record store adapter.
"""
from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from tools import (
    DELETE_FIELD,
    SCHOOLS,
    STUDENTS,
    RecordNotFoundError,
    RecordStore,
    StoreError,
    UnauthenticatedError,
)
from conftest import U1, U2


@pytest.fixture
def bound_records(records):
    records.bind(U1.id)
    return records


def _student(school_id, name="Asha", class_name="5th Grade", **extra):
    return {"school_id": school_id, "class_name": class_name, "name": name, **extra}


class TestSession:
    """Binding to a principal."""

    def test_unbound_store_is_unauthenticated(self, records):
        assert not records.bound
        with pytest.raises(UnauthenticatedError):
            records.query_all(U1.id, SCHOOLS)
        with pytest.raises(UnauthenticatedError):
            records.create(U1.id, SCHOOLS, {"name": "Oakridge"})

    def test_unbind_after_bind(self, records):
        records.bind(U1.id)
        assert records.bound
        records.unbind()
        with pytest.raises(UnauthenticatedError):
            records.list_profiles()

    def test_driver_error_becomes_store_error(self):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
        store = RecordStore(lambda: db)
        store.bind(U1.id)

        with pytest.raises(StoreError) as exc_info:
            store.query_all(U1.id, SCHOOLS)

        assert isinstance(exc_info.value.cause, OperationalError)
        db.rollback.assert_called_once()
        db.close.assert_called_once()

    def test_unknown_collection(self, bound_records):
        with pytest.raises(StoreError):
            bound_records.query_all(U1.id, "teachers")


class TestReadsAndWrites:
    """Owner-scoped CRUD."""

    def test_create_assigns_id_and_round_trips(self, bound_records):
        school_id = bound_records.create(U1.id, SCHOOLS, {"name": "Oakridge", "class_names": ["LKG", "UKG"]})

        school = bound_records.get_by_id(U1.id, SCHOOLS, school_id)
        assert school == {
            "id": school_id,
            "owner_user_id": U1.id,
            "name": "Oakridge",
            "class_names": ["LKG", "UKG"],
        }

    def test_records_are_partitioned_by_owner(self, bound_records):
        school_id = bound_records.create(U1.id, SCHOOLS, {"name": "Oakridge"})
        bound_records.create(U2.id, SCHOOLS, {"name": "Riverside"})

        assert [s["name"] for s in bound_records.query_all(U1.id, SCHOOLS)] == ["Oakridge"]
        assert [s["name"] for s in bound_records.query_all(U2.id, SCHOOLS)] == ["Riverside"]
        assert bound_records.get_by_id(U2.id, SCHOOLS, school_id) is None

    def test_query_where_matches_all_equalities(self, bound_records):
        bound_records.create(U1.id, STUDENTS, _student("s1", "Asha", "5th Grade"))
        bound_records.create(U1.id, STUDENTS, _student("s1", "Bala", "6th Grade"))
        bound_records.create(U1.id, STUDENTS, _student("s2", "Chitra", "5th Grade"))

        in_school = bound_records.query_where(U1.id, STUDENTS, school_id="s1")
        in_class = bound_records.query_where(U1.id, STUDENTS, school_id="s1", class_name="5th Grade")

        assert sorted(s["name"] for s in in_school) == ["Asha", "Bala"]
        assert [s["name"] for s in in_class] == ["Asha"]

    def test_date_of_birth_is_a_calendar_date(self, bound_records):
        student_id = bound_records.create(
            U1.id, STUDENTS, _student("s1", date_of_birth="2015-06-01")
        )
        student = bound_records.get_by_id(U1.id, STUDENTS, student_id)
        assert student["date_of_birth"] == date(2015, 6, 1)

    def test_invalid_date_is_rejected(self, bound_records):
        with pytest.raises(StoreError):
            bound_records.create(U1.id, STUDENTS, _student("s1", date_of_birth="01/06/2015"))

    def test_unknown_field_is_rejected(self, bound_records):
        with pytest.raises(StoreError):
            bound_records.create(U1.id, SCHOOLS, {"name": "Oakridge", "motto": "Learn"})

    def test_update_merges_partial(self, bound_records):
        student_id = bound_records.create(U1.id, STUDENTS, _student("s1", roll_number="7"))

        bound_records.update(U1.id, STUDENTS, student_id, {"name": "Asha K"})

        student = bound_records.get_by_id(U1.id, STUDENTS, student_id)
        assert student["name"] == "Asha K"
        assert student["roll_number"] == "7"

    def test_update_with_delete_field_clears_value(self, bound_records):
        student_id = bound_records.create(U1.id, STUDENTS, _student("s1", photo_asset_ref="asset-9"))

        bound_records.update(U1.id, STUDENTS, student_id, {"photo_asset_ref": DELETE_FIELD})

        assert bound_records.get_by_id(U1.id, STUDENTS, student_id)["photo_asset_ref"] is None

    def test_update_missing_record(self, bound_records):
        with pytest.raises(RecordNotFoundError) as exc_info:
            bound_records.update(U1.id, SCHOOLS, "missing", {"name": "Ghost"})
        assert str(exc_info.value) == "Record missing: schools/missing"

    def test_update_other_owners_record_is_missing(self, bound_records):
        school_id = bound_records.create(U2.id, SCHOOLS, {"name": "Riverside"})
        with pytest.raises(RecordNotFoundError):
            bound_records.update(U1.id, SCHOOLS, school_id, {"name": "Taken"})

    def test_delete_and_delete_missing(self, bound_records):
        school_id = bound_records.create(U1.id, SCHOOLS, {"name": "Oakridge"})

        bound_records.delete(U1.id, SCHOOLS, school_id)
        bound_records.delete(U1.id, SCHOOLS, school_id)

        assert bound_records.get_by_id(U1.id, SCHOOLS, school_id) is None


class TestWriteBatch:
    """Atomic multi-document deletes."""

    def test_batch_deletes_across_collections(self, bound_records):
        school_id = bound_records.create(U1.id, SCHOOLS, {"name": "Oakridge"})
        a = bound_records.create(U1.id, STUDENTS, _student(school_id, "Asha"))
        b = bound_records.create(U1.id, STUDENTS, _student(school_id, "Bala"))
        keep = bound_records.create(U1.id, STUDENTS, _student("other", "Chitra"))

        batch = bound_records.batch(U1.id)
        batch.delete(SCHOOLS, school_id).delete(STUDENTS, a).delete(STUDENTS, b)
        assert len(batch) == 3
        batch.commit()

        assert bound_records.query_all(U1.id, SCHOOLS) == []
        assert [s["id"] for s in bound_records.query_all(U1.id, STUDENTS)] == [keep]

    def test_batch_is_scoped_to_owner(self, bound_records):
        school_id = bound_records.create(U2.id, SCHOOLS, {"name": "Riverside"})

        bound_records.batch_delete(U1.id, SCHOOLS, [school_id])

        assert bound_records.get_by_id(U2.id, SCHOOLS, school_id) is not None

    def test_batch_commits_once(self, bound_records):
        batch = bound_records.batch(U1.id)
        batch.commit()
        with pytest.raises(StoreError):
            batch.commit()

    def test_batch_rejects_unknown_collection(self, bound_records):
        with pytest.raises(StoreError):
            bound_records.batch(U1.id).delete("teachers", "t1")


class TestProfiles:
    """The global user_profiles collection."""

    def test_set_get_update(self, bound_records):
        bound_records.set_profile({"id": U1.id, "email": U1.email, "name": "User One"})
        bound_records.update_profile(U1.id, {"name": "U. One"})

        assert bound_records.get_profile(U1.id) == {"id": U1.id, "email": U1.email, "name": "U. One"}
        assert bound_records.get_profile("nobody") is None

    def test_update_missing_profile(self, bound_records):
        with pytest.raises(RecordNotFoundError):
            bound_records.update_profile("nobody", {"name": "Ghost"})

    def test_update_profile_rejects_unknown_field(self, bound_records):
        bound_records.set_profile({"id": U1.id, "email": U1.email, "name": "User One"})
        with pytest.raises(StoreError):
            bound_records.update_profile(U1.id, {"role": "admin"})

    def test_list_profiles(self, bound_records):
        bound_records.set_profile({"id": U1.id, "email": U1.email, "name": "User One"})
        bound_records.set_profile({"id": U2.id, "email": U2.email, "name": "User Two"})

        assert sorted(p["id"] for p in bound_records.list_profiles()) == [U1.id, U2.id]
