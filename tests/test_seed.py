"""
Tests for the demo seed script.
"""
from database.seed import seed_database
from tools import RecordStore, SCHOOLS, STUDENTS
from conftest import U1, U2


def test_seed_replaces_only_the_owners_data(session_factory):
    store = RecordStore(session_factory)
    store.bind(U1.id)
    store.create(U1.id, SCHOOLS, {"name": "Old School"})
    store.create(U2.id, SCHOOLS, {"name": "Someone Else's"})

    counts = seed_database(U1.id, U1.email, session_factory=session_factory)
    seed_database(U1.id, U1.email, session_factory=session_factory)

    assert counts == {"schools": 2, "students": 4}
    names = sorted(s["name"] for s in store.query_all(U1.id, SCHOOLS))
    assert names == ["Green Valley School", "Riverside Academy"]
    assert len(store.query_all(U1.id, STUDENTS)) == 4
    assert [s["name"] for s in store.query_all(U2.id, SCHOOLS)] == ["Someone Else's"]
    assert store.get_profile(U1.id)["email"] == U1.email
