"""
Shared fixtures for the School Records tests.

Every test gets a fresh in-memory SQLite database and an in-memory asset
store, so sessions built from the same fixtures see the same data.
"""
import base64
import os
import sys

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import build_engine, init_db
from tools import (
    AppState,
    AssetDeleteFailed,
    AssetDeleteOutcome,
    Identity,
    PhotoUpload,
    RecordStore,
)


ADMIN_EMAIL = "admin@school.test"

U1 = Identity(id="user-1", email="one@school.test", display_name="User One")
U2 = Identity(id="user-2", email="two@school.test", display_name="User Two")
ADM = Identity(id="admin-1", email=ADMIN_EMAIL, display_name="Admin")


def make_photo(filename: str = "face.jpg", size: int = 1024) -> PhotoUpload:
    return PhotoUpload(filename=filename, content=b"\xff" * size, content_type="image/jpeg")


class FakeAssetStore:
    """In-memory asset store that records every call in order."""

    def __init__(self):
        self.blobs = {}
        self.calls = []
        self.fail_upload = None
        self.fail_delete = set()
        self._counter = 0

    def upload(self, photo, logical_path):
        self.calls.append(("upload", logical_path))
        if self.fail_upload is not None:
            raise self.fail_upload
        self._counter += 1
        asset_ref = f"asset-{self._counter}"
        self.blobs[asset_ref] = (logical_path, photo.content)
        return asset_ref

    def delete(self, asset_ref):
        self.calls.append(("delete", asset_ref))
        if asset_ref in self.fail_delete:
            error = AssetDeleteFailed(asset_ref, "connection reset")
            return AssetDeleteOutcome(asset_ref=asset_ref, deleted=False, error=error)
        existed = self.blobs.pop(asset_ref, None) is not None
        return AssetDeleteOutcome(asset_ref=asset_ref, deleted=existed)

    def preview_url(self, asset_ref):
        if not asset_ref:
            return None
        return f"https://assets.test/files/{asset_ref}/view"

    def fetch_data_uri(self, asset_ref):
        if asset_ref not in self.blobs:
            return None
        _, content = self.blobs[asset_ref]
        return "data:image/jpeg;base64," + base64.b64encode(content).decode("ascii")

    def refs(self, operation):
        return [arg for op, arg in self.calls if op == operation]


@pytest.fixture
def session_factory():
    """Session factory over a fresh in-memory database."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def records(session_factory):
    return RecordStore(session_factory)


@pytest.fixture
def assets():
    return FakeAssetStore()


@pytest.fixture
def make_state(session_factory, assets):
    """Build an AppState sharing the test database and asset store."""
    def factory(identity=None, **kwargs):
        kwargs.setdefault("admin_email", ADMIN_EMAIL)
        state = AppState(RecordStore(session_factory), assets, **kwargs)
        if identity is not None:
            state.sign_in(identity)
        return state

    return factory
