"""
Record store adapter.

Document-style access to the owner-partitioned collections ("schools",
"students") and the global "user_profiles" collection. Every call is scoped
to one owner; no call here performs authorization, the caller has already
asked the AuthorizationService.
"""
import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Date
from sqlalchemy.exc import SQLAlchemyError

from database import School, Student, UserProfile
from .exceptions import RecordNotFoundError, StoreError, UnauthenticatedError

logger = logging.getLogger(__name__)


class _DeleteField:
    """Marker for a field that must be removed by a partial update."""

    def __repr__(self):
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()

SCHOOLS = "schools"
STUDENTS = "students"


class WriteBatch:
    """
    Deletes collected across collections of one owner and committed in a
    single transaction: either every document goes or none does.
    """

    def __init__(self, store: "RecordStore", owner_user_id: str):
        self.store = store
        self.owner_user_id = owner_user_id
        self.committed = False
        self._deletes: List[tuple] = []

    def delete(self, collection_kind: str, record_id: str) -> "WriteBatch":
        self.store._model(collection_kind)
        self._deletes.append((collection_kind, record_id))
        return self

    def __len__(self):
        return len(self._deletes)

    def commit(self) -> None:
        if self.committed:
            raise StoreError("Batch already committed", operation="batch.commit")

        with self.store._session("batch.commit") as db:
            for collection_kind, record_id in self._deletes:
                model = self.store._model(collection_kind)
                (
                    db.query(model)
                    .filter(model.owner_user_id == self.owner_user_id)
                    .filter(model.id == record_id)
                    .delete(synchronize_session=False)
                )
        self.committed = True
        logger.info(
            "Committed batch of %d deletes for owner %s",
            len(self._deletes), self.owner_user_id,
        )


class RecordStore:
    """
    Scoped CRUD over the document hierarchy.

    The store must be bound to a signed-in principal before use; while unbound
    every operation raises UnauthenticatedError. Driver failures surface as
    StoreError with the original exception attached.
    """

    COLLECTIONS = {
        SCHOOLS: School,
        STUDENTS: Student,
    }

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self.principal_id: Optional[str] = None

    # ------------------------------------------------------------ session

    def bind(self, principal_id: str) -> None:
        self.principal_id = principal_id

    def unbind(self) -> None:
        self.principal_id = None

    @property
    def bound(self) -> bool:
        return self.principal_id is not None

    @contextmanager
    def _session(self, operation: str):
        if self.principal_id is None:
            raise UnauthenticatedError(operation)

        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Record store %s failed: %s", operation, e)
            raise StoreError(f"{operation} failed: {e}", operation=operation, cause=e) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------ helpers

    def _model(self, collection_kind: str):
        model = self.COLLECTIONS.get(collection_kind)
        if model is None:
            raise StoreError(f"Unknown collection '{collection_kind}'", operation="resolve")
        return model

    def _writable_fields(self, model) -> set:
        return {c.name for c in model.__table__.columns} - {"id", "owner_user_id"}

    def _coerce(self, model, data: Dict[str, Any], operation: str) -> Dict[str, Any]:
        fields = self._writable_fields(model)
        unknown = set(data) - fields
        if unknown:
            raise StoreError(
                f"Unknown field(s) for {model.__tablename__}: {', '.join(sorted(unknown))}",
                operation=operation,
            )

        values = {}
        for key, value in data.items():
            column_type = model.__table__.columns[key].type
            if isinstance(column_type, Date) and isinstance(value, str):
                try:
                    value = date.fromisoformat(value)
                except ValueError as e:
                    raise StoreError(f"Invalid date for {key}: {value}", operation=operation, cause=e)
            values[key] = value
        return values

    def _scoped(self, db, model, owner_user_id: str):
        return db.query(model).filter(model.owner_user_id == owner_user_id)

    # ------------------------------------------------------------ reads

    def query_all(self, owner_user_id: str, collection_kind: str) -> List[Dict[str, Any]]:
        model = self._model(collection_kind)
        with self._session(f"query_all {collection_kind}") as db:
            rows = self._scoped(db, model, owner_user_id).all()
            return [r.to_dict() for r in rows]

    def query_where(
        self,
        owner_user_id: str,
        collection_kind: str,
        **equals: Any
    ) -> List[Dict[str, Any]]:
        """
        Equality query inside one owner's partition.

        Example:
            store.query_where(uid, "students", school_id=sid, class_name="5th Grade")
        """
        model = self._model(collection_kind)
        operation = f"query_where {collection_kind}"
        filters = self._coerce(model, equals, operation)
        with self._session(operation) as db:
            rows = self._scoped(db, model, owner_user_id).filter_by(**filters).all()
            return [r.to_dict() for r in rows]

    def get_by_id(
        self,
        owner_user_id: str,
        collection_kind: str,
        record_id: str
    ) -> Optional[Dict[str, Any]]:
        model = self._model(collection_kind)
        with self._session(f"get {collection_kind}") as db:
            row = self._scoped(db, model, owner_user_id).filter(model.id == record_id).first()
            return row.to_dict() if row else None

    # ------------------------------------------------------------ writes

    def create(self, owner_user_id: str, collection_kind: str, data: Dict[str, Any]) -> str:
        """Create a document and return its server-assigned id."""
        model = self._model(collection_kind)
        operation = f"create {collection_kind}"
        values = self._coerce(model, data, operation)
        with self._session(operation) as db:
            row = model(owner_user_id=owner_user_id, **values)
            db.add(row)
            db.flush()
            return row.id

    def update(
        self,
        owner_user_id: str,
        collection_kind: str,
        record_id: str,
        partial: Dict[str, Any]
    ) -> None:
        """
        Merge `partial` into an existing document.
        A value of DELETE_FIELD clears that field.

        Raises:
            RecordNotFoundError: If the document does not exist
        """
        model = self._model(collection_kind)
        operation = f"update {collection_kind}"
        values = self._coerce(model, partial, operation)
        with self._session(operation) as db:
            row = self._scoped(db, model, owner_user_id).filter(model.id == record_id).first()
            if not row:
                raise RecordNotFoundError(collection_kind, record_id)
            for key, value in values.items():
                setattr(row, key, None if value is DELETE_FIELD else value)

    def delete(self, owner_user_id: str, collection_kind: str, record_id: str) -> None:
        """Delete one document. Deleting a missing document is a no-op."""
        model = self._model(collection_kind)
        with self._session(f"delete {collection_kind}") as db:
            deleted = (
                self._scoped(db, model, owner_user_id)
                .filter(model.id == record_id)
                .delete(synchronize_session=False)
            )
        if not deleted:
            logger.debug("Delete of missing %s/%s ignored", collection_kind, record_id)

    def batch(self, owner_user_id: str) -> WriteBatch:
        return WriteBatch(self, owner_user_id)

    def batch_delete(self, owner_user_id: str, collection_kind: str, ids: Iterable[str]) -> None:
        batch = self.batch(owner_user_id)
        for record_id in ids:
            batch.delete(collection_kind, record_id)
        batch.commit()

    # ------------------------------------------------------------ profiles

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._session("get user_profiles") as db:
            row = db.query(UserProfile).filter(UserProfile.id == user_id).first()
            return row.to_dict() if row else None

    def set_profile(self, profile: Dict[str, Any]) -> None:
        """Create or overwrite a profile document."""
        with self._session("set user_profiles") as db:
            db.merge(UserProfile(
                id=profile["id"],
                email=profile.get("email") or "",
                name=profile.get("name") or "",
            ))

    def update_profile(self, user_id: str, partial: Dict[str, Any]) -> None:
        unknown = set(partial) - {"email", "name"}
        if unknown:
            raise StoreError(
                f"Unknown field(s) for user_profiles: {', '.join(sorted(unknown))}",
                operation="update user_profiles",
            )
        with self._session("update user_profiles") as db:
            row = db.query(UserProfile).filter(UserProfile.id == user_id).first()
            if not row:
                raise RecordNotFoundError("user_profiles", user_id)
            for key, value in partial.items():
                setattr(row, key, value)

    def list_profiles(self) -> List[Dict[str, Any]]:
        with self._session("list user_profiles") as db:
            return [row.to_dict() for row in db.query(UserProfile).all()]
