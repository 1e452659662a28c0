"""
Mutation recipes for schools and students.

Each recipe resolves the owner through the AuthorizationService, runs its
record and asset steps in a fixed order, and patches the cache only when the
owner is the acting identity and the record write was confirmed.

Ordering across the two stores (there is no shared transaction):
- a requested photo is uploaded before the record that references it
- an old photo is deleted only after its replacement is stored
- photo deletes are best-effort and never fail the recipe; failures are
  queued in `pending_cleanups`
- cascading school deletion removes photos first, then commits one batch
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .assets import AssetDeleteOutcome, PhotoUpload, build_logical_path, validate_photo
from .authorization import AuthorizationService
from .exceptions import RecordNotFoundError, StoreError, ValidationError
from .records import DELETE_FIELD, SCHOOLS, STUDENTS

logger = logging.getLogger(__name__)

STUDENT_FIELDS = (
    "school_id",
    "class_name",
    "name",
    "father_name",
    "roll_number",
    "date_of_birth",
    "address",
    "contact_number",
)
REQUIRED_STUDENT_FIELDS = ("school_id", "class_name", "name")


def dedupe_class_names(class_names: Iterable[str]) -> List[str]:
    """Ordered set of non-empty, trimmed class labels."""
    seen = set()
    result = []
    for name in class_names or []:
        label = (name or "").strip()
        if label and label not in seen:
            seen.add(label)
            result.append(label)
    return result


def _coerce_date(value):
    if value is None or value == "" or isinstance(value, date):
        return value or None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid date of birth: {value}", field="date_of_birth")


def _student_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    missing = [f for f in REQUIRED_STUDENT_FIELDS if not data.get(f)]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}", field=missing[0])

    payload = {}
    for field in STUDENT_FIELDS:
        if field == "date_of_birth":
            payload[field] = _coerce_date(data.get(field))
        else:
            payload[field] = data.get(field) or ""
    return payload


def _student_record(student_id: str, owner_user_id: str, payload: Dict[str, Any], photo_asset_ref) -> Dict[str, Any]:
    return {
        "id": student_id,
        "owner_user_id": owner_user_id,
        **payload,
        "photo_asset_ref": photo_asset_ref or None,
    }


class MutationOrchestrator:
    """
    Composes record store and asset store calls into the add/update/delete
    operations offered to callers.
    """

    def __init__(self, records, assets, resolver, cache, authorization: AuthorizationService = None):
        self.records = records
        self.assets = assets
        self.resolver = resolver
        self.cache = cache
        self.authorization = authorization or AuthorizationService()
        self.pending_cleanups: List[AssetDeleteOutcome] = []

    # ------------------------------------------------------------ helpers

    def _begin(self, action: str, target_user_id: Optional[str]):
        """Resolve (acting identity, owner, cache epoch) for a recipe."""
        acting = self.resolver.identity
        owner_user_id = self.authorization.resolve_owner(
            acting, self.resolver.is_admin, target_user_id, action
        )
        return acting, owner_user_id, self.cache.epoch

    def _log_attempt(self, operation: str, path: str, acting, owner_user_id: str, **details):
        logger.info(
            "Attempting %s at %s", operation, path,
            extra={"context": {
                "acting_user_id": acting.id,
                "owner_user_id": owner_user_id,
                "is_admin": self.resolver.is_admin,
                **details,
            }},
        )

    def _discard_asset(self, asset_ref: Optional[str]) -> Optional[AssetDeleteOutcome]:
        if not asset_ref:
            return None
        outcome = self.assets.delete(asset_ref)
        if not outcome.ok:
            self.pending_cleanups.append(outcome)
        return outcome

    def retry_pending_cleanups(self) -> List[AssetDeleteOutcome]:
        """Retry failed photo deletes; those still failing stay queued."""
        queued, self.pending_cleanups = self.pending_cleanups, []
        return [self._discard_asset(outcome.asset_ref) for outcome in queued]

    # ------------------------------------------------------------ students

    def add_student(
        self,
        data: Dict[str, Any],
        photo: Optional[PhotoUpload] = None,
        school_name: str = "",
        class_name: Optional[str] = None,
        target_user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a student, uploading the photo first when one is given.

        A failed upload aborts the recipe before any record is written.

        Returns:
            The new student including its generated id
        """
        acting, owner_user_id, epoch = self._begin("add_student", target_user_id)
        payload = _student_payload(data)

        asset_ref = None
        if photo is not None:
            validate_photo(photo)
            path = build_logical_path(school_name, class_name or payload["class_name"], photo.filename)
            self._log_attempt("add_student upload photo", path, acting, owner_user_id)
            asset_ref = self.assets.upload(photo, path)
            payload["photo_asset_ref"] = asset_ref

        self._log_attempt(
            "add_student create", f"users/{owner_user_id}/students", acting, owner_user_id,
            student_name=payload["name"],
        )
        try:
            student_id = self.records.create(owner_user_id, STUDENTS, payload)
        except StoreError:
            self._discard_asset(asset_ref)
            raise

        payload.pop("photo_asset_ref", None)
        student = _student_record(student_id, owner_user_id, payload, asset_ref)
        if owner_user_id == acting.id:
            self.cache.student_added(student, epoch)
        return student

    def update_student(
        self,
        student_id: str,
        data: Dict[str, Any],
        photo: Optional[PhotoUpload] = None,
        school_name: str = "",
        class_name: Optional[str] = None,
        old_asset_ref: Optional[str] = None,
        remove_photo: bool = False,
        target_user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Replace a student's fields and optionally its photo.

        - photo given: upload it, store the new ref, then drop the old photo
        - remove_photo: clear the ref, then drop the old photo
        - otherwise the stored ref is left unchanged

        The old photo is always the one on the stored record. An
        `old_asset_ref` that does not match it is rejected.

        Returns:
            The student as now stored

        Raises:
            RecordNotFoundError: If the student does not exist in the owner's partition
            ValidationError: If old_asset_ref differs from the stored photo ref
        """
        acting, owner_user_id, epoch = self._begin("update_student", target_user_id)
        payload = _student_payload(data)
        update = dict(payload)

        path = f"users/{owner_user_id}/students/{student_id}"
        self._log_attempt("update_student read", path, acting, owner_user_id)
        existing = self.records.get_by_id(owner_user_id, STUDENTS, student_id)
        if existing is None:
            raise RecordNotFoundError(STUDENTS, student_id)
        stored_ref = existing.get("photo_asset_ref")
        if old_asset_ref and old_asset_ref != stored_ref:
            raise ValidationError(
                f"Photo ref {old_asset_ref} is not the photo stored on student {student_id}",
                field="old_asset_ref",
            )

        new_ref = None
        stale_ref = None
        if photo is not None:
            validate_photo(photo)
            upload_path = build_logical_path(school_name, class_name or payload["class_name"], photo.filename)
            self._log_attempt("update_student upload photo", upload_path, acting, owner_user_id)
            new_ref = self.assets.upload(photo, upload_path)
            update["photo_asset_ref"] = new_ref
            if stored_ref and stored_ref != new_ref:
                stale_ref = stored_ref
            final_ref = new_ref
        elif remove_photo:
            update["photo_asset_ref"] = DELETE_FIELD
            stale_ref = stored_ref
            final_ref = None
        else:
            final_ref = stored_ref

        self._log_attempt("update_student update", path, acting, owner_user_id, photo_ref=final_ref)
        try:
            self.records.update(owner_user_id, STUDENTS, student_id, update)
        except (StoreError, RecordNotFoundError):
            self._discard_asset(new_ref)
            raise

        if stale_ref:
            self._log_attempt("update_student delete old photo", stale_ref, acting, owner_user_id)
            self._discard_asset(stale_ref)

        student = _student_record(student_id, owner_user_id, payload, final_ref)
        if owner_user_id == acting.id:
            self.cache.student_updated(student, epoch)
        return student

    def delete_student(self, student_id: str, target_user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Delete a student and, best-effort, its photo.

        Raises:
            RecordNotFoundError: If the student does not exist
        """
        acting, owner_user_id, epoch = self._begin("delete_student", target_user_id)
        path = f"users/{owner_user_id}/students/{student_id}"

        self._log_attempt("delete_student read", path, acting, owner_user_id)
        existing = self.records.get_by_id(owner_user_id, STUDENTS, student_id)
        if existing is None:
            raise RecordNotFoundError(STUDENTS, student_id)

        if existing.get("photo_asset_ref"):
            self._log_attempt(
                "delete_student delete photo", existing["photo_asset_ref"], acting, owner_user_id
            )
            self._discard_asset(existing["photo_asset_ref"])

        self._log_attempt("delete_student delete", path, acting, owner_user_id)
        self.records.delete(owner_user_id, STUDENTS, student_id)

        if owner_user_id == acting.id:
            self.cache.student_removed(student_id, epoch)
        return existing

    # ------------------------------------------------------------ schools

    def add_school(self, data: Dict[str, Any], target_user_id: Optional[str] = None) -> Dict[str, Any]:
        acting, owner_user_id, epoch = self._begin("add_school", target_user_id)

        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("School name is required", field="name")
        payload = {"name": name, "class_names": dedupe_class_names(data.get("class_names"))}

        self._log_attempt(
            "add_school create", f"users/{owner_user_id}/schools", acting, owner_user_id, name=name
        )
        school_id = self.records.create(owner_user_id, SCHOOLS, payload)

        school = {"id": school_id, "owner_user_id": owner_user_id, **payload}
        if owner_user_id == acting.id:
            self.cache.school_added(school, epoch)
        return school

    def update_school(
        self,
        school_id: str,
        data: Dict[str, Any],
        target_user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        acting, owner_user_id, epoch = self._begin("update_school", target_user_id)

        payload = {}
        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                raise ValidationError("School name is required", field="name")
            payload["name"] = name
        if "class_names" in data:
            payload["class_names"] = dedupe_class_names(data.get("class_names"))

        path = f"users/{owner_user_id}/schools/{school_id}"
        self._log_attempt("update_school update", path, acting, owner_user_id, fields=sorted(payload))
        self.records.update(owner_user_id, SCHOOLS, school_id, payload)

        cached = next((s for s in self.cache.schools if s["id"] == school_id), {})
        school = {**cached, **payload, "id": school_id, "owner_user_id": owner_user_id}
        if owner_user_id == acting.id:
            self.cache.school_updated(school, epoch)
        return school

    def update_school_class_names(
        self,
        school_id: str,
        class_names: Iterable[str],
        target_user_id: Optional[str] = None,
    ) -> List[str]:
        """
        Replace a school's class labels with the de-duplicated list.

        Students whose class label is dropped are left untouched.
        """
        acting, owner_user_id, epoch = self._begin("update_school_class_names", target_user_id)
        deduped = dedupe_class_names(class_names)

        path = f"users/{owner_user_id}/schools/{school_id}"
        self._log_attempt(
            "update_school_class_names update", path, acting, owner_user_id, class_names=deduped
        )
        self.records.update(owner_user_id, SCHOOLS, school_id, {"class_names": deduped})

        if owner_user_id == acting.id:
            self.cache.school_class_names_changed(school_id, deduped, epoch)
        return deduped

    def _current_class_names(self, school_id: str, target_user_id: Optional[str], action: str) -> List[str]:
        _, owner_user_id, _ = self._begin(action, target_user_id)
        school = self.records.get_by_id(owner_user_id, SCHOOLS, school_id)
        if school is None:
            raise RecordNotFoundError(SCHOOLS, school_id)
        return school.get("class_names") or []

    def add_class_names(
        self,
        school_id: str,
        class_names: Iterable[str],
        target_user_id: Optional[str] = None,
    ) -> List[str]:
        current = self._current_class_names(school_id, target_user_id, "add_class_names")
        return self.update_school_class_names(
            school_id, [*current, *class_names], target_user_id
        )

    def remove_class_names(
        self,
        school_id: str,
        class_names: Iterable[str],
        target_user_id: Optional[str] = None,
    ) -> List[str]:
        """
        Drop class labels from a school. Students in those classes are kept and
        stay reachable by id and by school.
        """
        current = self._current_class_names(school_id, target_user_id, "remove_class_names")
        removed = set(class_names)
        logger.info("Removing class labels %s from school %s; students are kept", sorted(removed), school_id)
        return self.update_school_class_names(
            school_id, [c for c in current if c not in removed], target_user_id
        )

    def delete_school(self, school_id: str, target_user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Delete a school with all of its students.

        Photos go first (best-effort), then the school and every student are
        removed in one atomic batch.

        Returns:
            Summary with the school id and number of students deleted
        """
        acting, owner_user_id, epoch = self._begin("delete_school", target_user_id)
        path = f"users/{owner_user_id}/schools/{school_id}"

        school = self.records.get_by_id(owner_user_id, SCHOOLS, school_id)
        if school is None:
            raise RecordNotFoundError(SCHOOLS, school_id)

        self._log_attempt(
            "delete_school query students", f"users/{owner_user_id}/students where school_id == {school_id}",
            acting, owner_user_id,
        )
        students = self.records.query_where(owner_user_id, STUDENTS, school_id=school_id)

        for student in students:
            if student.get("photo_asset_ref"):
                self._log_attempt(
                    "delete_school delete photo", student["photo_asset_ref"], acting, owner_user_id
                )
                self._discard_asset(student["photo_asset_ref"])

        batch = self.records.batch(owner_user_id)
        batch.delete(SCHOOLS, school_id)
        for student in students:
            batch.delete(STUDENTS, student["id"])

        self._log_attempt(
            "delete_school batch commit", path, acting, owner_user_id, students=len(students)
        )
        batch.commit()

        if owner_user_id == acting.id:
            self.cache.school_removed(school_id, epoch)
        return {"school_id": school_id, "students_deleted": len(students)}
