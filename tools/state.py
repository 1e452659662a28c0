"""
In-memory mirror of the signed-in identity's own schools, students and (for
the administrator) all user profiles.

Only the synchronizer writes these lists, and only in response to an identity
transition or to a confirmed mutation of the identity's own records. Records
fetched on behalf of another owner never enter the cache.
"""
import copy
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .exceptions import AuthorizationError, StoreError
from .records import SCHOOLS, STUDENTS

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    """Lifecycle of the cache."""
    UNINITIALIZED = "uninitialized"
    AUTH_PENDING = "auth_pending"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class CacheSynchronizer:
    """
    Patches the cached lists in place after each successful self-scoped
    mutation instead of re-querying the store.

    Every patch carries the epoch captured when its mutation started. An
    identity transition or close() bumps the epoch, so a mutation that
    resolves after the session moved on is dropped instead of applied.
    """

    def __init__(self, records):
        self.records = records
        self.state = CacheState.UNINITIALIZED
        self.schools: List[Dict[str, Any]] = []
        self.students: List[Dict[str, Any]] = []
        self.user_profiles: List[Dict[str, Any]] = []
        self.owner_user_id: Optional[str] = None
        self.loading_auth = True
        self.loading_data = False
        self.epoch = 0
        self.closed = False
        self.warnings: List[str] = []

    # ------------------------------------------------------------ lifecycle

    @property
    def is_loading(self) -> bool:
        return self.loading_auth or self.loading_data

    def begin_auth(self) -> None:
        """Identity resolution has started but not yet reported."""
        if self.state == CacheState.UNINITIALIZED:
            self.state = CacheState.AUTH_PENDING
        self.loading_auth = True

    def close(self) -> None:
        """Stop accepting patches (session torn down)."""
        self.closed = True
        self.epoch += 1

    def on_identity_changed(self, identity, is_admin: bool) -> None:
        if self.closed:
            return

        self.epoch += 1
        self.loading_auth = False

        if identity is None:
            logger.info("Signed out; clearing cached schools, students and profiles")
            self.owner_user_id = None
            self.schools = []
            self.students = []
            self.user_profiles = []
            self.loading_data = False
            self.state = CacheState.ANONYMOUS
            return

        self.owner_user_id = identity.id
        self.loading_data = True
        try:
            if is_admin:
                logger.info("Admin %s signed in; loading all profiles and own data", identity.id)
                self._load_profiles()
            else:
                self.user_profiles = []
            self._load_own_data(identity.id)
        finally:
            self.loading_data = False
        self.state = CacheState.AUTHENTICATED

    def _load_profiles(self) -> None:
        try:
            profiles = self.records.list_profiles()
        except (StoreError, AuthorizationError) as e:
            logger.error("Could not load user profiles: %s", e)
            self.warnings.append(f"Admin Data Load Error: Could not load user profiles. {e}")
            self.user_profiles = []
            return

        self.user_profiles = [
            {"id": p["id"], "name": p.get("name") or "N/A", "email": p.get("email")}
            for p in profiles
        ]
        logger.info("Loaded %d user profiles", len(self.user_profiles))

    def _load_own_data(self, owner_user_id: str) -> None:
        try:
            schools = self.records.query_all(owner_user_id, SCHOOLS)
            students = self.records.query_all(owner_user_id, STUDENTS)
        except (StoreError, AuthorizationError) as e:
            logger.error("Could not load data for %s: %s", owner_user_id, e)
            self.warnings.append(f"Data Load Error: Could not load data for user. {e}")
            self.schools = []
            self.students = []
            return

        self.schools = schools
        self.students = students
        logger.info(
            "Loaded %d schools and %d students for %s", len(schools), len(students), owner_user_id
        )

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_loading": self.is_loading,
            "schools": copy.deepcopy(self.schools),
            "students": copy.deepcopy(self.students),
            "user_profiles": copy.deepcopy(self.user_profiles),
            "warnings": list(self.warnings),
        }

    # ------------------------------------------------------------ patches

    def _live(self, epoch: int) -> bool:
        return not self.closed and epoch == self.epoch

    def _owns(self, record: Dict[str, Any]) -> bool:
        return record.get("owner_user_id") == self.owner_user_id

    def _apply(self, epoch: int, patch: Callable[[], None]) -> bool:
        if not self._live(epoch):
            logger.debug("Discarding stale cache patch (epoch %s, current %s)", epoch, self.epoch)
            return False
        patch()
        return True

    def school_added(self, school: Dict[str, Any], epoch: int) -> bool:
        if not self._owns(school):
            return False

        def patch():
            self.schools = [*self.schools, dict(school)]

        return self._apply(epoch, patch)

    def school_updated(self, school: Dict[str, Any], epoch: int) -> bool:
        if not self._owns(school):
            return False

        def patch():
            self.schools = [dict(school) if s["id"] == school["id"] else s for s in self.schools]

        return self._apply(epoch, patch)

    def school_class_names_changed(self, school_id: str, class_names: List[str], epoch: int) -> bool:
        def patch():
            self.schools = [
                {**s, "class_names": list(class_names)} if s["id"] == school_id else s
                for s in self.schools
            ]

        return self._apply(epoch, patch)

    def school_removed(self, school_id: str, epoch: int) -> bool:
        """Drop a school and every cached student that belonged to it."""
        def patch():
            self.schools = [s for s in self.schools if s["id"] != school_id]
            self.students = [s for s in self.students if s["school_id"] != school_id]

        return self._apply(epoch, patch)

    def student_added(self, student: Dict[str, Any], epoch: int) -> bool:
        if not self._owns(student):
            return False

        def patch():
            self.students = [*self.students, dict(student)]

        return self._apply(epoch, patch)

    def student_updated(self, student: Dict[str, Any], epoch: int) -> bool:
        if not self._owns(student):
            return False

        def patch():
            self.students = [
                dict(student) if s["id"] == student["id"] else s for s in self.students
            ]

        return self._apply(epoch, patch)

    def student_removed(self, student_id: str, epoch: int) -> bool:
        def patch():
            self.students = [s for s in self.students if s["id"] != student_id]

        return self._apply(epoch, patch)


class RefetchingCacheSynchronizer(CacheSynchronizer):
    """Reloads the owner's data from the store instead of patching."""

    def _apply(self, epoch: int, patch: Callable[[], None]) -> bool:
        if not self._live(epoch):
            return False
        self._load_own_data(self.owner_user_id)
        return True
