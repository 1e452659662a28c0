"""
Application state for one identity session.

AppState wires the identity resolver, the cache synchronizer and the
mutation orchestrator around one record store and one asset store. Build it
once per session and pass it to whatever needs it.
"""
import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from database import DEFAULT_PLACEHOLDER_IMAGE_URL
from .assets import AssetStore, PhotoUpload
from .authorization import AuthorizationService
from .exceptions import ComposeFailed, RecordNotFoundError
from .id_card import IdCardComposer, IdCardResult, build_id_card_fields
from .identity import Identity, IdentityResolver
from .mutations import MutationOrchestrator
from .records import RecordStore, SCHOOLS, STUDENTS
from .state import CacheSynchronizer

logger = logging.getLogger(__name__)


class AppState:
    """
    Session-scoped facade over the data-access core.

    Reads for an explicit user id (fetch_*) are authorized like mutations but
    never touch the cache, so an admin browsing another owner leaves their
    own cached lists as they were.
    """

    def __init__(
        self,
        records: RecordStore,
        assets: AssetStore,
        admin_email: str = "",
        composer: Optional[IdCardComposer] = None,
        cache_factory=CacheSynchronizer,
        authorization: Optional[AuthorizationService] = None,
    ):
        self.records = records
        self.assets = assets
        self.composer = composer
        self.authorization = authorization or AuthorizationService()
        self.resolver = IdentityResolver(records, admin_email)
        self.cache = cache_factory(records)
        self.cache.begin_auth()
        self._unsubscribe = self.resolver.subscribe(self.cache.on_identity_changed)
        self.mutations = MutationOrchestrator(
            records, assets, self.resolver, self.cache, self.authorization
        )

    @classmethod
    def from_settings(cls, settings, session_factory, **kwargs) -> "AppState":
        return cls(
            records=RecordStore(session_factory),
            assets=AssetStore.from_settings(settings),
            admin_email=settings.admin_email,
            composer=IdCardComposer.from_settings(settings),
            **kwargs,
        )

    # ------------------------------------------------------------ identity

    def sign_in(self, identity: Identity, name_from_signup: Optional[str] = None) -> None:
        self.resolver.set_identity(identity, name_from_signup)

    def sign_out(self) -> None:
        self.resolver.sign_out()

    logout = sign_out

    def close(self) -> None:
        """Detach from the identity stream; late mutations no longer patch the cache."""
        self._unsubscribe()
        self.cache.close()

    @property
    def current_identity(self) -> Optional[Identity]:
        return self.resolver.identity

    @property
    def is_admin(self) -> bool:
        return self.resolver.is_admin

    @property
    def loading_auth(self) -> bool:
        return self.cache.loading_auth

    @property
    def is_loading(self) -> bool:
        return self.cache.is_loading

    # ------------------------------------------------------------ cached data

    @property
    def schools(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.cache.schools)

    @property
    def students(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.cache.students)

    @property
    def user_profiles(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.cache.user_profiles)

    @property
    def warnings(self) -> List[str]:
        return [*self.resolver.warnings, *self.cache.warnings]

    # ------------------------------------------------------------ mutations

    def add_school(self, data: Dict[str, Any], target_user_id: Optional[str] = None) -> Dict[str, Any]:
        return self.mutations.add_school(data, target_user_id)

    def update_school(self, school_id: str, data: Dict[str, Any], target_user_id: Optional[str] = None) -> Dict[str, Any]:
        return self.mutations.update_school(school_id, data, target_user_id)

    def delete_school(self, school_id: str, target_user_id: Optional[str] = None) -> Dict[str, Any]:
        return self.mutations.delete_school(school_id, target_user_id)

    def update_school_class_names(self, school_id: str, class_names: Iterable[str], target_user_id: Optional[str] = None) -> List[str]:
        return self.mutations.update_school_class_names(school_id, class_names, target_user_id)

    def add_class_names(self, school_id: str, class_names: Iterable[str], target_user_id: Optional[str] = None) -> List[str]:
        return self.mutations.add_class_names(school_id, class_names, target_user_id)

    def remove_class_names(self, school_id: str, class_names: Iterable[str], target_user_id: Optional[str] = None) -> List[str]:
        return self.mutations.remove_class_names(school_id, class_names, target_user_id)

    def add_student(
        self,
        data: Dict[str, Any],
        photo: Optional[PhotoUpload] = None,
        school_name: str = "",
        class_name: Optional[str] = None,
        target_user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.mutations.add_student(data, photo, school_name, class_name, target_user_id)

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
        return self.mutations.update_student(
            student_id, data, photo, school_name, class_name,
            old_asset_ref, remove_photo, target_user_id,
        )

    def delete_student(self, student_id: str, target_user_id: Optional[str] = None) -> Dict[str, Any]:
        return self.mutations.delete_student(student_id, target_user_id)

    # ------------------------------------------------------------ scoped reads

    def _authorize_read(self, user_id: str, action: str) -> None:
        self.authorization.authorize(
            self.resolver.identity, self.resolver.is_admin, user_id, action
        )

    def fetch_schools_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        self._authorize_read(user_id, "fetch_schools_for_user")
        return self.records.query_all(user_id, SCHOOLS)

    def fetch_school_by_id_for_user(self, user_id: str, school_id: str) -> Optional[Dict[str, Any]]:
        self._authorize_read(user_id, "fetch_school_by_id_for_user")
        return self.records.get_by_id(user_id, SCHOOLS, school_id)

    def fetch_students_for_class(self, user_id: str, school_id: str, class_name: str) -> List[Dict[str, Any]]:
        self._authorize_read(user_id, "fetch_students_for_class")
        return self.records.query_where(user_id, STUDENTS, school_id=school_id, class_name=class_name)

    def fetch_students_for_school(self, user_id: str, school_id: str) -> List[Dict[str, Any]]:
        self._authorize_read(user_id, "fetch_students_for_school")
        return self.records.query_where(user_id, STUDENTS, school_id=school_id)

    def fetch_student_by_id_for_user(self, user_id: str, student_id: str) -> Optional[Dict[str, Any]]:
        self._authorize_read(user_id, "fetch_student_by_id_for_user")
        return self.records.get_by_id(user_id, STUDENTS, student_id)

    # ------------------------------------------------------------ photos & ID cards

    def preview_url(self, asset_ref: Optional[str]) -> Optional[str]:
        return self.assets.preview_url(asset_ref)

    def photo_url(self, student: Dict[str, Any]) -> str:
        """Preview URL of a student's photo, or the placeholder image."""
        return self.assets.preview_url(student.get("photo_asset_ref")) or DEFAULT_PLACEHOLDER_IMAGE_URL

    def compose_id_card(self, student_id: str, target_user_id: Optional[str] = None) -> IdCardResult:
        """
        Compose an ID card image for one student.

        Raises:
            RecordNotFoundError: If the student does not exist
            ComposeFailed: If the image could not be generated
        """
        owner_user_id = self.authorization.resolve_owner(
            self.resolver.identity, self.resolver.is_admin, target_user_id, "compose_id_card"
        )
        student = self.records.get_by_id(owner_user_id, STUDENTS, student_id)
        if student is None:
            raise RecordNotFoundError(STUDENTS, student_id)

        school = self.records.get_by_id(owner_user_id, SCHOOLS, student["school_id"])
        school_name = school["name"] if school else ""

        photo_data_uri = None
        if student.get("photo_asset_ref"):
            photo_data_uri = self.assets.fetch_data_uri(student["photo_asset_ref"])
            if photo_data_uri is None:
                logger.info("Using placeholder photo for student %s", student_id)

        if self.composer is None:
            raise ComposeFailed("image generation is not configured")
        fields = build_id_card_fields(student, school_name, photo_data_uri)
        return self.composer.compose(fields)
