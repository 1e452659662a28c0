"""
Identity tools for the School Records system.
Resolves the signed-in identity, its admin flag, and keeps the user profile
in step with what the authentication provider reports.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .exceptions import RecordNotFoundError, StoreError

logger = logging.getLogger(__name__)

FALLBACK_NAME = "New User"


@dataclass(frozen=True)
class Identity:
    """Signed-in principal as pushed by the authentication provider."""
    id: str
    email: str = ""
    display_name: Optional[str] = None


class IdentityStatus(str, Enum):
    """Resolution state of the current identity."""
    UNRESOLVED = "unresolved"
    NONE = "none"
    PRESENT = "present"


def effective_name(identity: Identity, name_from_signup: Optional[str] = None) -> str:
    """
    Name to store on the profile: signup name, display name, email local
    part, or the generic fallback, in that order.
    """
    if name_from_signup:
        return name_from_signup
    if identity.display_name:
        return identity.display_name
    if identity.email:
        local_part = identity.email.split("@")[0]
        if local_part:
            return local_part
    return FALLBACK_NAME


def ensure_user_profile(
    records,
    identity: Identity,
    name_from_signup: Optional[str] = None
) -> Dict[str, Any]:
    """
    Create the identity's profile if absent, otherwise patch drifted fields.

    Idempotent: a second call with unchanged identity values writes nothing.

    Args:
        records: RecordStore bound to the identity
        identity: The signed-in identity
        name_from_signup: Name typed at sign-up, if any

    Returns:
        The profile as stored after the call
    """
    name = effective_name(identity, name_from_signup)
    existing = records.get_profile(identity.id)

    if existing is None:
        profile = {"id": identity.id, "email": identity.email, "name": name}
        records.set_profile(profile)
        logger.info("User profile created for %s with name %s", identity.email, name)
        return profile

    updates = {}
    if name != FALLBACK_NAME and existing.get("name") != name:
        updates["name"] = name
    if identity.email and existing.get("email") != identity.email:
        updates["email"] = identity.email

    if updates:
        records.update_profile(identity.id, updates)
        logger.info("User profile updated for %s: %s", identity.email, sorted(updates))

    return {**existing, **updates}


class IdentityResolver:
    """
    Holds the current identity and notifies listeners on every transition.

    The authentication provider pushes `Identity | None` through
    set_identity(); each push binds or unbinds the record store session,
    ensures the profile exists, then notifies subscribers with
    (identity, is_admin).
    """

    def __init__(self, records, admin_email: str):
        self.records = records
        self.admin_email = admin_email or ""
        self.status = IdentityStatus.UNRESOLVED
        self.identity: Optional[Identity] = None
        self.is_admin = False
        self.warnings: List[str] = []
        self._listeners: List[Callable] = []

    def subscribe(self, listener: Callable) -> Callable:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def is_admin_email(self, email: Optional[str]) -> bool:
        return bool(self.admin_email) and email == self.admin_email

    @property
    def resolved(self) -> bool:
        return self.status != IdentityStatus.UNRESOLVED

    def set_identity(self, identity: Optional[Identity], name_from_signup: Optional[str] = None) -> None:
        if identity is None:
            logger.info("Identity changed: signed out")
            self.identity = None
            self.is_admin = False
            self.status = IdentityStatus.NONE
            self.records.unbind()
        else:
            self.identity = identity
            self.is_admin = self.is_admin_email(identity.email)
            self.status = IdentityStatus.PRESENT
            self.records.bind(identity.id)
            logger.info(
                "Identity changed: %s (%s), admin=%s", identity.id, identity.email, self.is_admin
            )
            try:
                ensure_user_profile(self.records, identity, name_from_signup)
            except (StoreError, RecordNotFoundError) as e:
                logger.error("Could not ensure user profile for %s: %s", identity.email, e)
                self.warnings.append(f"Profile Error: Could not ensure user profile exists. {e}")

        for listener in list(self._listeners):
            listener(self.identity, self.is_admin)

    def sign_out(self) -> None:
        self.set_identity(None)
