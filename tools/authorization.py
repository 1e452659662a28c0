"""
Authorization module for the School Records system.

RULES:
1. Every school and student lives in its owner's partition
2. An identity may always act on its own partition
3. The administrator may act on any partition
4. Everyone else is denied
"""
from typing import Optional

from .exceptions import PermissionDenied, UnauthenticatedError


class AuthorizationService:
    """
    Single ownership predicate invoked before every scoped read or write.
    Holds no state; the acting identity and admin flag are passed in.
    """

    def authorize(
        self,
        acting,
        is_admin: bool,
        target_owner_user_id: str,
        action: str = None,
    ) -> None:
        """
        Permit the action or raise.

        Args:
            acting: The signed-in Identity (or None)
            is_admin: Whether the acting identity is the administrator
            target_owner_user_id: Owner of the partition being touched
            action: Description of the action being attempted

        Raises:
            UnauthenticatedError: If nobody is signed in
            PermissionDenied: If a non-admin targets another owner
        """
        if acting is None:
            raise UnauthenticatedError(action)

        if acting.id == target_owner_user_id:
            return

        if is_admin:
            return

        raise PermissionDenied(acting.id, target_owner_user_id, action)

    def resolve_owner(
        self,
        acting,
        is_admin: bool,
        target_user_id: Optional[str] = None,
        action: str = None,
    ) -> str:
        """
        Resolve the effective owner for an operation and authorize it.

        An explicit target wins when supplied; otherwise the acting identity
        owns the records. A non-admin naming a foreign target is denied.

        Returns:
            The owner user id the operation must be scoped to
        """
        if acting is None:
            raise UnauthenticatedError(action)

        owner_user_id = target_user_id or acting.id
        self.authorize(acting, is_admin, owner_user_id, action)
        return owner_user_id

    def can_act_for(self, acting, is_admin: bool, target_owner_user_id: str) -> bool:
        """Non-raising form of authorize()."""
        if acting is None:
            return False
        return is_admin or acting.id == target_owner_user_id


def get_authorization_service() -> AuthorizationService:
    """Factory function to create AuthorizationService."""
    return AuthorizationService()
