"""
Dependency injection for the API routes.

The identity provider sits in front of this service and forwards the
signed-in identity in the X-User-Id / X-User-Email / X-User-Name headers.
Each identity gets one AppState, kept in a SessionRegistry that lives on
`app.state` for the lifetime of the process.
"""
import logging
from collections import OrderedDict
from typing import Annotated, Callable, Optional

from fastapi import Depends, Header, Request

from tools import AppState, Identity, UnauthenticatedError

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    One AppState per signed-in identity.

    Holds at most `max_sessions` sessions; when full, the least recently used
    one is closed and dropped. Its user signs in again on the next request.
    """

    def __init__(self, factory: Callable[[], AppState], max_sessions: int = 1000):
        self._factory = factory
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, AppState]" = OrderedDict()

    def get(self, identity: Identity, name_from_signup: Optional[str] = None) -> AppState:
        """Return the identity's session, pushing the identity on first use or when it changed."""
        state = self._sessions.get(identity.id)
        if state is None:
            state = self._factory()
            self._sessions[identity.id] = state
            self._evict()
        else:
            self._sessions.move_to_end(identity.id)
        if state.current_identity != identity or name_from_signup:
            state.sign_in(identity, name_from_signup)
        return state

    def sign_out(self, user_id: str) -> bool:
        state = self._sessions.pop(user_id, None)
        if state is None:
            return False
        state.sign_out()
        state.close()
        return True

    def _evict(self) -> None:
        while len(self._sessions) > self.max_sessions:
            user_id, state = self._sessions.popitem(last=False)
            state.close()
            logger.info("Evicted idle session for %s", user_id)

    def __len__(self):
        return len(self._sessions)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_identity(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_email: Annotated[Optional[str], Header()] = None,
    x_user_name: Annotated[Optional[str], Header()] = None,
) -> Optional[Identity]:
    """Identity forwarded by the authentication provider, or None."""
    if not x_user_id:
        return None
    return Identity(id=x_user_id, email=x_user_email or "", display_name=x_user_name or None)


def get_app_state(
    identity: Optional[Identity] = Depends(get_identity),
    registry: SessionRegistry = Depends(get_registry),
) -> AppState:
    """
    AppState for the calling identity.

    Raises:
        UnauthenticatedError: If no identity was forwarded
    """
    if identity is None:
        raise UnauthenticatedError()
    return registry.get(identity)


# Type aliases for dependency injection
IdentityDep = Annotated[Optional[Identity], Depends(get_identity)]
RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]
AppStateDep = Annotated[AppState, Depends(get_app_state)]
