"""API module for the School Records system."""
from .routes import session_router, schools_router, students_router, users_router
from .dependencies import SessionRegistry, get_app_state, get_identity, get_registry
from .schemas import (
    SignInRequest,
    SchoolCreateRequest,
    SchoolUpdateRequest,
    ClassNamesRequest,
    PhotoPayload,
    StudentCreateRequest,
    StudentUpdateRequest,
    UserProfileResponse,
    SchoolResponse,
    StudentResponse,
    SessionStateResponse,
    DeleteSchoolResponse,
    ClassNamesResponse,
    IdCardResponse,
    SuccessResponse,
    ErrorResponse,
)

__all__ = [
    "session_router",
    "schools_router",
    "students_router",
    "users_router",
    "SessionRegistry",
    "get_app_state",
    "get_identity",
    "get_registry",
    "SignInRequest",
    "SchoolCreateRequest",
    "SchoolUpdateRequest",
    "ClassNamesRequest",
    "PhotoPayload",
    "StudentCreateRequest",
    "StudentUpdateRequest",
    "UserProfileResponse",
    "SchoolResponse",
    "StudentResponse",
    "SessionStateResponse",
    "DeleteSchoolResponse",
    "ClassNamesResponse",
    "IdCardResponse",
    "SuccessResponse",
    "ErrorResponse",
]
