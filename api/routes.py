"""
API routes for the School Records system.
"""
import base64
import binascii
from typing import Any, Dict, List, Optional

from fastapi import APIRouter

from tools import (
    AppState,
    PhotoUpload,
    RecordNotFoundError,
    ValidationError,
    UnauthenticatedError,
    SCHOOLS,
    STUDENTS,
)
from .dependencies import AppStateDep, IdentityDep, RegistryDep
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
)


# Router for the caller's session and cached state
session_router = APIRouter(prefix="/session", tags=["Session"])

# Router for school records
schools_router = APIRouter(prefix="/schools", tags=["Schools"])

# Router for student records
students_router = APIRouter(prefix="/students", tags=["Students"])

# Router for reads scoped to an explicit user
users_router = APIRouter(prefix="/users", tags=["Users"])


# ============== Helpers ==============

def _photo_upload(payload: Optional[PhotoPayload]) -> Optional[PhotoUpload]:
    if payload is None:
        return None
    try:
        content = base64.b64decode(payload.data_base64, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Photo data is not valid base64", field="photo")
    return PhotoUpload(
        filename=payload.filename,
        content=content,
        content_type=payload.content_type,
    )


def _student_response(state: AppState, student: Dict[str, Any]) -> StudentResponse:
    return StudentResponse(
        id=student["id"],
        owner_user_id=student["owner_user_id"],
        school_id=student["school_id"],
        class_name=student["class_name"],
        name=student["name"],
        father_name=student.get("father_name") or "",
        roll_number=student.get("roll_number") or "",
        date_of_birth=student.get("date_of_birth"),
        address=student.get("address") or "",
        contact_number=student.get("contact_number") or "",
        photo_asset_ref=student.get("photo_asset_ref"),
        photo_url=state.photo_url(student),
    )


def _school_name_for(state: AppState, school_id: str, target_user_id: Optional[str]) -> str:
    owner_user_id = target_user_id or state.current_identity.id
    school = state.fetch_school_by_id_for_user(owner_user_id, school_id)
    if school is None:
        raise RecordNotFoundError(SCHOOLS, school_id)
    return school["name"]


def _session_response(state: AppState) -> SessionStateResponse:
    identity = state.current_identity
    snapshot = state.cache.snapshot()
    return SessionStateResponse(
        user_id=identity.id if identity else None,
        email=identity.email if identity else None,
        is_admin=state.is_admin,
        is_loading=state.is_loading,
        state=snapshot["state"],
        schools=[SchoolResponse(**s) for s in snapshot["schools"]],
        students=[_student_response(state, s) for s in snapshot["students"]],
        user_profiles=[UserProfileResponse(**p) for p in snapshot["user_profiles"]],
        warnings=state.warnings,
    )


# ============== Session Endpoints ==============

@session_router.post("", response_model=SessionStateResponse)
async def sign_in(
    identity: IdentityDep,
    registry: RegistryDep,
    request: Optional[SignInRequest] = None,
):
    """
    Push the forwarded identity into its session.

    Creates the caller's profile on first sign-in and loads their schools and
    students (plus every user profile for the administrator).
    """
    if identity is None:
        raise UnauthenticatedError("sign_in")
    state = registry.get(identity, request.name_from_signup if request else None)
    return _session_response(state)


@session_router.get("", response_model=SessionStateResponse)
async def get_session(state: AppStateDep):
    """Cached state of the caller's session."""
    return _session_response(state)


@session_router.delete("", response_model=SuccessResponse)
async def sign_out(identity: IdentityDep, registry: RegistryDep):
    """Sign out and drop the session's cached state."""
    if identity is None:
        raise UnauthenticatedError("sign_out")
    registry.sign_out(identity.id)
    return SuccessResponse(success=True, message="Signed out")


@session_router.post("/cleanups", response_model=SuccessResponse)
async def retry_cleanups(state: AppStateDep):
    """Retry photo deletes that failed earlier in this session."""
    outcomes = state.mutations.retry_pending_cleanups()
    remaining = len(state.mutations.pending_cleanups)
    return SuccessResponse(
        success=remaining == 0,
        message=f"Retried {len(outcomes)} photo deletes, {remaining} still pending",
    )


# ============== School Endpoints ==============

@schools_router.get("", response_model=List[SchoolResponse])
async def list_own_schools(state: AppStateDep):
    """The caller's own schools, from the session cache."""
    return [SchoolResponse(**s) for s in state.schools]


@schools_router.post("", response_model=SchoolResponse, status_code=201)
async def create_school(request: SchoolCreateRequest, state: AppStateDep, target_user_id: Optional[str] = None):
    """Create a school for the caller, or for target_user_id (administrator only)."""
    school = state.add_school(request.model_dump(), target_user_id)
    return SchoolResponse(**school)


@schools_router.put("/{school_id}", response_model=SchoolResponse)
async def update_school(
    school_id: str,
    request: SchoolUpdateRequest,
    state: AppStateDep,
    target_user_id: Optional[str] = None,
):
    school = state.update_school(school_id, request.model_dump(exclude_unset=True), target_user_id)
    if not {"name", "class_names"} <= school.keys():
        owner_user_id = target_user_id or state.current_identity.id
        school = state.fetch_school_by_id_for_user(owner_user_id, school_id) or school
    return SchoolResponse(**school)


@schools_router.delete("/{school_id}", response_model=DeleteSchoolResponse)
async def delete_school(school_id: str, state: AppStateDep, target_user_id: Optional[str] = None):
    """Delete a school together with all of its students and their photos."""
    return DeleteSchoolResponse(**state.delete_school(school_id, target_user_id))


@schools_router.put("/{school_id}/classes", response_model=ClassNamesResponse)
async def set_class_names(
    school_id: str,
    request: ClassNamesRequest,
    state: AppStateDep,
    target_user_id: Optional[str] = None,
):
    """Replace the school's class labels."""
    class_names = state.update_school_class_names(school_id, request.class_names, target_user_id)
    return ClassNamesResponse(school_id=school_id, class_names=class_names)


@schools_router.post("/{school_id}/classes", response_model=ClassNamesResponse)
async def add_class_names(
    school_id: str,
    request: ClassNamesRequest,
    state: AppStateDep,
    target_user_id: Optional[str] = None,
):
    class_names = state.add_class_names(school_id, request.class_names, target_user_id)
    return ClassNamesResponse(school_id=school_id, class_names=class_names)


@schools_router.post("/{school_id}/classes/remove", response_model=ClassNamesResponse)
async def remove_class_names(
    school_id: str,
    request: ClassNamesRequest,
    state: AppStateDep,
    target_user_id: Optional[str] = None,
):
    """Remove class labels. Students in removed classes are kept."""
    class_names = state.remove_class_names(school_id, request.class_names, target_user_id)
    return ClassNamesResponse(school_id=school_id, class_names=class_names)


# ============== Student Endpoints ==============

@students_router.get("", response_model=List[StudentResponse])
async def list_own_students(state: AppStateDep):
    """The caller's own students, from the session cache."""
    return [_student_response(state, s) for s in state.students]


@students_router.post("", response_model=StudentResponse, status_code=201)
async def create_student(request: StudentCreateRequest, state: AppStateDep, target_user_id: Optional[str] = None):
    """Add a student, uploading the photo first when one is sent."""
    photo = _photo_upload(request.photo)
    school_name = request.school_name
    if photo is not None and not school_name:
        school_name = _school_name_for(state, request.school_id, target_user_id)

    data = request.model_dump(exclude={"photo", "school_name"})
    student = state.add_student(data, photo, school_name or "", request.class_name, target_user_id)
    return _student_response(state, student)


@students_router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: str,
    request: StudentUpdateRequest,
    state: AppStateDep,
    target_user_id: Optional[str] = None,
):
    """
    Replace a student's fields.

    Send `photo` to replace the photo, or `remove_photo` to clear it; the
    previous photo is deleted once the record update succeeds.
    """
    photo = _photo_upload(request.photo)
    school_name = request.school_name
    if photo is not None and not school_name:
        school_name = _school_name_for(state, request.school_id, target_user_id)

    data = request.model_dump(exclude={"photo", "school_name", "remove_photo"})
    student = state.update_student(
        student_id,
        data,
        photo=photo,
        school_name=school_name or "",
        class_name=request.class_name,
        remove_photo=request.remove_photo,
        target_user_id=target_user_id,
    )
    return _student_response(state, student)


@students_router.delete("/{student_id}", response_model=SuccessResponse)
async def delete_student(student_id: str, state: AppStateDep, target_user_id: Optional[str] = None):
    """Delete a student and, best-effort, its photo."""
    state.delete_student(student_id, target_user_id)
    return SuccessResponse(success=True, message=f"Student {student_id} deleted")


@students_router.post("/{student_id}/id-card", response_model=IdCardResponse)
async def compose_id_card(student_id: str, state: AppStateDep, target_user_id: Optional[str] = None):
    """Generate an ID card image for the student."""
    result = state.compose_id_card(student_id, target_user_id)
    return IdCardResponse(image_data_uri=result.image_data_uri)


# ============== User-scoped Endpoints ==============

@users_router.get("", response_model=List[UserProfileResponse])
async def list_user_profiles(state: AppStateDep):
    """All user profiles (administrator sessions only; empty otherwise)."""
    return [UserProfileResponse(**p) for p in state.user_profiles]


@users_router.get("/{user_id}/schools", response_model=List[SchoolResponse])
async def get_user_schools(user_id: str, state: AppStateDep):
    return [SchoolResponse(**s) for s in state.fetch_schools_for_user(user_id)]


@users_router.get("/{user_id}/schools/{school_id}", response_model=SchoolResponse)
async def get_user_school(user_id: str, school_id: str, state: AppStateDep):
    school = state.fetch_school_by_id_for_user(user_id, school_id)
    if school is None:
        raise RecordNotFoundError(SCHOOLS, school_id)
    return SchoolResponse(**school)


@users_router.get("/{user_id}/schools/{school_id}/students", response_model=List[StudentResponse])
async def get_user_school_students(
    user_id: str,
    school_id: str,
    state: AppStateDep,
    class_name: Optional[str] = None,
):
    """Students of one school, optionally narrowed to one class."""
    if class_name:
        students = state.fetch_students_for_class(user_id, school_id, class_name)
    else:
        students = state.fetch_students_for_school(user_id, school_id)
    return [_student_response(state, s) for s in students]


@users_router.get("/{user_id}/students/{student_id}", response_model=StudentResponse)
async def get_user_student(user_id: str, student_id: str, state: AppStateDep):
    student = state.fetch_student_by_id_for_user(user_id, student_id)
    if student is None:
        raise RecordNotFoundError(STUDENTS, student_id)
    return _student_response(state, student)
