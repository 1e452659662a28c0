"""
Pydantic schemas for API requests and responses.
"""
from datetime import date
from typing import Optional, List
from pydantic import BaseModel, Field


# Request schemas
class SignInRequest(BaseModel):
    """Optional extras sent on sign-in."""
    name_from_signup: Optional[str] = Field(None, description="Name typed on the sign-up form")


class SchoolCreateRequest(BaseModel):
    """Request to create a school."""
    name: str = Field(..., min_length=1, description="School name")
    class_names: List[str] = Field(default_factory=list, description="Class labels")


class SchoolUpdateRequest(BaseModel):
    """Request to update a school. Omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, description="New school name")
    class_names: Optional[List[str]] = Field(None, description="New class labels")


class ClassNamesRequest(BaseModel):
    """Class labels to set, add or remove."""
    class_names: List[str] = Field(..., description="Class labels")


class PhotoPayload(BaseModel):
    """Photo file sent inline."""
    filename: str = Field(..., min_length=1, description="Original file name")
    content_type: str = Field("image/jpeg", description="MIME type")
    data_base64: str = Field(..., description="File content, base64 encoded")


class StudentData(BaseModel):
    """Student fields shared by create and update."""
    school_id: str = Field(..., description="ID of the school")
    class_name: str = Field(..., description="Class label")
    name: str = Field(..., min_length=1, description="Student name")
    father_name: str = ""
    roll_number: str = ""
    date_of_birth: Optional[date] = None
    address: str = ""
    contact_number: str = ""


class StudentCreateRequest(StudentData):
    """Request to add a student."""
    photo: Optional[PhotoPayload] = None
    school_name: Optional[str] = Field(None, description="School name for the photo path")


class StudentUpdateRequest(StudentData):
    """Request to update a student."""
    photo: Optional[PhotoPayload] = None
    remove_photo: bool = Field(False, description="Remove the current photo")
    school_name: Optional[str] = Field(None, description="School name for the photo path")


# Response schemas
class UserProfileResponse(BaseModel):
    """User profile."""
    id: str
    email: Optional[str]
    name: str


class SchoolResponse(BaseModel):
    """School record."""
    id: str
    owner_user_id: str
    name: str
    class_names: List[str]


class StudentResponse(BaseModel):
    """Student record with its photo URL (placeholder when absent)."""
    id: str
    owner_user_id: str
    school_id: str
    class_name: str
    name: str
    father_name: str
    roll_number: str
    date_of_birth: Optional[date]
    address: str
    contact_number: str
    photo_asset_ref: Optional[str]
    photo_url: str


class SessionStateResponse(BaseModel):
    """Cached state of the caller's session."""
    user_id: Optional[str]
    email: Optional[str]
    is_admin: bool
    is_loading: bool
    state: str
    schools: List[SchoolResponse]
    students: List[StudentResponse]
    user_profiles: List[UserProfileResponse]
    warnings: List[str]


class DeleteSchoolResponse(BaseModel):
    """Result of a cascading school delete."""
    school_id: str
    students_deleted: int


class ClassNamesResponse(BaseModel):
    """Class labels after an update."""
    school_id: str
    class_names: List[str]


class IdCardResponse(BaseModel):
    """Composed ID card image."""
    image_data_uri: str


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str
    error_type: Optional[str]


class SuccessResponse(BaseModel):
    """Generic success response."""
    success: bool
    message: str
