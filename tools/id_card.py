"""
ID card image composition.

One request to a Gemini image model with the student's details, the school
logo and the student photo; the first image part of the reply is returned
as a data URI. No retries: a failure is reported once and the caller decides
whether to ask again.
"""
import base64
import logging
from typing import Any, Dict, Optional

import google.generativeai as genai
from langchain_core.prompts import PromptTemplate
from pydantic import BaseModel, Field

from .exceptions import ComposeFailed

logger = logging.getLogger(__name__)

# 1x1 transparent PNG used when no photo or logo is available
PLACEHOLDER_DATA_URI = (
    "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

ID_CARD_PROMPT = PromptTemplate.from_template(
    """Generate a student ID card image for {student_name} from {school_name}. Include all details provided.
Use the first image as the school logo and the second image as the student photo; if either is a blank placeholder, draw a generic, professional placeholder instead.

School Name: {school_name}
Student Name: {student_name}
Father's Name: {father_name}
Class: {class_name}
Roll Number: {roll_number}
Date of Birth: {date_of_birth}
Address: {address}
Contact Number: {contact_number}

The ID card should follow common school ID card branding conventions, be professional and easily readable. The background color should be light gray (#F0F8FF), primary color should be Blue (#29ABE2) and accent color should be a contrasting orange (#FF8C00).

Ensure the generated image is a high-quality PNG."""
)


class IdCardFields(BaseModel):
    """Normalized input for one ID card."""
    school_name: str
    student_name: str
    father_name: str = ""
    class_name: str
    roll_number: str = ""
    date_of_birth: str = ""
    address: str = ""
    contact_number: str = ""
    photo_data_uri: str = Field(default=PLACEHOLDER_DATA_URI)
    logo_data_uri: str = Field(default=PLACEHOLDER_DATA_URI)


class IdCardResult(BaseModel):
    """Composed ID card."""
    image_data_uri: str


def build_id_card_fields(
    student: Dict[str, Any],
    school_name: str,
    photo_data_uri: Optional[str] = None,
    logo_data_uri: Optional[str] = None,
) -> IdCardFields:
    date_of_birth = student.get("date_of_birth")
    if hasattr(date_of_birth, "isoformat"):
        date_of_birth = date_of_birth.isoformat()
    return IdCardFields(
        school_name=school_name,
        student_name=student.get("name") or "",
        father_name=student.get("father_name") or "",
        class_name=student.get("class_name") or "",
        roll_number=student.get("roll_number") or "",
        date_of_birth=date_of_birth or "",
        address=student.get("address") or "",
        contact_number=student.get("contact_number") or "",
        photo_data_uri=photo_data_uri or PLACEHOLDER_DATA_URI,
        logo_data_uri=logo_data_uri or PLACEHOLDER_DATA_URI,
    )


def data_uri_to_blob(data_uri: str) -> Dict[str, Any]:
    """Split 'data:<mime>;base64,<data>' into an inline blob for the model."""
    header, _, encoded = data_uri.partition(",")
    if not header.startswith("data:") or ";base64" not in header or not encoded:
        raise ValueError("Expected a base64 data URI")
    mime_type = header[len("data:"):].split(";")[0] or "application/octet-stream"
    return {"mime_type": mime_type, "data": base64.b64decode(encoded)}


def _first_image_data_uri(response) -> Optional[str]:
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            mime_type = getattr(inline, "mime_type", "") or ""
            data = getattr(inline, "data", None)
            if inline is None or not data or not mime_type.startswith("image/"):
                continue
            if isinstance(data, bytes):
                data = base64.b64encode(data).decode("ascii")
            return f"data:{mime_type};base64,{data}"
    return None


class IdCardComposer:
    """Calls the image model once per ID card."""

    def __init__(self, api_key: Optional[str], model_name: str = "gemini-2.0-flash-exp"):
        self.api_key = api_key
        self.model_name = model_name

    @classmethod
    def from_settings(cls, settings) -> "IdCardComposer":
        return cls(api_key=settings.google_api_key, model_name=settings.id_card_model)

    def compose(self, fields: IdCardFields) -> IdCardResult:
        """
        Generate the ID card image.

        Raises:
            ComposeFailed: If the model is not configured, errors, or returns no image
        """
        if not self.api_key:
            raise ComposeFailed("image generation is not configured (GOOGLE_API_KEY is missing)")

        prompt = ID_CARD_PROMPT.format(**fields.model_dump(exclude={"photo_data_uri", "logo_data_uri"}))
        logger.info("Generating ID card for %s (%s)", fields.student_name, fields.school_name)

        try:
            contents = [
                data_uri_to_blob(fields.logo_data_uri),
                data_uri_to_blob(fields.photo_data_uri),
                prompt,
            ]
            genai.configure(api_key=self.api_key)
            model = genai.GenerativeModel(self.model_name)
            response = model.generate_content(contents)
        except Exception as e:
            logger.error("ID card generation for %s failed: %s", fields.student_name, e)
            raise ComposeFailed(str(e)) from e

        image_data_uri = _first_image_data_uri(response)
        if not image_data_uri:
            logger.error("ID card generation for %s returned no image", fields.student_name)
            raise ComposeFailed("Image generation failed or did not return an image.")
        return IdCardResult(image_data_uri=image_data_uri)
