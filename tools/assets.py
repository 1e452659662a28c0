"""
Asset store adapter for student photos.

Talks to an Appwrite-compatible storage bucket over REST. Blobs are addressed
by a generated id (the asset ref, the only value persisted on the student);
the human-readable path schools/<school>/<class>/<file> is kept as the
stored object's display name.
"""
import base64
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests

from .exceptions import (
    AssetDeleteFailed,
    AssetPayloadTooLarge,
    AssetStoreUnavailable,
    AssetUploadFailed,
    ValidationError,
)

logger = logging.getLogger(__name__)

MAX_PHOTO_BYTES = 2 * 1024 * 1024

TOO_LARGE_ERROR_TYPES = {"storage_file_too_large", "general_storage_file_too_large"}


@dataclass
class PhotoUpload:
    """A photo file as received from the caller."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class AssetDeleteOutcome:
    """Result of a best-effort delete. `error` is set only when the delete failed."""
    asset_ref: str
    deleted: bool
    error: Optional[AssetDeleteFailed] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def slugify(value: str) -> str:
    """Lowercase, dash-separated form of a school or class name."""
    value = (value or "").strip().lower()
    value = re.sub(r"\s+", "-", value)
    value = re.sub(r"[^\w-]", "", value)
    value = re.sub(r"-{2,}", "-", value)
    return value.strip("-")


def build_logical_path(school_name: str, class_name: str, filename: str) -> str:
    return f"schools/{slugify(school_name)}/{slugify(class_name)}/{filename}"


def validate_photo(photo: PhotoUpload) -> None:
    """
    Reject photos above the size limit before any upload is attempted.

    Raises:
        ValidationError: If the photo is empty or larger than 2 MiB
    """
    if not photo.content:
        raise ValidationError("Photo file is empty", field="photo")
    if photo.size > MAX_PHOTO_BYTES:
        raise ValidationError(
            f"Photo is {photo.size} bytes; the limit is {MAX_PHOTO_BYTES} bytes (2 MiB)",
            field="photo",
        )


class AssetStore:
    """
    Upload, view and delete student photos in one bucket.

    The store is usable only when endpoint, project id and bucket id are all
    set; otherwise uploads raise AssetStoreUnavailable, preview URLs are None
    and deletes are skipped.
    """

    def __init__(
        self,
        endpoint: Optional[str],
        project_id: Optional[str],
        bucket_id: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.project_id = project_id
        self.bucket_id = bucket_id
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

        if not self.configured:
            logger.warning(
                "Asset store not configured; missing %s. Photo upload and delete are disabled.",
                ", ".join(self.missing_settings),
            )

    @classmethod
    def from_settings(cls, settings) -> "AssetStore":
        return cls(
            endpoint=settings.asset_endpoint,
            project_id=settings.asset_project_id,
            bucket_id=settings.asset_bucket_id,
            api_key=settings.asset_api_key,
            timeout=settings.asset_timeout_seconds,
        )

    @property
    def missing_settings(self) -> list:
        missing = []
        if not self.endpoint:
            missing.append("endpoint")
        if not self.project_id:
            missing.append("project id")
        if not self.bucket_id:
            missing.append("bucket id")
        return missing

    @property
    def configured(self) -> bool:
        return not self.missing_settings

    def _files_url(self) -> str:
        return f"{self.endpoint}/storage/buckets/{quote(self.bucket_id, safe='')}/files"

    def _headers(self) -> dict:
        headers = {"X-Appwrite-Project": self.project_id}
        if self.api_key:
            headers["X-Appwrite-Key"] = self.api_key
        return headers

    @staticmethod
    def _error_details(response) -> tuple:
        try:
            body = response.json()
        except ValueError:
            return None, response.text or f"HTTP {response.status_code}"
        if not isinstance(body, dict):
            return None, f"HTTP {response.status_code}"
        return body.get("type"), body.get("message") or f"HTTP {response.status_code}"

    def upload(self, photo: PhotoUpload, logical_path: str) -> str:
        """
        Store a photo and return its asset ref.

        Args:
            photo: The file to store (size already validated by the caller)
            logical_path: Display name, schools/<school>/<class>/<file>

        Returns:
            The generated asset id

        Raises:
            AssetStoreUnavailable: If the store is not configured
            AssetPayloadTooLarge: If the server rejects the file as too large
            AssetUploadFailed: On any other transport or server error
        """
        if not self.configured:
            raise AssetStoreUnavailable(self.missing_settings)

        file_id = uuid.uuid4().hex
        logger.info(
            "Uploading photo %s as %s to bucket %s", photo.filename, logical_path, self.bucket_id
        )

        try:
            response = self.session.post(
                self._files_url(),
                headers=self._headers(),
                data={"fileId": file_id},
                files={"file": (logical_path, photo.content, photo.content_type)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Photo upload of %s failed: %s", logical_path, e)
            raise AssetUploadFailed(str(e), cause=e) from e

        if response.status_code >= 400:
            error_type, message = self._error_details(response)
            logger.error(
                "Photo upload of %s rejected (%s): %s", logical_path, response.status_code, message
            )
            if response.status_code == 413 or error_type in TOO_LARGE_ERROR_TYPES:
                raise AssetPayloadTooLarge(f"The file is too large: {message}")
            raise AssetUploadFailed(message)

        try:
            body = response.json()
        except ValueError:
            body = None
        asset_ref = (body.get("$id") if isinstance(body, dict) else None) or file_id
        logger.info("Photo uploaded: %s (%s)", asset_ref, logical_path)
        return asset_ref

    def preview_url(self, asset_ref: Optional[str]) -> Optional[str]:
        """View URL for an asset, or None when unavailable. Never raises."""
        if not self.configured or not asset_ref:
            return None
        return (
            f"{self._files_url()}/{quote(asset_ref, safe='')}/view"
            f"?project={quote(self.project_id, safe='')}"
        )

    def delete(self, asset_ref: Optional[str]) -> AssetDeleteOutcome:
        """
        Best-effort delete. Never raises; a missing blob counts as success.
        """
        if not asset_ref:
            return AssetDeleteOutcome(asset_ref="", deleted=False)

        if not self.configured:
            error = AssetDeleteFailed(asset_ref, "asset store is not configured")
            logger.warning("%s", error)
            return AssetDeleteOutcome(asset_ref=asset_ref, deleted=False, error=error)

        try:
            response = self.session.delete(
                f"{self._files_url()}/{quote(asset_ref, safe='')}",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            error = AssetDeleteFailed(asset_ref, str(e))
            logger.warning("%s", error)
            return AssetDeleteOutcome(asset_ref=asset_ref, deleted=False, error=error)

        if response.status_code == 404:
            logger.info("Asset %s already absent", asset_ref)
            return AssetDeleteOutcome(asset_ref=asset_ref, deleted=False)

        if response.status_code >= 400:
            _, message = self._error_details(response)
            error = AssetDeleteFailed(asset_ref, message)
            logger.warning("%s", error)
            return AssetDeleteOutcome(asset_ref=asset_ref, deleted=False, error=error)

        logger.info("Asset %s deleted", asset_ref)
        return AssetDeleteOutcome(asset_ref=asset_ref, deleted=True)

    def fetch_data_uri(self, asset_ref: Optional[str]) -> Optional[str]:
        """Download an asset as a base64 data URI; None on any failure."""
        url = self.preview_url(asset_ref)
        if not url:
            return None
        try:
            response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Could not download asset %s: %s", asset_ref, e)
            return None

        content_type = response.headers.get("content-type") or "image/jpeg"
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{content_type};base64,{encoded}"
