"""
Custom exceptions for the School Records system.
"""


class AuthorizationError(Exception):
    """Raised when an identity attempts an unauthorized action."""

    def __init__(self, message: str, user_id: str = None, action: str = None):
        self.message = message
        self.user_id = user_id
        self.action = action
        super().__init__(self.message)


class UnauthenticatedError(AuthorizationError):
    """Raised when no identity is signed in."""

    def __init__(self, action: str = None):
        message = "Not authenticated"
        if action:
            message = f"Not authenticated for '{action}'"
        super().__init__(message, action=action)


class PermissionDenied(AuthorizationError):
    """Raised when a non-admin targets records owned by someone else."""

    def __init__(self, requester_id: str, target_owner_id: str, action: str = None):
        self.target_owner_id = target_owner_id
        message = (
            f"Not authorized: user {requester_id} cannot perform "
            f"'{action or 'access'}' on records of user {target_owner_id}"
        )
        super().__init__(message, user_id=requester_id, action=action)


class StoreError(Exception):
    """Raised when the record store fails (wraps the driver error)."""

    def __init__(self, message: str, operation: str = None, cause: Exception = None):
        self.message = message
        self.operation = operation
        self.cause = cause
        super().__init__(self.message)


class RecordNotFoundError(Exception):
    """Raised when a targeted record does not exist."""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Record missing: {collection}/{record_id}")


class AssetStoreUnavailable(Exception):
    """Raised when the asset store is not configured."""

    def __init__(self, missing: list = None):
        self.missing = missing or []
        message = "Asset store is not configured"
        if self.missing:
            message += f" (missing: {', '.join(self.missing)})"
        super().__init__(message)


class AssetUploadFailed(Exception):
    """Raised when a photo upload fails."""

    def __init__(self, message: str, cause: Exception = None):
        self.message = message
        self.cause = cause
        super().__init__(f"Upload failed: {message}")


class AssetPayloadTooLarge(AssetUploadFailed):
    """Raised when the asset store rejects a photo as too large."""

    def __init__(self, message: str = "The file is too large", cause: Exception = None):
        super().__init__(message, cause=cause)


class AssetDeleteFailed(Exception):
    """Describes a failed best-effort photo deletion. Logged, never raised to callers."""

    def __init__(self, asset_ref: str, message: str):
        self.asset_ref = asset_ref
        self.message = message
        super().__init__(f"Could not delete asset {asset_ref}: {message}")


class ComposeFailed(Exception):
    """Raised when ID card composition errors or returns no image."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"ID card generation failed: {message}")


class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(self.message)
