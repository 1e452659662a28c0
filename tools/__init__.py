"""
Tools module for the School Records system.

This module provides the data-access core: identity resolution,
authorization, record and asset store adapters, mutation recipes and the
session cache.
"""
from .exceptions import (
    AuthorizationError,
    UnauthenticatedError,
    PermissionDenied,
    StoreError,
    RecordNotFoundError,
    AssetStoreUnavailable,
    AssetUploadFailed,
    AssetPayloadTooLarge,
    AssetDeleteFailed,
    ComposeFailed,
    ValidationError,
)

from .authorization import (
    AuthorizationService,
    get_authorization_service,
)

from .identity import (
    Identity,
    IdentityStatus,
    IdentityResolver,
    ensure_user_profile,
    effective_name,
    FALLBACK_NAME,
)

from .records import (
    RecordStore,
    WriteBatch,
    DELETE_FIELD,
    SCHOOLS,
    STUDENTS,
)

from .assets import (
    AssetStore,
    AssetDeleteOutcome,
    PhotoUpload,
    MAX_PHOTO_BYTES,
    build_logical_path,
    slugify,
    validate_photo,
)

from .state import (
    CacheState,
    CacheSynchronizer,
    RefetchingCacheSynchronizer,
)

from .mutations import (
    MutationOrchestrator,
    dedupe_class_names,
)

from .id_card import (
    IdCardComposer,
    IdCardFields,
    IdCardResult,
    PLACEHOLDER_DATA_URI,
    build_id_card_fields,
)

from .app_state import AppState

__all__ = [
    # Exceptions
    "AuthorizationError",
    "UnauthenticatedError",
    "PermissionDenied",
    "StoreError",
    "RecordNotFoundError",
    "AssetStoreUnavailable",
    "AssetUploadFailed",
    "AssetPayloadTooLarge",
    "AssetDeleteFailed",
    "ComposeFailed",
    "ValidationError",
    # Authorization
    "AuthorizationService",
    "get_authorization_service",
    # Identity
    "Identity",
    "IdentityStatus",
    "IdentityResolver",
    "ensure_user_profile",
    "effective_name",
    "FALLBACK_NAME",
    # Record store
    "RecordStore",
    "WriteBatch",
    "DELETE_FIELD",
    "SCHOOLS",
    "STUDENTS",
    # Asset store
    "AssetStore",
    "AssetDeleteOutcome",
    "PhotoUpload",
    "MAX_PHOTO_BYTES",
    "build_logical_path",
    "slugify",
    "validate_photo",
    # Cache
    "CacheState",
    "CacheSynchronizer",
    "RefetchingCacheSynchronizer",
    # Mutations
    "MutationOrchestrator",
    "dedupe_class_names",
    # ID cards
    "IdCardComposer",
    "IdCardFields",
    "IdCardResult",
    "PLACEHOLDER_DATA_URI",
    "build_id_card_fields",
    # App state
    "AppState",
]
