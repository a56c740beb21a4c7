"""Mapify data models and error taxonomy."""

from .core import (
    KEYS_ROOT_COLLECTION,
    KEYS_SUBCOLLECTION,
    ApiKey,
    ApiKeySummary,
    CamelModel,
    KeyRef,
    POIResult,
    mask_key,
)
from .errors import (
    AuthError,
    ErrorCode,
    InputValidationError,
    MapifyError,
    NotFoundError,
    StoreError,
    UpstreamError,
)

__all__ = [
    # Core
    "KEYS_ROOT_COLLECTION",
    "KEYS_SUBCOLLECTION",
    "ApiKey",
    "ApiKeySummary",
    "CamelModel",
    "KeyRef",
    "POIResult",
    "mask_key",
    # Errors
    "AuthError",
    "ErrorCode",
    "InputValidationError",
    "MapifyError",
    "NotFoundError",
    "StoreError",
    "UpstreamError",
]
