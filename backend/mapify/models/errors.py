"""Error taxonomy for the Mapify API.

Every error that can reach a client derives from ``MapifyError`` and carries
the HTTP status, a machine-readable code and a client-safe message. The app's
exception handlers turn them into ``{"error": ..., "code": ...}`` bodies.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes returned alongside the error message."""

    INVALID_COORDINATES = "INVALID_COORDINATES"
    INVALID_RANGE = "INVALID_RANGE"
    INVALID_TYPE = "INVALID_TYPE"
    INVALID_RADIUS = "INVALID_RADIUS"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    STORE_ERROR = "STORE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MapifyError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, code: ErrorCode | None = None) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)


class InputValidationError(MapifyError):
    """Client input was malformed, out of range or not allowed."""

    status_code = 400
    default_code = ErrorCode.MISSING_PARAMETER
    default_message = "Invalid request"


class AuthError(MapifyError):
    """Missing or invalid bearer token or API key."""

    status_code = 401
    default_code = ErrorCode.UNAUTHORIZED
    default_message = "Unauthorized"


class NotFoundError(MapifyError):
    """The referenced owned resource does not exist."""

    status_code = 404
    default_code = ErrorCode.NOT_FOUND
    default_message = "Not found"


class UpstreamError(MapifyError):
    """The geodata backend failed or timed out."""

    status_code = 500
    default_code = ErrorCode.UPSTREAM_ERROR
    default_message = "Internal server error"


class StoreError(MapifyError):
    """The key store could not complete the operation."""

    status_code = 500
    default_code = ErrorCode.STORE_ERROR
    default_message = "Internal server error"
