"""
Custom exceptions for the application.

Every fallible operation raises an ``AppError`` carrying exactly one
``ErrorKind``. Callers branch on ``error.kind``; the HTTP layer maps the kind
to a status code through ``STATUS_BY_KIND``.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of error kinds exposed to callers."""
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation_error"
    INVALID_INPUT = "invalid_input"
    INVALID_PLATFORM = "invalid_platform"
    SERVER_ERROR = "server_error"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"
    NO_API_KEY = "no_api_key"
    LAST_HEAD = "last_head"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.INVALID_PLATFORM: 400,
    ErrorKind.SERVER_ERROR: 500,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NO_API_KEY: 400,
    ErrorKind.LAST_HEAD: 409,
}


class AppError(Exception):
    """Base exception for all application errors."""

    kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class NotFoundError(AppError):
    """Entity or share absent."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, resource_id: Any = None):
        if resource_id is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details={"resource": resource})


class ForbiddenError(AppError):
    """Authorization denial; the message is the reason."""

    kind = ErrorKind.FORBIDDEN

    def __init__(self, reason: str = "Insufficient permissions"):
        super().__init__(reason)


class ValidationError(AppError):
    """Well-formed but unacceptable input."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, details=details)


class InvalidInputError(AppError):
    """Unparseable payload."""

    kind = ErrorKind.INVALID_INPUT


class InvalidPlatformError(AppError):
    """Unknown AI provider platform."""

    kind = ErrorKind.INVALID_PLATFORM

    def __init__(self, platform: str):
        super().__init__(f"Invalid platform: {platform}", details={"platform": platform})


class ServerError(AppError):
    """Unexpected persistence failure."""

    kind = ErrorKind.SERVER_ERROR


class AuthenticationError(AppError):
    """Missing or invalid credentials."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ConflictError(AppError):
    """Request conflicts with existing state."""

    kind = ErrorKind.CONFLICT


class NoApiKeyError(AppError):
    """No API key could be resolved for a game session."""

    kind = ErrorKind.NO_API_KEY

    def __init__(
        self,
        message: str = "No API key available. Please configure an API key in your settings.",
    ):
        super().__init__(message)


class LastHeadError(AppError):
    """Removing the member would leave the institution without a head."""

    kind = ErrorKind.LAST_HEAD

    def __init__(self, message: str = "Cannot remove the last head of an institution"):
        super().__init__(message)
