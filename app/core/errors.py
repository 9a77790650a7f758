"""
Standardized error response structure.

Centralizes how application errors are rendered so that every route
produces the same envelope and internal details never leak.
"""
from typing import Dict, Optional

from app.core.exceptions import AppError, ErrorKind


# Messages shown instead of the raw exception text
DEFAULT_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.FORBIDDEN: "Access denied",
    ErrorKind.VALIDATION: "Invalid request",
    ErrorKind.INVALID_INPUT: "Invalid input",
    ErrorKind.INVALID_PLATFORM: "Invalid platform",
    ErrorKind.SERVER_ERROR: "An internal error occurred",
    ErrorKind.UNAUTHORIZED: "Authentication required",
    ErrorKind.CONFLICT: "Request conflicts with existing data",
    ErrorKind.NO_API_KEY: "No API key available",
    ErrorKind.LAST_HEAD: "Cannot remove the last head of an institution",
}


class ErrorResponse:
    """Standardized error response structure."""

    def __init__(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        details: Optional[Dict] = None,
    ):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        self.details = details or {}

    def to_dict(self) -> Dict:
        """Convert to dictionary for API response."""
        response = {
            "error": {
                "code": self.kind.value,
                "message": self.message,
            }
        }

        if self.details:
            response["error"]["details"] = self.details

        return response

    @classmethod
    def from_exception(cls, exc: AppError, expose_details: bool = True) -> "ErrorResponse":
        """
        Build a response from an application error.

        Args:
            exc: The raised error
            expose_details: Whether server error messages may be shown

        Returns:
            ErrorResponse for the error
        """
        if exc.kind == ErrorKind.SERVER_ERROR and not expose_details:
            return cls(exc.kind)
        return cls(exc.kind, message=exc.message, details=exc.details)

    @classmethod
    def validation_error(cls, message: str, details: Optional[Dict] = None) -> "ErrorResponse":
        """Create validation error response for unparseable payloads."""
        return cls(ErrorKind.INVALID_INPUT, message=message, details=details)
