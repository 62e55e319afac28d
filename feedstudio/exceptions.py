"""Exception hierarchy for the Neural Feed Studio API.

Every error a caller can see derives from ``FeedStudioError`` and is turned
into a ``{"error", "message", "details"}`` JSON body by the registered
exception handler. The categories keep "your input was invalid", "that
content does not exist" and "we could not save right now" apart.
"""

from enum import Enum
from typing import Optional, Dict, Any, List


class ErrorCode(str, Enum):
    """Machine-readable error codes for API responses."""

    # Content errors
    CONTENT_NOT_FOUND = "CONTENT_NOT_FOUND"
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"

    # Input errors
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_REQUEST_SHAPE = "INVALID_REQUEST_SHAPE"

    # Storage errors
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"

    # Auth
    UNAUTHORIZED = "UNAUTHORIZED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class FeedStudioError(Exception):
    """
    Base exception for all API errors.

    Carries a human-readable message, a machine-readable error code, the
    HTTP status code to return and optional structured details.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class ContentNotFoundError(FeedStudioError):
    """Content document not found."""

    def __init__(self, content_id: str):
        super().__init__(
            f"Content not found: {content_id}",
            ErrorCode.CONTENT_NOT_FOUND,
            status_code=404,
            details={"content_id": content_id}
        )


class VersionNotFoundError(FeedStudioError):
    """Requested version does not exist for the content document."""

    def __init__(self, content_id: str, version: int):
        super().__init__(
            f"Version {version} not found for content {content_id}",
            ErrorCode.VERSION_NOT_FOUND,
            status_code=404,
            details={"content_id": content_id, "version": version}
        )


class InvalidRequestError(FeedStudioError):
    """Edit payload failed validation.

    ``violations`` lists every offending field, not only the first one.
    ``shape`` marks payloads that are not an edit request at all (not an
    object, or none of the recognised fields present).
    """

    def __init__(self, violations: List[Dict[str, str]], shape: bool = False):
        self.violations = violations
        super().__init__(
            "Invalid request data",
            ErrorCode.INVALID_REQUEST_SHAPE if shape else ErrorCode.INVALID_REQUEST,
            status_code=400,
            details={"violations": violations}
        )


class PersistenceError(FeedStudioError):
    """Writing the new version failed; nothing was changed.

    The underlying cause is logged where it happens and deliberately kept
    out of the response body.
    """

    def __init__(self, content_id: str, message: str = "Failed to save content"):
        super().__init__(
            message,
            ErrorCode.PERSISTENCE_FAILURE,
            status_code=500,
            details={"content_id": content_id}
        )


class AuthenticationError(FeedStudioError):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )
