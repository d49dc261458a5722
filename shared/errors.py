"""
Shared error handling for the access layer.

Every error leaves the service in one envelope::

    {"error": {"code": ..., "message": ..., "suggestion": ..., ...}}

``code`` is stable and meant for programmatic handling, ``message`` is for
humans. 401/403/429/5xx responses also carry an actionable ``suggestion``.
"""

from datetime import datetime
from typing import Dict, Any, Optional
from pydantic import BaseModel, ConfigDict, Field


SUGGESTIONS: Dict[int, str] = {
    401: "Please check your authentication token and try again",
    403: "You may need to upgrade your subscription or verify your account",
    404: "Please check the URL and try again",
    423: "Please wait for the lockout to expire or contact support",
    429: "Please wait before making another request or consider upgrading your plan",
}
SERVER_ERROR_SUGGESTION = (
    "This is a server error. Please try again later or contact support if the problem persists"
)


def suggestion_for(status_code: int) -> Optional[str]:
    """Return the actionable hint attached to responses with this status."""
    if status_code >= 500:
        return SERVER_ERROR_SUGGESTION
    return SUGGESTIONS.get(status_code)


class ErrorBody(BaseModel):
    """Body of the standard error envelope."""

    model_config = ConfigDict(populate_by_name=True)

    code: str
    message: str
    suggestion: Optional[str] = None
    retry_after: Optional[int] = Field(default=None, alias="retryAfter")
    limits: Optional[Dict[str, Any]] = None
    current: Optional[Dict[str, Any]] = None
    reset_time: Optional[datetime] = Field(default=None, alias="resetTime")
    details: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = Field(default=None, alias="requestId")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: ErrorBody

    def render(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys and empty fields dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AccessLayerException(Exception):
    """Base exception for access layer services."""

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
        limits: Optional[Dict[str, Any]] = None,
        current: Optional[Dict[str, Any]] = None,
        reset_time: Optional[datetime] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        self.retry_after = retry_after
        self.limits = limits
        self.current = current
        self.reset_time = reset_time
        self.headers = dict(headers or {})
        if retry_after is not None:
            self.headers.setdefault("Retry-After", str(retry_after))
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=ErrorBody(
                code=self.code,
                message=self.message,
                suggestion=suggestion_for(self.status_code),
                retry_after=self.retry_after,
                limits=self.limits,
                current=self.current,
                reset_time=self.reset_time,
                details=self.details or None,
                request_id=request_id,
            )
        )


class AuthenticationError(AccessLayerException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", code: str = "AUTHENTICATION_ERROR", **kwargs):
        super().__init__(code, message, **kwargs)


class AccountLockedError(AccessLayerException):
    """Account temporarily locked after repeated credential failures."""

    status_code = 423

    def __init__(self, message: str = "Account is temporarily locked", code: str = "ACCOUNT_LOCKED", **kwargs):
        super().__init__(code, message, **kwargs)


class AuthorizationError(AccessLayerException):
    """Authorization-related errors."""

    status_code = 403

    def __init__(self, message: str = "Authorization failed", code: str = "AUTHORIZATION_ERROR", **kwargs):
        super().__init__(code, message, **kwargs)


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", code: str = "VALIDATION_ERROR", **kwargs):
        super().__init__(code, message, **kwargs)


class ConflictError(AccessLayerException):
    """Resource already exists."""

    status_code = 409

    def __init__(self, message: str = "Resource already exists", code: str = "CONFLICT", **kwargs):
        super().__init__(code, message, **kwargs)


class RateLimitError(AccessLayerException):
    """Rate limiting and quota errors."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded", code: str = "RATE_LIMIT_EXCEEDED", **kwargs):
        super().__init__(code, message, **kwargs)


class ExternalServiceError(AccessLayerException):
    """External service errors."""

    status_code = 503

    def __init__(self, service: str, message: str = "External service error", code: str = "SERVICE_UNAVAILABLE", **kwargs):
        super().__init__(code, f"{service}: {message}", **kwargs)
