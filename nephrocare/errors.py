"""
Typed errors raised by the service layer.

Each error carries the HTTP status the API boundary maps it to, so handlers
never translate exceptions one by one.
"""

from typing import Any, List, Optional


class ApiError(Exception):
    """Base class for errors that surface to API clients."""

    status_code: int = 500
    error_type: str = "InternalServerError"
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, details: Optional[List[Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationFailed(ApiError):
    status_code = 400
    error_type = "ValidationError"
    default_message = "Validation Error"


class UnauthorizedError(ApiError):
    status_code = 401
    error_type = "Unauthorized"
    default_message = "You must be logged in to access this resource"


class NotFoundError(ApiError):
    status_code = 404
    error_type = "NotFound"
    default_message = "Not Found"


class ConflictError(ApiError):
    status_code = 409
    error_type = "Conflict"
    default_message = "Conflict"


class RateLimitExceeded(ApiError):
    """Quota exhausted for a client identifier within the current window."""

    status_code = 429
    error_type = "RateLimitExceeded"
    default_message = "Rate limit exceeded. Please try again later."

    def __init__(self, limit: int, remaining: int, reset_at: int, message: Optional[str] = None):
        super().__init__(message)
        self.limit = limit
        self.remaining = max(0, remaining)
        self.reset_at = reset_at

    def headers(self, now: Optional[int] = None) -> dict:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if now is not None:
            headers["Retry-After"] = str(max(0, self.reset_at - now))
        return headers


class InternalError(ApiError):
    status_code = 500
    error_type = "InternalServerError"
    default_message = "Internal Server Error"
