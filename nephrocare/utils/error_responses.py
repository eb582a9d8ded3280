"""
Standardized error response formatting utilities.

Provides consistent error response structure across all endpoints.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from fastapi import Request
import uuid


def create_error_response(
    message: str,
    status_code: int = 500,
    correlation_id: Optional[str] = None,
    error_type: Optional[str] = None,
    hint: Optional[str] = None,
    details: Optional[List[Any]] = None,
    path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a standardized error response dictionary.

    Args:
        message: Human-readable error message
        status_code: HTTP status code
        correlation_id: Request correlation ID for tracing
        error_type: Type/category of error (e.g., "ValidationError", "NotFound")
        hint: Helpful hint for resolving the error
        details: Field-level validation details
        path: Request path where error occurred

    Returns:
        Standardized error response dictionary
    """
    response: Dict[str, Any] = {
        "status": "error",
        "message": message,
        "correlation_id": correlation_id or uuid.uuid4().hex,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status_code": status_code,
    }

    if error_type:
        response["error_type"] = error_type

    if hint:
        response["hint"] = hint

    if details:
        response["details"] = details

    if path:
        response["path"] = path

    return response


def get_hint_for_status_code(status_code: int) -> Optional[str]:
    """
    Get a helpful hint message for a given HTTP status code.

    Args:
        status_code: HTTP status code

    Returns:
        Hint message or None
    """
    hints = {
        400: "Bad request. Please check your input parameters.",
        401: "Please authenticate and try again. Check your session token.",
        403: "You don't have permission to access this resource.",
        404: "The requested resource was not found. Check the URL and resource ID.",
        409: "Resource conflict. The resource may already exist or be in use.",
        429: "Rate limit exceeded. Please try again later.",
        500: "Internal server error. Please try again later or contact support.",
        503: "Service temporarily unavailable. Please try again in a moment.",
    }

    return hints.get(status_code)


def get_correlation_id(request: Request) -> str:
    """
    Extract correlation ID from request state or generate a new one.

    Args:
        request: FastAPI request object

    Returns:
        Correlation ID string
    """
    return getattr(request.state, "correlation_id", uuid.uuid4().hex)


def format_validation_errors(errors: list) -> List[Dict[str, Any]]:
    """
    Flatten Pydantic validation errors into field-level details.

    Args:
        errors: List of validation errors from Pydantic

    Returns:
        List of ``{"field", "message"}`` entries
    """
    formatted = []
    for error in errors:
        if isinstance(error, dict):
            location = [str(part) for part in error.get("loc", ["unknown"]) if part not in ("body", "query", "path")]
            formatted.append(
                {
                    "field": ".".join(location) or "unknown",
                    "message": error.get("msg", "Validation error"),
                }
            )
        else:
            formatted.append({"field": "unknown", "message": str(error)})
    return formatted
