"""
Logging utilities for consistent logging with correlation IDs.

Provides standardized logging functions that automatically include
correlation IDs from request context.
"""

import logging
from typing import Optional, Any, Dict
from fastapi import Request


logger = logging.getLogger(__name__)


def get_correlation_id_from_request(request: Optional[Request]) -> str:
    """
    Extract correlation ID from request state or return empty string.

    Args:
        request: FastAPI request object (may be None)

    Returns:
        Correlation ID string or empty string if not available
    """
    if request is None:
        return ""
    return getattr(request.state, "correlation_id", "")


def _format(message: str, correlation_id: str, context: Dict[str, Any]) -> str:
    formatted_message = f"[{correlation_id}] {message}" if correlation_id else message
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        formatted_message = f"{formatted_message} ({context_str})"
    return formatted_message


def log_structured(
    level: str,
    message: str,
    correlation_id: Optional[str] = None,
    request: Optional[Request] = None,
    **kwargs
) -> None:
    """
    Log a message with correlation ID and key/value context.

    Args:
        level: Log level ('info', 'warning', 'error', 'debug')
        message: Log message
        correlation_id: Correlation ID (extracted from request if not provided)
        request: FastAPI request object (used to extract correlation ID)
        **kwargs: Additional context to include in log message
    """
    if correlation_id is None:
        correlation_id = get_correlation_id_from_request(request)

    log_func = getattr(logger, level.lower(), logger.info)
    log_func(_format(message, correlation_id, kwargs))


def log_service_error(
    error: Exception,
    context: Dict[str, Any],
    correlation_id: Optional[str] = None,
    request: Optional[Request] = None,
) -> None:
    """Log a service-layer failure with its traceback, server side only."""
    correlation_id = correlation_id or get_correlation_id_from_request(request)
    context = dict(context)
    context["error_type"] = type(error).__name__
    logger.error(_format(f"Service error: {error}", correlation_id, context), exc_info=error)
