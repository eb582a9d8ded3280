"""
Rate limiting middleware applying the fixed-window limiter to every request.
"""

import logging
from typing import Dict, Optional, Tuple

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from nephrocare.errors import RateLimitExceeded
from nephrocare.utils.error_responses import create_error_response, get_correlation_id

logger = logging.getLogger(__name__)

EXEMPT_PATHS = ("/health", "/api/v1/health", "/docs", "/openapi.json", "/redoc")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Limit requests per client address with the container's limiter.

    Args:
        app: FastAPI application
        requests: Default number of requests allowed per window
        window_seconds: Default window length
        path_limits: Per-path-prefix ``(requests, window_seconds)`` overrides;
            the longest matching prefix wins
        enabled: Enable/disable rate limiting
    """

    def __init__(
        self,
        app,
        requests: int = 50,
        window_seconds: int = 60,
        path_limits: Optional[Dict[str, Tuple[int, int]]] = None,
        enabled: bool = True,
    ):
        super().__init__(app)
        self.requests = requests
        self.window_seconds = window_seconds
        self.path_limits = path_limits or {}
        self.enabled = enabled

    @staticmethod
    def _get_client_id(request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            first_hop = forwarded_for.split(",")[0].strip()
            if first_hop:
                return first_hop

        cf_ip = request.headers.get("CF-Connecting-IP")
        if cf_ip:
            return cf_ip.strip()

        if request.client and request.client.host:
            return request.client.host
        return "anonymous"

    def _limits_for(self, path: str) -> Tuple[int, int]:
        matches = [prefix for prefix in self.path_limits if path.startswith(prefix)]
        if matches:
            return self.path_limits[max(matches, key=len)]
        return self.requests, self.window_seconds

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not self.enabled or path in EXEMPT_PATHS:
            return await call_next(request)

        container = getattr(request.app.state, "container", None)
        limiter = getattr(container, "rate_limiter", None)
        if limiter is None:
            return await call_next(request)

        client_id = self._get_client_id(request)
        limit, window = self._limits_for(path)
        result = await limiter.check(client_id, limit, window)

        if not result.allowed:
            logger.warning("Rate limit exceeded for %s at %s", client_id, path)
            error = RateLimitExceeded(result.limit, result.remaining, result.reset_at)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=create_error_response(
                    message=error.message,
                    status_code=error.status_code,
                    correlation_id=get_correlation_id(request),
                    error_type=error.error_type,
                    hint="Wait for the window to reset before retrying",
                    path=path,
                ),
                headers=error.headers(now=limiter.now()),
            )

        response = await call_next(request)
        response.headers.update(result.headers())
        return response
