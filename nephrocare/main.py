"""
NephroCare API - CKD follow-up alerts and clinician notifications.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nephrocare.api.v1.api import api_router as v1_router
from nephrocare.config import Settings, get_settings
from nephrocare.di import ServiceContainer
from nephrocare.errors import ApiError
from nephrocare.middleware import RateLimitMiddleware
from nephrocare.utils.error_responses import (
    create_error_response,
    format_validation_errors,
    get_correlation_id,
    get_hint_for_status_code,
)
from nephrocare.utils.logging_utils import log_service_error, log_structured

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """Build the application. Tests pass a pre-wired ``container``."""
    settings = settings or (container.settings if container else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Initializing NephroCare API...")
        service_container = container or ServiceContainer(
            settings, create_schema=settings.database_url is None
        )
        await service_container.startup()
        app.state.container = service_container
        app.state.started_at = time.time()
        try:
            yield
        finally:
            logger.info("Shutting down NephroCare API...")
            await service_container.shutdown()

    app = FastAPI(
        title="NephroCare API",
        description="Chronic kidney disease follow-up: alerts and clinician notifications",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(v1_router, prefix="/api/v1")

    app.add_middleware(
        RateLimitMiddleware,
        requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        enabled=settings.rate_limit_enabled,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    # ==================== ERROR HANDLERS ====================

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        correlation_id = get_correlation_id(request)
        level = "error" if exc.status_code >= 500 else "warning"
        log_structured(
            level,
            f"{exc.error_type}: {exc.message}",
            correlation_id=correlation_id,
            path=request.url.path,
            status_code=exc.status_code,
        )
        if exc.status_code >= 500 and exc.__cause__ is not None:
            log_service_error(exc.__cause__, {"path": request.url.path}, correlation_id=correlation_id)

        headers = exc.headers(now=int(time.time())) if hasattr(exc, "headers") else None
        return JSONResponse(
            status_code=exc.status_code,
            content=create_error_response(
                message=exc.message,
                status_code=exc.status_code,
                correlation_id=correlation_id,
                error_type=exc.error_type,
                hint=get_hint_for_status_code(exc.status_code),
                details=exc.details,
                path=str(request.url.path),
            ),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        correlation_id = get_correlation_id(request)
        details = format_validation_errors(exc.errors())
        log_structured(
            "warning",
            "Request validation failed",
            correlation_id=correlation_id,
            path=request.url.path,
            fields=",".join(d["field"] for d in details),
        )
        return JSONResponse(
            status_code=400,
            content=create_error_response(
                message="Validation Error",
                status_code=400,
                correlation_id=correlation_id,
                error_type="ValidationError",
                hint=get_hint_for_status_code(400),
                details=details,
                path=str(request.url.path),
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        correlation_id = get_correlation_id(request)
        if exc.status_code >= 500:
            logger.error("HTTPException [%s] %s: %s", correlation_id, exc.status_code, exc.detail)
        else:
            logger.warning("HTTPException [%s] %s: %s", correlation_id, exc.status_code, exc.detail)

        return JSONResponse(
            status_code=exc.status_code,
            content=create_error_response(
                message=exc.detail if exc.detail else "Request failed",
                status_code=exc.status_code,
                correlation_id=correlation_id,
                hint=get_hint_for_status_code(exc.status_code),
                path=str(request.url.path),
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Unhandled errors: traceback in the logs, generic message to the client."""
        correlation_id = get_correlation_id(request)
        logger.error(
            "Unhandled exception [%s] at %s %s: %s",
            correlation_id,
            request.method,
            request.url.path,
            str(exc),
            exc_info=True,
        )

        message = "An unexpected error occurred"
        if settings.debug:
            message = f"Internal server error: {type(exc).__name__}"

        return JSONResponse(
            status_code=500,
            content=create_error_response(
                message=message,
                status_code=500,
                correlation_id=correlation_id,
                error_type="InternalServerError",
                hint=get_hint_for_status_code(500),
                path=str(request.url.path),
            ),
        )

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    logger.info(f"Starting NephroCare API on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, reload=False)
