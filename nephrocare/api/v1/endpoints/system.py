import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from nephrocare.di import ServiceContainer, get_container
from nephrocare.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


async def _cache_status(container: ServiceContainer) -> str:
    if container.redis is None:
        return "disabled"
    try:
        await container.redis.ping()
        return "connected"
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        return "error"


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    container: ServiceContainer = Depends(get_container),
):
    """
    Report database and cache status.

    Returns 503 when the database is unreachable. A missing or failing cache
    only degrades the service, so it never fails the check.
    """
    database_ok = container.database is not None and await container.database.ping()
    cache = await _cache_status(container)

    started_at = getattr(request.app.state, "started_at", None) or time.time()
    body = HealthResponse(
        status="healthy" if database_ok and cache != "error" else ("degraded" if database_ok else "unhealthy"),
        uptime_seconds=round(time.time() - started_at, 3),
        timestamp=datetime.now(timezone.utc).isoformat(),
        database="connected" if database_ok else "error",
        cache=cache,
        cache_stats=container.cache.metrics.get_stats() if container.cache else None,
    )
    return JSONResponse(
        status_code=200 if database_ok else 503,
        content=body.model_dump(mode="json"),
    )
