"""Health check and metrics endpoints."""

import time

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from omnisession import __version__
from omnisession.api.dependencies import SettingsDep, get_postgres_pool
from omnisession.api.models.health import ComponentHealth, HealthResponse
from omnisession.db.errors import StoreError
from omnisession.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _check_postgres() -> ComponentHealth:
    start = time.perf_counter()
    try:
        pool = await get_postgres_pool()
        healthy = await pool.health_check()
    except StoreError as e:
        return ComponentHealth(name="postgres", status="unhealthy", message=str(e))

    latency_ms = (time.perf_counter() - start) * 1000
    return ComponentHealth(
        name="postgres",
        status="healthy" if healthy else "unhealthy",
        latency_ms=latency_ms,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Report service health; the postgres backend is probed with SELECT 1."""
    if settings.storage.backend == "postgres":
        components = [await _check_postgres()]
    else:
        components = [ComponentHealth(name="inmemory", status="healthy")]

    overall = "unhealthy" if any(c.status == "unhealthy" for c in components) else "healthy"
    logger.debug("health_check_completed", status=overall)
    return HealthResponse(
        status=overall,
        version=__version__,
        backend=settings.storage.backend,
        components=components,
    )


@router.get("/metrics")
async def get_metrics(settings: SettingsDep) -> Response:
    """Prometheus metrics in text exposition format."""
    if not settings.observability.metrics.enabled:
        return Response(status_code=404)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
