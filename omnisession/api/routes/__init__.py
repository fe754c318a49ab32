"""API route registration."""

from fastapi import FastAPI

from omnisession.observability.logging import get_logger

logger = get_logger(__name__)


def register_routes(app: FastAPI) -> None:
    """Register all routes with the FastAPI application."""
    from omnisession.api.routes.health import router as health_router
    from omnisession.api.routes.sessions import router as sessions_router

    app.include_router(sessions_router, tags=["Sessions"])
    app.include_router(health_router, tags=["Health"])

    logger.info("routes_registered")
