"""FastAPI application factory.

Creates and configures the FastAPI application with middleware,
exception handlers, route registration and the startup index migration.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from omnisession import __version__
from omnisession.api.dependencies import get_session_store, reset_dependencies
from omnisession.api.exceptions import OmnisessionAPIError, session_error_response
from omnisession.api.middleware.context import RequestContextMiddleware
from omnisession.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from omnisession.api.routes import register_routes
from omnisession.config import Settings, get_settings
from omnisession.db.errors import StoreError
from omnisession.observability.logging import configure_from_settings, get_logger
from omnisession.sessions.errors import SessionError
from omnisession.sessions.indexing import ensure_session_index

logger = get_logger(__name__)


def _error(status_code: int, code: ErrorCode, message: str, **extra: object) -> JSONResponse:
    body = ErrorBody(code=code, message=message, **extra)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=body).model_dump(mode="json", exclude_none=True),
    )


async def _migrate_session_index(settings: Settings) -> None:
    """Best-effort startup migration; an unreachable store only degrades /health."""
    try:
        store = await get_session_store(settings)
    except StoreError as e:
        logger.error(
            "startup_index_migration_incomplete",
            failed_step="connect_store",
            error=str(e),
        )
        return

    report = await ensure_session_index(store, settings.sessions.composite_id_channels)
    if not report.succeeded:
        logger.error(
            "startup_index_migration_incomplete",
            failed_step=report.failed_step,
            error=report.error,
        )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Configure logging, bring the session index up to date, close clients on exit."""
    settings = get_settings()
    configure_from_settings(settings.observability.logging)

    if settings.sessions.run_index_migration_on_startup:
        await _migrate_session_index(settings)

    yield

    await reset_dependencies()
    logger.info("app_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Omnisession API",
        description="Session lifecycle and identity consistency service",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=settings.api.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)
    register_routes(app)

    logger.info("app_created", debug=settings.debug, backend=settings.storage.backend)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register the handlers that render every error as an ErrorResponse."""

    @app.exception_handler(OmnisessionAPIError)
    async def api_error_handler(request: Request, exc: OmnisessionAPIError) -> JSONResponse:
        logger.warning(
            "api_error",
            error_code=exc.error_code.value,
            message=exc.message,
            path=request.url.path,
        )
        return _error(exc.status_code, exc.error_code, exc.message)

    @app.exception_handler(SessionError)
    async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
        status_code, code = session_error_response(exc)
        logger.warning(
            "session_error",
            error_code=code.value,
            error_type=type(exc).__name__,
            message=exc.message,
            path=request.url.path,
        )
        return _error(status_code, code, exc.message)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error(
            "store_error",
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
        )
        return _error(503, ErrorCode.STORE_UNAVAILABLE, "Session store unavailable")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("validation_error", errors=exc.errors(), path=request.url.path)
        details = [
            ErrorDetail(field=".".join(str(loc) for loc in error["loc"]), message=error["msg"])
            for error in exc.errors()
        ]
        return _error(400, ErrorCode.INVALID_REQUEST, "Request validation failed", details=details)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error(500, ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")


# Create the app instance for uvicorn
app = create_app()
