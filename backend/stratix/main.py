"""StratixV2 onboarding backend: FastAPI application entry point."""

import signal
import time
import uuid
from contextlib import asynccontextmanager

# configure_structlog must run before the other stratix imports: structlog
# caches the processor chain on first use.
from stratix.core.logging import configure_structlog
from stratix.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stratix.api.routes import api_router
from stratix.core.config import get_settings
from stratix.core.exceptions import RateLimitExceededError, StratixError
from stratix.db import close_db, close_redis, init_db, init_redis
from stratix.middleware.correlation import get_correlation_id, setup_correlation_middleware

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # SIGTERM flips this so /api/health answers 503 while connections drain
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    # Alembic owns the schema outside debug
    await init_db(create_tables=settings.debug)
    logger.info("db_initialized")

    await init_redis()
    logger.info("redis_initialized")

    yield

    logger.info("shutdown_begin")
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


def _request_context(request: Request) -> dict:
    return {
        "correlation_id": get_correlation_id(),
        "path": request.url.path,
        "method": request.method,
        "user_id": getattr(request.state, "user_id", None),
    }


async def stratix_exception_handler(request: Request, exc: StratixError) -> JSONResponse:
    """Map domain errors to their HTTP status with a stable error code."""
    debug_id = str(uuid.uuid4())
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "domain_error",
        error_code=exc.code,
        status_code=exc.status_code,
        debug_id=debug_id,
        detail=exc.message,
        **_request_context(request),
    )

    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(max(exc.reset_at - int(time.time()), 0))}

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message, "debug_id": debug_id},
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Log HTTPException server-side with context, return a sanitized body."""
    debug_id = str(uuid.uuid4())
    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        detail=exc.detail,
        **_request_context(request),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the full traceback, return a generic 500."""
    debug_id = str(uuid.uuid4())
    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
        **_request_context(request),
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="StratixV2 onboarding wizard: sessions, step progress and AI assists",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-session-id", "x-step-number", "x-step-name", "x-validation-status", "x-request-id"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    app.exception_handler(StratixError)(stratix_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stratix.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
