"""FastAPI application exposing the scan engine."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import AppSettings, get_settings
from ..scanner.engine import ScanEngine, cleanup_engine, get_engine
from ..scheduler import BlocklistRefreshScheduler
from ..utils.logging import get_structured_logger
from .auth import setup_auth
from .middleware import setup_middleware
from .routers import (
    blocklist_router,
    cache_router,
    links_router,
    safety_router,
    scan_router,
    system_router,
    whitelist_router,
)
from .types import APIError, ErrorResponse, HealthCheckResponse, HealthStatus

logger = get_structured_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the engine and the refresh scheduler for the app's lifetime."""
    logger.info("Starting LinkShield API application")
    settings: AppSettings = app.state.settings
    owns_engine = app.state.engine is None

    try:
        if owns_engine:
            app.state.engine = await get_engine()
        else:
            await app.state.engine.setup()

        if settings.scheduler.enabled:
            scheduler = BlocklistRefreshScheduler(
                app.state.engine.blocklist, settings.scheduler
            )
            await scheduler.setup()
            app.state.scheduler = scheduler

        logger.info("LinkShield API application started successfully")

        yield

    except Exception as e:
        logger.error("Failed to start application", error=str(e))
        raise
    finally:
        logger.info("Shutting down LinkShield API application")

        try:
            if app.state.scheduler is not None:
                await app.state.scheduler.cleanup()
                app.state.scheduler = None

            if owns_engine:
                await cleanup_engine()
                app.state.engine = None
            elif app.state.engine is not None:
                await app.state.engine.cleanup()

        except Exception as e:
            logger.error("Error during application shutdown", error=str(e))

        logger.info("LinkShield API application shutdown complete")


def create_app(
    settings: Optional[AppSettings] = None, engine: Optional[ScanEngine] = None
) -> FastAPI:
    """Create and configure FastAPI application.

    Passing ``engine`` makes the app drive that instance instead of the
    process-wide one; its setup and cleanup follow the app lifespan.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="LinkShield API",
        description="Bookmark link health and URL safety checks",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.scheduler = None
    app.state.started_at = time.monotonic()

    setup_middleware(app, settings)
    setup_auth(app, settings)
    setup_exception_handlers(app)
    setup_routers(app)

    logger.info("FastAPI application created and configured")
    return app


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup global exception handlers."""

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        """Handle HTTP exceptions with standardized error format."""
        status_code = exc.status_code
        if exc.status_code == 403 and exc.detail == "Not authenticated":
            status_code = 401

        logger.warning(
            "HTTP exception",
            status_code=status_code,
            detail=exc.detail,
            path=request.url.path,
            method=request.method,
        )

        return JSONResponse(
            status_code=status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        """Handle API-specific errors."""
        error_response = ErrorResponse(
            error="API_ERROR", message=str(exc), details={"type": type(exc).__name__}
        )

        logger.warning(
            "API error", error=str(exc), path=request.url.path, method=request.method
        )

        return JSONResponse(status_code=400, content=error_response.model_dump(mode="json"))

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        error_response = ErrorResponse(
            error="INTERNAL_ERROR",
            message="An unexpected error occurred",
            details={"type": type(exc).__name__},
        )

        logger.error(
            "Unexpected error",
            error=str(exc),
            path=request.url.path,
            method=request.method,
            exc_info=True,
        )

        return JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))


def setup_routers(app: FastAPI) -> None:
    """Setup API routers."""

    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check(request: Request) -> HealthCheckResponse:
        """Unauthenticated liveness probe."""
        engine = request.app.state.engine
        checks = {
            "engine": engine is not None,
            "blocklist_loaded": bool(engine and engine.blocklist_status().domains),
            "scheduler": request.app.state.scheduler is not None,
        }

        if not checks["engine"]:
            health = HealthStatus.UNHEALTHY
        elif not checks["blocklist_loaded"]:
            health = HealthStatus.DEGRADED
        else:
            health = HealthStatus.HEALTHY

        return HealthCheckResponse(
            status=health,
            timestamp=datetime.utcnow(),
            version=__version__,
            uptime_seconds=time.monotonic() - request.app.state.started_at,
            checks=checks,
        )

    api_prefix = "/api/v1"

    app.include_router(links_router, prefix=f"{api_prefix}/links", tags=["Links"])
    app.include_router(safety_router, prefix=f"{api_prefix}/safety", tags=["Safety"])
    app.include_router(scan_router, prefix=f"{api_prefix}/scan", tags=["Scanning"])
    app.include_router(
        blocklist_router, prefix=f"{api_prefix}/blocklist", tags=["Blocklist"]
    )
    app.include_router(cache_router, prefix=f"{api_prefix}/cache", tags=["Cache"])
    app.include_router(
        whitelist_router, prefix=f"{api_prefix}/whitelist", tags=["Whitelist"]
    )
    app.include_router(system_router, prefix=f"{api_prefix}/system", tags=["System"])


def main() -> None:
    """Run the FastAPI application."""
    settings = get_settings()

    config = {
        "app": "linkshield.api.app:create_app",
        "factory": True,
        "host": settings.api.host,
        "port": settings.api.port,
        "reload": settings.api.development,
        "log_level": settings.log_level.lower(),
        "access_log": True,
    }

    logger.info("Starting LinkShield API server...")
    logger.info(f"Server will be available at http://{config['host']}:{config['port']}")
    logger.info(f"API documentation at http://{config['host']}:{config['port']}/docs")

    uvicorn.run(**config)


if __name__ == "__main__":
    main()
