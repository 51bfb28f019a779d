"""FastAPI application factory."""

from __future__ import annotations

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from tenantroute.config.logging import setup_logging
from tenantroute.config.settings import get_settings
from tenantroute.exceptions import (
    BackendError,
    ConfigurationError,
    UnsupportedOperationError,
)
from tenantroute.health import check_search_availability
from tenantroute.provider import CompositeDataProvider
from tenantroute.web.dependencies import get_data_provider
from tenantroute.web.middleware import RequestIDMiddleware
from tenantroute.web.routes.data import router as data_router
from tenantroute.web.routes.scope import router as scope_router
from tenantroute.web.routes.search_resources import router as search_resources_router

logger = structlog.get_logger(__name__)


def _backend_status(exc: BackendError) -> int:
    if exc.status_code is not None and 400 <= exc.status_code < 500:
        return exc.status_code
    return 502


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="tenantroute",
        description="Tenant-scoped data access over Supabase and Typesense",
        version="0.1.0",
    )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(UnsupportedOperationError)
    async def unsupported_handler(
        request: Request, exc: UnsupportedOperationError
    ) -> JSONResponse:
        return JSONResponse(status_code=405, content={"detail": str(exc)})

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError) -> JSONResponse:
        status = _backend_status(exc)
        logger.warning(
            "backend_error",
            error=str(exc),
            error_type=type(exc).__name__,
            status_code=status,
        )
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/health")
    async def health_check(
        provider: CompositeDataProvider = Depends(get_data_provider),
    ) -> dict[str, object]:
        search = await check_search_availability(provider.search_backend)
        return {
            "status": "healthy" if search["available"] else "degraded",
            "version": "0.1.0",
            "search": search,
        }

    app.include_router(scope_router)
    app.include_router(search_resources_router)
    app.include_router(data_router)

    logger.info("app_created")
    return app
