"""FastAPI application entry point."""

import logging
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from transcodehub.core.config import Settings, settings as default_settings
from transcodehub.core.container import ServiceContainer, build_container
from transcodehub.core.exceptions import TranscodeHubError, ValidationError
from transcodehub.core.logging import log_error, log_warning, setup_logging
from transcodehub.core.metrics import get_content_type, get_metrics, set_app_info
from transcodehub.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
)
from transcodehub.modules.catalog.router import router as catalog_router
from transcodehub.modules.transcoding.router import router as transcoding_router
from transcodehub.modules.video.router import router as video_router

logger = logging.getLogger(__name__)


async def handle_service_error(request: Request, exc: TranscodeHubError) -> JSONResponse:
    """Render every service error as ``{"error": code, "detail": message}``."""
    context = {
        "method": request.method,
        "path": request.url.path,
        "error_code": exc.code,
        "status_code": exc.status_code,
    }
    if exc.detail:
        context["diagnostic"] = exc.detail

    if exc.status_code >= 500:
        log_error(logger, exc.message, exc, **context)
    else:
        log_warning(logger, exc.message, **context)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed request bodies and parameters like any other ValidationError."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    )
    return await handle_service_error(request, ValidationError(f"Invalid request: {problems}"))


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Configuration, defaults to the environment-loaded settings
        container: Pre-built services, defaults to ``build_container(settings)``

    Returns:
        Configured FastAPI app
    """
    settings = settings or (container.settings if container else default_settings)
    environment = "development" if settings.DEBUG else "production"

    setup_logging(
        level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        include_stack_trace=True,
    )
    set_app_info(version=settings.VERSION, environment=environment)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Multi-tenant media upload, transcoding and catalog API.",
        openapi_tags=[
            {"name": "health", "description": "Health check endpoints"},
            {"name": "videos", "description": "Uploads and download links"},
            {"name": "transcoding", "description": "Encode profile resolution and transcoding"},
            {"name": "catalog", "description": "Scoped, reconciled listings"},
        ],
    )
    app.state.container = container or build_container(settings)

    app.add_exception_handler(TranscodeHubError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(MetricsMiddleware)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/metrics", tags=["health"], include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus scrape endpoint."""
        return Response(content=get_metrics(), media_type=get_content_type())

    app.include_router(video_router, prefix=settings.API_PREFIX)
    app.include_router(transcoding_router, prefix=settings.API_PREFIX)
    app.include_router(catalog_router, prefix=settings.API_PREFIX)

    return app


app = create_app()
