"""
Metrics Gateway - Main Application

Entry point for the metrics gateway, configuring the FastAPI application
with its routes, middleware and exception handlers. The gateway keeps the
ClickHouse credentials server-side for the browser dashboard.

Version: 1.0.0
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import logging

from metrics_gateway.api.routers import metrics
from metrics_gateway.api.middlewares.api_key_middleware import APIKeyMiddleware
from metrics_gateway.api.middlewares.logging_middleware import RequestLoggingMiddleware
from metrics_gateway.api.middlewares.preflight_middleware import PreflightMiddleware
from metrics_gateway.api.middlewares.error_handler import add_exception_handlers
from metrics_gateway.config.settings import Settings, get_settings
from metrics_gateway.core.executor import build_executor

logger = logging.getLogger("api")


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        settings: Application settings, read from the environment when omitted

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Authenticated proxy serving ClickHouse query-log metrics as daily time series",
        version=settings.APP_VERSION,
    )
    app.state.settings = settings
    app.state.executor = build_executor(settings)

    if not settings.API_KEY:
        logger.warning("API_KEY is not set; every request will be rejected")

    # Middleware added last runs first: logging, preflight, CORS, key gate
    app.add_middleware(APIKeyMiddleware, api_key=settings.API_KEY)
    if settings.cors_origins:
        # Only decorates GET responses (401s included); OPTIONS never reach it
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["X-API-Key", "Content-Type"],
        )
    app.add_middleware(PreflightMiddleware, allow_origins=settings.cors_origins)
    app.add_middleware(RequestLoggingMiddleware)

    add_exception_handlers(app)

    app.include_router(metrics.router, tags=["Metrics"])
    # Path used by the serverless deployment
    app.include_router(metrics.router, prefix="/api", tags=["Metrics"], include_in_schema=False)

    return app


configure_logging(get_settings().LOG_LEVEL)
app = create_app()


def run():
    import uvicorn
    uvicorn.run("metrics_gateway.api.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
