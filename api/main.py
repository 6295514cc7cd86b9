"""
FastAPI application main entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import Config, get_config, init_config
from core.logging_config import SERVICE_VERSION, configure_structlog
from core.sentry_config import init_sentry
from api.errors.handlers import register_exception_handlers
from api.middleware.metrics import MetricsMiddleware
from api.middleware.request_context import RequestContextMiddleware
from api.routers import cookie_preferences, health
from services.preference_store import PreferenceStore, create_preference_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.
    """
    store: PreferenceStore = app.state.preference_store
    config: Config = app.state.config

    logger.info("Starting cookie preference service")
    logger.info(f"Environment: {config.environment}")

    if store.ping():
        logger.info(f"Preference store ready: {type(store).__name__}")
    else:
        # Keep serving; /health reports the outage.
        logger.warning(f"Preference store not reachable at startup: {type(store).__name__}")

    yield

    logger.info("Shutting down cookie preference service")
    close = getattr(store, 'close', None)
    if close is not None:
        close()
        logger.info("Preference store closed")


def create_app(
    config: Optional[Config] = None,
    store: Optional[PreferenceStore] = None
) -> FastAPI:
    """
    Create and configure FastAPI application.

    The preference store is built once here and shared through
    ``app.state``; pass one in to reuse or replace it.

    Args:
        config: Application configuration (defaults to the global config)
        store: Preference store (defaults to the configured backend)

    Returns:
        Configured FastAPI application instance
    """
    if config is None:
        try:
            config = get_config()
        except RuntimeError:
            # Fresh worker process started by uvicorn (reload or workers > 1).
            config = init_config()

    configure_structlog(
        log_level=config.monitoring.log_level,
        json_logs=(config.monitoring.log_format == 'json'),
        development_mode=(config.environment == 'development')
    )

    init_sentry(
        dsn=config.monitoring.sentry_dsn,
        environment=config.environment,
        release=SERVICE_VERSION,
        traces_sample_rate=0.1 if config.environment == 'production' else 1.0
    )

    app = FastAPI(
        title="Cookie Preference Service",
        description=(
            "Per-user cookie consent records for the ML Learning Platform. "
            "Records are whole-record upserts keyed by userId."
        ),
        version=SERVICE_VERSION,
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Cookie Preferences",
                "description": "Consent record storage"
            },
            {
                "name": "Health",
                "description": "Service health and metrics"
            }
        ]
    )

    app.state.config = config
    app.state.preference_store = store if store is not None else create_preference_store(config.store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials='*' not in config.api.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"]
    )

    if config.monitoring.enable_metrics:
        app.add_middleware(MetricsMiddleware)

    app.add_middleware(RequestContextMiddleware)

    app.include_router(
        cookie_preferences.router,
        prefix="/cookie-preferences",
        tags=["Cookie Preferences"]
    )
    app.include_router(health.router, tags=["Health"])

    register_exception_handlers(app)

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint."""
        return {
            "service": "Cookie Preference Service",
            "version": SERVICE_VERSION,
            "docs": "/docs",
            "health": "/health"
        }

    logger.info("FastAPI application created successfully")
    return app
