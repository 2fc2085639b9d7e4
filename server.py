"""
API server for Social Poster.

Publishes an image or video (by URL) to Twitter/X, Bluesky, or both.
This is the entry point that assembles the app package and the poster core.
"""

import logging
from contextlib import asynccontextmanager

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# Configure logging first, before other imports that log
from poster.utils.logging import setup_logging

logger = setup_logging(service_name="social-poster")

from poster.config import Settings, get_settings
from poster.publisher import get_publisher_service

from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import health_router, publish_router

settings: Settings = get_settings()
logger.info(f"Configuration: {settings.get_config_summary()}")

# =============================================================================
# Sentry Error Tracking
# =============================================================================

SENSITIVE_HEADER_PARTS = ("authorization", "api-key", "api_key", "cookie", "token")


def filter_sensitive_breadcrumbs(crumb, hint):
    """Mask credential-bearing headers in HTTP breadcrumbs."""
    if crumb.get("category") == "http":
        data = crumb.get("data")
        if isinstance(data, dict) and isinstance(data.get("headers"), dict):
            for key in list(data["headers"]):
                if any(part in key.lower() for part in SENSITIVE_HEADER_PARTS):
                    data["headers"][key] = "[FILTERED]"
    return crumb


if settings.is_sentry_configured:
    sentry_settings = settings.sentry
    sentry_sdk.init(
        dsn=sentry_settings.sentry_dsn,
        environment=sentry_settings.sentry_environment,
        sample_rate=1.0,
        traces_sample_rate=sentry_settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=filter_sensitive_breadcrumbs,
        send_default_pii=False,
    )
    logger.info(f"Sentry initialized for environment: {sentry_settings.sentry_environment}")
else:
    logger.info("Sentry DSN not configured, error tracking disabled")


# =============================================================================
# Application
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the publisher at startup so missing credentials are logged early."""
    publisher = get_publisher_service()
    if not settings.server.api_key_value:
        logger.warning("API_KEY is not set; publish endpoints will answer 500")
    logger.info(f"Social Poster ready (platforms: {', '.join(publisher.platform_names)})")
    yield
    logger.info("Social Poster shutting down")


def create_app() -> FastAPI:
    """Assemble the FastAPI application."""
    application = FastAPI(
        title="Social Poster API",
        description=(
            "Publish an image or video, referenced by URL, to Twitter/X and "
            "Bluesky. Authenticate with the `X-API-Key` header."
        ),
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Liveness check"},
            {"name": "publish", "description": "Publish media to one or all platforms"},
        ],
    )

    register_exception_handlers(application)
    application.add_middleware(RequestLoggingMiddleware)

    application.include_router(health_router)
    application.include_router(publish_router)

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=settings.server.port,
        log_config=None,
    )
