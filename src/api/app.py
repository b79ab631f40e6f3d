"""
FastAPI Application Factory.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production
    uvicorn api.app:app --host 0.0.0.0 --port 8080 --workers 4
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import DEFAULT_TOKEN_SECRET, Settings, get_settings
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware


logger = get_logger(__name__)


def check_secrets(settings: Settings) -> None:
    """Refuse to start in production while the shipped token secret is in use."""
    if settings.token_secret != DEFAULT_TOKEN_SECRET:
        return
    if settings.is_production:
        raise RuntimeError("TOKEN_SECRET must be set in production; write tokens would be forgeable")
    logger.warning("Using the default token secret", environment=settings.environment)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup configures logging and checks secrets; the filter store and the search engine are
    created lazily on first use.
    """
    settings = get_settings()

    configure_logging(
        json_logs=settings.is_production,
        log_level="DEBUG" if settings.debug else "INFO",
    )
    check_secrets(settings)

    logger.info(
        "Starting search scope API",
        environment=settings.environment,
        port=settings.port,
        scoping_enabled=settings.enabled,
        store_backend=settings.filter_store_backend,
    )

    yield

    logger.info("Shutting down search scope API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Search Scope API",
        description="""
        Scopes product and post searches to the filters a shopper already selected.

        ## Main Endpoints

        - `/api/filters` - Store, read and clear the shopper's active filters
        - `/api/filters/token` - Anti-forgery token for writes
        - `/api/filters/search` - Search restricted to the active filters
        - `/api/filters/resolve` - Effective filters and compiled tax query

        ## Health Checks

        - `/health`, `/health/detailed`, `/ready`, `/live`
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing (adds X-Request-ID, logs timing)
    app.add_middleware(RequestTracingMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================

    from api.routes.health import router as health_router
    app.include_router(health_router)

    from api.routes.filters import router as filters_router
    app.include_router(filters_router)

    return app


# Default app instance for uvicorn: `uvicorn api.app:app`
app = create_app()
