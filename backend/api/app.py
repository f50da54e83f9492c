"""FastAPI application factory"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from core.config import Settings, get_settings
from core.database import DatabaseManager
from core.errors import register_exception_handlers
from core.logging import setup_logging
from routers import (
    activities_router,
    auth_router,
    channels_router,
    dashboard_router,
    predictions_router,
    settings_router,
)
from services import AuthService, SessionStore, TwitchAPIClient, WebhookNotifier
from shared.storage import MemoryStorage, Storage
from shared.storage.postgres import PostgresStorage

logger = logging.getLogger(__name__)

SERVICE_NAME = "channel-farming-api"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    settings: Settings = app.state.settings
    app.state.started_at = time.time()

    # Startup
    logger.info(f"Starting {SERVICE_NAME}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Frontend URL: {settings.frontend_url}")

    db_manager: DatabaseManager | None = None
    if app.state.storage is None:
        db_manager = DatabaseManager(settings.database_url)
        await db_manager.connect()
        applied = await db_manager.migrate()
        if applied:
            logger.info(f"Applied migrations: {', '.join(applied)}")
        app.state.storage = PostgresStorage(db_manager.pool)
        logger.info("Database connected")

    logger.info(f"Storage backend: {app.state.storage.backend}")

    yield

    # Shutdown
    logger.info(f"Shutting down {SERVICE_NAME}")
    notifier: WebhookNotifier = app.state.notifier
    await notifier.drain()
    await notifier.close()
    await app.state.twitch_api.close()
    await app.state.storage.close()
    if db_manager is not None:
        await db_manager.disconnect()
        app.state.storage = None
        logger.info("Database disconnected")


def create_app(
    settings: Settings | None = None,
    storage: Storage | None = None,
    twitch_api: TwitchAPIClient | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    *storage* and *twitch_api* replace the defaults built from *settings*;
    without a ``DATABASE_URL`` the app keeps its data in memory.
    """
    settings = settings or get_settings()

    # Setup logging first
    setup_logging(settings)

    app = FastAPI(
        title="Channel Farming API",
        description="Accounts, tracked Twitch channels, predictions and activity feed",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    if storage is None and not settings.database_url:
        logger.warning("DATABASE_URL not set, data is kept in memory only")
        storage = MemoryStorage()

    app.state.settings = settings
    app.state.storage = storage
    app.state.sessions = SessionStore(ttl_seconds=settings.session_ttl_seconds)
    app.state.auth = AuthService(
        secret_key=settings.session_secret,
        algorithm=settings.session_algorithm,
        ttl_seconds=settings.session_ttl_seconds,
    )
    app.state.twitch_api = twitch_api or TwitchAPIClient(
        client_id=settings.twitch_client_id,
        client_secret=settings.twitch_client_secret,
        timeout=settings.twitch_request_timeout,
    )
    app.state.notifier = WebhookNotifier()
    app.state.started_at = time.time()

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register routers
    app.include_router(auth_router.router)
    app.include_router(channels_router.router)
    app.include_router(predictions_router.router)
    app.include_router(activities_router.router)
    app.include_router(settings_router.router)
    app.include_router(dashboard_router.router)

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint - minimal service info"""
        return {"service": SERVICE_NAME, "status": "running"}

    # Liveness probe, no storage dependency
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - app.state.started_at),
        }

    @app.get("/status")
    async def status():
        """Readiness / status endpoint, includes a storage health check"""
        current = app.state.storage
        storage_ok = current is not None and await current.check_health()
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "uptime_seconds": int(time.time() - app.state.started_at),
            "storage": current.backend if current is not None else None,
            "storage_ok": storage_ok,
            "environment": settings.environment,
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        return "pong"

    logger.info("FastAPI application configured")

    return app
