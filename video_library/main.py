"""FastAPI application entry point.

This module assembles all components and creates the main application.
"""

import asyncio
import contextlib
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Tuple

import httpx
import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from video_library import __version__
from video_library.api import health, metrics, videos
from video_library.core.config import Config, ConfigService, SecurityConfig
from video_library.core.errors import APIError, global_exception_handler
from video_library.core.logging import clear_request_id, configure_logging, set_request_id
from video_library.core.metrics import MetricsCollector, initialize_metrics
from video_library.core.validation import ValidationError
from video_library.middleware.auth import configure_auth
from video_library.providers.exceptions import ProviderError
from video_library.providers.manager import ProviderManager
from video_library.providers.youtube import YouTubeProvider
from video_library.services.library_sync import VideoLibrarySync
from video_library.services.selection import FileSelectionStore, MemorySelectionStore, SelectionStore
from video_library.services.sessions import SessionManager, session_cleanup_scheduler
from video_library.stores.base import ChangeFeed, VideoStore
from video_library.stores.exceptions import StoreError

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics and request ids.

    Records request count and duration for all endpoints,
    using FastAPI route templates to normalize paths.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request and record metrics."""
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        start_time = time.time()
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
        duration = time.time() - start_time

        # Use fixed label for unmatched routes to prevent unbounded cardinality
        route = request.scope.get("route")
        endpoint = route.path if route else "/unmatched"

        MetricsCollector.record_request(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
            duration=duration,
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


# Global service instances
_video_store: Optional[VideoStore] = None
_provider_manager: Optional[ProviderManager] = None
_session_manager: Optional[SessionManager] = None
_cleanup_task: Optional[asyncio.Task] = None


def get_video_store() -> VideoStore:
    """Get the global video store instance."""
    if _video_store is None:
        raise RuntimeError("Video store not configured")
    return _video_store


def get_provider_manager() -> ProviderManager:
    """Get the global provider manager instance."""
    if _provider_manager is None:
        raise RuntimeError("Provider manager not configured")
    return _provider_manager


def get_session_manager() -> SessionManager:
    """Get the global session manager instance."""
    if _session_manager is None:
        raise RuntimeError("Session manager not configured")
    return _session_manager


async def build_backend(config: Config) -> Tuple[VideoStore, ChangeFeed]:
    """Create the video store and change feed.

    Test mode uses the in-process implementations; otherwise a Supabase
    client backs both.
    """
    if config.testing.test_mode:
        from video_library.testing.memory import InMemoryChangeFeed, InMemoryVideoStore

        memory_feed = InMemoryChangeFeed()
        logger.info("backend_configured", backend="memory")
        return InMemoryVideoStore(memory_feed, table=config.supabase.table), memory_feed

    from video_library.stores.supabase_store import (
        SupabaseChangeFeed,
        SupabaseVideoStore,
        create_supabase_client,
    )

    client = await create_supabase_client(config.supabase)
    logger.info("backend_configured", backend="supabase", table=config.supabase.table)
    return (
        SupabaseVideoStore(client, table=config.supabase.table),
        SupabaseChangeFeed(client, schema=config.supabase.db_schema),
    )


def build_provider_manager(config: Config) -> ProviderManager:
    """Register the YouTube provider, routed through the mock API in test mode."""
    manager = ProviderManager()
    youtube_config = config.youtube

    client: Optional[httpx.AsyncClient] = None
    provider_settings = youtube_config.model_dump()
    if config.testing.test_mode:
        from video_library.testing.mock_youtube import MockYouTubeAPI

        client = MockYouTubeAPI().create_client()
        provider_settings["api_key"] = provider_settings["api_key"] or "test-mode-key"

    manager.register_provider(
        "youtube",
        YouTubeProvider(provider_settings, client=client),
        enabled=youtube_config.enabled,
    )
    return manager


def build_selection_store(config: Config) -> SelectionStore:
    if config.testing.test_mode:
        return MemorySelectionStore(namespace_by_owner=config.selection.namespace_by_owner)
    return FileSelectionStore(
        config.selection.path,
        namespace_by_owner=config.selection.namespace_by_owner,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown."""
    global _video_store, _provider_manager, _session_manager, _cleanup_task

    logger.info("application_starting", version=__version__)

    # Initialize metrics with application version
    initialize_metrics(__version__)

    # Load configuration
    config_service = ConfigService()
    config = config_service.load()

    # Configure logging
    configure_logging(config.logging.level, config.logging.format)

    config_service.validate()
    logger.info(
        "configuration_loaded",
        test_mode=config.testing.test_mode,
        table=config.supabase.table,
        youtube_enabled=config.youtube.enabled,
    )

    # Configure authentication
    configure_auth(api_keys=config.security.api_keys)

    store, feed = await build_backend(config)
    _video_store = store
    _provider_manager = build_provider_manager(config)
    selection = build_selection_store(config)
    provider_manager = _provider_manager

    def session_factory(owner_id: str) -> VideoLibrarySync:
        return VideoLibrarySync(
            owner_id=owner_id,
            store=store,
            feed=feed,
            resolver=provider_manager,
            selection=selection,
            table=config.supabase.table,
        )

    _session_manager = SessionManager(session_factory, idle_minutes=config.sessions.idle_minutes)

    # Start idle session cleanup in background
    _cleanup_task = asyncio.create_task(
        session_cleanup_scheduler(_session_manager, interval=config.sessions.cleanup_interval)
    )

    logger.info("application_startup_complete", version=__version__)

    yield

    # Shutdown
    logger.info("application_shutting_down")

    if _cleanup_task:
        _cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await _cleanup_task

    closed = await _session_manager.close_all()

    youtube = _provider_manager.get_provider_by_name("youtube")
    if isinstance(youtube, YouTubeProvider):
        await youtube.aclose()

    logger.info("application_shutdown_complete", sessions_closed=closed)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Video Library Sync API",
        description="Live per-user exercise video library backed by Supabase",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Add CORS middleware with configurable origins
    # Default ["*"] for development; override via APP_SECURITY_CORS_ORIGINS env var
    security_config = SecurityConfig()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=security_config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(MetricsMiddleware)

    # Register global exception handlers
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(APIError, global_exception_handler)
    app.add_exception_handler(HTTPException, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)
    app.add_exception_handler(ValidationError, global_exception_handler)
    app.add_exception_handler(ProviderError, global_exception_handler)
    app.add_exception_handler(StoreError, global_exception_handler)

    # Override dependency injection for routers
    app.dependency_overrides[videos.get_session_manager] = get_session_manager
    app.dependency_overrides[health.get_video_store] = get_video_store
    app.dependency_overrides[health.get_provider_manager] = get_provider_manager
    app.dependency_overrides[health.get_session_manager] = get_session_manager

    # Register routers
    app.include_router(health.router)
    app.include_router(videos.router)
    app.include_router(metrics.router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    server_config = ConfigService().load().server
    uvicorn.run(app, host=server_config.host, port=server_config.port)
