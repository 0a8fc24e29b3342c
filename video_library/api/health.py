"""Health check endpoints.

Liveness for container probes and a detailed health check covering the video
store, the sync sessions and the registered video providers.
"""

import asyncio
import os
import time
from datetime import datetime, timezone
from typing import Literal

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from video_library import __version__
from video_library.api.schemas import ComponentHealth, HealthResponse, LivenessResponse
from video_library.providers.manager import ProviderManager
from video_library.services.sessions import SessionManager
from video_library.stores.base import VideoStore


def _is_test_mode() -> bool:
    """Check if test mode is enabled via environment variable."""
    return os.environ.get("APP_TESTING_TEST_MODE", "").lower() in ("true", "1", "yes")


logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])

# Store ping timeout in seconds
STORE_PING_TIMEOUT = 2.0

# Track application start time for uptime calculation
_start_time: float = time.time()


def reset_start_time() -> None:
    """Reset the start time (for testing)."""
    global _start_time
    _start_time = time.time()


# Dependency placeholders, overridden in create_app()
async def get_video_store() -> VideoStore:
    """Get video store instance."""
    raise NotImplementedError("Video store dependency not configured")


async def get_provider_manager() -> ProviderManager:
    """Get provider manager instance."""
    raise NotImplementedError("Provider manager dependency not configured")


async def get_session_manager() -> SessionManager:
    """Get session manager instance."""
    raise NotImplementedError("Session manager dependency not configured")


async def _check_store(store: VideoStore) -> ComponentHealth:
    """Check the video store answers a trivial query."""
    start_time = time.time()
    try:
        reachable = await asyncio.wait_for(store.ping(), timeout=STORE_PING_TIMEOUT)
    except asyncio.TimeoutError:
        return ComponentHealth(
            status="unhealthy",
            details={"error": f"Video store ping timed out (>{STORE_PING_TIMEOUT:g}s)"},
        )

    latency_ms = int((time.time() - start_time) * 1000)
    if reachable:
        return ComponentHealth(status="healthy", details={"latency_ms": latency_ms})
    return ComponentHealth(status="unhealthy", details={"error": "Video store unreachable"})


def _check_sessions(sessions: SessionManager) -> ComponentHealth:
    """Report sync sessions and how many have a live change feed."""
    live = 0
    for owner_id in sessions.owners():
        session = sessions.get(owner_id)
        if session is not None and session.is_live:
            live += 1

    total = sessions.count
    details = {"active_sessions": total, "live_sessions": live}
    if total and live < total:
        details["warning"] = "Some sessions are serving a stale snapshot without change feed"
    return ComponentHealth(status="healthy", details=details)


def _check_providers(providers: ProviderManager) -> ComponentHealth:
    """Report registered providers; enrichment is optional so this is never fatal."""
    listed = providers.list_providers()
    details = {"providers": listed}

    youtube = providers.get_provider_by_name("youtube")
    if youtube is not None and not getattr(youtube, "api_key", ""):
        details["warning"] = "YouTube API key not configured; videos are added without metadata"

    return ComponentHealth(status="healthy", details=details)


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "All components healthy"},
        503: {"description": "One or more components unhealthy"},
    },
)
async def health_check(
    store: VideoStore = Depends(get_video_store),  # noqa: B008
    providers: ProviderManager = Depends(get_provider_manager),  # noqa: B008
    sessions: SessionManager = Depends(get_session_manager),  # noqa: B008
) -> JSONResponse:
    """
    Detailed health check endpoint.

    Verifies:
    - Video store reachability (2s timeout)
    - Sync sessions and change feed status
    - Registered video providers

    Returns HTTP 200 if all components are healthy,
    HTTP 503 if any component is unhealthy.
    """
    components = {
        "video_store": await _check_store(store),
        "sync_sessions": _check_sessions(sessions),
        "providers": _check_providers(providers),
    }

    all_healthy = all(c.status == "healthy" for c in components.values())
    overall_status: Literal["healthy", "unhealthy"] = "healthy" if all_healthy else "unhealthy"

    response = HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
        test_mode=_is_test_mode(),
        components=components,
    )

    status_code = status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE

    logger.info(
        "health_check_completed",
        status=overall_status,
        components={k: v.status for k, v in components.items()},
    )

    return JSONResponse(content=response.model_dump(), status_code=status_code)


@router.get("/liveness", response_model=LivenessResponse)
async def liveness_check() -> LivenessResponse:
    """
    Liveness probe endpoint.

    Returns HTTP 200 if the process is alive.
    """
    return LivenessResponse(status="alive")
