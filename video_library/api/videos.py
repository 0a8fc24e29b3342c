"""Video library endpoints.

Each request is served by the caller's live ``VideoLibrarySync`` session,
identified by the ``X-Owner-Id`` header. Adds and selections take effect
immediately; updates and removals are accepted (202) and reach the library
listing once the change feed confirms them.
"""

from typing import Any, AsyncIterator, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status

from video_library.api.schemas import (
    AddVideoRequest,
    BatchAddRequest,
    BatchAddResponse,
    CategoriesResponse,
    CurrentVideoResponse,
    ErrorDetail,
    LibraryStateResponse,
    OperationAcceptedResponse,
    SearchResponse,
    UpdateVideoRequest,
    VideoListResponse,
    VideoResponse,
    VideoStatsResponse,
)
from video_library.middleware.auth import get_api_key, get_owner_id
from video_library.services.library_sync import VideoLibrarySync
from video_library.services.sessions import SessionManager

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["videos"], dependencies=[Depends(get_api_key)])

ERROR_RESPONSES: Any = {
    400: {"model": ErrorDetail, "description": "Invalid input"},
    401: {"model": ErrorDetail, "description": "Invalid or missing API key"},
    404: {"model": ErrorDetail, "description": "Video not found"},
    503: {"model": ErrorDetail, "description": "Video store unavailable"},
}


# Dependency placeholder for session manager
async def get_session_manager() -> SessionManager:
    """Get session manager instance."""
    raise NotImplementedError("Session manager dependency not configured")


async def get_session(
    owner_id: str = Depends(get_owner_id),  # noqa: B008
    sessions: SessionManager = Depends(get_session_manager),  # noqa: B008
) -> AsyncIterator[VideoLibrarySync]:
    """Hold the caller's started sync session for the request."""
    async with sessions.lease(owner_id) as session:
        yield session


@router.get("/videos", response_model=VideoListResponse, responses=ERROR_RESPONSES)
async def list_videos(
    category: Optional[str] = Query(None, description="Category filter; 'All' clears it"),  # noqa: B008
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """
    List videos in the selected category, newest first.

    Passing ``category`` changes the session's category filter.
    """
    if category is not None:
        session.filter_videos_by_category(category)

    videos = session.get_filtered_videos()
    return VideoListResponse(
        videos=[VideoResponse.from_record(v) for v in videos],
        selected_category=session.selected_category,
        total=len(videos),
        is_live=session.is_live,
        error=session.error,
    )


@router.get("/videos/state", response_model=LibraryStateResponse, responses=ERROR_RESPONSES)
async def get_library_state(
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """Return the complete library state."""
    return LibraryStateResponse.from_state(session.snapshot())


@router.get("/videos/stats", response_model=VideoStatsResponse, responses=ERROR_RESPONSES)
async def get_video_stats(
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """Return totals per category and whether a video is selected."""
    return VideoStatsResponse.from_stats(session.get_video_stats())


@router.get("/videos/search", response_model=SearchResponse, responses=ERROR_RESPONSES)
async def search_videos(
    q: str = Query("", description="Text matched against title, description and category"),  # noqa: B008
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """
    Search the library.

    An empty query returns the whole library.
    """
    results = await session.search_videos(q)
    return SearchResponse(query=q, results=[VideoResponse.from_record(v) for v in results])


@router.post(
    "/videos",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def add_video(
    request: AddVideoRequest,
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """
    Add a video by URL and make it the current video.

    YouTube links are enriched with title, thumbnail and duration when the
    Data API is reachable; any other http(s) link is stored as a direct video.
    """
    record = await session.add_video(request.url, title=request.title, category=request.category)
    logger.info("video_add_requested", video_id=record.id, type=record.type.value)
    return VideoResponse.from_record(record)


@router.post("/videos/batch", response_model=BatchAddResponse, responses=ERROR_RESPONSES)
async def add_videos(
    request: BatchAddRequest,
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """Add several URLs; failures are reported per URL."""
    result = await session.add_videos(request.urls, category=request.category)
    return BatchAddResponse(
        added=[VideoResponse.from_record(v) for v in result.added],
        errors=result.errors,
    )


@router.post("/videos/refresh", response_model=LibraryStateResponse, responses=ERROR_RESPONSES)
async def refresh_videos(
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """Re-fetch the library from the store."""
    await session.refresh_videos()
    return LibraryStateResponse.from_state(session.snapshot())


@router.get("/videos/current", response_model=CurrentVideoResponse, responses=ERROR_RESPONSES)
async def get_current_video(
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """Return the current selection."""
    current = session.current_video
    return CurrentVideoResponse(current_video=VideoResponse.from_record(current) if current else None)


@router.delete("/videos/current", response_model=CurrentVideoResponse, responses=ERROR_RESPONSES)
async def clear_current_video(
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """Clear the current selection."""
    session.clear_current_video()
    return CurrentVideoResponse(current_video=None)


@router.post(
    "/videos/{video_id}/select",
    response_model=CurrentVideoResponse,
    responses=ERROR_RESPONSES,
)
async def select_video(
    video_id: str,
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """
    Make a video current.

    The selection is stored before the last-played timestamp is written; a
    failed timestamp write does not undo it.
    """
    record = next((v for v in session.videos if v.id == video_id), None)
    if record is None:
        record = await session.store.get(video_id, session.owner_id)

    await session.select_video(record)
    return CurrentVideoResponse(current_video=VideoResponse.from_record(record))


@router.patch(
    "/videos/{video_id}",
    response_model=OperationAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=ERROR_RESPONSES,
)
async def update_video(
    video_id: str,
    request: UpdateVideoRequest,
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """
    Update title, description, category or metadata.

    Any other field is rejected with INVALID_UPDATE.
    """
    await session.update_video(video_id, request.fields())
    return OperationAcceptedResponse(
        video_id=video_id,
        message="Video updated; the library updates when the change is confirmed",
    )


@router.delete(
    "/videos/{video_id}",
    response_model=OperationAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=ERROR_RESPONSES,
)
async def remove_video(
    video_id: str,
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """Remove a video from the library (soft delete)."""
    await session.remove_video(video_id)
    return OperationAcceptedResponse(
        video_id=video_id,
        message="Video removed; the library updates when the change is confirmed",
    )


@router.get("/categories", response_model=CategoriesResponse, responses=ERROR_RESPONSES)
async def list_categories(
    session: VideoLibrarySync = Depends(get_session),  # noqa: B008
) -> Any:
    """Return the categories present in the library, starting with 'All'."""
    return CategoriesResponse(
        categories=session.categories,
        selected_category=session.selected_category,
    )
