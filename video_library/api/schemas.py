"""Request and response schemas for API endpoints.

This module provides Pydantic models for API request validation
and response serialization with OpenAPI examples.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from video_library.models.video import VideoRecord
from video_library.services.library_sync import LibraryState, VideoStats


class AddVideoRequest(BaseModel):
    """Request body for adding a video."""

    url: str = Field(
        ...,
        description="YouTube or direct video URL",
        examples=["https://youtube.com/watch?v=dQw4w9WgXcQ", "https://example.com/video.mp4"],
    )
    title: Optional[str] = Field(None, description="Title override", examples=["Knee extension"])
    category: Optional[str] = Field(None, description="Category, defaults to General", examples=["Knee"])


class BatchAddRequest(BaseModel):
    """Request body for adding several videos at once."""

    urls: List[str] = Field(..., min_length=1, max_length=50)
    category: Optional[str] = Field(None, examples=["Shoulder"])


class UpdateVideoRequest(BaseModel):
    """Partial update body.

    Unknown keys are kept so immutable or unknown fields are reported as an
    invalid update rather than silently dropped.
    """

    model_config = {"extra": "allow"}

    title: Optional[str] = Field(None, examples=["Seated knee extension"])
    description: Optional[str] = Field(None, examples=["Three sets of ten"])
    category: Optional[str] = Field(None, examples=["Knee"])
    metadata: Optional[Dict[str, Any]] = Field(None, examples=[{"sets": 3}])

    def fields(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        data.update(self.model_extra or {})
        return data


class VideoResponse(BaseModel):
    """A video record."""

    id: str = Field(..., examples=["550e8400-e29b-41d4-a716-446655440000"])
    title: str = Field(..., examples=["Seated Knee Extension - Post-Op Rehab Exercise"])
    original_url: str = Field(..., examples=["https://youtube.com/watch?v=dQw4w9WgXcQ"])
    type: Literal["youtube", "direct"] = Field(..., examples=["youtube"])
    video_id: Optional[str] = Field(None, examples=["dQw4w9WgXcQ"])
    embed_url: str = Field(..., examples=["https://www.youtube.com/embed/dQw4w9WgXcQ?enablejsapi=1"])
    thumbnail: Optional[str] = Field(None, examples=["https://i.ytimg.com/vi/dQw4w9WgXcQ/mqdefault.jpg"])
    duration: Optional[str] = Field(None, examples=["4:13"])
    description: Optional[str] = None
    category: str = Field(..., examples=["General"])
    created_at: Optional[str] = Field(None, examples=["2025-12-25T10:30:00+00:00"])
    updated_at: Optional[str] = Field(None, examples=["2025-12-25T10:30:00+00:00"])
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: VideoRecord) -> "VideoResponse":
        return cls(**record.to_dict())


class VideoListResponse(BaseModel):
    """Videos for the selected category plus sync flags."""

    videos: List[VideoResponse]
    selected_category: str = Field(..., examples=["All"])
    total: int = Field(..., examples=[12])
    is_live: bool = Field(..., description="Change feed subscription is active")
    error: Optional[str] = None


class LibraryStateResponse(BaseModel):
    """Full reactive state of the owner's library session."""

    videos: List[VideoResponse]
    current_video: Optional[VideoResponse] = None
    categories: List[str] = Field(..., examples=[["All", "General", "Knee"]])
    selected_category: str = Field(..., examples=["All"])
    is_loading: bool
    is_syncing: bool
    error: Optional[str] = None
    is_initialized: bool
    is_live: bool

    @classmethod
    def from_state(cls, state: LibraryState) -> "LibraryStateResponse":
        return cls(**state.to_dict())


class CurrentVideoResponse(BaseModel):
    """The current selection."""

    current_video: Optional[VideoResponse] = None


class OperationAcceptedResponse(BaseModel):
    """Response for writes whose local effect arrives through the change feed (HTTP 202)."""

    video_id: str = Field(..., examples=["550e8400-e29b-41d4-a716-446655440000"])
    status: Literal["accepted"] = "accepted"
    message: str = Field(..., examples=["Video removed; the library updates when the change is confirmed"])


class BatchAddResponse(BaseModel):
    """Result of a batch add."""

    added: List[VideoResponse]
    errors: Dict[str, str] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    """Search results."""

    query: str = Field(..., examples=["knee"])
    results: List[VideoResponse]


class VideoStatsResponse(BaseModel):
    """Library statistics."""

    total_videos: int = Field(..., examples=[12])
    category_counts: Dict[str, int] = Field(..., examples=[{"General": 4, "Knee": 8}])
    has_current_video: bool

    @classmethod
    def from_stats(cls, stats: VideoStats) -> "VideoStatsResponse":
        return cls(**stats.to_dict())


class CategoriesResponse(BaseModel):
    """Categories present in the library."""

    categories: List[str] = Field(..., examples=[["All", "General", "Knee"]])
    selected_category: str = Field(..., examples=["All"])


class ComponentHealth(BaseModel):
    """Health status of a single component."""

    status: Literal["healthy", "unhealthy"] = Field(..., examples=["healthy"])
    version: Optional[str] = Field(default=None, examples=["1.0.0"])
    details: Optional[Dict[str, Any]] = Field(default=None, examples=[{"latency_ms": 150}])


class HealthResponse(BaseModel):
    """Detailed health check response."""

    status: Literal["healthy", "unhealthy"] = Field(..., examples=["healthy"])
    timestamp: str = Field(..., examples=["2025-12-25T10:30:00Z"])
    version: str = Field(..., examples=["1.0.0"])
    uptime_seconds: float = Field(..., examples=[3600.5])
    test_mode: bool = Field(False, description="Running with in-memory store and mock provider")
    components: Dict[str, ComponentHealth]


class LivenessResponse(BaseModel):
    """Simple liveness check response for container orchestration."""

    status: Literal["alive"] = Field(..., examples=["alive"])


class ErrorDetail(BaseModel):
    """Structured error response.

    All API errors follow this format with machine-readable error codes
    and optional suggestions for resolution.
    """

    error_code: str = Field(
        ...,
        description="Machine-readable error code",
        examples=["INVALID_URL", "VIDEO_NOT_FOUND", "STORE_UNAVAILABLE"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Please enter a valid URL"],
    )
    details: Optional[str] = Field(
        None,
        description="Additional error context",
        examples=["body.url: Field required"],
    )
    timestamp: str = Field(..., examples=["2025-12-25T10:30:00Z"])
    request_id: Optional[str] = Field(
        None,
        description="Request ID for tracing",
        examples=["req-550e8400-e29b-41d4"],
    )
    suggestion: Optional[str] = Field(
        None,
        description="Suggested action to resolve the error",
        examples=["Enter a full http(s) link"],
    )
