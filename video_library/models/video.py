"""Video record data models.

Field names are snake_case on the Python side; ``from_row``/``to_row`` map to
the ``exercise_videos`` table columns.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

DEFAULT_TITLE = "Untitled Exercise Video"
DEFAULT_CATEGORY = "General"

# Fields an update may touch; everything else is fixed at creation
MUTABLE_FIELDS: FrozenSet[str] = frozenset({"title", "description", "category", "metadata"})
IMMUTABLE_FIELDS: FrozenSet[str] = frozenset({"id", "type", "video_id", "owner_id", "created_at"})


class VideoType(str, Enum):
    """How the player resolves playback for a record."""

    YOUTUBE = "youtube"
    DIRECT = "direct"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp as returned by the store."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        # Handle both Z suffix and +00:00
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class NewVideo:
    """Insert payload for a video record.

    The store assigns ``id``, ``created_at`` and ``updated_at``; new records are
    always active.
    """

    original_url: str
    type: VideoType
    embed_url: str
    title: str = DEFAULT_TITLE
    video_id: Optional[str] = None
    thumbnail: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None
    category: str = DEFAULT_CATEGORY
    metadata: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Check the youtube/video_id invariant."""
        _check_video_id(self.type, self.video_id)


@dataclass
class VideoRecord:
    """Authoritative video record as stored remotely."""

    id: str
    owner_id: str
    original_url: str
    type: VideoType
    embed_url: str
    title: str = DEFAULT_TITLE
    video_id: Optional[str] = None
    thumbnail: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None
    category: str = DEFAULT_CATEGORY
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Check the youtube/video_id invariant."""
        _check_video_id(self.type, self.video_id)

    @property
    def effective_category(self) -> str:
        """Category used for grouping; blank categories count as the default."""
        return self.category or DEFAULT_CATEGORY

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "VideoRecord":
        """Create a record from a database row."""
        return cls(
            id=str(row["id"]),
            owner_id=str(row["user_id"]),
            original_url=row.get("url") or "",
            type=VideoType(row.get("video_type") or VideoType.DIRECT.value),
            embed_url=row.get("embed_url") or "",
            title=row.get("title") or DEFAULT_TITLE,
            video_id=row.get("youtube_video_id") or None,
            thumbnail=row.get("thumbnail_url") or None,
            duration=row.get("duration") or None,
            description=row.get("description") or None,
            category=row.get("category") or DEFAULT_CATEGORY,
            is_active=bool(row.get("is_active", True)),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
            metadata=dict(row.get("metadata") or {}),
        )

    def to_row(self) -> Dict[str, Any]:
        """Convert to a database row."""
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "url": self.original_url,
            "video_type": self.type.value,
            "youtube_video_id": self.video_id,
            "embed_url": self.embed_url,
            "title": self.title,
            "thumbnail_url": self.thumbnail,
            "duration": self.duration,
            "description": self.description,
            "category": self.category,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "metadata": self.metadata,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary for API responses."""
        return {
            "id": self.id,
            "title": self.title,
            "original_url": self.original_url,
            "type": self.type.value,
            "video_id": self.video_id,
            "embed_url": self.embed_url,
            "thumbnail": self.thumbnail,
            "duration": self.duration,
            "description": self.description,
            "category": self.category,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "metadata": self.metadata,
        }


def _check_video_id(video_type: VideoType, video_id: Optional[str]) -> None:
    if video_type == VideoType.YOUTUBE and not video_id:
        raise ValueError("youtube videos require a video_id")
    if video_type != VideoType.YOUTUBE and video_id:
        raise ValueError("video_id is only allowed for youtube videos")
