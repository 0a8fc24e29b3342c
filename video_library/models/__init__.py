"""Data models for the application."""

from video_library.models.events import ChangeEvent, ChangeKind
from video_library.models.video import (
    DEFAULT_CATEGORY,
    DEFAULT_TITLE,
    IMMUTABLE_FIELDS,
    MUTABLE_FIELDS,
    NewVideo,
    VideoRecord,
    VideoType,
)

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "DEFAULT_CATEGORY",
    "DEFAULT_TITLE",
    "IMMUTABLE_FIELDS",
    "MUTABLE_FIELDS",
    "NewVideo",
    "VideoRecord",
    "VideoType",
]
