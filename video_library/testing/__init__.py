"""Testing module for test mode support."""

from video_library.testing.fixtures import DEMO_VIDEOS, NOT_FOUND_VIDEO_ID, get_demo_video
from video_library.testing.memory import (
    InMemoryChangeFeed,
    InMemorySubscription,
    InMemoryVideoStore,
)
from video_library.testing.mock_youtube import MockYouTubeAPI

__all__ = [
    "DEMO_VIDEOS",
    "NOT_FOUND_VIDEO_ID",
    "get_demo_video",
    "InMemoryChangeFeed",
    "InMemorySubscription",
    "InMemoryVideoStore",
    "MockYouTubeAPI",
]
