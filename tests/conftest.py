"""Pytest configuration and shared fixtures"""

import os
from typing import Any, Callable, List

import pytest

from video_library.models.video import VideoRecord, VideoType
from video_library.providers.manager import ProviderManager
from video_library.providers.youtube import YouTubeProvider
from video_library.services.library_sync import Notifier
from video_library.services.selection import MemorySelectionStore
from video_library.testing import InMemoryChangeFeed, InMemoryVideoStore, MockYouTubeAPI

OWNER = "user-a"
OTHER_OWNER = "user-b"


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset environment variables before each test"""
    # Clear any APP_ prefixed environment variables
    for key in list(os.environ.keys()):
        if key.startswith("APP_"):
            monkeypatch.delenv(key, raising=False)


class RecordingNotifier(Notifier):
    """Notifier that keeps every message for assertions."""

    def __init__(self) -> None:
        self.successes: List[str] = []
        self.errors: List[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def feed() -> InMemoryChangeFeed:
    return InMemoryChangeFeed()


@pytest.fixture
def store(feed: InMemoryChangeFeed) -> InMemoryVideoStore:
    return InMemoryVideoStore(feed)


@pytest.fixture
def selection() -> MemorySelectionStore:
    return MemorySelectionStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def mock_youtube_api() -> MockYouTubeAPI:
    return MockYouTubeAPI()


@pytest.fixture
def resolver(mock_youtube_api: MockYouTubeAPI) -> ProviderManager:
    """Provider manager with YouTube routed through the mock Data API."""
    manager = ProviderManager()
    provider = YouTubeProvider(
        {"api_key": "test-key", "retry_attempts": 1},
        client=mock_youtube_api.create_client(),
    )
    manager.register_provider("youtube", provider)
    return manager


@pytest.fixture
def make_record() -> Callable[..., VideoRecord]:
    """Build a VideoRecord with sensible defaults."""

    def _make(record_id: str = "v1", **overrides: Any) -> VideoRecord:
        values: dict = {
            "id": record_id,
            "owner_id": OWNER,
            "original_url": f"https://example.com/{record_id}.mp4",
            "type": VideoType.DIRECT,
            "embed_url": f"https://example.com/{record_id}.mp4",
            "title": f"Video {record_id}",
            "category": "General",
        }
        values.update(overrides)
        return VideoRecord(**values)

    return _make
