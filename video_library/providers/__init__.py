"""Video provider implementations."""

from video_library.providers.base import ProviderMetadata, VideoProvider
from video_library.providers.exceptions import (
    InvalidURLError,
    MetadataLookupError,
    ProviderError,
    VideoUnavailableError,
)
from video_library.providers.manager import Classification, ProviderManager
from video_library.providers.youtube import YouTubeProvider

__all__ = [
    "Classification",
    "ProviderManager",
    "ProviderMetadata",
    "VideoProvider",
    "YouTubeProvider",
    "ProviderError",
    "InvalidURLError",
    "MetadataLookupError",
    "VideoUnavailableError",
]
