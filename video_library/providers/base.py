"""Abstract base class for video providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ProviderMetadata:
    """Descriptive metadata returned by a provider lookup."""

    title: str
    thumbnail: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None
    provider_metadata: Dict[str, Any] = field(default_factory=dict)


class VideoProvider(ABC):
    """Abstract base class for video hosting providers."""

    name: str = ""
    display_name: str = ""

    @abstractmethod
    def validate_url(self, url: str) -> bool:
        """
        Check if URL belongs to this provider.

        Args:
            url: Video URL to check

        Returns:
            True if URL is hosted by this provider, False otherwise
        """
        pass

    @abstractmethod
    def extract_video_id(self, url: str) -> Optional[str]:
        """
        Extract the provider-specific video id.

        Args:
            url: Provider URL

        Returns:
            Video id if found, None otherwise
        """
        pass

    @abstractmethod
    def get_embed_url(self, video_id: str) -> str:
        """
        Build a playable embed URL for a video id.

        Args:
            video_id: Provider-specific video id

        Returns:
            Embed URL
        """
        pass

    @abstractmethod
    async def get_metadata(self, video_id: str) -> ProviderMetadata:
        """
        Look up descriptive metadata for a video.

        Args:
            video_id: Provider-specific video id

        Returns:
            Provider metadata

        Raises:
            VideoUnavailableError: If the video does not exist or is private
            MetadataLookupError: If the lookup fails
        """
        pass
