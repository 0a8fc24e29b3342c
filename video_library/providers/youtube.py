"""YouTube provider implementation backed by the YouTube Data API v3."""

import asyncio
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode, urlparse

import httpx
import structlog
from cachetools import TTLCache

from video_library.core.metrics import MetricsCollector
from video_library.providers.base import ProviderMetadata, VideoProvider
from video_library.providers.exceptions import MetadataLookupError, VideoUnavailableError

logger = structlog.get_logger(__name__)

# Limits applied to provider text before it is stored
MAX_DESCRIPTION_LENGTH = 500
MAX_TAGS = 10


class YouTubeProvider(VideoProvider):
    """YouTube video provider implementation."""

    name = "youtube"
    display_name = "YouTube"

    YOUTUBE_HOSTS = frozenset(
        {
            "youtube.com",
            "www.youtube.com",
            "m.youtube.com",
            "music.youtube.com",
            "youtu.be",
            "www.youtu.be",
        }
    )

    # Patterns to extract the video id, tried in order
    VIDEO_ID_PATTERNS = [
        r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/)([^&\n?#/]+)",
        r"youtube\.com/watch\?(?:.*&)?v=([^&\n?#]+)",
    ]

    DURATION_PATTERN = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")

    # HTTP statuses worth another attempt
    RETRIABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

    def __init__(self, config: dict, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize YouTube provider.

        Args:
            config: Provider configuration dictionary
            client: Optional shared httpx client (tests inject a mock transport)
        """
        self.config = config
        self.api_key: str = config.get("api_key", "")
        self.base_url: str = config.get("base_url", "https://www.googleapis.com/youtube/v3")
        self.embed_origin: Optional[str] = config.get("embed_origin")
        self.timeout: float = config.get("timeout", 10.0)
        self.retry_attempts: int = config.get("retry_attempts", 3)
        self.retry_backoff: List[float] = config.get("retry_backoff", [1, 2, 4])
        self._cache: TTLCache = TTLCache(
            maxsize=config.get("cache_size", 256),
            ttl=config.get("cache_ttl", 3600),
        )
        self._client = client
        self._owns_client = client is None

        logger.info(
            "youtube_provider_initialized",
            base_url=self.base_url,
            api_key_configured=bool(self.api_key),
            retry_attempts=self.retry_attempts,
        )

    def validate_url(self, url: str) -> bool:
        """
        Check if URL is hosted on YouTube.

        Args:
            url: URL to check

        Returns:
            True if the URL host is a YouTube host, False otherwise
        """
        if not url:
            return False

        candidate = url.strip()
        if "://" not in candidate:
            candidate = f"https://{candidate}"

        try:
            host = (urlparse(candidate).hostname or "").lower()
        except ValueError:
            return False

        return host in self.YOUTUBE_HOSTS

    def extract_video_id(self, url: str) -> Optional[str]:
        """
        Extract video ID from YouTube URL.

        Args:
            url: YouTube URL

        Returns:
            Video ID if found, None otherwise
        """
        for pattern in self.VIDEO_ID_PATTERNS:
            match = re.search(pattern, url)
            if match and match.group(1):
                video_id = match.group(1)
                logger.debug("video_id_extracted", url=url, video_id=video_id)
                return video_id

        logger.warning("video_id_not_found", url=url)
        return None

    def get_embed_url(self, video_id: str) -> str:
        """Build the iframe embed URL with the JS API enabled."""
        params: Dict[str, str] = {"enablejsapi": "1"}
        if self.embed_origin:
            params["origin"] = self.embed_origin
        return f"https://www.youtube.com/embed/{video_id}?{urlencode(params)}"

    @classmethod
    def parse_duration(cls, duration: str) -> str:
        """
        Convert an ISO 8601 duration to a clock string.

        ``PT4M13S`` becomes ``4:13`` and ``PT1H2M3S`` becomes ``1:02:03``.
        Unrecognised input is returned unchanged.

        Args:
            duration: ISO 8601 duration from contentDetails

        Returns:
            Readable duration
        """
        match = cls.DURATION_PATTERN.match(duration or "")
        if not match:
            return duration

        hours = int(match.group(1) or 0)
        minutes = int(match.group(2) or 0)
        seconds = int(match.group(3) or 0)

        if hours > 0:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"

    async def get_metadata(self, video_id: str) -> ProviderMetadata:
        """
        Fetch snippet, content details and statistics for a video.

        Results are cached per video id.

        Args:
            video_id: YouTube video id

        Returns:
            Provider metadata

        Raises:
            VideoUnavailableError: If the API returns no item for the id
            MetadataLookupError: If the API key is missing or the request fails
        """
        cached = self._cache.get(video_id)
        if cached is not None:
            logger.debug("youtube_metadata_cache_hit", video_id=video_id)
            return cached

        if not self.api_key:
            MetricsCollector.record_provider_lookup(self.name, "error")
            raise MetadataLookupError("YouTube API key is not configured")

        params = {
            "id": video_id,
            "key": self.api_key,
            "part": "snippet,contentDetails,statistics",
        }

        try:
            data = await self._request_with_retry(f"{self.base_url}/videos", params)
        except MetadataLookupError:
            MetricsCollector.record_provider_lookup(self.name, "error")
            raise

        items = data.get("items") or []
        if not items:
            MetricsCollector.record_provider_lookup(self.name, "not_found")
            raise VideoUnavailableError("Video not found or unavailable")

        metadata = self._parse_item(items[0])
        self._cache[video_id] = metadata
        MetricsCollector.record_provider_lookup(self.name, "success")

        logger.info("youtube_metadata_fetched", video_id=video_id, title=metadata.title)
        return metadata

    def _parse_item(self, item: Dict[str, Any]) -> ProviderMetadata:
        """
        Transform a Data API item into provider metadata.

        Args:
            item: One entry of the ``items`` array

        Returns:
            Parsed metadata
        """
        snippet = item.get("snippet") or {}
        content_details = item.get("contentDetails") or {}
        statistics = item.get("statistics") or {}
        thumbnails = snippet.get("thumbnails") or {}

        thumbnail = (thumbnails.get("medium") or {}).get("url") or (
            thumbnails.get("default") or {}
        ).get("url")

        duration = content_details.get("duration")

        return ProviderMetadata(
            title=snippet.get("title") or "",
            thumbnail=thumbnail,
            duration=self.parse_duration(duration) if duration else None,
            description=(snippet.get("description") or "")[:MAX_DESCRIPTION_LENGTH],
            provider_metadata={
                "channel_title": snippet.get("channelTitle"),
                "published_at": snippet.get("publishedAt"),
                "tags": (snippet.get("tags") or [])[:MAX_TAGS],
                "youtube_metadata": {
                    "view_count": statistics.get("viewCount"),
                    "like_count": statistics.get("likeCount"),
                    "category_id": snippet.get("categoryId"),
                },
            },
        )

    async def _request_with_retry(self, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        """
        GET a Data API endpoint with retry and exponential backoff.

        Server errors, rate limiting and transport failures are retried; other
        4xx responses fail immediately.

        Args:
            url: Endpoint URL
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            MetadataLookupError: If all attempts fail or the error is not retriable
        """
        client = self._get_client()
        last_error: Optional[str] = None

        for attempt in range(self.retry_attempts):
            try:
                response = await client.get(url, params=params, timeout=self.timeout)
            except httpx.TimeoutException:
                last_error = f"Timeout after {self.timeout}s"
            except httpx.TransportError as e:
                last_error = str(e) or type(e).__name__
            else:
                if response.status_code < 400:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise MetadataLookupError(f"Invalid YouTube API response: {e}") from e

                if response.status_code not in self.RETRIABLE_STATUS_CODES:
                    raise MetadataLookupError(f"YouTube API Error: {response.status_code}")

                last_error = f"YouTube API Error: {response.status_code}"

            if attempt < self.retry_attempts - 1:
                wait_time = self.retry_backoff[min(attempt, len(self.retry_backoff) - 1)]
                logger.warning(
                    "youtube_request_retry",
                    attempt=attempt + 1,
                    max_attempts=self.retry_attempts,
                    wait_seconds=wait_time,
                    error=last_error,
                )
                await asyncio.sleep(wait_time)

        raise MetadataLookupError(f"Failed after {self.retry_attempts} attempts: {last_error}")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
