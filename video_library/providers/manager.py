"""Provider manager for registration, URL classification and enrichment."""

from dataclasses import dataclass
from typing import Dict, Optional

import structlog

from video_library.models.video import DEFAULT_CATEGORY, DEFAULT_TITLE, NewVideo, VideoType, utc_now
from video_library.providers.base import ProviderMetadata, VideoProvider
from video_library.providers.exceptions import InvalidURLError

logger = structlog.get_logger(__name__)

DIRECT_VIDEO_TITLE = "Direct Video"


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying a video URL."""

    type: VideoType
    url: str
    provider: Optional[str] = None
    provider_id: Optional[str] = None


class ProviderManager:
    """Manages video provider registration and turns URLs into insert payloads."""

    def __init__(self) -> None:
        """Initialize the provider manager."""
        self._providers: Dict[str, VideoProvider] = {}
        self._enabled_providers: Dict[str, bool] = {}

    def register_provider(self, name: str, provider: VideoProvider, enabled: bool = True) -> None:
        """
        Register a video provider.

        Args:
            name: Provider name (e.g., "youtube")
            provider: Provider instance
            enabled: Whether provider is enabled
        """
        self._providers[name] = provider
        self._enabled_providers[name] = enabled

        logger.info("provider_registered", provider=name, enabled=enabled)

    def enable_provider(self, name: str) -> None:
        """
        Enable a registered provider.

        Raises:
            ValueError: If provider is not registered
        """
        if name not in self._providers:
            raise ValueError(f"Provider '{name}' is not registered")

        self._enabled_providers[name] = True
        logger.info("provider_enabled", provider=name)

    def disable_provider(self, name: str) -> None:
        """
        Disable a registered provider.

        URLs of a disabled provider are treated as direct links.

        Raises:
            ValueError: If provider is not registered
        """
        if name not in self._providers:
            raise ValueError(f"Provider '{name}' is not registered")

        self._enabled_providers[name] = False
        logger.info("provider_disabled", provider=name)

    def is_provider_enabled(self, name: str) -> bool:
        """Check if a provider is enabled."""
        return self._enabled_providers.get(name, False)

    def get_provider_for_url(self, url: str) -> Optional[VideoProvider]:
        """
        Select the provider hosting a URL.

        Args:
            url: Video URL

        Returns:
            Provider instance, or None when no enabled provider recognises the
            URL (a direct link)
        """
        for name, provider in self._providers.items():
            if not self._enabled_providers.get(name, False):
                continue

            try:
                if provider.validate_url(url):
                    logger.debug("provider_selected", provider=name, url=url)
                    return provider
            except Exception as e:
                # One provider's validation bug must not block the others
                logger.warning("provider_validation_error", provider=name, url=url, error=str(e))
                continue

        return None

    def get_provider_by_name(self, name: str) -> Optional[VideoProvider]:
        """Get a provider by name."""
        return self._providers.get(name)

    def list_providers(self) -> Dict[str, bool]:
        """
        List all registered providers and their status.

        Returns:
            Dictionary mapping provider names to enabled status
        """
        return {name: self._enabled_providers.get(name, False) for name in self._providers.keys()}

    def classify(self, url: str) -> Classification:
        """
        Classify a URL as a provider video or a direct link.

        Args:
            url: Validated video URL

        Returns:
            Classification with the provider id for provider URLs

        Raises:
            InvalidURLError: If a provider URL carries no parseable video id
        """
        provider = self.get_provider_for_url(url)
        if provider is None:
            return Classification(type=VideoType.DIRECT, url=url)

        provider_id = provider.extract_video_id(url)
        if not provider_id:
            raise InvalidURLError(f"Invalid {provider.display_name or provider.name} URL format")

        return Classification(
            type=VideoType(provider.name),
            url=url,
            provider=provider.name,
            provider_id=provider_id,
        )

    async def enrich(self, classification: Classification) -> Optional[ProviderMetadata]:
        """
        Look up provider metadata, best effort.

        Args:
            classification: Result of ``classify``

        Returns:
            Metadata, or None for direct links and failed lookups
        """
        if classification.provider is None or classification.provider_id is None:
            return None

        provider = self._providers[classification.provider]
        try:
            return await provider.get_metadata(classification.provider_id)
        except Exception as e:
            logger.warning(
                "provider_enrichment_failed",
                provider=classification.provider,
                provider_id=classification.provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def resolve(
        self,
        url: str,
        title: Optional[str] = None,
        category: Optional[str] = None,
    ) -> NewVideo:
        """
        Build the insert payload for a URL.

        Caller title/category override provider values. Provider lookups that
        fail degrade to minimal metadata rather than failing the add.

        Args:
            url: Validated video URL
            title: Optional title override
            category: Optional category override

        Returns:
            Insert payload

        Raises:
            InvalidURLError: If a provider URL carries no parseable video id
        """
        classification = self.classify(url)
        category = (category or "").strip() or DEFAULT_CATEGORY
        title = (title or "").strip()
        processed_at = utc_now().isoformat()

        if classification.type == VideoType.DIRECT:
            return NewVideo(
                original_url=url,
                type=VideoType.DIRECT,
                embed_url=url,
                title=title or DIRECT_VIDEO_TITLE,
                category=category,
                metadata={"source": "direct_upload", "processed_at": processed_at},
            )

        provider = self._providers[classification.provider]  # type: ignore[index]
        provider_id = classification.provider_id or ""
        embed_url = provider.get_embed_url(provider_id)
        metadata = await self.enrich(classification)

        if metadata is None:
            return NewVideo(
                original_url=url,
                type=classification.type,
                video_id=provider_id,
                embed_url=embed_url,
                title=title or DEFAULT_TITLE,
                category=category,
                metadata={
                    "source": classification.provider,
                    "enrichment": "unavailable",
                    "processed_at": processed_at,
                },
            )

        return NewVideo(
            original_url=url,
            type=classification.type,
            video_id=provider_id,
            embed_url=embed_url,
            title=title or metadata.title or DEFAULT_TITLE,
            thumbnail=metadata.thumbnail,
            duration=metadata.duration,
            description=metadata.description,
            category=category,
            metadata={
                "source": classification.provider,
                **metadata.provider_metadata,
                "processed_at": processed_at,
            },
        )
