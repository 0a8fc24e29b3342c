"""Provider-specific exceptions."""


class ProviderError(Exception):
    """Base exception for provider errors."""

    pass


class InvalidURLError(ProviderError):
    """Raised when URL is invalid or cannot be parsed by the provider."""

    pass


class VideoUnavailableError(ProviderError):
    """Raised when the provider has no such video or it is not accessible."""

    pass


class MetadataLookupError(ProviderError):
    """Raised when the provider metadata API fails."""

    pass
