"""Input validation utilities.

This module provides validation for video URLs and record updates. Validation
runs before any network call is made.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping, Optional
from urllib.parse import urlparse

import structlog

from video_library.models.video import IMMUTABLE_FIELDS, MUTABLE_FIELDS

logger = structlog.get_logger(__name__)

EMPTY_URL_MESSAGE = "Please enter a valid URL"


class ValidationError(ValueError):
    """Raised when caller input is rejected before any I/O."""

    pass


class InvalidUpdateError(ValidationError):
    """Raised when a partial update touches a field it may not."""

    pass


@dataclass(frozen=True)
class ValidationResult:
    """Result of a validation operation."""

    is_valid: bool
    error_message: Optional[str] = None
    sanitized_value: Optional[str] = None


class URLValidator:
    """Validates video URLs.

    Any http(s) host is accepted since direct video links may live anywhere;
    provider recognition happens later in the resolver.
    """

    # Dangerous URL schemes that should always be rejected
    DANGEROUS_SCHEMES: FrozenSet[str] = frozenset(
        {
            "javascript",
            "data",
            "file",
            "vbscript",
            "about",
        }
    )

    def validate(self, url: str) -> ValidationResult:
        """Validate a URL.

        Args:
            url: URL to validate

        Returns:
            ValidationResult with validation status, error message and the
            trimmed URL (``https://`` is prefixed to scheme-less input)
        """
        if not url or not isinstance(url, str):
            return ValidationResult(is_valid=False, error_message=EMPTY_URL_MESSAGE)

        url = url.strip()
        if not url:
            return ValidationResult(is_valid=False, error_message=EMPTY_URL_MESSAGE)

        try:
            parsed = urlparse(url)
        except ValueError as e:
            logger.warning("url_parsing_failed", url=url, error=str(e))
            return ValidationResult(is_valid=False, error_message="Invalid URL format")

        scheme = parsed.scheme.lower() if parsed.scheme else ""
        if scheme in self.DANGEROUS_SCHEMES:
            logger.warning("dangerous_url_scheme", url=url, scheme=scheme)
            return ValidationResult(
                is_valid=False, error_message=f"URL scheme '{scheme}' is not allowed"
            )

        if not parsed.netloc and "://" not in url:
            # Scheme-less input such as "youtu.be/abc123"
            candidate = f"https://{url}"
            parsed = urlparse(candidate)
            if parsed.netloc and "." in parsed.netloc:
                url = candidate
                scheme = "https"

        if scheme not in ("http", "https"):
            return ValidationResult(
                is_valid=False, error_message="URL must use http or https scheme"
            )

        if not parsed.netloc or not parsed.hostname:
            return ValidationResult(is_valid=False, error_message="URL must include a valid domain")

        return ValidationResult(is_valid=True, sanitized_value=url)

    def is_valid(self, url: str) -> bool:
        """Quick check if URL is valid."""
        return self.validate(url).is_valid


def validate_update_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a partial record update.

    Args:
        fields: Field name to new value mapping

    Returns:
        A plain dict containing only the validated fields

    Raises:
        InvalidUpdateError: If the update is empty, touches an immutable or unknown
            field, or carries a value of the wrong type
    """
    if not fields:
        raise InvalidUpdateError("No fields to update")

    immutable = sorted(set(fields) & IMMUTABLE_FIELDS)
    if immutable:
        raise InvalidUpdateError(f"Fields cannot be updated: {', '.join(immutable)}")

    unknown = sorted(set(fields) - MUTABLE_FIELDS)
    if unknown:
        raise InvalidUpdateError(f"Unknown fields: {', '.join(unknown)}")

    cleaned: Dict[str, Any] = {}
    for name, value in fields.items():
        if name == "metadata":
            if not isinstance(value, Mapping):
                raise InvalidUpdateError("metadata must be an object")
            cleaned[name] = dict(value)
        elif name == "description":
            if value is not None and not isinstance(value, str):
                raise InvalidUpdateError("description must be a string")
            cleaned[name] = value
        else:
            if not isinstance(value, str) or not value.strip():
                raise InvalidUpdateError(f"{name} must be a non-empty string")
            cleaned[name] = value.strip()

    return cleaned


# Singleton instance for convenience
url_validator = URLValidator()
