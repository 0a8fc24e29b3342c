"""Tests for URL and update validation."""

import pytest

from video_library.core.validation import (
    EMPTY_URL_MESSAGE,
    InvalidUpdateError,
    URLValidator,
    ValidationError,
    validate_update_fields,
)


@pytest.fixture
def validator() -> URLValidator:
    return URLValidator()


class TestURLValidator:
    """Tests for URLValidator."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://youtube.com/watch?v=abc123",
            "https://youtu.be/abc123",
            "http://example.com/video.mp4",
            "https://cdn.example.org/clips/knee.webm?token=1",
        ],
    )
    def test_valid_urls(self, validator: URLValidator, url: str) -> None:
        """Test http(s) URLs on any host are accepted."""
        result = validator.validate(url)
        assert result.is_valid is True
        assert result.sanitized_value == url

    @pytest.mark.parametrize("url", ["", "   ", None])
    def test_empty_url(self, validator: URLValidator, url) -> None:
        """Test empty input reports the empty-URL message."""
        result = validator.validate(url)
        assert result.is_valid is False
        assert result.error_message == EMPTY_URL_MESSAGE

    def test_whitespace_trimmed(self, validator: URLValidator) -> None:
        """Test surrounding whitespace is removed."""
        result = validator.validate("  https://example.com/a.mp4  ")
        assert result.sanitized_value == "https://example.com/a.mp4"

    def test_scheme_less_url_gets_https(self, validator: URLValidator) -> None:
        """Test scheme-less input with a dotted host is prefixed with https."""
        result = validator.validate("youtu.be/abc123")
        assert result.is_valid is True
        assert result.sanitized_value == "https://youtu.be/abc123"

    @pytest.mark.parametrize(
        "url",
        [
            "javascript:alert(1)",
            "data:text/html,<script>",
            "file:///etc/passwd",
            "vbscript:msgbox",
        ],
    )
    def test_dangerous_schemes_rejected(self, validator: URLValidator, url: str) -> None:
        """Test dangerous schemes are rejected."""
        result = validator.validate(url)
        assert result.is_valid is False
        assert "not allowed" in (result.error_message or "")

    def test_ftp_rejected(self, validator: URLValidator) -> None:
        """Test non-http schemes are rejected."""
        result = validator.validate("ftp://example.com/video.mp4")
        assert result.is_valid is False
        assert result.error_message == "URL must use http or https scheme"

    def test_not_a_url(self, validator: URLValidator) -> None:
        """Test free text is rejected."""
        assert validator.is_valid("not a url") is False


class TestValidateUpdateFields:
    """Tests for validate_update_fields."""

    def test_mutable_fields_accepted(self) -> None:
        """Test title, description, category and metadata are accepted."""
        cleaned = validate_update_fields(
            {
                "title": "  Knee bends ",
                "description": None,
                "category": "Knee",
                "metadata": {"sets": 3},
            }
        )
        assert cleaned == {
            "title": "Knee bends",
            "description": None,
            "category": "Knee",
            "metadata": {"sets": 3},
        }

    def test_empty_update_rejected(self) -> None:
        """Test an empty update is rejected."""
        with pytest.raises(InvalidUpdateError, match="No fields"):
            validate_update_fields({})

    @pytest.mark.parametrize("name", ["id", "type", "video_id", "owner_id", "created_at"])
    def test_immutable_fields_rejected(self, name: str) -> None:
        """Test immutable fields cannot be updated."""
        with pytest.raises(InvalidUpdateError, match="cannot be updated"):
            validate_update_fields({name: "x", "title": "ok"})

    def test_unknown_field_rejected(self) -> None:
        """Test unknown fields are rejected."""
        with pytest.raises(InvalidUpdateError, match="Unknown fields: rating"):
            validate_update_fields({"rating": 5})

    def test_blank_title_rejected(self) -> None:
        """Test title cannot be blank."""
        with pytest.raises(InvalidUpdateError, match="title"):
            validate_update_fields({"title": "  "})

    def test_metadata_must_be_object(self) -> None:
        """Test metadata must be a mapping."""
        with pytest.raises(InvalidUpdateError, match="metadata"):
            validate_update_fields({"metadata": ["a"]})

    def test_invalid_update_is_validation_error(self) -> None:
        """Test InvalidUpdateError is caught by ValidationError handlers."""
        with pytest.raises(ValidationError):
            validate_update_fields({"id": "new"})
