"""API endpoints."""

from video_library.api import health, metrics, videos

__all__ = [
    "health",
    "metrics",
    "videos",
]
