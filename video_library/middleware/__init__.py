"""Middleware package for the API."""

from video_library.middleware.auth import APIKeyAuth, get_api_key, get_owner_id

__all__ = [
    "APIKeyAuth",
    "get_api_key",
    "get_owner_id",
]
