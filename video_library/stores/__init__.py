"""Video store and change feed collaborators."""

from video_library.stores.base import ChangeFeed, ChangeHandler, Subscription, VideoStore
from video_library.stores.exceptions import (
    PermissionDeniedError,
    RecordNotFoundError,
    StoreError,
    StoreUnavailableError,
    SubscriptionError,
)

__all__ = [
    "ChangeFeed",
    "ChangeHandler",
    "Subscription",
    "VideoStore",
    "PermissionDeniedError",
    "RecordNotFoundError",
    "StoreError",
    "StoreUnavailableError",
    "SubscriptionError",
]
