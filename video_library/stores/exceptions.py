"""Video store exceptions."""


class StoreError(Exception):
    """Base exception for video store failures."""

    pass


class RecordNotFoundError(StoreError):
    """Raised when a record does not exist, is inactive, or belongs to another owner."""

    pass


class PermissionDeniedError(StoreError):
    """Raised when the backend rejects the caller's credentials or row policy."""

    pass


class StoreUnavailableError(StoreError):
    """Raised when the backend cannot be reached."""

    pass


class SubscriptionError(Exception):
    """Raised when a change feed subscription cannot be opened."""

    pass
