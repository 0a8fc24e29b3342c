"""API key authentication and owner identification dependencies.

Every video route needs a valid ``X-API-Key`` (when keys are configured) and
the authenticated user id in ``X-Owner-Id``. The id is trusted as given; it is
expected to come from a gateway that already verified the user session.
"""

from typing import FrozenSet, List, Optional, Set

import structlog
from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from video_library.core.logging import hash_identifier

logger = structlog.get_logger(__name__)

# Header names
API_KEY_HEADER_NAME = "X-API-Key"
OWNER_HEADER_NAME = "X-Owner-Id"

# Longest accepted owner id (Supabase user ids are 36-char UUIDs)
MAX_OWNER_ID_LENGTH = 128

# FastAPI security scheme for OpenAPI docs
api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


class APIKeyAuth:
    """API key authentication handler.

    Validates API keys against a configured set. An empty set disables
    authentication.
    """

    # Paths that don't require authentication
    DEFAULT_EXCLUDED_PATHS: FrozenSet[str] = frozenset(
        {
            "/health",
            "/liveness",
            "/docs",
            "/redoc",
            "/openapi.json",
            "/metrics",
        }
    )

    def __init__(
        self,
        api_keys: Optional[List[str]] = None,
        excluded_paths: Optional[Set[str]] = None,
    ):
        """
        Initialize API key authentication.

        Args:
            api_keys: List of valid API keys. Empty list allows all requests.
            excluded_paths: Paths that don't require authentication.
        """
        self._api_keys: Set[str] = set(api_keys) if api_keys else set()
        self._excluded_paths = excluded_paths or self.DEFAULT_EXCLUDED_PATHS
        self._allow_all = len(self._api_keys) == 0

        if self._allow_all:
            logger.warning("auth_disabled", reason="no_api_keys_configured")
        else:
            logger.info("auth_initialized", num_keys=len(self._api_keys))

    @property
    def allow_all(self) -> bool:
        """Check if authentication is disabled."""
        return self._allow_all

    def is_path_excluded(self, path: str) -> bool:
        """
        Check if a path is excluded from authentication.

        Exact match or a sub-path of an excluded path; ``/docs`` covers
        ``/docs/oauth2-redirect`` but ``/metrics`` does not cover ``/metricsx``.
        """
        path = path.rstrip("/") or "/"
        for excluded in self._excluded_paths:
            if path == excluded or path.startswith(excluded + "/"):
                return True
        return False

    def validate_api_key(self, api_key: Optional[str]) -> bool:
        """Check an API key against the configured set."""
        if self._allow_all:
            return True
        if not api_key:
            return False
        return api_key in self._api_keys

    def authenticate(self, request: Request, api_key: Optional[str]) -> bool:
        """
        Authenticate a request.

        Args:
            request: The FastAPI request
            api_key: The API key from header

        Returns:
            True if authenticated

        Raises:
            HTTPException: If authentication fails
        """
        path = request.url.path

        if self.is_path_excluded(path) or self.validate_api_key(api_key):
            return True

        logger.warning(
            "auth_failed",
            path=path,
            key_hash=hash_identifier(api_key) if api_key else "none",
            client_ip=request.client.host if request.client else "unknown",
        )

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )


# Global auth instance (configured at startup)
_auth_instance: Optional[APIKeyAuth] = None


def configure_auth(api_keys: Optional[List[str]] = None) -> APIKeyAuth:
    """
    Configure the global auth instance.

    Args:
        api_keys: List of valid API keys

    Returns:
        Configured APIKeyAuth instance
    """
    global _auth_instance
    _auth_instance = APIKeyAuth(api_keys=api_keys)
    return _auth_instance


def get_auth() -> APIKeyAuth:
    """Get the global auth instance, or an open one if not configured."""
    if _auth_instance is None:
        return APIKeyAuth()
    return _auth_instance


async def get_api_key(
    request: Request,
    api_key: Optional[str] = Depends(api_key_header),  # noqa: B008
) -> Optional[str]:
    """Extract and validate the API key from the request.

    Raises:
        HTTPException: If authentication fails
    """
    get_auth().authenticate(request, api_key)
    return api_key


async def get_owner_id(
    x_owner_id: Optional[str] = Header(default=None, alias=OWNER_HEADER_NAME),  # noqa: B008
) -> str:
    """Extract the owner id every video operation is scoped to.

    Raises:
        HTTPException: 400 if the header is missing, blank or too long
    """
    owner_id = (x_owner_id or "").strip()
    if not owner_id or len(owner_id) > MAX_OWNER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": "MISSING_OWNER",
                "message": f"A valid {OWNER_HEADER_NAME} header is required",
            },
        )
    return owner_id
