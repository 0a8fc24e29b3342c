"""Abstract collaborators: the video store and its change feed."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from video_library.models.events import ChangeEvent
from video_library.models.video import NewVideo, VideoRecord

ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]


class VideoStore(ABC):
    """Durable collection of video records scoped per owner.

    Every operation takes the owner id; records of other owners are invisible
    and a mutation against one fails as if the record did not exist.
    """

    @abstractmethod
    async def insert(self, owner_id: str, video: NewVideo) -> VideoRecord:
        """
        Insert a new active record.

        Args:
            owner_id: Owning user id
            video: Insert payload

        Returns:
            The stored record with server-assigned id and timestamps

        Raises:
            StoreError: If the insert fails
        """
        pass

    @abstractmethod
    async def list_active(self, owner_id: str) -> List[VideoRecord]:
        """
        List active records, newest first.

        Raises:
            StoreError: If the query fails
        """
        pass

    @abstractmethod
    async def get(self, video_id: str, owner_id: str) -> VideoRecord:
        """
        Fetch one active record.

        Raises:
            RecordNotFoundError: If absent, inactive, or owned by someone else
        """
        pass

    @abstractmethod
    async def update(self, video_id: str, owner_id: str, fields: Dict[str, Any]) -> VideoRecord:
        """
        Update mutable fields of a record and bump ``updated_at``.

        Raises:
            RecordNotFoundError: If absent, inactive, or owned by someone else
        """
        pass

    @abstractmethod
    async def soft_delete(self, video_id: str, owner_id: str) -> None:
        """
        Mark a record inactive and bump ``updated_at``.

        Raises:
            RecordNotFoundError: If absent, inactive, or owned by someone else
        """
        pass

    @abstractmethod
    async def search(self, owner_id: str, query: str) -> List[VideoRecord]:
        """
        Case-insensitive substring search over title, description and category.

        Returns active records only, newest first.
        """
        pass

    async def ping(self) -> bool:
        """Check the backend is reachable."""
        return True


class Subscription(ABC):
    """Handle for an open change feed subscription."""

    @abstractmethod
    async def unsubscribe(self) -> None:
        """Stop delivery. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def active(self) -> bool:
        """Whether events are still being delivered."""
        pass


class ChangeFeed(ABC):
    """Push channel of committed mutations for a table."""

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        owner_id: Optional[str] = None,
    ) -> Subscription:
        """
        Open a subscription.

        Args:
            table: Table to watch
            handler: Coroutine function called for every event, in commit order
            owner_id: Optional server-side owner filter; clients still check
                ownership themselves

        Returns:
            Subscription handle

        Raises:
            SubscriptionError: If the channel cannot be opened
        """
        pass
