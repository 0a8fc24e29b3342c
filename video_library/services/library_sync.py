"""Live per-owner mirror of the video library.

``VideoLibrarySync`` keeps ``videos`` consistent with the store through the
change feed, runs the add/select/update/remove operations and derives the
category, filter and stats views the player screen needs.

Only selection is applied optimistically. Inserts, updates and removals reach
``videos`` through feed events; while a write is in flight it is tracked in the
pending overlay so callers can render it without touching ``videos``.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

import structlog

from video_library.core.logging import bind_owner
from video_library.core.metrics import MetricsCollector
from video_library.core.validation import (
    EMPTY_URL_MESSAGE,
    URLValidator,
    ValidationError,
    url_validator,
    validate_update_fields,
)
from video_library.models.events import ChangeEvent, ChangeKind
from video_library.models.video import VideoRecord, utc_now
from video_library.providers.manager import ProviderManager
from video_library.services.selection import SelectionStore
from video_library.stores.base import ChangeFeed, Subscription, VideoStore
from video_library.stores.exceptions import SubscriptionError

logger = structlog.get_logger(__name__)

ALL_CATEGORIES = "All"

StateListener = Callable[["LibraryState"], None]


class Notifier(ABC):
    """User-facing notification sink (toasts in the browser app)."""

    @abstractmethod
    def success(self, message: str) -> None:
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        pass


class LogNotifier(Notifier):
    """Notifier that writes notifications to the log."""

    def __init__(self, log: Any = None) -> None:
        self._log = log or logger

    def success(self, message: str) -> None:
        self._log.info("notification", level="success", message=message)

    def error(self, message: str) -> None:
        self._log.warning("notification", level="error", message=message)


class PendingKind(str, Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


@dataclass
class PendingOperation:
    """A write awaiting confirmation from the change feed."""

    op_id: str
    kind: PendingKind
    video_id: Optional[str] = None
    record: Optional[VideoRecord] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utc_now)


@dataclass
class VideoStats:
    total_videos: int
    category_counts: Dict[str, int]
    has_current_video: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_videos": self.total_videos,
            "category_counts": dict(self.category_counts),
            "has_current_video": self.has_current_video,
        }


@dataclass
class LibraryState:
    """Point-in-time copy of the reactive state."""

    videos: List[VideoRecord]
    current_video: Optional[VideoRecord]
    categories: List[str]
    selected_category: str
    is_loading: bool
    is_syncing: bool
    error: Optional[str]
    is_initialized: bool
    is_live: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "videos": [v.to_dict() for v in self.videos],
            "current_video": self.current_video.to_dict() if self.current_video else None,
            "categories": list(self.categories),
            "selected_category": self.selected_category,
            "is_loading": self.is_loading,
            "is_syncing": self.is_syncing,
            "error": self.error,
            "is_initialized": self.is_initialized,
            "is_live": self.is_live,
        }


@dataclass
class BatchAddResult:
    added: List[VideoRecord] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


class VideoLibrarySync:
    """Video library session for one owner.

    Collaborators are injected so tests and test mode can pass in-memory
    implementations. Use as an async context manager, or call ``start`` and
    ``close`` explicitly.
    """

    def __init__(
        self,
        owner_id: str,
        store: VideoStore,
        feed: ChangeFeed,
        resolver: ProviderManager,
        selection: SelectionStore,
        notifier: Optional[Notifier] = None,
        table: str = "exercise_videos",
        validator: Optional[URLValidator] = None,
    ) -> None:
        """Initialize the session.

        Args:
            owner_id: Authenticated user every operation is scoped to.
            store: Video store.
            feed: Change feed for the videos table.
            resolver: URL classification and metadata enrichment.
            selection: Durable storage for the current selection.
            notifier: Notification sink, defaults to logging.
            table: Table the feed subscription is scoped to.
            validator: URL validator, defaults to the shared instance.
        """
        if not owner_id:
            raise ValueError("owner_id is required")

        self.owner_id = owner_id
        self.store = store
        self.feed = feed
        self.resolver = resolver
        self.selection = selection
        self.table = table
        self.validator = validator or url_validator
        self._log = bind_owner(logger, owner_id)
        self.notifier = notifier or LogNotifier(self._log)

        self._videos: List[VideoRecord] = []
        self._current_video: Optional[VideoRecord] = None
        self._categories: List[str] = [ALL_CATEGORIES]
        self._selected_category = ALL_CATEGORIES
        self._is_loading = False
        self._is_syncing = False
        self._error: Optional[str] = None
        self._is_initialized = False

        self._subscription: Optional[Subscription] = None
        self._pending: Dict[str, PendingOperation] = {}
        self._listeners: List[StateListener] = []
        self._background: Set["asyncio.Task[None]"] = set()
        self._started = False
        self._closed = False

    # -- reactive state ---------------------------------------------------

    @property
    def videos(self) -> List[VideoRecord]:
        return list(self._videos)

    @property
    def current_video(self) -> Optional[VideoRecord]:
        return self._current_video

    @property
    def categories(self) -> List[str]:
        return list(self._categories)

    @property
    def selected_category(self) -> str:
        return self._selected_category

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def is_live(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> LibraryState:
        return LibraryState(
            videos=list(self._videos),
            current_video=self._current_video,
            categories=list(self._categories),
            selected_category=self._selected_category,
            is_loading=self._is_loading,
            is_syncing=self._is_syncing,
            error=self._error,
            is_initialized=self._is_initialized,
            is_live=self.is_live,
        )

    def subscribe_state(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with a fresh snapshot after each change.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        if not self._listeners:
            return
        state = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                self._log.error("state_listener_failed", error=str(e), exc_info=True)

    def pending_operations(self) -> List[PendingOperation]:
        return list(self._pending.values())

    def rendered_videos(self) -> List[VideoRecord]:
        """``videos`` with confirmed-but-not-yet-echoed adds at the head."""
        known = {v.id for v in self._videos}
        pending_adds = [
            op.record
            for op in self._pending.values()
            if op.kind == PendingKind.ADD and op.record is not None and op.record.id not in known
        ]
        pending_adds.reverse()
        return pending_adds + list(self._videos)

    # -- lifecycle --------------------------------------------------------

    async def __aenter__(self) -> "VideoLibrarySync":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Load the collection, open the feed subscription, restore selection."""
        if self._started:
            return
        self._started = True

        await self._load_videos()

        try:
            self._subscription = await self.feed.subscribe(
                self.table, self._on_change, owner_id=self.owner_id
            )
            self._log.info("change_feed_subscribed", table=self.table)
        except SubscriptionError as e:
            # Non-fatal: keep serving the last fetched snapshot
            self._subscription = None
            self._log.warning("change_feed_subscribe_failed", table=self.table, error=str(e))

        self._restore_selection()
        self._emit()

    async def close(self) -> None:
        """Unsubscribe and stop applying events. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._background.clear()

        if self._subscription is not None:
            try:
                await self._subscription.unsubscribe()
            finally:
                self._subscription = None

        self._listeners.clear()
        self._log.info("library_sync_closed")

    async def _on_change(self, event: ChangeEvent) -> None:
        self.apply_event(event)

    # -- reconciliation ---------------------------------------------------

    def apply_event(self, event: ChangeEvent) -> bool:
        """Apply one change feed event to the local mirror.

        Events are applied by id, so replays are harmless. Events for other
        owners and events arriving after ``close`` are ignored.

        Returns:
            True if the event was applied.
        """
        kind = event.kind.value
        record = event.record
        record_id = event.record_id

        if self._closed or record_id is None or (record is None and not event.is_removal):
            MetricsCollector.record_change_event(kind, "ignored")
            return False

        if record is not None and record.owner_id != self.owner_id:
            self._log.debug("change_event_foreign_owner", record_id=record_id)
            MetricsCollector.record_change_event(kind, "ignored")
            return False

        self._settle_pending(record_id)

        if event.is_removal:
            removed = self._remove_local(record_id)
            if self._is_selected(record_id):
                self._clear_selection()
            if removed:
                self.notifier.success("Video removed")
        elif record is not None:
            index = self._index_of(record_id)
            if index is None:
                self._videos.insert(0, record)
                if event.kind == ChangeKind.INSERT:
                    self.notifier.success("Video added successfully!")
            else:
                self._videos[index] = record
            if self._current_video is not None and self._current_video.id == record_id:
                self._current_video = record

        self._videos_changed()
        MetricsCollector.record_change_event(kind, "applied")
        self._log.debug("change_event_applied", kind=kind, record_id=record_id)
        return True

    def _index_of(self, video_id: str) -> Optional[int]:
        for index, video in enumerate(self._videos):
            if video.id == video_id:
                return index
        return None

    def _remove_local(self, video_id: str) -> bool:
        before = len(self._videos)
        self._videos = [v for v in self._videos if v.id != video_id]
        return len(self._videos) != before

    def _settle_pending(self, video_id: str) -> None:
        for op_id in [op_id for op_id, op in self._pending.items() if op.video_id == video_id]:
            del self._pending[op_id]

    def _videos_changed(self) -> None:
        categories: List[str] = [ALL_CATEGORIES]
        for video in self._videos:
            category = video.effective_category
            if category not in categories:
                categories.append(category)
        self._categories = categories
        self._restore_selection()
        self._emit()

    # -- selection --------------------------------------------------------

    def _restore_selection(self) -> None:
        if not self._videos:
            return
        persisted = self._read_persisted()
        if not persisted:
            return
        index = self._index_of(persisted)
        if index is not None:
            self._current_video = self._videos[index]

    def _read_persisted(self) -> Optional[str]:
        try:
            return self.selection.get(self.owner_id)
        except OSError as e:
            self._log.warning("selection_read_failed", error=str(e))
            return None

    def _is_selected(self, video_id: str) -> bool:
        if self._current_video is not None and self._current_video.id == video_id:
            return True
        return self._read_persisted() == video_id

    def _set_current(self, record: VideoRecord) -> None:
        self._current_video = record
        try:
            self.selection.set(self.owner_id, record.id)
        except OSError as e:
            self._log.warning("selection_persist_failed", video_id=record.id, error=str(e))

    def _clear_selection(self) -> None:
        self._current_video = None
        try:
            self.selection.clear(self.owner_id)
        except OSError as e:
            self._log.warning("selection_clear_failed", error=str(e))

    def clear_current_video(self) -> None:
        self._clear_selection()
        self._emit()

    async def select_video(self, record: VideoRecord) -> None:
        """Make ``record`` current, then record ``last_played`` best effort.

        The selection is set and persisted before any I/O and is never rolled
        back.
        """
        self._select_now(record)
        await self._record_last_played(record)

    def select_video_nowait(self, record: VideoRecord) -> "asyncio.Task[None]":
        """Select synchronously and run the metadata update in the background."""
        self._select_now(record)
        task = asyncio.ensure_future(self._record_last_played(record))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _select_now(self, record: VideoRecord) -> None:
        self._set_current(record)
        self._error = None
        self._emit()

    async def _record_last_played(self, record: VideoRecord) -> None:
        metadata = {**(record.metadata or {}), "last_played": utc_now().isoformat()}
        try:
            await self.store.update(record.id, self.owner_id, {"metadata": metadata})
        except Exception as e:
            self._log.warning("last_played_update_failed", video_id=record.id, error=str(e))

    # -- operations -------------------------------------------------------

    async def _load_videos(self) -> None:
        self._is_loading = True
        self._error = None
        self._emit()

        try:
            videos = await self.store.list_active(self.owner_id)
        except Exception as e:
            self._error = str(e)
            self._log.error("videos_load_failed", error=str(e), error_type=type(e).__name__)
            self.notifier.error("Failed to load videos")
        else:
            self._videos = list(videos)
            if self._current_video is not None and self._index_of(self._current_video.id) is None:
                self._clear_selection()
            self._log.info("videos_loaded", count=len(self._videos))
        finally:
            self._is_loading = False
            self._is_initialized = True

        self._videos_changed()

    async def refresh_videos(self) -> None:
        """Re-fetch the collection; the manual recovery path."""
        await self._load_videos()

    async def add_video(
        self,
        url: str,
        title: Optional[str] = None,
        category: Optional[str] = None,
    ) -> VideoRecord:
        """Resolve a URL, insert it and make it the current video.

        The record reaches ``videos`` through the insert event; until then it is
        held in the pending overlay.

        Raises:
            ValidationError: If the URL is empty or malformed.
            ProviderError: If a provider URL has no parseable id.
            StoreError: If the insert fails.
        """
        if not url or not url.strip():
            error = ValidationError(EMPTY_URL_MESSAGE)
            self._error = str(error)
            self.notifier.error(str(error))
            self._emit()
            raise error

        self._is_loading = True
        self._is_syncing = True
        self._error = None
        self._emit()

        try:
            result = self.validator.validate(url)
            if not result.is_valid:
                raise ValidationError(result.error_message or EMPTY_URL_MESSAGE)

            new_video = await self.resolver.resolve(
                result.sanitized_value, title=title, category=category
            )
            record = await self.store.insert(self.owner_id, new_video)

            if self._index_of(record.id) is None:
                op_id = str(uuid.uuid4())
                self._pending[op_id] = PendingOperation(
                    op_id=op_id, kind=PendingKind.ADD, video_id=record.id, record=record
                )

            self._set_current(record)
            self._log.info("video_added", video_id=record.id, type=record.type.value)
            return record
        except Exception as e:
            self._error = str(e) or "Failed to add video"
            self.notifier.error(self._error)
            self._log.warning("video_add_failed", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            self._is_loading = False
            self._is_syncing = False
            self._emit()

    async def add_videos(self, urls: List[str], category: Optional[str] = None) -> BatchAddResult:
        """Add several URLs one after another, collecting per-URL failures."""
        result = BatchAddResult()
        for url in urls:
            try:
                result.added.append(await self.add_video(url, category=category))
            except Exception as e:
                result.errors[url] = str(e)

        self._log.info("videos_batch_added", added=len(result.added), failed=len(result.errors))
        return result

    async def remove_video(self, video_id: str) -> None:
        """Soft-delete a video.

        ``videos`` is left alone; the record disappears when the feed delivers
        the deactivation. The selection is cleared as soon as the store accepts
        the delete.
        """
        op_id = str(uuid.uuid4())
        self._pending[op_id] = PendingOperation(op_id=op_id, kind=PendingKind.REMOVE, video_id=video_id)
        self._is_syncing = True
        self._emit()

        try:
            await self.store.soft_delete(video_id, self.owner_id)
        except Exception as e:
            self._error = str(e)
            self.notifier.error(self._error)
            self._log.warning("video_remove_failed", video_id=video_id, error=str(e))
            raise
        else:
            if self._is_selected(video_id):
                self._clear_selection()
            self._log.info("video_removed", video_id=video_id)
        finally:
            self._pending.pop(op_id, None)
            self._is_syncing = False
            self._emit()

    async def update_video(self, video_id: str, fields: Dict[str, Any]) -> VideoRecord:
        """Update mutable fields of a video.

        The local copy is refreshed by the update event, never here.

        Raises:
            ValidationError: If ``fields`` is empty or touches an immutable or
                unknown field. Raised before any store call.
            StoreError: If the store rejects the update.
        """
        try:
            cleaned = validate_update_fields(fields)
        except ValidationError as e:
            self._error = str(e)
            self.notifier.error(self._error)
            self._emit()
            raise

        op_id = str(uuid.uuid4())
        self._pending[op_id] = PendingOperation(
            op_id=op_id, kind=PendingKind.UPDATE, video_id=video_id, fields=cleaned
        )
        self._is_syncing = True
        self._emit()

        try:
            record = await self.store.update(video_id, self.owner_id, cleaned)
        except Exception as e:
            self._pending.pop(op_id, None)
            self._error = str(e)
            self.notifier.error(self._error)
            self._log.warning("video_update_failed", video_id=video_id, error=str(e))
            raise
        finally:
            self._is_syncing = False
            self._emit()

        self.notifier.success("Video updated successfully!")
        self._log.info("video_updated", video_id=video_id, fields=sorted(cleaned))
        return record

    # -- derived queries --------------------------------------------------

    def filter_videos_by_category(self, category: str) -> None:
        self._selected_category = category or ALL_CATEGORIES
        self._emit()

    def get_filtered_videos(self) -> List[VideoRecord]:
        if self._selected_category == ALL_CATEGORIES:
            return list(self._videos)
        return [v for v in self._videos if v.effective_category == self._selected_category]

    def get_video_stats(self) -> VideoStats:
        counts: Dict[str, int] = {}
        for video in self._videos:
            counts[video.effective_category] = counts.get(video.effective_category, 0) + 1
        return VideoStats(
            total_videos=len(self._videos),
            category_counts=counts,
            has_current_video=self._current_video is not None,
        )

    async def search_videos(self, query: str) -> List[VideoRecord]:
        """Search title, description and category.

        An empty query returns the whole local list. Failures are reported and
        yield an empty result.
        """
        if not query or not query.strip():
            return list(self._videos)

        try:
            return await self.store.search(self.owner_id, query)
        except Exception as e:
            self._log.error("video_search_failed", error=str(e), error_type=type(e).__name__)
            self.notifier.error("Search failed")
            return []
