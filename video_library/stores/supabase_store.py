"""Supabase-backed video store and Realtime change feed.

Records live in the ``exercise_videos`` table; every query is scoped by
``user_id`` and soft-deleted rows (``is_active = false``) are filtered out.
"""

import asyncio
import contextlib
import time
import uuid
from typing import Any, Dict, List, Optional

import httpx
import structlog
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import AsyncClient, acreate_client

from video_library.core.config import SupabaseConfig
from video_library.core.metrics import MetricsCollector
from video_library.models.events import ChangeEvent, ChangeKind
from video_library.models.video import NewVideo, VideoRecord, utc_now
from video_library.stores.base import ChangeFeed, ChangeHandler, Subscription, VideoStore
from video_library.stores.exceptions import (
    PermissionDeniedError,
    RecordNotFoundError,
    StoreError,
    StoreUnavailableError,
    SubscriptionError,
)

logger = structlog.get_logger(__name__)

# PostgREST / Postgres codes meaning the row policy rejected the caller
PERMISSION_ERROR_CODES = frozenset({"42501", "PGRST301", "PGRST302"})

# Realtime subscribe states after which the channel delivers nothing
CHANNEL_DOWN_STATUSES = frozenset({"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"})

# Characters with meaning inside a PostgREST or() filter
_FILTER_SPECIAL_CHARS = str.maketrans({",": " ", "(": " ", ")": " ", "%": r"\%", "_": r"\_"})


async def create_supabase_client(config: SupabaseConfig) -> AsyncClient:
    """
    Create an async Supabase client.

    Args:
        config: Supabase section of the application config

    Returns:
        Connected client

    Raises:
        ValueError: If url or key are missing
    """
    if not config.url or not config.key:
        raise ValueError("Supabase credentials required. Set APP_SUPABASE_URL and APP_SUPABASE_KEY")
    return await acreate_client(config.url, config.key)


def escape_search_query(query: str) -> str:
    """Escape a free-text query for use inside an ``ilike`` or() filter."""
    return query.strip().translate(_FILTER_SPECIAL_CHARS)


class SupabaseVideoStore(VideoStore):
    """Supabase table implementation of the video store."""

    def __init__(self, client: AsyncClient, table: str = "exercise_videos") -> None:
        """
        Initialize the store.

        Args:
            client: Async Supabase client
            table: Videos table name
        """
        self.client = client
        self.table = table

    def _query(self) -> Any:
        return self.client.table(self.table)

    async def _execute(self, operation: str, query: Any) -> List[Dict[str, Any]]:
        """
        Execute a PostgREST query, translating failures into store errors.

        Args:
            operation: Operation name for logs, metrics and error messages
            query: Built query awaiting ``execute()``

        Returns:
            Returned rows (empty list when none)
        """
        start_time = time.monotonic()
        try:
            response = await query.execute()
        except PostgrestAPIError as e:
            MetricsCollector.record_store_operation(operation, "failed", time.monotonic() - start_time)
            logger.error("store_operation_failed", operation=operation, code=e.code, error=e.message)
            if e.code in PERMISSION_ERROR_CODES:
                raise PermissionDeniedError(f"Failed to {operation}: {e.message}") from e
            raise StoreError(f"Failed to {operation}: {e.message}") from e
        except httpx.HTTPError as e:
            MetricsCollector.record_store_operation(operation, "failed", time.monotonic() - start_time)
            logger.error("store_unreachable", operation=operation, error=str(e))
            raise StoreUnavailableError(f"Failed to {operation}: {e}") from e

        MetricsCollector.record_store_operation(operation, "success", time.monotonic() - start_time)
        return list(response.data or [])

    async def insert(self, owner_id: str, video: NewVideo) -> VideoRecord:
        video.validate()
        row = {
            "title": video.title,
            "url": video.original_url,
            "video_type": video.type.value,
            "youtube_video_id": video.video_id,
            "embed_url": video.embed_url,
            "thumbnail_url": video.thumbnail,
            "duration": video.duration,
            "description": video.description,
            "category": video.category,
            "user_id": owner_id,
            "metadata": {
                "added_at": utc_now().isoformat(),
                "source": "rehab_app",
                "api_version": "1.0",
                **video.metadata,
            },
        }

        rows = await self._execute("save video", self._query().insert(row))
        if not rows:
            raise StoreError("Failed to save video: no row returned")

        record = VideoRecord.from_row(rows[0])
        logger.info("video_inserted", video_id=record.id, type=record.type.value)
        return record

    async def list_active(self, owner_id: str) -> List[VideoRecord]:
        query = (
            self._query()
            .select("*")
            .eq("user_id", owner_id)
            .eq("is_active", True)
            .order("created_at", desc=True)
        )
        rows = await self._execute("fetch videos", query)
        return [VideoRecord.from_row(row) for row in rows]

    async def get(self, video_id: str, owner_id: str) -> VideoRecord:
        query = (
            self._query()
            .select("*")
            .eq("id", video_id)
            .eq("user_id", owner_id)
            .eq("is_active", True)
        )
        rows = await self._execute("fetch video", query)
        if not rows:
            raise RecordNotFoundError(f"Video not found: {video_id}")
        return VideoRecord.from_row(rows[0])

    async def update(self, video_id: str, owner_id: str, fields: Dict[str, Any]) -> VideoRecord:
        update_data: Dict[str, Any] = {"updated_at": utc_now().isoformat()}
        for name in ("title", "description", "category", "metadata"):
            if name in fields:
                update_data[name] = fields[name]

        query = (
            self._query()
            .update(update_data)
            .eq("id", video_id)
            .eq("user_id", owner_id)
            .eq("is_active", True)
        )
        rows = await self._execute("update video", query)
        if not rows:
            raise RecordNotFoundError(f"Video not found: {video_id}")
        return VideoRecord.from_row(rows[0])

    async def soft_delete(self, video_id: str, owner_id: str) -> None:
        query = (
            self._query()
            .update({"is_active": False, "updated_at": utc_now().isoformat()})
            .eq("id", video_id)
            .eq("user_id", owner_id)
            .eq("is_active", True)
        )
        rows = await self._execute("delete video", query)
        if not rows:
            raise RecordNotFoundError(f"Video not found: {video_id}")
        logger.info("video_soft_deleted", video_id=video_id)

    async def search(self, owner_id: str, query: str) -> List[VideoRecord]:
        term = escape_search_query(query)
        pattern = f"%{term}%"
        built = (
            self._query()
            .select("*")
            .eq("user_id", owner_id)
            .eq("is_active", True)
            .or_(
                f"title.ilike.{pattern},description.ilike.{pattern},category.ilike.{pattern}"
            )
            .order("created_at", desc=True)
        )
        rows = await self._execute("search videos", built)
        return [VideoRecord.from_row(row) for row in rows]

    async def ping(self) -> bool:
        try:
            await self._execute("ping", self._query().select("id").limit(1))
        except StoreError:
            return False
        return True


def parse_realtime_payload(payload: Dict[str, Any]) -> Optional[ChangeEvent]:
    """
    Normalise a Realtime ``postgres_changes`` payload.

    Accepts both the wire shape (``{"data": {"type", "record", "old_record"}}``)
    and the flattened shape (``{"eventType", "new", "old"}``).

    Args:
        payload: Payload handed to the channel callback

    Returns:
        ChangeEvent, or None for payloads that carry no usable record
    """
    data = payload.get("data", payload) if isinstance(payload, dict) else {}
    raw_type = str(data.get("type") or data.get("eventType") or "").upper()
    new_row = data.get("record") or data.get("new") or None
    old_row = data.get("old_record") or data.get("old") or {}

    kinds = {"INSERT": ChangeKind.INSERT, "UPDATE": ChangeKind.UPDATE, "DELETE": ChangeKind.DELETE}
    kind = kinds.get(raw_type)
    if kind is None:
        return None

    record = None
    if new_row and "id" in new_row and "user_id" in new_row:
        record = VideoRecord.from_row(new_row)

    old_id = old_row.get("id") if isinstance(old_row, dict) else None
    if record is None and old_id is None:
        return None

    return ChangeEvent(kind=kind, record=record, old_id=str(old_id) if old_id else None)


class SupabaseSubscription(Subscription):
    """A Realtime channel with an in-order delivery queue."""

    def __init__(self, client: AsyncClient, channel: Any, handler: ChangeHandler) -> None:
        self._client = client
        self._channel = channel
        self._handler = handler
        self._queue: "asyncio.Queue[ChangeEvent]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None
        self._active = False
        self._channel_ok = True

    def start(self) -> None:
        self._active = True
        self._consumer = asyncio.create_task(self._consume())

    def push(self, payload: Dict[str, Any]) -> None:
        """Channel callback; queues the event for ordered delivery."""
        if not self._active:
            return
        event = parse_realtime_payload(payload)
        if event is None:
            logger.debug("realtime_payload_ignored", payload_keys=list(payload.keys()))
            return
        self._queue.put_nowait(event)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._handler(event)
            except Exception as e:
                logger.error(
                    "change_handler_failed",
                    kind=event.kind.value,
                    record_id=event.record_id,
                    error=str(e),
                    exc_info=True,
                )

    def set_channel_status(self, status: str) -> None:
        """Track channel health reported by Realtime."""
        if status in CHANNEL_DOWN_STATUSES:
            if self._channel_ok and self._active:
                logger.warning("realtime_channel_down", status=status)
            self._channel_ok = False
        elif status == "SUBSCRIBED":
            self._channel_ok = True

    @property
    def active(self) -> bool:
        return self._active and self._channel_ok

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False

        if self._consumer is not None:
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer

        try:
            await self._client.remove_channel(self._channel)
        except Exception as e:
            logger.warning("realtime_channel_remove_failed", error=str(e))


class SupabaseChangeFeed(ChangeFeed):
    """Realtime ``postgres_changes`` change feed."""

    def __init__(self, client: AsyncClient, schema: str = "public") -> None:
        self.client = client
        self.schema = schema

    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        owner_id: Optional[str] = None,
    ) -> Subscription:
        # Channels are keyed by topic on the client, so each subscription needs its own.
        topic = f"{table}_changes:{owner_id or 'all'}:{uuid.uuid4().hex}"
        channel = self.client.channel(topic)
        subscription = SupabaseSubscription(self.client, channel, handler)

        filter_expr = f"user_id=eq.{owner_id}" if owner_id else None

        def on_status(status: Any, error: Optional[Exception] = None) -> None:
            value = str(getattr(status, "value", status))
            logger.info(
                "realtime_channel_status",
                table=table,
                status=value,
                error=str(error) if error else None,
            )
            subscription.set_channel_status(value)

        try:
            channel.on_postgres_changes(
                "*",
                schema=self.schema,
                table=table,
                filter=filter_expr,
                callback=subscription.push,
            )
            subscription.start()
            await channel.subscribe(on_status)
        except Exception as e:
            await subscription.unsubscribe()
            raise SubscriptionError(f"Failed to subscribe to {table}: {e}") from e

        logger.info("realtime_subscribed", table=table, filtered=owner_id is not None)
        return subscription
