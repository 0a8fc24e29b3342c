"""Tests for the Supabase store and Realtime change feed with a mocked client."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError as PostgrestAPIError

from video_library.core.config import SupabaseConfig
from video_library.models.events import ChangeEvent, ChangeKind
from video_library.models.video import NewVideo, VideoType
from video_library.stores.exceptions import (
    PermissionDeniedError,
    RecordNotFoundError,
    StoreError,
    StoreUnavailableError,
    SubscriptionError,
)
from video_library.stores.supabase_store import (
    SupabaseChangeFeed,
    SupabaseVideoStore,
    create_supabase_client,
    escape_search_query,
    parse_realtime_payload,
)

OWNER = "user-a"

CHAIN_METHODS = ("select", "eq", "order", "insert", "update", "or_", "limit")


def video_row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "id": "11111111-1111-1111-1111-111111111111",
        "user_id": OWNER,
        "url": "https://youtube.com/watch?v=dQw4w9WgXcQ",
        "video_type": "youtube",
        "youtube_video_id": "dQw4w9WgXcQ",
        "embed_url": "https://www.youtube.com/embed/dQw4w9WgXcQ?enablejsapi=1",
        "title": "Seated Knee Extension",
        "thumbnail_url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg",
        "duration": "4:13",
        "description": None,
        "category": "Knee",
        "is_active": True,
        "created_at": "2024-03-01T10:00:00+00:00",
        "updated_at": "2024-03-01T10:00:00+00:00",
        "metadata": {"source": "youtube"},
    }
    row.update(overrides)
    return row


def make_client(rows: Optional[List[Dict[str, Any]]] = None) -> Tuple[MagicMock, MagicMock]:
    """Build a client whose query builder chains back to itself."""
    query = MagicMock()
    for name in CHAIN_METHODS:
        getattr(query, name).return_value = query
    query.execute = AsyncMock(return_value=MagicMock(data=rows))

    client = MagicMock()
    client.table.return_value = query
    return client, query


def api_error(code: str, message: str) -> PostgrestAPIError:
    return PostgrestAPIError({"code": code, "message": message, "hint": None, "details": None})


class TestQueries:
    """Tests for query construction and row mapping."""

    @pytest.mark.asyncio
    async def test_list_active_scoped_and_ordered(self) -> None:
        client, query = make_client([video_row()])
        store = SupabaseVideoStore(client)

        records = await store.list_active(OWNER)

        client.table.assert_called_with("exercise_videos")
        query.eq.assert_any_call("user_id", OWNER)
        query.eq.assert_any_call("is_active", True)
        query.order.assert_called_once_with("created_at", desc=True)
        assert len(records) == 1
        assert records[0].type == VideoType.YOUTUBE
        assert records[0].video_id == "dQw4w9WgXcQ"
        assert records[0].owner_id == OWNER

    @pytest.mark.asyncio
    async def test_list_active_no_rows(self) -> None:
        client, _ = make_client(None)
        assert await SupabaseVideoStore(client).list_active(OWNER) == []

    @pytest.mark.asyncio
    async def test_insert_maps_columns(self) -> None:
        client, query = make_client([video_row()])
        store = SupabaseVideoStore(client)
        video = NewVideo(
            original_url="https://youtube.com/watch?v=dQw4w9WgXcQ",
            type=VideoType.YOUTUBE,
            embed_url="https://www.youtube.com/embed/dQw4w9WgXcQ?enablejsapi=1",
            video_id="dQw4w9WgXcQ",
            title="Seated Knee Extension",
            category="Knee",
            metadata={"source": "youtube"},
        )

        record = await store.insert(OWNER, video)

        row = query.insert.call_args[0][0]
        assert row["user_id"] == OWNER
        assert row["url"] == video.original_url
        assert row["video_type"] == "youtube"
        assert row["youtube_video_id"] == "dQw4w9WgXcQ"
        assert row["metadata"]["source"] == "youtube"
        assert row["metadata"]["api_version"] == "1.0"
        assert "is_active" not in row
        assert record.id == "11111111-1111-1111-1111-111111111111"

    @pytest.mark.asyncio
    async def test_insert_without_returned_row(self) -> None:
        client, _ = make_client([])
        video = NewVideo(original_url="https://x.io/a.mp4", type=VideoType.DIRECT, embed_url="https://x.io/a.mp4")

        with pytest.raises(StoreError, match="no row returned"):
            await SupabaseVideoStore(client).insert(OWNER, video)

    @pytest.mark.asyncio
    async def test_update_only_mutable_columns(self) -> None:
        client, query = make_client([video_row(title="Renamed")])
        store = SupabaseVideoStore(client)

        record = await store.update("v1", OWNER, {"title": "Renamed", "video_type": "direct"})

        data = query.update.call_args[0][0]
        assert data["title"] == "Renamed"
        assert "video_type" not in data
        assert "updated_at" in data
        query.eq.assert_any_call("id", "v1")
        query.eq.assert_any_call("user_id", OWNER)
        assert record.title == "Renamed"

    @pytest.mark.asyncio
    async def test_update_no_match_is_not_found(self) -> None:
        client, _ = make_client([])

        with pytest.raises(RecordNotFoundError):
            await SupabaseVideoStore(client).update("v1", OWNER, {"title": "x"})

    @pytest.mark.asyncio
    async def test_soft_delete_sets_inactive(self) -> None:
        client, query = make_client([video_row(is_active=False)])

        await SupabaseVideoStore(client).soft_delete("v1", OWNER)

        data = query.update.call_args[0][0]
        assert data["is_active"] is False
        assert "updated_at" in data
        query.eq.assert_any_call("is_active", True)

    @pytest.mark.asyncio
    async def test_soft_delete_no_match_is_not_found(self) -> None:
        client, _ = make_client([])

        with pytest.raises(RecordNotFoundError):
            await SupabaseVideoStore(client).soft_delete("v1", OWNER)

    @pytest.mark.asyncio
    async def test_get_not_found(self) -> None:
        client, _ = make_client([])

        with pytest.raises(RecordNotFoundError, match="Video not found: v1"):
            await SupabaseVideoStore(client).get("v1", OWNER)

    @pytest.mark.asyncio
    async def test_search_builds_or_filter(self) -> None:
        client, query = make_client([video_row()])

        await SupabaseVideoStore(client).search(OWNER, " knee ")

        expr = query.or_.call_args[0][0]
        assert expr == (
            "title.ilike.%knee%,description.ilike.%knee%,category.ilike.%knee%"
        )


class TestErrorMapping:
    """Tests for translating client failures into store errors."""

    @pytest.mark.asyncio
    async def test_permission_error(self) -> None:
        client, query = make_client()
        query.execute.side_effect = api_error("42501", "new row violates row-level security policy")

        with pytest.raises(PermissionDeniedError, match="row-level security"):
            await SupabaseVideoStore(client).list_active(OWNER)

    @pytest.mark.asyncio
    async def test_other_api_error(self) -> None:
        client, query = make_client()
        query.execute.side_effect = api_error("23505", "duplicate key value")

        with pytest.raises(StoreError, match="Failed to fetch videos: duplicate key value") as exc_info:
            await SupabaseVideoStore(client).list_active(OWNER)

        assert not isinstance(exc_info.value, PermissionDeniedError)

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        client, query = make_client()
        query.execute.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(StoreUnavailableError):
            await SupabaseVideoStore(client).list_active(OWNER)

    @pytest.mark.asyncio
    async def test_ping(self) -> None:
        client, query = make_client([{"id": "v1"}])
        store = SupabaseVideoStore(client)

        assert await store.ping() is True

        query.execute.side_effect = httpx.ConnectTimeout("timed out")
        assert await store.ping() is False


class TestSearchEscaping:
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("knee", "knee"),
            ("  knee  ", "knee"),
            ("knee,shoulder", "knee shoulder"),
            ("hip (left)", "hip  left "),
            ("100%", r"100\%"),
            ("warm_up", r"warm\_up"),
        ],
    )
    def test_escape(self, query: str, expected: str) -> None:
        assert escape_search_query(query) == expected


class TestClientFactory:
    @pytest.mark.asyncio
    async def test_missing_credentials(self) -> None:
        with pytest.raises(ValueError, match="APP_SUPABASE_URL"):
            await create_supabase_client(SupabaseConfig(url="", key=""))


class TestRealtimePayload:
    """Tests for Realtime payload normalisation."""

    def test_wire_shape_insert(self) -> None:
        event = parse_realtime_payload(
            {"data": {"type": "INSERT", "record": video_row(), "old_record": None}}
        )

        assert event.kind == ChangeKind.INSERT
        assert event.record.title == "Seated Knee Extension"
        assert event.old_id is None

    def test_flat_shape_update(self) -> None:
        event = parse_realtime_payload(
            {"eventType": "UPDATE", "new": video_row(is_active=False), "old": {"id": "x"}}
        )

        assert event.kind == ChangeKind.UPDATE
        assert event.is_removal is True

    def test_delete_with_old_id_only(self) -> None:
        event = parse_realtime_payload(
            {"data": {"type": "DELETE", "record": None, "old_record": {"id": "v1"}}}
        )

        assert event.kind == ChangeKind.DELETE
        assert event.record is None
        assert event.record_id == "v1"

    def test_unknown_type(self) -> None:
        assert parse_realtime_payload({"data": {"type": "TRUNCATE"}}) is None

    def test_no_record_or_id(self) -> None:
        assert parse_realtime_payload({"eventType": "UPDATE", "new": {}, "old": {}}) is None


class TestSupabaseChangeFeed:
    """Tests for channel subscription and ordered delivery."""

    def make_feed(self) -> Tuple[SupabaseChangeFeed, MagicMock, MagicMock]:
        channel = MagicMock()
        channel.subscribe = AsyncMock()
        client = MagicMock()
        client.channel.return_value = channel
        client.remove_channel = AsyncMock()
        return SupabaseChangeFeed(client), client, channel

    @pytest.mark.asyncio
    async def test_subscribe_registers_filtered_listener(self) -> None:
        feed, client, channel = self.make_feed()

        async def handler(event: ChangeEvent) -> None:
            pass

        subscription = await feed.subscribe("exercise_videos", handler, owner_id=OWNER)

        client.channel.assert_called_once()
        assert client.channel.call_args.args[0].startswith(f"exercise_videos_changes:{OWNER}:")
        kwargs = channel.on_postgres_changes.call_args.kwargs
        assert channel.on_postgres_changes.call_args.args == ("*",)
        assert kwargs["schema"] == "public"
        assert kwargs["table"] == "exercise_videos"
        assert kwargs["filter"] == f"user_id=eq.{OWNER}"
        channel.subscribe.assert_awaited_once()
        assert subscription.active is True

        await subscription.unsubscribe()
        await subscription.unsubscribe()

        assert subscription.active is False
        client.remove_channel.assert_awaited_once_with(channel)

    @pytest.mark.asyncio
    async def test_callback_delivers_in_order(self) -> None:
        feed, _, channel = self.make_feed()
        events: List[ChangeEvent] = []

        async def handler(event: ChangeEvent) -> None:
            await asyncio.sleep(0)
            events.append(event)

        subscription = await feed.subscribe("exercise_videos", handler)
        callback = channel.on_postgres_changes.call_args.kwargs["callback"]

        callback({"data": {"type": "INSERT", "record": video_row(id="v1")}})
        callback({"data": {"type": "UPDATE", "record": video_row(id="v1", title="Renamed")}})
        callback({"data": {"type": "TRUNCATE"}})
        callback({"data": {"type": "DELETE", "old_record": {"id": "v1"}}})

        for _ in range(50):
            if len(events) == 3:
                break
            await asyncio.sleep(0)

        assert [e.kind for e in events] == [ChangeKind.INSERT, ChangeKind.UPDATE, ChangeKind.DELETE]
        assert events[1].record.title == "Renamed"

        await subscription.unsubscribe()

    @pytest.mark.asyncio
    async def test_subscribe_failure(self) -> None:
        feed, client, channel = self.make_feed()
        channel.subscribe.side_effect = RuntimeError("socket closed")

        async def handler(event: ChangeEvent) -> None:
            pass

        with pytest.raises(SubscriptionError, match="socket closed"):
            await feed.subscribe("exercise_videos", handler)

        client.remove_channel.assert_awaited_once_with(channel)

    @pytest.mark.asyncio
    async def test_owners_get_separate_channels(self) -> None:
        """Test subscriptions sharing one client do not replace each other."""
        channels: Dict[str, MagicMock] = {}

        def open_channel(topic: str) -> MagicMock:
            channel = MagicMock()
            channel.topic = topic
            channel.subscribe = AsyncMock()
            channels[topic] = channel
            return channel

        async def remove_channel(channel: MagicMock) -> None:
            channels.pop(channel.topic)

        client = MagicMock()
        client.channel.side_effect = open_channel
        client.remove_channel = AsyncMock(side_effect=remove_channel)
        feed = SupabaseChangeFeed(client)

        async def handler(event: ChangeEvent) -> None:
            pass

        first = await feed.subscribe("exercise_videos", handler, owner_id="user-a")
        second = await feed.subscribe("exercise_videos", handler, owner_id="user-b")

        assert len(channels) == 2

        await first.unsubscribe()

        assert len(channels) == 1
        (remaining,) = channels.values()
        assert remaining.topic.startswith("exercise_videos_changes:user-b:")
        assert second.active is True

        await second.unsubscribe()
        assert channels == {}

    @pytest.mark.asyncio
    async def test_channel_error_marks_inactive(self) -> None:
        """Test a failed or timed out channel is reported as not live."""
        feed, client, channel = self.make_feed()

        async def handler(event: ChangeEvent) -> None:
            pass

        subscription = await feed.subscribe("exercise_videos", handler, owner_id=OWNER)
        on_status = channel.subscribe.call_args.args[0]

        on_status("SUBSCRIBED")
        assert subscription.active is True

        on_status("CHANNEL_ERROR", RuntimeError("socket closed"))
        assert subscription.active is False

        on_status("SUBSCRIBED")
        assert subscription.active is True

        on_status("TIMED_OUT")
        assert subscription.active is False

        await subscription.unsubscribe()
        client.remove_channel.assert_awaited_once_with(channel)
