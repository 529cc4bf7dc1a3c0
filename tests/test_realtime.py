"""Tests for the Redis presence store and real-time presence subscriptions."""

import asyncio
import json
import threading
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis

from src.api.websocket import apply_in_thread
from src.exceptions import UpstreamUnavailable
from src.services.presence import (
    CATALOG_CHANNEL,
    CatalogEventType,
    PresenceStore,
    RedisPresenceStore,
    get_presence_store,
)
from src.services.realtime import CatalogChange, ChangeInbox, PresenceChange, PresenceWatcher

WATCHED = ("vendorStatus", "vendorType", "categoryStatus")


class TestCatalogEventType:
    """Tests for CatalogEventType enum."""

    def test_category_events_exist(self):
        """Verify all category event types are defined."""
        assert CatalogEventType.CATEGORY_CREATED == "category_created"
        assert CatalogEventType.CATEGORY_UPDATED == "category_updated"
        assert CatalogEventType.CATEGORY_DELETED == "category_deleted"

    def test_item_events_exist(self):
        """Verify all item event types are defined."""
        assert CatalogEventType.ITEM_CREATED == "item_created"
        assert CatalogEventType.ITEM_UPDATED == "item_updated"
        assert CatalogEventType.ITEM_DELETED == "item_deleted"


class TestGetPresenceStore:
    """Tests for get_presence_store function."""

    def test_creates_redis_store(self):
        """Test that get_presence_store wraps a new Redis client."""
        import src.services.presence as presence_module

        presence_module._presence_store = None

        with patch("src.services.presence.redis.from_url") as mock_from_url:
            mock_client = MagicMock()
            mock_from_url.return_value = mock_client

            result = get_presence_store()

            assert isinstance(result, RedisPresenceStore)
            assert result.client == mock_client
            mock_from_url.assert_called_once()
            assert mock_from_url.call_args.kwargs["decode_responses"] is True

        # Clean up
        presence_module._presence_store = None

    def test_reuses_existing_store(self):
        """Test that get_presence_store reuses the existing store."""
        import src.services.presence as presence_module

        store = RedisPresenceStore(MagicMock())
        presence_module._presence_store = store

        with patch("src.services.presence.redis.from_url") as mock_from_url:
            assert get_presence_store() is store
            mock_from_url.assert_not_called()

        # Clean up
        presence_module._presence_store = None


class TestPresenceStoreInterface:
    """Tests for the PresenceStore base class."""

    def test_base_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            PresenceStore()

    def test_backend_must_implement_publish(self):
        class ReadOnlyStore(PresenceStore):
            def get(self, path):
                return None

            def set(self, path, value):
                pass

            def remove(self, path):
                pass

        with pytest.raises(TypeError):
            ReadOnlyStore()


class TestRedisPresenceStore:
    """Tests for RedisPresenceStore."""

    def test_get_leaf(self):
        client = MagicMock()
        client.hget.return_value = "true"
        store = RedisPresenceStore(client)

        assert store.get("vendorStatus/7") is True
        client.hget.assert_called_once_with("presence:vendorStatus", "7")

    def test_get_missing_leaf(self):
        client = MagicMock()
        client.hget.return_value = None

        assert RedisPresenceStore(client).get("vendorType/7") is None

    def test_get_flat_map(self):
        client = MagicMock()
        client.hgetall.return_value = {"1": '"stall"', "2": '"shop"'}

        assert RedisPresenceStore(client).get("vendorType") == {"1": "stall", "2": "shop"}

    def test_get_category_root(self):
        client = MagicMock()
        client.smembers.return_value = {"1", "2"}
        pipe = MagicMock()
        pipe.execute.return_value = [{"10": "false"}, {}]
        client.pipeline.return_value = pipe

        result = RedisPresenceStore(client).get("categoryStatus")

        assert result == {"1": {"10": False}}
        pipe.hgetall.assert_any_call("presence:categoryStatus:1")

    def test_set_category_flag_publishes_change(self):
        client = MagicMock()
        pipe = MagicMock()
        client.pipeline.return_value = pipe

        RedisPresenceStore(client).set("categoryStatus/1/10", False)

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.hset.assert_called_once_with("presence:categoryStatus:1", "10", "false")
        pipe.sadd.assert_called_once_with("presence:categoryStatus", "1")
        pipe.publish.assert_called_once_with(
            "presence:changes:categoryStatus", json.dumps({"path": "categoryStatus/1/10"})
        )
        pipe.execute.assert_called_once()

    def test_set_rejects_map_path(self):
        with pytest.raises(ValueError):
            RedisPresenceStore(MagicMock()).set("vendorStatus", {"1": True})

    def test_remove_leaf(self):
        client = MagicMock()
        pipe = MagicMock()
        client.pipeline.return_value = pipe

        RedisPresenceStore(client).remove("vendorStatus/3")

        pipe.hdel.assert_called_once_with("presence:vendorStatus", "3")
        pipe.publish.assert_called_once()

    def test_redis_error_maps_to_upstream_unavailable(self):
        client = MagicMock()
        client.hget.side_effect = redis.ConnectionError("connection refused")

        with pytest.raises(UpstreamUnavailable) as exc_info:
            RedisPresenceStore(client).get("vendorStatus/1")

        assert exc_info.value.store == "presence"

    def test_publish_catalog_event(self):
        client = MagicMock()

        RedisPresenceStore(client).publish_catalog_event(
            3, CatalogEventType.ITEM_CREATED, 9, {"food_item_id": 12}
        )

        client.publish.assert_called_once()
        channel, raw = client.publish.call_args[0]
        assert channel == CATALOG_CHANNEL
        message = json.loads(raw)
        assert message["type"] == "item_created"
        assert message["vendor_id"] == 3
        assert message["category_id"] == 9
        assert message["data"] == {"food_item_id": 12}
        assert "timestamp" in message

    def test_publish_catalog_event_handles_redis_error(self):
        """Test that Redis errors don't fail the mutation that published."""
        client = MagicMock()
        client.publish.side_effect = redis.ConnectionError("connection refused")

        # Should not raise exception
        RedisPresenceStore(client).publish_catalog_event(3, CatalogEventType.CATEGORY_DELETED, 9)


class TestChangeInbox:
    """Tests for ChangeInbox coalescing."""

    @pytest.mark.asyncio
    async def test_marks_coalesce(self):
        inbox = ChangeInbox()
        inbox.mark("vendorStatus")
        inbox.mark("categoryStatus")
        inbox.mark("vendorStatus")

        assert len(inbox) == 2
        assert await inbox.drain() == ["vendorStatus", "categoryStatus"]
        assert len(inbox) == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_mark(self):
        inbox = ChangeInbox()
        drain = asyncio.create_task(inbox.drain())
        await asyncio.sleep(0)
        assert not drain.done()

        inbox.mark(CatalogChange(1, 2))

        assert await asyncio.wait_for(drain, timeout=1) == [CatalogChange(1, 2)]


def make_pubsub(messages):
    mock_pubsub = MagicMock()

    async def mock_listen():
        for message in messages:
            yield message

    mock_pubsub.listen = mock_listen
    mock_pubsub.subscribe = AsyncMock()
    mock_pubsub.unsubscribe = AsyncMock()
    return mock_pubsub


class TestPresenceWatcher:
    """Tests for PresenceWatcher."""

    def test_init(self, presence):
        """Test PresenceWatcher initialization."""
        watcher = PresenceWatcher(presence)
        assert watcher._redis is None
        assert watcher._pubsub is None

    @pytest.mark.asyncio
    async def test_get_redis_creates_connection(self, presence):
        """Test that _get_redis creates a Redis connection."""
        watcher = PresenceWatcher(presence)

        with patch("src.services.realtime.aioredis.from_url") as mock_from_url:
            mock_redis = AsyncMock()
            mock_from_url.return_value = mock_redis

            result = await watcher._get_redis()

            assert result == mock_redis
            mock_from_url.assert_called_once()

    @pytest.mark.asyncio
    async def test_get_redis_reuses_connection(self, presence):
        """Test that _get_redis reuses existing connection."""
        watcher = PresenceWatcher(presence)
        mock_redis = AsyncMock()
        watcher._redis = mock_redis

        with patch("src.services.realtime.aioredis.from_url") as mock_from_url:
            result = await watcher._get_redis()

            assert result == mock_redis
            mock_from_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_cleanup_closes_connections(self, presence):
        """Test that cleanup closes Redis connections."""
        watcher = PresenceWatcher(presence)
        mock_redis = AsyncMock()
        mock_pubsub = AsyncMock()
        watcher._redis = mock_redis
        watcher._pubsub = mock_pubsub

        await watcher.cleanup()

        mock_pubsub.close.assert_called_once()
        mock_redis.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_cleanup_handles_no_connections(self, presence):
        """Test that cleanup works when no connections exist."""
        watcher = PresenceWatcher(presence)

        # Should not raise
        await watcher.cleanup()

    @pytest.mark.asyncio
    async def test_first_batch_holds_full_values(self, presence):
        """Test that the first batch carries the current value of every path."""
        presence.set_vendor_live(1, True)
        presence.set_category_visibility(1, 10, False)
        watcher = PresenceWatcher(presence)
        mock_redis = MagicMock()
        mock_pubsub = make_pubsub([])
        mock_redis.pubsub.return_value = mock_pubsub
        watcher._redis = mock_redis

        batches = [batch async for batch in watcher.watch(WATCHED)]

        assert batches == [
            [
                PresenceChange("vendorStatus", {"1": True}),
                PresenceChange("vendorType", {}),
                PresenceChange("categoryStatus", {"1": {"10": False}}),
            ]
        ]
        mock_pubsub.subscribe.assert_called_once()
        mock_pubsub.unsubscribe.assert_called_once()

    @pytest.mark.asyncio
    async def test_notifications_reread_changed_root(self, presence):
        """Test that a change notification re-reads only the watched path it touches."""
        watcher = PresenceWatcher(presence)
        mock_redis = MagicMock()
        mock_redis.pubsub.return_value = make_pubsub(
            [
                {"type": "subscribe", "channel": "presence:changes:vendorStatus", "data": 1},
                {
                    "type": "message",
                    "channel": "presence:changes:vendorStatus",
                    "data": json.dumps({"path": "vendorStatus/4"}),
                },
                {
                    "type": "message",
                    "channel": "presence:changes:vendorStatus",
                    "data": json.dumps({"path": "vendorStatus/5"}),
                },
            ]
        )
        watcher._redis = mock_redis
        presence.set_vendor_live(4, True)

        batches = [batch async for batch in watcher.watch(WATCHED)]

        assert len(batches) == 2
        assert batches[1] == [PresenceChange("vendorStatus", {"4": True})]

    @pytest.mark.asyncio
    async def test_catalog_messages_become_catalog_changes(self, presence):
        """Test that catalog events are forwarded with their vendor and category."""
        watcher = PresenceWatcher(presence)
        mock_redis = MagicMock()
        mock_redis.pubsub.return_value = make_pubsub(
            [
                {"type": "message", "channel": CATALOG_CHANNEL, "data": "not valid json"},
                {
                    "type": "message",
                    "channel": CATALOG_CHANNEL,
                    "data": json.dumps({"type": "item_created", "vendor_id": 2, "category_id": 8}),
                },
            ]
        )
        watcher._redis = mock_redis

        batches = [batch async for batch in watcher.watch(WATCHED)]

        assert batches[-1] == [CatalogChange(2, 8)]

    @pytest.mark.asyncio
    async def test_lost_subscription_raises(self, presence):
        """Test that a dropped pub/sub connection surfaces to the consumer."""
        watcher = PresenceWatcher(presence)
        mock_pubsub = MagicMock()

        async def broken_listen():
            raise redis.ConnectionError("connection lost")
            yield  # pragma: no cover

        mock_pubsub.listen = broken_listen
        mock_pubsub.subscribe = AsyncMock()
        mock_pubsub.unsubscribe = AsyncMock()
        mock_redis = MagicMock()
        mock_redis.pubsub.return_value = mock_pubsub
        watcher._redis = mock_redis

        with pytest.raises(redis.ConnectionError):
            async for _ in watcher.watch(WATCHED):
                pass

        mock_pubsub.unsubscribe.assert_called_once()


class TestWebSocketEndpoint:
    """Tests for WebSocket endpoint."""

    def test_websocket_rejects_invalid_view(self, client):
        """Test that WebSocket rejects an unknown browse view."""
        from starlette.websockets import WebSocketDisconnect

        with (
            pytest.raises(WebSocketDisconnect),
            client.websocket_connect("/ws/browse?view=everything"),
        ):
            pass

    def test_websocket_requires_vendor_for_vendor_view(self, client):
        """Test that WebSocket rejects a vendor view without vendorId."""
        from starlette.websockets import WebSocketDisconnect

        with pytest.raises(WebSocketDisconnect), client.websocket_connect("/ws/browse?view=vendor"):
            pass

    @pytest.mark.asyncio
    async def test_cancelled_viewer_waits_for_running_apply(self):
        """Test that a view update keeps running after its viewer task is cancelled."""
        started = threading.Event()
        release = threading.Event()
        finished = []

        def slow_apply(batch):
            started.set()
            release.wait(5)
            finished.append(batch)
            return "patch"

        applying = set()
        task = asyncio.create_task(apply_in_thread(applying, slow_apply, ["batch"]))
        await asyncio.to_thread(started.wait, 5)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(applying) == 1
        assert finished == []

        release.set()
        results = await asyncio.gather(*applying)

        assert results == ["patch"]
        assert finished == [["batch"]]
