"""Unit tests for Redis client."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from common.messaging.redis_client import RedisClient
from common.messaging.events import EventType, create_run_cancel_event
from tests.conftest import engine_event


@pytest.mark.asyncio
class TestRedisClient:
    """Tests for Redis client."""

    async def test_connect(self):
        """Test connecting to Redis."""
        with patch("redis.asyncio.from_url") as mock_from_url:
            mock_redis = AsyncMock()
            mock_redis.ping = AsyncMock()
            mock_from_url.return_value = mock_redis

            client = RedisClient(url="redis://localhost:6379")
            await client.connect()

            assert client._redis is mock_redis
            mock_redis.ping.assert_called_once()

    async def test_disconnect(self):
        """Test disconnecting from Redis."""
        client = RedisClient()
        client._redis = AsyncMock()
        client._pubsub = AsyncMock()
        client._listener_task = None
        client._running = False

        await client.disconnect()

        assert client._redis is None
        assert client._pubsub is None

    async def test_publish(self):
        """Test publishing an event."""
        client = RedisClient()
        client._redis = AsyncMock()
        client._redis.publish = AsyncMock(return_value=1)

        event = create_run_cancel_event("console")
        result = await client.publish("test:channel", event)

        assert result == 1
        channel, message = client._redis.publish.call_args[0]
        assert channel == "test:channel"
        assert json.loads(message)["type"] == EventType.RUN_CANCEL.value

    async def test_publish_not_connected(self):
        """Test publishing when not connected."""
        client = RedisClient()

        event = create_run_cancel_event("console")

        with pytest.raises(RuntimeError, match="Not connected"):
            await client.publish("test:channel", event)

    async def test_publish_to_engine(self):
        """Test publishing a command to the engine."""
        client = RedisClient()
        client._redis = AsyncMock()
        client._redis.publish = AsyncMock(return_value=0)

        receivers = await client.publish_to_engine(create_run_cancel_event("console"))

        assert receivers == 0
        assert client._redis.publish.call_args[0][0] == RedisClient.CHANNEL_ENGINE

    async def test_console_channel(self):
        """Test the channel a client listens on."""
        assert RedisClient(client_id="ui-1").console_channel == "zoyla:console:ui-1"

    async def test_subscribe(self):
        """Test subscribing to channels."""
        client = RedisClient()
        client._redis = AsyncMock()
        client._redis.pubsub = MagicMock()
        mock_pubsub = AsyncMock()
        client._redis.pubsub.return_value = mock_pubsub
        mock_pubsub.subscribe = AsyncMock()

        await client.subscribe("channel1", "channel2")

        assert client._pubsub is not None
        mock_pubsub.subscribe.assert_called_once_with("channel1", "channel2")

    async def test_on_event(self):
        """Test registering event handlers."""
        client = RedisClient()

        def handler(event):
            pass

        client.on_event(EventType.PROGRESS, handler)

        assert handler in client._handlers[EventType.PROGRESS.value]

    async def test_off_event(self):
        """Test removing an event handler."""
        client = RedisClient()

        def handler(event):
            pass

        client.on_event(EventType.PROGRESS, handler)
        client.off_event(EventType.PROGRESS, handler)
        client.off_event(EventType.CANCELLED, handler)

        assert client._handlers[EventType.PROGRESS.value] == []

    async def test_handle_message_dispatch(self):
        """Test dispatching a message to sync and async handlers."""
        client = RedisClient()
        seen = []
        async_handler = AsyncMock()

        client.on_event(EventType.PROGRESS, lambda e: seen.append(e.payload["completed"]))
        client.on_event(EventType.PROGRESS, async_handler)
        client.on_event(EventType.CANCELLED, lambda e: seen.append("cancelled"))

        event = engine_event(EventType.PROGRESS, completed=7, total=10)
        await client._handle_message({"data": json.dumps(event.to_json())})

        assert seen == [7]
        async_handler.assert_awaited_once()

    async def test_handler_error_does_not_stop_others(self):
        """Test that one failing handler does not block the rest."""
        client = RedisClient()
        seen = []

        def broken(event):
            raise ValueError("handler bug")

        client.on_event(EventType.CANCELLED, broken)
        client.on_event(EventType.CANCELLED, lambda e: seen.append(e.type))

        message = {"data": json.dumps({
            "type": EventType.CANCELLED.value,
            "timestamp": "2025-01-01T00:00:00",
            "source": "engine",
        })}
        await client._handle_message(message)

        assert seen == [EventType.CANCELLED]

    async def test_invalid_message_ignored(self):
        """Test that malformed messages are dropped."""
        client = RedisClient()
        handler = MagicMock()
        client.on_event(EventType.PROGRESS, handler)

        await client._handle_message({"data": "not json"})
        await client._handle_message({"data": b"bytes"})
        await client._handle_message({"data": json.dumps({"type": "unknown.event"})})

        handler.assert_not_called()
