"""Tests for tenantgate.redis_backend with a mocked Redis client."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import settle
from tenantgate import AuthzConfig, ChangeFilter, ConfigurationError, OverrideRow, SubscriptionLostError
from tenantgate.redis_backend import (
    RedisChangeFeed,
    RedisOverrideStore,
    build_redis_client,
    changes_channel,
    decode_change_message,
    overrides_key,
)


def _pubsub(messages=(), error=None) -> MagicMock:
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()

    async def listen():
        for message in messages:
            yield message
        if error is not None:
            raise error

    pubsub.listen = listen
    return pubsub


class TestKeys:
    """Tests for key and channel naming."""

    def test_overrides_key(self) -> None:
        assert overrides_key("t1", "manager") == "tenantgate:overrides:t1:manager"
        assert overrides_key("t1", "manager", prefix="acme") == "acme:overrides:t1:manager"

    def test_changes_channel(self) -> None:
        assert changes_channel("t1") == "tenantgate:changes:t1"


class TestDecodeChangeMessage:
    """Tests for decode_change_message()."""

    def test_json_payload(self) -> None:
        event, role = decode_change_message("t1", json.dumps({"tenant_id": "t1", "event": "delete", "role": "manager"}))
        assert event.tenant_id == "t1"
        assert event.kind == "delete"
        assert role == "manager"

    def test_bytes_payload(self) -> None:
        event, role = decode_change_message("t1", b'{"event": "insert"}')
        assert event.tenant_id == "t1"
        assert event.kind == "insert"
        assert role is None

    def test_bare_payload(self) -> None:
        event, role = decode_change_message("t1", "ping")
        assert event.kind == "changed"
        assert event.tenant_id == "t1"
        assert role is None

    def test_unknown_kind(self) -> None:
        event, _ = decode_change_message("t1", json.dumps({"event": "truncate"}))
        assert event.kind == "changed"


class TestRedisOverrideStore:
    """Tests for RedisOverrideStore."""

    @pytest.mark.asyncio
    async def test_fetch_rows(self) -> None:
        client = MagicMock()
        client.hgetall = AsyncMock(return_value={"customers.delete": "1", "team.view": "0", "invoices.edit": "maybe"})
        store = RedisOverrideStore(client)

        rows = await store.fetch_rows("t1", "sales_staff")

        client.hgetall.assert_awaited_once_with("tenantgate:overrides:t1:sales_staff")
        assert rows == [OverrideRow("customers.delete", True), OverrideRow("team.view", False)]

    @pytest.mark.asyncio
    async def test_fetch_rows_empty(self) -> None:
        client = MagicMock()
        client.hgetall = AsyncMock(return_value={})
        assert await RedisOverrideStore(client).fetch_rows("t1", "manager") == []

    @pytest.mark.asyncio
    async def test_set_override_publishes(self) -> None:
        client = MagicMock()
        client.hset = AsyncMock(return_value=1)
        client.publish = AsyncMock()
        store = RedisOverrideStore(client, prefix="acme")

        await store.set_override("t1", "manager", "invoices.delete", False)

        client.hset.assert_awaited_once_with("acme:overrides:t1:manager", "invoices.delete", "0")
        channel, message = client.publish.await_args.args
        assert channel == "acme:changes:t1"
        assert json.loads(message) == {"tenant_id": "t1", "event": "insert", "role": "manager"}

    @pytest.mark.asyncio
    async def test_reset_missing_override_is_silent(self) -> None:
        client = MagicMock()
        client.hdel = AsyncMock(return_value=0)
        client.publish = AsyncMock()

        assert await RedisOverrideStore(client).reset_override("t1", "manager", "invoices.delete") is False
        client.publish.assert_not_awaited()

    def test_from_config_requires_url(self) -> None:
        with pytest.raises(ConfigurationError):
            RedisOverrideStore.from_config(AuthzConfig())

    def test_build_redis_client(self) -> None:
        config = AuthzConfig(redis_url="redis://localhost:6379/0", key_prefix="acme", fetch_timeout_seconds=3)
        with patch("tenantgate.redis_backend.aioredis.from_url") as from_url:
            client = build_redis_client(config)

        from_url.assert_called_once_with("redis://localhost:6379/0", decode_responses=True)
        assert client.fetch_timeout == 3
        assert client.store.prefix == "acme"
        assert client.feed.prefix == "acme"


class TestRedisChangeFeed:
    """Tests for RedisChangeFeed subscriptions."""

    @pytest.mark.asyncio
    async def test_delivers_events_then_reports_end_of_stream(self) -> None:
        pubsub = _pubsub(
            [
                {"type": "subscribe", "data": 1},
                {"type": "message", "data": json.dumps({"tenant_id": "t1", "event": "update", "role": "manager"})},
                {"type": "message", "data": json.dumps({"tenant_id": "t1", "event": "update", "role": "employee"})},
            ]
        )
        client = MagicMock()
        client.pubsub.return_value = pubsub
        on_event, on_lost = MagicMock(), MagicMock()

        subscription = await RedisChangeFeed(client).subscribe(ChangeFilter("t1", role="manager"), on_event, on_lost)
        await settle()

        pubsub.subscribe.assert_awaited_once_with("tenantgate:changes:t1")
        on_event.assert_called_once()
        assert on_event.call_args.args[0].kind == "update"
        on_lost.assert_called_once()
        assert isinstance(on_lost.call_args.args[0], SubscriptionLostError)
        assert not subscription.active

        await subscription.close()
        pubsub.unsubscribe.assert_awaited_once_with("tenantgate:changes:t1")
        pubsub.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_error_reports_loss(self) -> None:
        pubsub = _pubsub(error=RedisConnectionError("reset by peer"))
        client = MagicMock()
        client.pubsub.return_value = pubsub
        on_lost = MagicMock()

        await RedisChangeFeed(client).subscribe(ChangeFilter("t1"), MagicMock(), on_lost)
        await settle()

        on_lost.assert_called_once()
        assert "reset by peer" in on_lost.call_args.args[0].message

    @pytest.mark.asyncio
    async def test_handler_errors_do_not_end_subscription(self) -> None:
        pubsub = _pubsub([{"type": "message", "data": "x"}, {"type": "message", "data": "y"}])
        client = MagicMock()
        client.pubsub.return_value = pubsub
        on_event = MagicMock(side_effect=[RuntimeError("boom"), None])

        await RedisChangeFeed(client).subscribe(ChangeFilter("t1"), on_event)
        await settle()

        assert on_event.call_count == 2

    @pytest.mark.asyncio
    async def test_close_before_stream_ends_suppresses_loss(self) -> None:
        pubsub = MagicMock()
        pubsub.subscribe = AsyncMock()
        pubsub.unsubscribe = AsyncMock()
        pubsub.aclose = AsyncMock()

        async def listen():
            await asyncio.Event().wait()
            yield {}

        pubsub.listen = listen
        client = MagicMock()
        client.pubsub.return_value = pubsub
        on_lost = MagicMock()

        subscription = await RedisChangeFeed(client).subscribe(ChangeFilter("t1"), MagicMock(), on_lost)
        await settle(5)
        await subscription.close()

        on_lost.assert_not_called()
        assert not subscription.active
