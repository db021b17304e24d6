"""Redis adapters for the override store and the change feed.

Layout (same Redis the rest of the platform already connects to):
- ``{prefix}:overrides:{tenant_id}:{role}`` — hash, permission key → "1" / "0"
- ``{prefix}:changes:{tenant_id}`` — pub/sub channel, one message per write

Messages are JSON ``{"tenant_id": ..., "event": "update", "role": ...}``;
bare payloads are accepted as a generic "changed" signal.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Union

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .config import AuthzConfig
from .exceptions import ConfigurationError, SubscriptionLostError
from .feed import EVENT_KINDS, ChangeEvent, ChangeFeed, ChangeFilter, EventCallback, LostCallback, Subscription
from .overrides import OverrideRow, OverrideStore, OverrideStoreClient, coerce_enabled
from .permissions import TenantRole

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "tenantgate"


def overrides_key(tenant_id: str, role: str, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}:overrides:{tenant_id}:{role}"


def changes_channel(tenant_id: str, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}:changes:{tenant_id}"


def _role_value(role: Union[TenantRole, str]) -> str:
    return role.value if isinstance(role, TenantRole) else str(role)


def _client_from_config(config: AuthzConfig) -> aioredis.Redis:
    if not config.redis_url:
        raise ConfigurationError("REDIS_URL is required for the Redis override store")
    return aioredis.from_url(config.redis_url, decode_responses=True)


def decode_change_message(channel_tenant: str, data: Any) -> tuple[ChangeEvent, Optional[str]]:
    """Decode a pub/sub payload into (event, role). Tolerates bare payloads."""
    tenant_id, kind, role = channel_tenant, "changed", None
    if isinstance(data, bytes):
        data = data.decode("utf-8", "replace")
    if isinstance(data, str):
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict):
            tenant_id = str(payload.get("tenant_id") or channel_tenant)
            kind = str(payload.get("event") or "changed")
            role = payload.get("role")
    if kind not in EVENT_KINDS:
        kind = "changed"
    return ChangeEvent(tenant_id=tenant_id, kind=kind), role


class RedisOverrideStore(OverrideStore):
    """Override rows stored as one Redis hash per tenant + role."""

    def __init__(self, client: aioredis.Redis, *, prefix: str = DEFAULT_PREFIX) -> None:
        self._client = client
        self.prefix = prefix

    @classmethod
    def from_config(cls, config: AuthzConfig) -> "RedisOverrideStore":
        return cls(_client_from_config(config), prefix=config.key_prefix)

    async def fetch_rows(self, tenant_id: str, role: str) -> list[OverrideRow]:
        mapping = await self._client.hgetall(overrides_key(tenant_id, role, self.prefix))
        rows: list[OverrideRow] = []
        for key, raw in (mapping or {}).items():
            enabled = coerce_enabled(raw)
            if enabled is None:
                logger.warning("Ignoring override %s=%r for tenant %s (not a boolean)", key, raw, tenant_id)
                continue
            rows.append(OverrideRow(key.decode() if isinstance(key, bytes) else key, enabled))
        return rows

    async def set_override(self, tenant_id: str, role: Union[TenantRole, str], key: str, is_enabled: bool) -> None:
        """Write an override and notify the tenant's channel."""
        role_name = _role_value(role)
        created = await self._client.hset(overrides_key(tenant_id, role_name, self.prefix), key, "1" if is_enabled else "0")
        await self._publish(tenant_id, "insert" if created else "update", role_name)

    async def reset_override(self, tenant_id: str, role: Union[TenantRole, str], key: str) -> bool:
        """Delete an override (reset to default). Returns whether it existed."""
        role_name = _role_value(role)
        removed = await self._client.hdel(overrides_key(tenant_id, role_name, self.prefix), key)
        if removed:
            await self._publish(tenant_id, "delete", role_name)
        return bool(removed)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _publish(self, tenant_id: str, kind: str, role: str) -> None:
        message = json.dumps({"tenant_id": tenant_id, "event": kind, "role": role})
        await self._client.publish(changes_channel(tenant_id, self.prefix), message)


class _RedisSubscription(Subscription):
    def __init__(
        self,
        client: aioredis.Redis,
        change_filter: ChangeFilter,
        on_event: EventCallback,
        on_lost: Optional[LostCallback],
        prefix: str,
    ) -> None:
        super().__init__(change_filter)
        self._client = client
        self._on_event = on_event
        self._on_lost = on_lost
        self._channel = changes_channel(change_filter.tenant_id, prefix)
        self._pubsub = client.pubsub(ignore_subscribe_messages=True)
        self._task: Optional[asyncio.Task] = None
        self._active = False
        self._closing = False

    @property
    def active(self) -> bool:
        return self._active

    async def start(self) -> None:
        await self._pubsub.subscribe(self._channel)
        self._active = True
        self._task = asyncio.create_task(self._listen())
        logger.info("Subscribed to %s", self._channel)

    async def _listen(self) -> None:
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "message":
                    continue
                event, role = decode_change_message(self.filter.tenant_id, message.get("data"))
                if role is not None and self.filter.role is not None and role != self.filter.role:
                    continue
                try:
                    self._on_event(event)
                except Exception as e:
                    logger.exception("Change event handler failed for %s: %s", self._channel, e)
            error = SubscriptionLostError(f"Channel {self._channel} closed", tenant_id=self.filter.tenant_id)
        except asyncio.CancelledError:
            raise
        except RedisError as e:
            error = SubscriptionLostError(f"Channel {self._channel} lost: {e}", tenant_id=self.filter.tenant_id)

        self._active = False
        if self._closing:
            return
        logger.warning("%s", error.message)
        if self._on_lost is not None:
            self._on_lost(error)

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        self._active = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        try:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
        except RedisError as e:
            logger.debug("Failed to close subscription %s: %s", self._channel, e)
        logger.info("Unsubscribed from %s", self._channel)


class RedisChangeFeed(ChangeFeed):
    """Change notifications over Redis pub/sub."""

    def __init__(self, client: aioredis.Redis, *, prefix: str = DEFAULT_PREFIX) -> None:
        self._client = client
        self.prefix = prefix

    @classmethod
    def from_config(cls, config: AuthzConfig) -> "RedisChangeFeed":
        return cls(_client_from_config(config), prefix=config.key_prefix)

    async def subscribe(
        self,
        change_filter: ChangeFilter,
        on_event: EventCallback,
        on_lost: Optional[LostCallback] = None,
    ) -> Subscription:
        subscription = _RedisSubscription(self._client, change_filter, on_event, on_lost, self.prefix)
        await subscription.start()
        return subscription


def build_redis_client(config: AuthzConfig) -> OverrideStoreClient:
    """Override store + change feed sharing one Redis connection pool."""
    client = _client_from_config(config)
    return OverrideStoreClient(
        RedisOverrideStore(client, prefix=config.key_prefix),
        RedisChangeFeed(client, prefix=config.key_prefix),
        fetch_timeout=config.fetch_timeout_seconds,
    )


__all__ = [
    "DEFAULT_PREFIX",
    "RedisChangeFeed",
    "RedisOverrideStore",
    "build_redis_client",
    "changes_channel",
    "decode_change_message",
    "overrides_key",
]
