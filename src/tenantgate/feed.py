"""Transport-agnostic change feed for permission overrides.

Provides:
- ``ChangeFilter`` / ``ChangeEvent`` — what a subscriber listens for and receives.
- ``Subscription`` / ``ChangeFeed`` — the contract concrete transports implement.
- ``InMemoryChangeFeed`` — in-process transport for local runs and tests.

An event only says "something changed for this tenant"; it never carries
the changed rows. Subscribers react with a full re-pull.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

from .exceptions import SubscriptionLostError

logger = logging.getLogger(__name__)

EVENT_KINDS = frozenset({"insert", "update", "delete", "changed"})


@dataclass(frozen=True)
class ChangeFilter:
    """Scope of a subscription. ``role=None`` listens to every role of the tenant."""

    tenant_id: str
    role: Optional[str] = None


@dataclass(frozen=True)
class ChangeEvent:
    """A bare "override table changed" signal for one tenant."""

    tenant_id: str
    kind: str = "changed"
    received_at: float = field(default_factory=time.time, compare=False)


EventCallback = Callable[[ChangeEvent], None]
LostCallback = Callable[[SubscriptionLostError], None]


class Subscription(ABC):
    """Handle returned by :meth:`ChangeFeed.subscribe`."""

    def __init__(self, change_filter: ChangeFilter) -> None:
        self.filter = change_filter

    @property
    @abstractmethod
    def active(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Unsubscribe. Idempotent."""
        raise NotImplementedError


class ChangeFeed(ABC):
    """Push channel for override-table change notifications."""

    @abstractmethod
    async def subscribe(
        self,
        change_filter: ChangeFilter,
        on_event: EventCallback,
        on_lost: Optional[LostCallback] = None,
    ) -> Subscription:
        """Start delivering events matching ``change_filter`` to ``on_event``.

        ``on_lost`` is called once if the transport drops; the subscription
        is inactive afterwards and the caller is expected to resubscribe.
        """
        raise NotImplementedError


# ── In-memory transport ─────────────────────────────────


class _MemorySubscription(Subscription):
    def __init__(
        self,
        feed: "InMemoryChangeFeed",
        change_filter: ChangeFilter,
        on_event: EventCallback,
        on_lost: Optional[LostCallback],
    ) -> None:
        super().__init__(change_filter)
        self._feed = feed
        self._on_event = on_event
        self._on_lost = on_lost
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, event: ChangeEvent) -> None:
        if self._active:
            self._on_event(event)

    def drop(self, error: SubscriptionLostError) -> None:
        if not self._active:
            return
        self._active = False
        self._feed._detach(self)
        if self._on_lost is not None:
            self._on_lost(error)

    async def close(self) -> None:
        if self._active:
            self._active = False
            self._feed._detach(self)


class InMemoryChangeFeed(ChangeFeed):
    """Process-local feed. Events are delivered synchronously on ``publish``."""

    def __init__(self) -> None:
        self._subscribers: list[_MemorySubscription] = []
        self.subscribe_calls = 0

    async def subscribe(
        self,
        change_filter: ChangeFilter,
        on_event: EventCallback,
        on_lost: Optional[LostCallback] = None,
    ) -> Subscription:
        self.subscribe_calls += 1
        subscription = _MemorySubscription(self, change_filter, on_event, on_lost)
        self._subscribers.append(subscription)
        logger.debug("Subscribed to changes for tenant %s", change_filter.tenant_id)
        return subscription

    def publish(self, tenant_id: str, kind: str = "changed", role: Optional[str] = None) -> int:
        """Deliver a change event to matching subscribers. Returns the delivery count."""
        event = ChangeEvent(tenant_id=tenant_id, kind=kind if kind in EVENT_KINDS else "changed")
        delivered = 0
        for subscription in list(self._subscribers):
            flt = subscription.filter
            if flt.tenant_id != tenant_id:
                continue
            if role is not None and flt.role is not None and flt.role != role:
                continue
            subscription.deliver(event)
            delivered += 1
        return delivered

    def disconnect(self, tenant_id: Optional[str] = None) -> None:
        """Simulate a transport drop for one tenant's subscribers (or all)."""
        for subscription in list(self._subscribers):
            if tenant_id is None or subscription.filter.tenant_id == tenant_id:
                subscription.drop(SubscriptionLostError(tenant_id=subscription.filter.tenant_id))

    def subscriber_count(self, tenant_id: Optional[str] = None) -> int:
        return sum(1 for s in self._subscribers if tenant_id is None or s.filter.tenant_id == tenant_id)

    def _detach(self, subscription: _MemorySubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)


__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "ChangeFilter",
    "EVENT_KINDS",
    "InMemoryChangeFeed",
    "Subscription",
]
