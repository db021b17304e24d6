"""Shared fixtures: in-memory store + feed, fake router and notice sink."""

from __future__ import annotations

import asyncio

import pytest

from tenantgate import (
    AuthzConfig,
    InMemoryChangeFeed,
    InMemoryOverrideStore,
    Notice,
    OverrideStoreClient,
)


class FakeNavigator:
    """Router double that records redirects and follows them."""

    def __init__(self, location: str = "/") -> None:
        self.location = location
        self.redirects: list[tuple[str, bool]] = []

    def current_location(self) -> str:
        return self.location

    def navigate(self, path: str, replace: bool = True) -> None:
        self.redirects.append((path, replace))
        self.location = path


class RecordingNotifier:
    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)

    @property
    def titles(self) -> list[str]:
        return [n.title for n in self.notices]


async def settle(rounds: int = 50) -> None:
    """Let scheduled refresh / resubscribe tasks run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def feed() -> InMemoryChangeFeed:
    return InMemoryChangeFeed()


@pytest.fixture
def store(feed: InMemoryChangeFeed) -> InMemoryOverrideStore:
    return InMemoryOverrideStore(feed)


@pytest.fixture
def client(store: InMemoryOverrideStore, feed: InMemoryChangeFeed) -> OverrideStoreClient:
    return OverrideStoreClient(store, feed, fetch_timeout=1.0)


@pytest.fixture
def config() -> AuthzConfig:
    return AuthzConfig(
        refresh_interval_seconds=None,
        resubscribe_delay_seconds=0,
        resubscribe_max_delay_seconds=0.01,
    )


@pytest.fixture
def navigator() -> FakeNavigator:
    return FakeNavigator()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
