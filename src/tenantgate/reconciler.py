"""Change reconciler: keeps a session's permission cache in sync.

Triggers that lead to a full re-pull of the override table:
- session start (initial load)
- a change event on the tenant's feed
- the application becoming visible again
- the optional periodic timer
- an explicit ``refresh()`` (e.g. right after an admin edit)
- the feed reconnecting after a drop

Concurrent triggers are coalesced onto a single in-flight fetch. After a
refresh that materially changes the snapshot the user gets a notice and
the access guard re-checks the current location.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from .cache import PermissionCache, SnapshotSource, changed_keys, materially_different
from .config import AuthzConfig
from .exceptions import FetchError, SubscriptionLostError
from .feed import ChangeEvent, Subscription
from .guard import AccessGuard
from .logging import get_session_logger
from .navigation import Notice, Notifier
from .overrides import OverrideStoreClient

PERMISSIONS_UPDATED_NOTICE = Notice(
    level="info",
    title="Your permissions have been updated",
    description="Access levels have been refreshed.",
)

# Smallest wait between failed resubscribe attempts, capped by the configured max
MIN_RESUBSCRIBE_BACKOFF_SECONDS = 0.5


class ChangeReconciler:
    """Sole writer of a :class:`PermissionCache`.

    Args:
        cache: The session's cache.
        client: Override fetch + change feed.
        guard: Re-validates the current route after material changes.
        notifier: Receives the "permissions updated" notice.
        config: Refresh interval, resubscribe backoff.
    """

    def __init__(
        self,
        cache: PermissionCache,
        client: OverrideStoreClient,
        guard: AccessGuard,
        notifier: Notifier,
        *,
        config: Optional[AuthzConfig] = None,
    ) -> None:
        self.cache = cache
        self.client = client
        self.guard = guard
        self.notifier = notifier
        self.config = config or AuthzConfig()
        self.logger = get_session_logger(__name__, cache.identity)

        self._inflight: Optional[asyncio.Task] = None
        self._subscription: Optional[Subscription] = None
        self._periodic_task: Optional[asyncio.Task] = None
        self._resubscribe_task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._stopped = False

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    # ── Lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        """Initial load, then subscribe and start the periodic timer.

        Bypass identities never consult overrides, so they get neither a
        subscription nor a timer.
        """
        identity = self.cache.identity
        await self.refresh("initial")
        if self._stopped or identity.bypass or not identity.tenant_id or identity.tenant_role is None:
            return

        try:
            await self._subscribe()
        except Exception as e:
            self.logger.warning("Change feed subscription failed, retrying: %s", e)
            self._on_subscription_lost(SubscriptionLostError(str(e), tenant_id=identity.tenant_id))

        interval = self.config.refresh_interval_seconds
        if interval:
            self._periodic_task = asyncio.create_task(self._periodic(interval))

    async def stop(self) -> None:
        """Cancel timers and pending refreshes and release the subscription."""
        if self._stopped:
            return
        self._stopped = True

        tasks = [t for t in (self._periodic_task, self._resubscribe_task, self._inflight) if t is not None]
        tasks.extend(self._background)
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            try:
                await subscription.close()
            except Exception as e:
                self.logger.warning("Failed to release change subscription: %s", e)
        self.logger.debug("Reconciler stopped")

    # ── Refresh ──────────────────────────────────────────

    async def refresh(self, reason: str = "manual") -> bool:
        """Re-pull overrides and swap in a new snapshot.

        Joins the in-flight refresh if there is one. Returns True when the
        effective permission set materially changed.
        """
        if self._stopped or self.cache.disposed:
            return False
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._run_refresh(reason))
        else:
            self.logger.debug("Refresh (%s) joined the one already in flight", reason)
        inflight = self._inflight
        try:
            return await asyncio.shield(inflight)
        except asyncio.CancelledError:
            # stop() cancelled the shared fetch; callers that were not
            # themselves cancelled just see "no change"
            current = asyncio.current_task()
            if inflight.cancelled() and current is not None and not current.cancelling():
                return False
            raise

    def request_refresh(self, reason: str) -> Optional[asyncio.Task]:
        """Schedule a refresh from synchronous code (feed callbacks)."""
        if self._stopped or self.cache.disposed:
            return None
        try:
            task = asyncio.get_running_loop().create_task(self.refresh(reason))
        except RuntimeError:
            self.logger.warning("No running event loop; refresh (%s) dropped", reason)
            return None
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def on_visibility_change(self, visible: bool) -> bool:
        if not visible:
            return False
        return await self.refresh("visible")

    async def _run_refresh(self, reason: str) -> bool:
        cache = self.cache
        identity = cache.identity
        initial = cache.snapshot is None
        if not cache.begin_loading():
            return False

        if identity.bypass:
            previous = cache.commit(source=SnapshotSource.BYPASS)
        elif not identity.tenant_id or identity.tenant_role is None:
            previous = cache.commit(source=SnapshotSource.DEFAULTS)
        else:
            try:
                overrides = await self.client.fetch_overrides(identity.tenant_id, identity.tenant_role)
            except FetchError as e:
                if cache.identity is identity:
                    cache.abort_loading()
                if initial:
                    self.logger.warning("Initial override fetch failed, using default permissions: %s", e.message)
                else:
                    self.logger.warning("Override fetch failed, keeping last known permissions: %s", e.message)
                return False

            if cache.disposed or cache.identity is not identity:
                self.logger.debug("Discarding overrides fetched for a previous tenant context")
                return False
            previous = cache.commit(overrides, source=SnapshotSource.REMOTE)

        current = cache.snapshot
        if initial or not materially_different(previous, current):
            self.logger.debug("Permissions refreshed (%s), no change", reason)
            return False

        if previous is not None and current is not None:
            self.logger.info("Permissions changed (%s): %s", reason, ", ".join(changed_keys(previous, current)))
        self._notify(PERMISSIONS_UPDATED_NOTICE)
        self.guard.enforce(current)
        return True

    def _notify(self, notice: Notice) -> None:
        try:
            self.notifier.notify(notice)
        except Exception as e:
            self.logger.error("Notifier failed: %s", e)

    async def _periodic(self, interval: float) -> None:
        while not self._stopped:
            await asyncio.sleep(interval)
            try:
                await self.refresh("periodic")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.exception("Periodic refresh failed: %s", e)

    # ── Change feed ──────────────────────────────────────

    async def _subscribe(self) -> None:
        identity = self.cache.identity
        self._subscription = await self.client.subscribe_to_changes(
            identity.tenant_id,
            self._on_event,
            self._on_subscription_lost,
            role=identity.tenant_role,
        )

    def _on_event(self, event: ChangeEvent) -> None:
        if self._stopped or self.cache.disposed:
            return
        if event.tenant_id != self.cache.identity.tenant_id:
            self.logger.debug("Ignoring change event for tenant %s", event.tenant_id)
            return
        self.request_refresh(f"push:{event.kind}")

    def _on_subscription_lost(self, error: SubscriptionLostError) -> None:
        if self._stopped or self.cache.disposed:
            return
        self.logger.warning("%s; resubscribing", error.message)
        if self._resubscribe_task is not None and not self._resubscribe_task.done():
            return
        self._resubscribe_task = asyncio.get_running_loop().create_task(self._resubscribe())

    async def _resubscribe(self) -> None:
        dead, self._subscription = self._subscription, None
        if dead is not None:
            try:
                await dead.close()
            except Exception as e:
                self.logger.debug("Closing dropped subscription failed: %s", e)

        delay = self.config.resubscribe_delay_seconds
        max_delay = self.config.resubscribe_max_delay_seconds
        while not self._stopped:
            await asyncio.sleep(delay)
            try:
                await self._subscribe()
                break
            except Exception as e:
                delay = min(max(delay * 2, MIN_RESUBSCRIBE_BACKOFF_SECONDS), max_delay)
                self.logger.warning("Resubscribe failed, next attempt in %.1fs: %s", delay, e)

        if not self._stopped:
            self.logger.info("Change feed resubscribed, forcing refresh")
            await self.refresh("resubscribed")


__all__ = [
    "PERMISSIONS_UPDATED_NOTICE",
    "ChangeReconciler",
]
