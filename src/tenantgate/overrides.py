"""Override store client.

Reads per-tenant, per-role allow/deny overrides from the remote store and
exposes the tenant's change feed. Overrides are keyed by canonical
``"module.action"`` permission keys.

Provides:
- ``OverrideRow`` / ``OverrideStore`` — the remote query contract.
- ``parse_override_rows()`` — canonicalize and coerce stored rows.
- ``OverrideStoreClient`` — fetch + subscribe, raising ``FetchError`` on failure.
- ``InMemoryOverrideStore`` — process-local store for local runs and tests.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from .exceptions import FetchError
from .feed import ChangeFeed, ChangeFilter, EventCallback, InMemoryChangeFeed, LostCallback, Subscription
from .permissions import TenantRole, module_name, parse_permission_key

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on", "t"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", "f"})


@dataclass(frozen=True)
class OverrideRow:
    """One stored override: ``permission_key`` → ``is_enabled``."""

    permission_key: str
    is_enabled: bool


class OverrideStore(ABC):
    """Remote query returning override rows for one tenant + role."""

    @abstractmethod
    async def fetch_rows(self, tenant_id: str, role: str) -> list[OverrideRow]:
        raise NotImplementedError


def coerce_enabled(value: Any) -> Optional[bool]:
    """Interpret a stored is_enabled value. None when it is not a boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, bytes):
        value = value.decode("utf-8", "replace")
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def parse_override_rows(rows: Iterable[Union[OverrideRow, tuple[str, Any]]]) -> dict[str, bool]:
    """Turn stored rows into a canonical ``{"module.action": bool}`` map.

    - keys are canonicalized (module aliases resolved)
    - malformed keys, unknown actions and non-boolean values are skipped
    - a row stored under the canonical module name wins over one stored
      under an alias of the same module

    Example::

        parse_override_rows([("team.view", "1"), ("invoices.delete", False)])
        # {"team_members.view": True, "invoices.delete": False}
    """
    overrides: dict[str, bool] = {}
    from_canonical: set[str] = set()

    for row in rows:
        if isinstance(row, OverrideRow):
            raw_key, raw_enabled = row.permission_key, row.is_enabled
        else:
            raw_key, raw_enabled = row

        if isinstance(raw_key, bytes):
            raw_key = raw_key.decode("utf-8", "replace")

        parsed = parse_permission_key(raw_key)
        if parsed is None:
            logger.debug("Skipping malformed override key %r", raw_key)
            continue
        enabled = coerce_enabled(raw_enabled)
        if enabled is None:
            logger.debug("Skipping override %r with non-boolean value %r", raw_key, raw_enabled)
            continue

        module, action = parsed
        key = f"{module_name(module)}.{action.value}"
        is_canonical = raw_key.partition(".")[0].strip().lower() == module_name(module)

        if key in from_canonical and not is_canonical:
            continue
        overrides[key] = enabled
        if is_canonical:
            from_canonical.add(key)

    return overrides


def _role_value(role: Union[TenantRole, str]) -> str:
    return role.value if isinstance(role, TenantRole) else str(role)


class OverrideStoreClient:
    """Fetch overrides and subscribe to the tenant's change feed.

    Args:
        store: Remote override store.
        feed: Change notification channel.
        fetch_timeout: Seconds before a fetch is abandoned as a ``FetchError``.
    """

    def __init__(self, store: OverrideStore, feed: ChangeFeed, *, fetch_timeout: float = 10.0) -> None:
        self.store = store
        self.feed = feed
        self.fetch_timeout = fetch_timeout

    async def fetch_overrides(self, tenant_id: str, role: Union[TenantRole, str]) -> dict[str, bool]:
        """Return the canonical override map for ``tenant_id`` + ``role``.

        Raises:
            FetchError: the store call failed or timed out. Callers fall back
                to defaults (or the last good snapshot) instead of crashing.
        """
        role_name = _role_value(role)
        try:
            rows = await asyncio.wait_for(self.store.fetch_rows(tenant_id, role_name), timeout=self.fetch_timeout)
        except asyncio.TimeoutError as e:
            raise FetchError(
                f"Override fetch timed out after {self.fetch_timeout}s",
                tenant_id=tenant_id,
                role=role_name,
            ) from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise FetchError(f"Override fetch failed: {e}", tenant_id=tenant_id, role=role_name) from e

        overrides = parse_override_rows(rows)
        logger.debug("Fetched %d overrides for tenant=%s role=%s", len(overrides), tenant_id, role_name)
        return overrides

    async def subscribe_to_changes(
        self,
        tenant_id: str,
        on_event: EventCallback,
        on_lost: Optional[LostCallback] = None,
        *,
        role: Optional[Union[TenantRole, str]] = None,
    ) -> Subscription:
        """Subscribe to change events for ``tenant_id``; ``close()`` the handle to unsubscribe."""
        change_filter = ChangeFilter(tenant_id=tenant_id, role=_role_value(role) if role else None)
        return await self.feed.subscribe(change_filter, on_event, on_lost)


# ── In-memory store ─────────────────────────────────────


class InMemoryOverrideStore(OverrideStore):
    """Process-local override table.

    Writes publish a change event to ``feed`` when one is attached, the way
    the remote store's change notifications fire on insert/update/delete.
    """

    def __init__(self, feed: Optional[InMemoryChangeFeed] = None) -> None:
        self._rows: dict[tuple[str, str], dict[str, bool]] = {}
        self._failures: list[BaseException] = []
        self.feed = feed
        self.fetch_count = 0

    async def fetch_rows(self, tenant_id: str, role: str) -> list[OverrideRow]:
        self.fetch_count += 1
        # Yield so concurrent callers interleave as they would over the network
        await asyncio.sleep(0)
        if self._failures:
            raise self._failures.pop(0)
        table = self._rows.get((tenant_id, role), {})
        return [OverrideRow(key, enabled) for key, enabled in table.items()]

    def set_override(
        self,
        tenant_id: str,
        role: Union[TenantRole, str],
        key: str,
        is_enabled: bool,
        *,
        notify: bool = True,
    ) -> None:
        table = self._rows.setdefault((tenant_id, _role_value(role)), {})
        kind = "update" if key in table else "insert"
        table[key] = is_enabled
        if notify:
            self._publish(tenant_id, kind, role)

    def reset_override(self, tenant_id: str, role: Union[TenantRole, str], key: str, *, notify: bool = True) -> bool:
        """Delete an override (reset to default). Returns whether it existed."""
        table = self._rows.get((tenant_id, _role_value(role)), {})
        existed = table.pop(key, None) is not None
        if existed and notify:
            self._publish(tenant_id, "delete", role)
        return existed

    def clear(self) -> None:
        self._rows.clear()

    def fail_next(self, error: Optional[BaseException] = None, times: int = 1) -> None:
        """Make the next ``times`` fetches raise ``error``."""
        for _ in range(times):
            self._failures.append(error or ConnectionError("override store unavailable"))

    def _publish(self, tenant_id: str, kind: str, role: Union[TenantRole, str]) -> None:
        if self.feed is not None:
            self.feed.publish(tenant_id, kind, role=_role_value(role))


__all__ = [
    "InMemoryOverrideStore",
    "OverrideRow",
    "OverrideStore",
    "OverrideStoreClient",
    "coerce_enabled",
    "parse_override_rows",
]
