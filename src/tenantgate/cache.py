"""Per-session permission cache.

Provides:
- ``PermissionSnapshot`` — immutable, fully-resolved ``"module.action" → bool`` map.
- ``build_snapshot()`` — merge bypass rules, overrides and the default matrix.
- ``materially_different()`` — snapshot diff used by the reconciler.
- ``PermissionCache`` — state machine + synchronous, never-raising queries.

Precedence per key (first match wins):
1. platform super-role → True
2. tenant owner → True
3. override for the exact key
4. for create / edit / delete, override for ``module.manage``
5. default matrix (with its own ``manage`` fallback)
6. False
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Union

from .identity import EffectiveIdentity
from .permissions import (
    MANAGED_ACTIONS,
    PermissionAction,
    PermissionModule,
    PlatformRole,
    TenantRole,
    at_least,
    canonicalize,
    coerce_action,
    default_allows,
    module_aliases,
    module_name,
    parse_permission_key,
)
from .permissions.registry import ActionLike, ModuleLike

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    DISPOSED = "disposed"


class SnapshotSource(str, Enum):
    REMOTE = "remote"  # built from a successful override fetch
    DEFAULTS = "defaults"  # no overrides available (first fetch failed)
    BYPASS = "bypass"  # super-role / owner, overrides never consulted


@dataclass(frozen=True)
class PermissionSnapshot:
    """A complete, self-consistent permission set for one tenant + role.

    Replaced wholesale on every refresh, never patched. ``created_at`` is
    excluded from equality so two refreshes over unchanged data compare
    equal.
    """

    tenant_id: Optional[str]
    role: Optional[TenantRole]
    grants: Mapping[str, bool]
    bypass: bool = False
    platform_role: Optional[PlatformRole] = None
    source: SnapshotSource = SnapshotSource.REMOTE
    created_at: float = field(default_factory=time.time, compare=False)

    def is_allowed(self, key: str) -> bool:
        """Check a ``"module.action"`` key; aliases in the key are resolved."""
        if self.bypass:
            return True
        parsed = parse_permission_key(key)
        if parsed is None:
            return False
        module, action = parsed
        return self.grants.get(f"{module_name(module)}.{action.value}", False) is True

    def can_perform(self, module: ModuleLike, action: ActionLike) -> bool:
        if self.bypass:
            return True
        resolved = coerce_action(action)
        if resolved is None:
            return False
        return self.grants.get(f"{module_name(canonicalize(module))}.{resolved.value}", False) is True


def _effective(
    role: TenantRole,
    module: ModuleLike,
    action: PermissionAction,
    overrides: Mapping[str, bool],
) -> bool:
    name = module_name(module)
    exact = overrides.get(f"{name}.{action.value}")
    if exact is not None:
        return exact
    if action in MANAGED_ACTIONS:
        umbrella = overrides.get(f"{name}.{PermissionAction.MANAGE.value}")
        if umbrella is not None:
            return umbrella
    return default_allows(role, module, action)


def build_snapshot(
    identity: EffectiveIdentity,
    overrides: Optional[Mapping[str, bool]] = None,
    *,
    source: SnapshotSource = SnapshotSource.REMOTE,
) -> PermissionSnapshot:
    """Resolve every canonical module × action for ``identity``.

    Override keys for modules outside the registry are carried through
    as-is so they still take part in diffing and exact-key checks.
    """
    role = identity.tenant_role if isinstance(identity.tenant_role, TenantRole) else None
    platform_role = identity.platform_role if isinstance(identity.platform_role, PlatformRole) else None

    if identity.bypass:
        grants = {f"{m.value}.{a.value}": True for m in PermissionModule for a in PermissionAction}
        return PermissionSnapshot(
            tenant_id=identity.tenant_id,
            role=role,
            grants=MappingProxyType(grants),
            bypass=True,
            platform_role=platform_role,
            source=SnapshotSource.BYPASS,
        )

    overrides = dict(overrides or {})
    grants: dict[str, bool] = {}
    if role is not None:
        for module in PermissionModule:
            for action in PermissionAction:
                grants[f"{module.value}.{action.value}"] = _effective(role, module, action, overrides)
        for key, value in overrides.items():
            grants.setdefault(key, value)

    return PermissionSnapshot(
        tenant_id=identity.tenant_id,
        role=role,
        grants=MappingProxyType(grants),
        platform_role=platform_role,
        source=source,
    )


def materially_different(previous: Optional[PermissionSnapshot], current: Optional[PermissionSnapshot]) -> bool:
    """True when the key set or any value differs.

    Equal sizes are not enough: swapping one module's grant for another's
    leaves the count unchanged.
    """
    if previous is None or current is None:
        return previous is not current
    if previous.bypass != current.bypass:
        return True
    if previous.grants.keys() != current.grants.keys():
        return True
    return any(current.grants[key] != value for key, value in previous.grants.items())


def changed_keys(previous: PermissionSnapshot, current: PermissionSnapshot) -> list[str]:
    """Keys whose value differs or that exist on only one side, sorted."""
    keys = set(previous.grants) | set(current.grants)
    return sorted(k for k in keys if previous.grants.get(k) != current.grants.get(k))


class PermissionCache:
    """Session-scoped cache of the current permission snapshot.

    States: ``uninitialized → loading → ready → loading → ready ...`` with a
    terminal ``disposed``. The reconciler is the only writer; every query
    is a synchronous read of the last committed snapshot and never raises.

    Until the first snapshot is committed every query answers False (fail
    closed). During a refresh readers keep seeing the previous snapshot.
    """

    def __init__(self, identity: EffectiveIdentity) -> None:
        self._identity = identity
        self._snapshot: Optional[PermissionSnapshot] = None
        self._state = CacheState.UNINITIALIZED

    # ── State ────────────────────────────────────────────

    @property
    def identity(self) -> EffectiveIdentity:
        return self._identity

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def snapshot(self) -> Optional[PermissionSnapshot]:
        return self._snapshot

    @property
    def ready(self) -> bool:
        return self._snapshot is not None and self._state is not CacheState.DISPOSED

    @property
    def disposed(self) -> bool:
        return self._state is CacheState.DISPOSED

    @property
    def last_updated(self) -> Optional[float]:
        return self._snapshot.created_at if self._snapshot else None

    def begin_loading(self) -> bool:
        """Enter ``loading``. Returns False once disposed."""
        if self.disposed:
            return False
        self._state = CacheState.LOADING
        return True

    def commit(
        self,
        overrides: Optional[Mapping[str, bool]] = None,
        *,
        source: SnapshotSource = SnapshotSource.REMOTE,
    ) -> Optional[PermissionSnapshot]:
        """Build and atomically swap in a new snapshot. Returns the previous one."""
        if self.disposed:
            return None
        previous = self._snapshot
        self._snapshot = build_snapshot(self._identity, overrides, source=source)
        self._state = CacheState.READY
        return previous

    def abort_loading(self) -> None:
        """A fetch failed: keep the last good snapshot, or fall back to defaults."""
        if self.disposed:
            return
        if self._snapshot is None:
            self._snapshot = build_snapshot(self._identity, None, source=SnapshotSource.DEFAULTS)
        self._state = CacheState.READY

    def reset(self, identity: EffectiveIdentity) -> None:
        """Tenant switch: discard the snapshot and start over for ``identity``."""
        if self.disposed:
            return
        self._identity = identity
        self._snapshot = None
        self._state = CacheState.UNINITIALIZED

    def dispose(self) -> None:
        self._snapshot = None
        self._state = CacheState.DISPOSED

    # ── Queries ──────────────────────────────────────────

    def can_perform(self, module: ModuleLike, action: ActionLike) -> bool:
        snapshot = self._snapshot
        if snapshot is None:
            return False
        try:
            return snapshot.can_perform(module, action)
        except Exception as e:
            logger.debug("can_perform(%r, %r) failed closed: %s", module, action, e)
            return False

    def has_permission(self, key: str) -> bool:
        snapshot = self._snapshot
        if snapshot is None:
            return False
        try:
            return snapshot.is_allowed(key)
        except Exception as e:
            logger.debug("has_permission(%r) failed closed: %s", key, e)
            return False

    def has_module_access(self, module: ModuleLike) -> bool:
        """Any action allowed on ``module`` (under any alias). Drives sidebar visibility."""
        snapshot = self._snapshot
        if snapshot is None:
            return False
        if snapshot.bypass:
            return True
        try:
            names = module_aliases(module)
            return any(
                snapshot.grants.get(f"{name}.{action.value}") is True for name in names for action in PermissionAction
            )
        except Exception as e:
            logger.debug("has_module_access(%r) failed closed: %s", module, e)
            return False

    def has_any_permission(self) -> bool:
        """At least one module is viewable; otherwise show the no-access dashboard."""
        snapshot = self._snapshot
        if snapshot is None:
            return False
        return snapshot.bypass or any(snapshot.can_perform(m, PermissionAction.VIEW) for m in PermissionModule)

    def accessible_modules(self) -> list[PermissionModule]:
        """Modules whose ``view`` is currently allowed, in registry order."""
        snapshot = self._snapshot
        if snapshot is None:
            return []
        return [m for m in PermissionModule if snapshot.can_perform(m, PermissionAction.VIEW)]

    def enabled_modules(self) -> list[str]:
        """Every module name with at least one allowed action, including unknown ones."""
        snapshot = self._snapshot
        if snapshot is None:
            return []
        if snapshot.bypass:
            return [m.value for m in PermissionModule]
        seen: dict[str, None] = {}
        for key, enabled in snapshot.grants.items():
            if enabled:
                seen.setdefault(module_name(canonicalize(key.partition(".")[0])), None)
        return list(seen)

    def has_min_role(self, min_role: Union[TenantRole, str]) -> bool:
        if self.disposed:
            return False
        if self._identity.is_super_admin:
            return True
        return at_least(self._identity.tenant_role, min_role)

    def permissions(self) -> dict[str, bool]:
        """Copy of the current grants."""
        snapshot = self._snapshot
        return dict(snapshot.grants) if snapshot else {}


__all__ = [
    "CacheState",
    "PermissionCache",
    "PermissionSnapshot",
    "SnapshotSource",
    "build_snapshot",
    "changed_keys",
    "materially_different",
]
