"""Authorization session: the object the host application holds.

One session per signed-in user. It owns the permission cache, the
reconciler that keeps it fresh and the access guard, and exposes the
synchronous queries UI code calls on every render.

Example::

    client = build_redis_client(config)
    session = await AuthorizationSession.open(identity, client, navigator, notifier, config=config)

    if session.show_delete("invoices"):
        ...
    session.on_location_change("/invoices/42")

    await session.end()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .cache import CacheState, PermissionCache, PermissionSnapshot
from .config import AuthzConfig
from .guard import AccessGuard, RouteCheck
from .identity import EffectiveIdentity, IdentityProvider, Impersonation, resolve_identity
from .logging import get_session_logger
from .navigation import LoggingNotifier, Navigator, Notifier
from .overrides import OverrideStoreClient
from .permissions import PermissionAction, PermissionModule, TenantRole
from .permissions.registry import ActionLike, ModuleLike
from .reconciler import ChangeReconciler


@dataclass(frozen=True)
class UiVisibility:
    """Convenience booleans for common show/hide decisions."""

    show_billing: bool = False
    show_team_management: bool = False
    can_edit_team_roles: bool = False
    show_ownership_transfer: bool = False
    show_bulk_actions: bool = False
    show_import_export: bool = False
    show_super_admin_panel: bool = False


class AuthorizationSession:
    """Per-user authorization state with an explicit lifecycle.

    ``start()`` (or ``open()``) loads the snapshot and subscribes to
    changes, ``switch_tenant()`` moves to another organization, and
    ``end()`` releases everything. Queries are safe to call at any point;
    before the first snapshot and after ``end()`` they deny.
    """

    def __init__(
        self,
        identity: EffectiveIdentity,
        client: OverrideStoreClient,
        navigator: Navigator,
        notifier: Optional[Notifier] = None,
        config: Optional[AuthzConfig] = None,
        guard: Optional[AccessGuard] = None,
    ) -> None:
        self.config = config or AuthzConfig()
        self.client = client
        self.navigator = navigator
        self.notifier = notifier or LoggingNotifier()
        self.guard = guard or AccessGuard(navigator, self.notifier, safe_route=self.config.safe_route)
        self.logger = get_session_logger(__name__, identity)

        self._cache = PermissionCache(identity)
        self._reconciler = self._new_reconciler()
        self._ended = False

    @classmethod
    async def open(
        cls,
        identity: Union[EffectiveIdentity, IdentityProvider],
        client: OverrideStoreClient,
        navigator: Navigator,
        notifier: Optional[Notifier] = None,
        config: Optional[AuthzConfig] = None,
        guard: Optional[AccessGuard] = None,
        *,
        impersonation: Optional[Impersonation] = None,
    ) -> "AuthorizationSession":
        """Resolve the effective identity (if given a provider), construct and start."""
        if not isinstance(identity, EffectiveIdentity):
            identity = resolve_identity(identity, impersonation)
        session = cls(identity, client, navigator, notifier, config, guard)
        await session.start()
        return session

    def _new_reconciler(self) -> ChangeReconciler:
        return ChangeReconciler(self._cache, self.client, self.guard, self.notifier, config=self.config)

    # ── Lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        """Load the initial snapshot, subscribe, then check the current route."""
        if self._ended:
            self.logger.warning("start() called on an ended session")
            return
        await self._reconciler.start()
        self.logger.info(
            "Authorization session ready (%d modules accessible, source=%s)",
            len(self._cache.accessible_modules()),
            self._cache.snapshot.source.value if self._cache.snapshot else "-",
        )
        self.guard.enforce(self._cache.snapshot)

    async def refresh(self) -> bool:
        """Re-pull now, e.g. right after this user edited permissions themselves."""
        if self._ended:
            return False
        return await self._reconciler.refresh("manual")

    async def on_visibility_change(self, visible: bool) -> bool:
        if self._ended:
            return False
        return await self._reconciler.on_visibility_change(visible)

    def on_location_change(self, path: Optional[str] = None) -> RouteCheck:
        """Guard the new location. Before the first snapshot nothing is redirected."""
        if self._ended or not self._cache.ready:
            if path is None:
                return self.guard.check_current_route(None)
            return self.guard.check(path, None)
        return self.guard.enforce(self._cache.snapshot, path)

    async def switch_tenant(self, tenant_id: str, tenant_role: Union[TenantRole, str, None]) -> None:
        """Release the old tenant's subscription and bootstrap for the new one."""
        if self._ended:
            self.logger.warning("switch_tenant() called on an ended session")
            return
        identity = self._cache.identity.with_tenant(tenant_id, tenant_role)
        await self._reconciler.stop()
        self._cache.reset(identity)
        self.logger.bind(identity)
        self._reconciler = self._new_reconciler()
        await self.start()

    async def end(self) -> None:
        """Session-ended signal (sign-out). Idempotent."""
        if self._ended:
            return
        self._ended = True
        await self._reconciler.stop()
        self._cache.dispose()
        self.logger.info("Authorization session ended")

    async def __aenter__(self) -> "AuthorizationSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.end()

    # ── State ────────────────────────────────────────────

    @property
    def identity(self) -> EffectiveIdentity:
        return self._cache.identity

    @property
    def state(self) -> CacheState:
        return self._cache.state

    @property
    def snapshot(self) -> Optional[PermissionSnapshot]:
        return self._cache.snapshot

    @property
    def ready(self) -> bool:
        return self._cache.ready

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def last_updated(self) -> Optional[float]:
        return self._cache.last_updated

    @property
    def cache(self) -> PermissionCache:
        return self._cache

    @property
    def reconciler(self) -> ChangeReconciler:
        return self._reconciler

    # ── Queries ──────────────────────────────────────────

    def can_perform(self, module: ModuleLike, action: ActionLike) -> bool:
        return self._cache.can_perform(module, action)

    def has_permission(self, key: str) -> bool:
        return self._cache.has_permission(key)

    def has_module_access(self, module: ModuleLike) -> bool:
        return self._cache.has_module_access(module)

    def has_min_role(self, min_role: Union[TenantRole, str]) -> bool:
        return self._cache.has_min_role(min_role)

    def accessible_modules(self) -> list[PermissionModule]:
        return self._cache.accessible_modules()

    def enabled_modules(self) -> list[str]:
        return self._cache.enabled_modules()

    def has_any_permission(self) -> bool:
        return self._cache.has_any_permission()

    def permissions(self) -> dict[str, bool]:
        return self._cache.permissions()

    def show_create(self, module: ModuleLike) -> bool:
        return self._cache.can_perform(module, PermissionAction.CREATE)

    def show_edit(self, module: ModuleLike) -> bool:
        return self._cache.can_perform(module, PermissionAction.EDIT)

    def show_delete(self, module: ModuleLike) -> bool:
        return self._cache.can_perform(module, PermissionAction.DELETE)

    def can_bulk(self, module: ModuleLike) -> bool:
        return self._cache.can_perform(module, PermissionAction.BULK)

    def can_import(self, module: ModuleLike) -> bool:
        return self._cache.can_perform(module, PermissionAction.IMPORT)

    def can_export(self, module: ModuleLike) -> bool:
        return self._cache.can_perform(module, PermissionAction.EXPORT)

    @property
    def ui(self) -> UiVisibility:
        """Section-level visibility. All hidden until the first snapshot lands."""
        if not self._cache.ready:
            return UiVisibility()
        identity = self._cache.identity
        cache = self._cache
        return UiVisibility(
            show_billing=identity.is_owner or identity.is_super_admin,
            show_team_management=cache.can_perform(PermissionModule.TEAM_MEMBERS, PermissionAction.VIEW),
            can_edit_team_roles=cache.can_perform(PermissionModule.TEAM_MEMBERS, PermissionAction.MANAGE),
            show_ownership_transfer=identity.is_owner,
            show_bulk_actions=cache.has_min_role(TenantRole.MANAGER),
            show_import_export=cache.has_min_role(TenantRole.MANAGER),
            show_super_admin_panel=identity.is_super_admin,
        )


__all__ = [
    "AuthorizationSession",
    "UiVisibility",
]
