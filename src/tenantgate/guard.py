"""Access guard: re-validate the current route against the live snapshot.

When the current location maps to a module the user can no longer view,
the guard shows a warning notice and redirects (replacing history) to a
safe route that is guaranteed to be unprotected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from .cache import PermissionSnapshot
from .exceptions import RedirectLoopError
from .navigation import ROUTE_MODULES, Navigator, Notice, Notifier, normalize_path, resolve_route
from .permissions import PermissionAction, PermissionModule, module_aliases

logger = logging.getLogger(__name__)

ACCESS_REVOKED_NOTICE = Notice(
    level="warning",
    title="Your access to this page has been revoked",
    description="Redirecting...",
)


@dataclass(frozen=True)
class RouteCheck:
    """Outcome of checking one location."""

    allowed: bool
    module: Optional[PermissionModule] = None
    path: str = ""

    @property
    def protected(self) -> bool:
        return self.module is not None


def can_view(snapshot: Optional[PermissionSnapshot], module: PermissionModule) -> bool:
    """``view`` allowed under the canonical module name or any of its aliases."""
    if snapshot is None:
        return False
    if snapshot.bypass:
        return True
    action = PermissionAction.VIEW.value
    return any(snapshot.grants.get(f"{name}.{action}") is True for name in module_aliases(module))


class AccessGuard:
    """Checks the navigator's location and redirects when access is gone.

    Args:
        navigator: Host router.
        notifier: Host notice surface.
        routes: Route prefix → module table.
        safe_route: Redirect target. Must resolve to no module.

    Raises:
        RedirectLoopError: ``safe_route`` is itself protected.
    """

    def __init__(
        self,
        navigator: Navigator,
        notifier: Notifier,
        *,
        routes: Mapping[str, PermissionModule] = ROUTE_MODULES,
        safe_route: str = "/",
    ) -> None:
        protected_by = resolve_route(safe_route, routes)
        if protected_by is not None:
            raise RedirectLoopError(
                f"Safe route {safe_route!r} is protected by module {protected_by.value!r}",
                safe_route=safe_route,
                module=protected_by.value,
            )
        self.navigator = navigator
        self.notifier = notifier
        self.routes = routes
        self.safe_route = normalize_path(safe_route)

    def check(self, path: Optional[str], snapshot: Optional[PermissionSnapshot]) -> RouteCheck:
        normalized = normalize_path(path)
        module = resolve_route(normalized, self.routes)
        if module is None:
            return RouteCheck(allowed=True, path=normalized)
        return RouteCheck(allowed=can_view(snapshot, module), module=module, path=normalized)

    def check_current_route(self, snapshot: Optional[PermissionSnapshot]) -> RouteCheck:
        try:
            path = self.navigator.current_location()
        except Exception as e:
            logger.error("Navigator failed to report the current location: %s", e)
            return RouteCheck(allowed=True, path="")
        return self.check(path, snapshot)

    def enforce(self, snapshot: Optional[PermissionSnapshot], path: Optional[str] = None) -> RouteCheck:
        """Check ``path`` (default: current location) and redirect if it is forbidden."""
        result = self.check(path, snapshot) if path is not None else self.check_current_route(snapshot)
        if result.allowed:
            return result

        logger.warning(
            "Access to %s (%s) revoked, redirecting to %s",
            result.path,
            result.module.value if result.module else "-",
            self.safe_route,
        )
        try:
            self.notifier.notify(ACCESS_REVOKED_NOTICE)
        except Exception as e:
            logger.error("Notifier failed: %s", e)
        try:
            self.navigator.navigate(self.safe_route, replace=True)
        except Exception as e:
            logger.error("Redirect to %s failed: %s", self.safe_route, e)
        return result


__all__ = [
    "ACCESS_REVOKED_NOTICE",
    "AccessGuard",
    "RouteCheck",
    "can_view",
]
