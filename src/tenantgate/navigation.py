"""Route ↔ module table and the navigation/notification contracts.

The host application owns routing and toasts; the engine only needs to
read the current location, request a redirect and show a short notice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Protocol

from .permissions import PermissionModule

logger = logging.getLogger(__name__)

ROUTE_MODULES: Mapping[str, PermissionModule] = MappingProxyType(
    {
        "/dashboard": PermissionModule.DASHBOARD,
        "/invoices": PermissionModule.INVOICES,
        "/payments": PermissionModule.PAYMENTS,
        "/quotations": PermissionModule.QUOTATIONS,
        "/price-calculations": PermissionModule.PRICE_CALCULATIONS,
        "/delivery-challans": PermissionModule.DELIVERY_CHALLANS,
        "/customers": PermissionModule.CUSTOMERS,
        "/vendors": PermissionModule.VENDORS,
        "/expenses": PermissionModule.EXPENSES,
        "/expenses/categories": PermissionModule.EXPENSE_CATEGORIES,
        "/employees": PermissionModule.EMPLOYEES,
        "/attendance": PermissionModule.ATTENDANCE,
        "/salary": PermissionModule.SALARY,
        "/leave": PermissionModule.LEAVE,
        "/performance": PermissionModule.PERFORMANCE,
        "/tasks": PermissionModule.TASKS,
        "/reports": PermissionModule.REPORTS,
        "/team-members": PermissionModule.TEAM_MEMBERS,
        "/settings": PermissionModule.SETTINGS,
        "/settings/billing": PermissionModule.BILLING,
        "/analytics": PermissionModule.ANALYTICS,
    }
)

MODULE_ROUTES: Mapping[PermissionModule, str] = MappingProxyType({m: r for r, m in ROUTE_MODULES.items()})


def normalize_path(path: Optional[str]) -> str:
    """Strip query string, fragment and trailing slash. Empty → ``/``."""
    if not path:
        return "/"
    path = path.split("#", 1)[0].split("?", 1)[0].strip()
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def resolve_route(path: Optional[str], routes: Mapping[str, PermissionModule] = ROUTE_MODULES) -> Optional[PermissionModule]:
    """Module protecting ``path``, or None when the route is unprotected.

    Exact match first, then the longest route that is a prefix of ``path``
    on a segment boundary (``/invoices`` covers ``/invoices/42`` but not
    ``/invoices-archive``). The root route never matches as a prefix.
    """
    normalized = normalize_path(path)
    if normalized in routes:
        return routes[normalized]

    best: Optional[str] = None
    best_len = 0
    for route in routes:
        prefix = normalize_path(route)
        if prefix == "/":
            continue
        if normalized.startswith(prefix + "/") and len(prefix) > best_len:
            best, best_len = route, len(prefix)
    return routes[best] if best is not None else None


class Navigator(Protocol):
    """Host router."""

    def current_location(self) -> str: ...

    def navigate(self, path: str, replace: bool = True) -> None: ...


@dataclass(frozen=True)
class Notice:
    """A short, non-blocking user notification."""

    level: str  # "info" | "warning"
    title: str
    description: str = ""


class Notifier(Protocol):
    """Host toast/notification surface."""

    def notify(self, notice: Notice) -> None: ...


class LoggingNotifier:
    """Notifier that only writes notices to the log. Used when the host supplies none."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def notify(self, notice: Notice) -> None:
        level = logging.WARNING if notice.level == "warning" else logging.INFO
        self._log.log(level, "%s: %s", notice.title, notice.description)


__all__ = [
    "LoggingNotifier",
    "MODULE_ROUTES",
    "Navigator",
    "Notice",
    "Notifier",
    "ROUTE_MODULES",
    "normalize_path",
    "resolve_route",
]
