"""Module alias resolution, permission keys and role ranking.

Provides:
- ``MODULE_ALIASES`` — canonical module → historical alias strings.
- ``canonicalize()`` — resolve a raw module name to its canonical identifier.
- ``module_aliases()`` — canonical name plus aliases, for key lookups.
- ``permission_key()`` / ``parse_permission_key()`` — ``"module.action"`` codec.
- ``at_least()`` — role rank comparison.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional, Union

from .constants import ROLE_RANKS, PermissionAction, PermissionModule, PlatformRole, TenantRole

ModuleLike = Union[PermissionModule, str]
ActionLike = Union[PermissionAction, str]

# ── Aliases ─────────────────────────────────────────────
# Stored override rows predate the current module names.

MODULE_ALIASES: Mapping[PermissionModule, tuple[str, ...]] = MappingProxyType(
    {
        PermissionModule.PRICE_CALCULATIONS: ("price_calculation",),
        PermissionModule.DELIVERY_CHALLANS: ("challan", "challans"),
        PermissionModule.TEAM_MEMBERS: ("team",),
        PermissionModule.SALARY: ("payroll",),
        PermissionModule.LEAVE: ("leave_management",),
        PermissionModule.EXPENSE_CATEGORIES: ("expense_category",),
    }
)

_CANONICAL_BY_NAME: dict[str, PermissionModule] = {module.value: module for module in PermissionModule}
for _module, _aliases in MODULE_ALIASES.items():
    for _alias in _aliases:
        _CANONICAL_BY_NAME[_alias] = _module


def canonicalize(raw: ModuleLike) -> ModuleLike:
    """Resolve a raw module name to its canonical identifier.

    Unknown names resolve to themselves (stripped and lower-cased). They
    match nothing in the default matrix, so checks against them deny.

    Example::

        canonicalize("team")        # PermissionModule.TEAM_MEMBERS
        canonicalize("invoices")    # PermissionModule.INVOICES
        canonicalize("spaceships")  # "spaceships"
    """
    if isinstance(raw, PermissionModule):
        return raw
    name = str(raw).strip().lower()
    return _CANONICAL_BY_NAME.get(name, name)


def module_aliases(module: ModuleLike) -> tuple[str, ...]:
    """Canonical name first, followed by every registered alias."""
    canonical = canonicalize(module)
    if isinstance(canonical, PermissionModule):
        return (canonical.value, *MODULE_ALIASES.get(canonical, ()))
    return (canonical,)


def coerce_action(action: ActionLike) -> Optional[PermissionAction]:
    """Return the PermissionAction for ``action`` or None if it is not one."""
    if isinstance(action, PermissionAction):
        return action
    try:
        return PermissionAction(str(action).strip().lower())
    except ValueError:
        return None


def module_name(module: ModuleLike) -> str:
    return module.value if isinstance(module, PermissionModule) else module


def permission_key(module: ModuleLike, action: ActionLike) -> str:
    """Build a canonical ``"module.action"`` key.

    Example::

        permission_key("team", "view")  # "team_members.view"
    """
    resolved = coerce_action(action)
    action_name = resolved.value if resolved else str(action).strip().lower()
    return f"{module_name(canonicalize(module))}.{action_name}"


def parse_permission_key(key: str) -> Optional[tuple[ModuleLike, PermissionAction]]:
    """Split a stored key into (canonical module, action).

    Splits on the first dot. Returns None for empty parts or an action
    outside :class:`PermissionAction`.
    """
    if not isinstance(key, str):
        return None
    module_raw, sep, action_raw = key.partition(".")
    if not sep or not module_raw.strip() or not action_raw.strip():
        return None
    action = coerce_action(action_raw)
    if action is None:
        return None
    return canonicalize(module_raw), action


def coerce_role(role: Union[TenantRole, str, None]) -> Optional[TenantRole]:
    """Return the TenantRole for ``role``; None for None or unknown values."""
    if role is None or isinstance(role, TenantRole):
        return role
    try:
        return TenantRole(str(role).strip().lower())
    except ValueError:
        return None


def coerce_platform_role(role: Union[PlatformRole, str, None]) -> Optional[PlatformRole]:
    if role is None or isinstance(role, PlatformRole):
        return role
    try:
        return PlatformRole(str(role).strip().lower())
    except ValueError:
        return None


def at_least(role: Union[TenantRole, str, None], min_role: Union[TenantRole, str]) -> bool:
    """Check that ``role`` ranks at or above ``min_role``.

    Example::

        at_least(TenantRole.MANAGER, TenantRole.ACCOUNTS)  # True
        at_least("employee", "manager")                     # False
        at_least(None, "employee")                          # False
    """
    resolved = coerce_role(role)
    minimum = coerce_role(min_role)
    if resolved is None or minimum is None:
        return False
    return ROLE_RANKS[resolved] >= ROLE_RANKS[minimum]


__all__ = [
    "MODULE_ALIASES",
    "at_least",
    "canonicalize",
    "coerce_action",
    "coerce_platform_role",
    "coerce_role",
    "module_aliases",
    "module_name",
    "parse_permission_key",
    "permission_key",
]
