"""Default permission matrix: module × action → roles allowed by default.

The matrix is the fallback used when a tenant has no override for a key.
It is defined once at build time and mirrored by the backend that performs
the real enforcement; changing it requires a new release.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional, Union

from .constants import (
    MANAGED_ACTIONS,
    PermissionAction,
    PermissionModule,
    PlatformRole,
    TenantRole,
)
from .registry import (
    ActionLike,
    ModuleLike,
    canonicalize,
    coerce_action,
    coerce_platform_role,
    coerce_role,
)

_A = PermissionAction
_M = PermissionModule

OWNER = TenantRole.OWNER
MANAGER = TenantRole.MANAGER
ACCOUNTS = TenantRole.ACCOUNTS
SALES = TenantRole.SALES_STAFF
DESIGNER = TenantRole.DESIGNER
EMPLOYEE = TenantRole.EMPLOYEE

ALL_ROLES = (OWNER, MANAGER, ACCOUNTS, SALES, DESIGNER, EMPLOYEE)

_MATRIX: dict[PermissionModule, dict[PermissionAction, tuple[TenantRole, ...]]] = {
    _M.DASHBOARD: {
        _A.VIEW: ALL_ROLES,
    },
    _M.CUSTOMERS: {
        _A.VIEW: (OWNER, MANAGER, ACCOUNTS, SALES, EMPLOYEE),
        _A.MANAGE: (OWNER, MANAGER, SALES),
        _A.CREATE: (OWNER, MANAGER, SALES),
        _A.EDIT: (OWNER, MANAGER, SALES),
        _A.DELETE: (OWNER, MANAGER),
        _A.BULK: (OWNER, MANAGER),
        _A.IMPORT: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.INVOICES: {
        _A.VIEW: (OWNER, MANAGER, ACCOUNTS, SALES, EMPLOYEE),
        _A.MANAGE: (OWNER, MANAGER, ACCOUNTS, SALES),
        _A.CREATE: (OWNER, MANAGER, ACCOUNTS, SALES),
        _A.EDIT: (OWNER, MANAGER, ACCOUNTS, SALES),
        _A.DELETE: (OWNER, MANAGER),
        _A.BULK: (OWNER, MANAGER),
        _A.IMPORT: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.PAYMENTS: {
        _A.VIEW: (OWNER, MANAGER, ACCOUNTS, SALES),
        _A.MANAGE: (OWNER, MANAGER, ACCOUNTS),
        _A.CREATE: (OWNER, MANAGER, ACCOUNTS),
        _A.EDIT: (OWNER, MANAGER, ACCOUNTS),
        _A.DELETE: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.QUOTATIONS: {
        _A.VIEW: (OWNER, MANAGER, SALES, DESIGNER),
        _A.MANAGE: (OWNER, MANAGER, SALES),
        _A.CREATE: (OWNER, MANAGER, SALES),
        _A.EDIT: (OWNER, MANAGER, SALES),
        _A.DELETE: (OWNER, MANAGER),
        _A.BULK: (OWNER, MANAGER),
        _A.IMPORT: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.PRICE_CALCULATIONS: {
        _A.VIEW: (OWNER, MANAGER, ACCOUNTS, SALES, DESIGNER),
        _A.MANAGE: (OWNER, MANAGER),
        _A.CREATE: (OWNER, MANAGER),
        _A.EDIT: (OWNER, MANAGER),
        _A.DELETE: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.DELIVERY_CHALLANS: {
        _A.VIEW: (OWNER, MANAGER, ACCOUNTS, SALES, EMPLOYEE),
        _A.MANAGE: (OWNER, MANAGER, SALES),
        _A.CREATE: (OWNER, MANAGER, SALES),
        _A.EDIT: (OWNER, MANAGER, SALES),
        _A.DELETE: (OWNER, MANAGER),
        _A.BULK: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.EXPENSES: {
        _A.VIEW: (OWNER, MANAGER, ACCOUNTS),
        _A.MANAGE: (OWNER, MANAGER, ACCOUNTS),
        _A.CREATE: (OWNER, MANAGER, ACCOUNTS),
        _A.EDIT: (OWNER, MANAGER),
        _A.DELETE: (OWNER,),
        _A.BULK: (OWNER, MANAGER),
        _A.IMPORT: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.EXPENSE_CATEGORIES: {
        _A.VIEW: (OWNER, MANAGER, ACCOUNTS),
        _A.MANAGE: (OWNER, MANAGER),
        _A.CREATE: (OWNER, MANAGER),
        _A.EDIT: (OWNER, MANAGER),
        _A.DELETE: (OWNER, MANAGER),
    },
    _M.VENDORS: {
        _A.VIEW: (OWNER, MANAGER, ACCOUNTS),
        _A.MANAGE: (OWNER, MANAGER, ACCOUNTS),
        _A.CREATE: (OWNER, MANAGER, ACCOUNTS),
        _A.EDIT: (OWNER, MANAGER),
        _A.DELETE: (OWNER,),
        _A.BULK: (OWNER, MANAGER),
        _A.IMPORT: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.EMPLOYEES: {
        _A.VIEW: (OWNER, MANAGER, ACCOUNTS),
        _A.MANAGE: (OWNER, MANAGER),
        _A.CREATE: (OWNER, MANAGER),
        _A.EDIT: (OWNER, MANAGER),
        _A.DELETE: (OWNER,),
        _A.BULK: (OWNER,),
        _A.IMPORT: (OWNER,),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.ATTENDANCE: {
        _A.VIEW: ALL_ROLES,
        _A.MANAGE: (OWNER, MANAGER),
        _A.CREATE: (OWNER, MANAGER),
        _A.EDIT: (OWNER, MANAGER),
        _A.DELETE: (OWNER,),
        _A.BULK: (OWNER,),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.SALARY: {
        _A.VIEW: (OWNER, ACCOUNTS),
        _A.MANAGE: (OWNER,),
        _A.CREATE: (OWNER,),
        _A.EDIT: (OWNER,),
        _A.DELETE: (OWNER,),
        _A.EXPORT: (OWNER,),
    },
    _M.LEAVE: {
        _A.VIEW: ALL_ROLES,
        _A.MANAGE: (OWNER, MANAGER),
        _A.CREATE: ALL_ROLES,
        _A.EDIT: (OWNER, MANAGER),
        _A.DELETE: (OWNER,),
    },
    _M.PERFORMANCE: {
        _A.VIEW: (OWNER, MANAGER),
        _A.MANAGE: (OWNER, MANAGER),
        _A.CREATE: (OWNER, MANAGER),
        _A.EDIT: (OWNER, MANAGER),
        _A.DELETE: (OWNER,),
    },
    _M.TASKS: {
        _A.VIEW: ALL_ROLES,
        _A.MANAGE: ALL_ROLES,
        _A.CREATE: ALL_ROLES,
        _A.EDIT: ALL_ROLES,
        _A.DELETE: (OWNER, MANAGER),
        _A.BULK: (OWNER, MANAGER),  # archive
        _A.EXPORT: (OWNER,),  # restore
    },
    _M.REPORTS: {
        _A.VIEW: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
    _M.SETTINGS: {
        _A.VIEW: (OWNER, MANAGER),
        _A.MANAGE: (OWNER,),
        _A.EDIT: (OWNER,),
    },
    _M.TEAM_MEMBERS: {
        _A.VIEW: (OWNER, MANAGER),
        _A.MANAGE: (OWNER,),
        _A.CREATE: (OWNER,),
        _A.EDIT: (OWNER,),
        _A.DELETE: (OWNER,),
    },
    _M.BILLING: {
        _A.VIEW: (OWNER,),
        _A.MANAGE: (OWNER,),
        _A.EDIT: (OWNER,),
    },
    _M.ANALYTICS: {
        _A.VIEW: (OWNER, MANAGER),
        _A.EXPORT: (OWNER, MANAGER),
    },
}

DEFAULT_PERMISSION_MATRIX: Mapping[PermissionModule, Mapping[PermissionAction, tuple[TenantRole, ...]]] = (
    MappingProxyType({module: MappingProxyType(actions) for module, actions in _MATRIX.items()})
)


def roles_for_action(module: ModuleLike, action: ActionLike) -> tuple[TenantRole, ...]:
    """Roles the matrix allows for ``(module, action)``; empty if none or unknown."""
    canonical = canonicalize(module)
    resolved = coerce_action(action)
    if not isinstance(canonical, PermissionModule) or resolved is None:
        return ()
    return DEFAULT_PERMISSION_MATRIX.get(canonical, {}).get(resolved, ())


def default_allows(
    role: Union[TenantRole, str, None],
    module: ModuleLike,
    action: ActionLike,
    *,
    platform_role: Union[PlatformRole, str, None] = None,
) -> bool:
    """Check whether the default matrix lets ``role`` perform ``action`` on ``module``.

    Checks in order:
    1. ``super_admin`` platform role — always allowed
    2. ``owner`` tenant role — always allowed
    3. exact ``(module, action)`` entry
    4. for create / edit / delete with no exact entry, the ``(module, manage)`` entry

    The first two are hard rules so no matrix edit can lock out the
    platform operator or a tenant's owner.

    Example::

        default_allows("sales_staff", "customers", "delete")  # False
        default_allows("sales_staff", "customers", "create")  # True
        default_allows("owner", "anything", "delete")         # True
    """
    if coerce_platform_role(platform_role) is PlatformRole.SUPER_ADMIN:
        return True

    resolved_role = coerce_role(role)
    if resolved_role is None:
        return False
    if resolved_role is TenantRole.OWNER:
        return True

    resolved_action = coerce_action(action)
    if resolved_action is None:
        return False

    canonical = canonicalize(module)
    if not isinstance(canonical, PermissionModule):
        return False
    entry = DEFAULT_PERMISSION_MATRIX.get(canonical, {})

    # manage only stands in for an action the module does not list
    if resolved_action in entry:
        return resolved_role in entry[resolved_action]
    if resolved_action in MANAGED_ACTIONS:
        return resolved_role in entry.get(PermissionAction.MANAGE, ())

    return False


__all__ = [
    "DEFAULT_PERMISSION_MATRIX",
    "default_allows",
    "roles_for_action",
]
