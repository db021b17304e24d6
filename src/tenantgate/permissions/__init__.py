"""Static permission registry and default matrix for tenantgate.

Defines:
- PlatformRole / TenantRole: the two-tier role model (super-role + ranked tenant roles)
- PermissionModule / PermissionAction: closed sets of modules and actions
- MODULE_ALIASES + canonicalize(): historical module names → canonical ids
- DEFAULT_PERMISSION_MATRIX + default_allows(): fallback when no override exists
"""

from .constants import (
    MANAGED_ACTIONS,
    MODULE_DISPLAY,
    ROLE_DESCRIPTIONS,
    ROLE_DISPLAY,
    ROLE_RANKS,
    TENANT_ROLES,
    TOP_ROLE,
    PermissionAction,
    PermissionModule,
    PlatformRole,
    TenantRole,
)
from .matrix import DEFAULT_PERMISSION_MATRIX, default_allows, roles_for_action
from .registry import (
    MODULE_ALIASES,
    at_least,
    canonicalize,
    coerce_action,
    coerce_platform_role,
    coerce_role,
    module_aliases,
    module_name,
    parse_permission_key,
    permission_key,
)

__all__ = [
    "DEFAULT_PERMISSION_MATRIX",
    "MANAGED_ACTIONS",
    "MODULE_ALIASES",
    "MODULE_DISPLAY",
    "ROLE_DESCRIPTIONS",
    "ROLE_DISPLAY",
    "ROLE_RANKS",
    "TENANT_ROLES",
    "TOP_ROLE",
    "PermissionAction",
    "PermissionModule",
    "PlatformRole",
    "TenantRole",
    "at_least",
    "canonicalize",
    "coerce_action",
    "coerce_platform_role",
    "coerce_role",
    "default_allows",
    "module_aliases",
    "module_name",
    "parse_permission_key",
    "permission_key",
    "roles_for_action",
]
