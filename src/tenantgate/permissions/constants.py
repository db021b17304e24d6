"""Role, module and action constants for tenantgate.

Provides:
- ``PlatformRole`` — platform-scoped super-role (no rank, always wins).
- ``TenantRole`` — roles assigned within an organization, with fixed ranks.
- ``PermissionModule`` — canonical business module identifiers.
- ``PermissionAction`` — closed set of actions, including the ``manage`` umbrella.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class PlatformRole(str, Enum):
    """Platform-level role. Orthogonal to tenant roles; bypasses tenant boundaries."""

    SUPER_ADMIN = "super_admin"


class TenantRole(str, Enum):
    """Organization role (matches the ``org_role`` enum in the remote store).

    Ranks live in :data:`ROLE_RANKS`; higher rank = more permissions.
    """

    OWNER = "owner"
    MANAGER = "manager"
    ACCOUNTS = "accounts"
    SALES_STAFF = "sales_staff"
    DESIGNER = "designer"
    EMPLOYEE = "employee"

    @property
    def rank(self) -> int:
        return ROLE_RANKS[self]


class PermissionAction(str, Enum):
    """Actions a role may perform on a module.

    ``MANAGE`` is an umbrella for create + edit + delete, consulted as a
    fallback only; it is never implied by those actions.
    """

    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    BULK = "bulk"
    IMPORT = "import"
    EXPORT = "export"
    MANAGE = "manage"


class PermissionModule(str, Enum):
    """Canonical permission modules. Aliases are resolved by the registry."""

    DASHBOARD = "dashboard"
    INVOICES = "invoices"
    PAYMENTS = "payments"
    QUOTATIONS = "quotations"
    PRICE_CALCULATIONS = "price_calculations"
    DELIVERY_CHALLANS = "delivery_challans"
    CUSTOMERS = "customers"
    VENDORS = "vendors"
    EXPENSES = "expenses"
    EXPENSE_CATEGORIES = "expense_categories"
    EMPLOYEES = "employees"
    ATTENDANCE = "attendance"
    SALARY = "salary"
    LEAVE = "leave"
    PERFORMANCE = "performance"
    TASKS = "tasks"
    REPORTS = "reports"
    TEAM_MEMBERS = "team_members"
    SETTINGS = "settings"
    BILLING = "billing"
    ANALYTICS = "analytics"


# ── Role hierarchy ──────────────────────────────────────
# Build-time only; never reordered at runtime.

ROLE_RANKS: Mapping[TenantRole, int] = MappingProxyType(
    {
        TenantRole.OWNER: 100,  # Full control
        TenantRole.MANAGER: 75,  # Operational control (no ownership/billing)
        TenantRole.ACCOUNTS: 50,  # Finance-related modules
        TenantRole.SALES_STAFF: 40,  # Sales modules only
        TenantRole.DESIGNER: 35,  # Design/job-related modules only
        TenantRole.EMPLOYEE: 25,  # Limited operational access
    }
)

# Highest rank first
TENANT_ROLES: tuple[TenantRole, ...] = tuple(sorted(ROLE_RANKS, key=ROLE_RANKS.__getitem__, reverse=True))

TOP_ROLE = TENANT_ROLES[0]

MANAGED_ACTIONS = frozenset({PermissionAction.CREATE, PermissionAction.EDIT, PermissionAction.DELETE})


# ── Display ─────────────────────────────────────────────

ROLE_DISPLAY: Mapping[TenantRole, str] = MappingProxyType(
    {
        TenantRole.OWNER: "Owner",
        TenantRole.MANAGER: "Manager",
        TenantRole.ACCOUNTS: "Accounts",
        TenantRole.SALES_STAFF: "Sales Staff",
        TenantRole.DESIGNER: "Designer",
        TenantRole.EMPLOYEE: "Employee",
    }
)

ROLE_DESCRIPTIONS: Mapping[TenantRole, str] = MappingProxyType(
    {
        TenantRole.OWNER: "Full control over organization settings, billing, team management, and all operations",
        TenantRole.MANAGER: "Manage team members (no role changes), invoices, customers, and daily operations",
        TenantRole.ACCOUNTS: "Financial operations: create/edit invoices, manage expenses and financial records",
        TenantRole.SALES_STAFF: "Sales operations: manage customers, quotations, invoices, and price calculations",
        TenantRole.DESIGNER: "Design operations: view quotations, manage tasks, and price calculations",
        TenantRole.EMPLOYEE: "Basic operations: view data, limited create/edit access",
    }
)

MODULE_DISPLAY: Mapping[PermissionModule, str] = MappingProxyType(
    {
        PermissionModule.DASHBOARD: "Dashboard",
        PermissionModule.INVOICES: "Invoices",
        PermissionModule.PAYMENTS: "Payments",
        PermissionModule.QUOTATIONS: "Quotations",
        PermissionModule.PRICE_CALCULATIONS: "Price Calculations",
        PermissionModule.DELIVERY_CHALLANS: "Delivery Challans",
        PermissionModule.CUSTOMERS: "Customers",
        PermissionModule.VENDORS: "Vendors",
        PermissionModule.EXPENSES: "Expenses",
        PermissionModule.EXPENSE_CATEGORIES: "Expense Categories",
        PermissionModule.EMPLOYEES: "Employees",
        PermissionModule.ATTENDANCE: "Attendance",
        PermissionModule.SALARY: "Salary",
        PermissionModule.LEAVE: "Leave Management",
        PermissionModule.PERFORMANCE: "Performance",
        PermissionModule.TASKS: "Tasks",
        PermissionModule.REPORTS: "Reports",
        PermissionModule.TEAM_MEMBERS: "Team Members",
        PermissionModule.SETTINGS: "Settings",
        PermissionModule.BILLING: "Billing",
        PermissionModule.ANALYTICS: "Analytics",
    }
)


__all__ = [
    "MANAGED_ACTIONS",
    "MODULE_DISPLAY",
    "PermissionAction",
    "PermissionModule",
    "PlatformRole",
    "ROLE_DESCRIPTIONS",
    "ROLE_DISPLAY",
    "ROLE_RANKS",
    "TENANT_ROLES",
    "TOP_ROLE",
    "TenantRole",
]
