"""Tests for the role/module registry and the default permission matrix."""

from __future__ import annotations

import pytest

from tenantgate import (
    DEFAULT_PERMISSION_MATRIX,
    MODULE_ALIASES,
    PermissionAction,
    PermissionModule,
    PlatformRole,
    TenantRole,
    at_least,
    canonicalize,
    default_allows,
    permission_key,
)
from tenantgate import permissions
from tenantgate.permissions import (
    MODULE_DISPLAY,
    ROLE_DISPLAY,
    ROLE_RANKS,
    TENANT_ROLES,
    TOP_ROLE,
    coerce_action,
    coerce_role,
    matrix,
    module_aliases,
    parse_permission_key,
    roles_for_action,
)


class TestRoles:
    """Tests for the ranked tenant roles."""

    def test_roles_ordered_highest_first(self) -> None:
        ranks = [ROLE_RANKS[role] for role in TENANT_ROLES]
        assert ranks == sorted(ranks, reverse=True)
        assert TENANT_ROLES[0] is TenantRole.OWNER
        assert TOP_ROLE is TenantRole.OWNER

    def test_rank_property(self) -> None:
        assert TenantRole.OWNER.rank == 100
        assert TenantRole.EMPLOYEE.rank == 25
        assert TenantRole.MANAGER.rank > TenantRole.ACCOUNTS.rank > TenantRole.SALES_STAFF.rank

    def test_every_role_has_display_name(self) -> None:
        for role in TenantRole:
            assert ROLE_DISPLAY[role]

    @pytest.mark.parametrize(
        ("role", "minimum", "expected"),
        [
            (TenantRole.OWNER, TenantRole.MANAGER, True),
            (TenantRole.MANAGER, TenantRole.MANAGER, True),
            (TenantRole.MANAGER, TenantRole.ACCOUNTS, True),
            ("employee", "manager", False),
            ("designer", "sales_staff", False),
            (None, "employee", False),
            ("bogus", "employee", False),
        ],
    )
    def test_at_least(self, role, minimum, expected) -> None:
        assert at_least(role, minimum) is expected

    def test_coerce_role(self) -> None:
        assert coerce_role("Manager") is TenantRole.MANAGER
        assert coerce_role(" sales_staff ") is TenantRole.SALES_STAFF
        assert coerce_role("bogus") is None
        assert coerce_role(None) is None


class TestModuleAliases:
    """Tests for alias resolution."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("team", PermissionModule.TEAM_MEMBERS),
            ("payroll", PermissionModule.SALARY),
            ("challan", PermissionModule.DELIVERY_CHALLANS),
            ("challans", PermissionModule.DELIVERY_CHALLANS),
            ("price_calculation", PermissionModule.PRICE_CALCULATIONS),
            ("leave_management", PermissionModule.LEAVE),
            ("expense_category", PermissionModule.EXPENSE_CATEGORIES),
            ("Invoices", PermissionModule.INVOICES),
            (PermissionModule.CUSTOMERS, PermissionModule.CUSTOMERS),
        ],
    )
    def test_canonicalize_known(self, raw, expected) -> None:
        assert canonicalize(raw) is expected

    def test_canonicalize_unknown_resolves_to_itself(self) -> None:
        assert canonicalize("spaceships") == "spaceships"
        assert canonicalize(" Spaceships ") == "spaceships"

    def test_every_alias_round_trips(self) -> None:
        """Every alias canonicalizes to its module, and the canonical name to itself."""
        for module, aliases in MODULE_ALIASES.items():
            assert canonicalize(module.value) is module
            for alias in aliases:
                assert canonicalize(alias) is module

    def test_module_aliases_lists_canonical_first(self) -> None:
        assert module_aliases("team") == ("team_members", "team")
        assert module_aliases(PermissionModule.INVOICES) == ("invoices",)
        assert module_aliases("spaceships") == ("spaceships",)

    def test_every_module_has_display_name(self) -> None:
        for module in PermissionModule:
            assert MODULE_DISPLAY[module]


class TestExports:
    """Tests for the permissions package surface."""

    def test_every_export_resolves(self) -> None:
        for name in permissions.__all__:
            assert hasattr(permissions, name), name

    def test_managed_actions_are_create_edit_delete(self) -> None:
        assert permissions.MANAGED_ACTIONS == {PermissionAction.CREATE, PermissionAction.EDIT, PermissionAction.DELETE}


class TestPermissionKeys:
    """Tests for the "module.action" codec."""

    def test_permission_key_canonicalizes(self) -> None:
        assert permission_key("team", "view") == "team_members.view"
        assert permission_key(PermissionModule.INVOICES, PermissionAction.DELETE) == "invoices.delete"

    def test_parse_permission_key(self) -> None:
        assert parse_permission_key("invoices.view") == (PermissionModule.INVOICES, PermissionAction.VIEW)
        assert parse_permission_key("price_calculation.create") == (
            PermissionModule.PRICE_CALCULATIONS,
            PermissionAction.CREATE,
        )
        assert parse_permission_key("spaceships.view") == ("spaceships", PermissionAction.VIEW)

    @pytest.mark.parametrize("key", ["invoices", "invoices.", ".view", "invoices.fly", "", None])
    def test_parse_permission_key_rejects_malformed(self, key) -> None:
        assert parse_permission_key(key) is None

    def test_coerce_action(self) -> None:
        assert coerce_action("VIEW") is PermissionAction.VIEW
        assert coerce_action("fly") is None


class TestDefaultMatrix:
    """Tests for default_allows()."""

    def test_matrix_covers_every_module(self) -> None:
        assert set(DEFAULT_PERMISSION_MATRIX) == set(PermissionModule)

    def test_sales_staff_cannot_delete_customers(self) -> None:
        """A sales_staff role without overrides cannot delete customers."""
        assert default_allows("sales_staff", "customers", "delete") is False
        assert default_allows("sales_staff", "customers", "create") is True
        assert default_allows("sales_staff", "customers", "view") is True

    @pytest.mark.parametrize(
        ("role", "module", "action"),
        [
            ("accounts", "expenses", "edit"),
            ("accounts", "expenses", "delete"),
            ("accounts", "vendors", "edit"),
            ("accounts", "vendors", "delete"),
            ("sales_staff", "invoices", "delete"),
            ("manager", "employees", "delete"),
        ],
    )
    def test_explicit_entry_not_widened_by_manage(self, role, module, action) -> None:
        """A listed action is decided by its own entry even when the role holds manage."""
        assert role in roles_for_action(module, "manage")
        assert default_allows(role, module, action) is False

    def test_manage_covers_unlisted_actions(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            matrix,
            "DEFAULT_PERMISSION_MATRIX",
            {PermissionModule.BILLING: {PermissionAction.VIEW: (), PermissionAction.MANAGE: (TenantRole.MANAGER,)}},
        )
        assert default_allows("manager", "billing", "create") is True
        assert default_allows("manager", "billing", "delete") is True
        assert default_allows("manager", "billing", "view") is False
        assert default_allows("manager", "billing", "export") is False
        assert default_allows("accounts", "billing", "create") is False

    def test_owner_always_allowed(self) -> None:
        for module in PermissionModule:
            for action in PermissionAction:
                assert default_allows(TenantRole.OWNER, module, action)
        assert default_allows("owner", "spaceships", "view")

    def test_super_admin_allowed_without_tenant_role(self) -> None:
        assert default_allows(None, "salary", "delete", platform_role=PlatformRole.SUPER_ADMIN)
        assert default_allows(None, "salary", "delete", platform_role="super_admin")

    def test_alias_lookup_matches_canonical(self) -> None:
        assert default_allows("manager", "team", "view") is True
        assert default_allows("employee", "payroll", "view") is False
        assert default_allows("accounts", "payroll", "view") is True

    def test_unknown_values_deny(self) -> None:
        assert default_allows("manager", "spaceships", "view") is False
        assert default_allows("manager", "invoices", "fly") is False
        assert default_allows(None, "dashboard", "view") is False
        assert default_allows("bogus", "dashboard", "view") is False

    def test_roles_for_action(self) -> None:
        assert roles_for_action("team", "view") == (TenantRole.OWNER, TenantRole.MANAGER)
        assert roles_for_action("spaceships", "view") == ()
        assert roles_for_action("invoices", "fly") == ()

    def test_every_role_can_view_dashboard(self) -> None:
        for role in TenantRole:
            assert default_allows(role, PermissionModule.DASHBOARD, PermissionAction.VIEW)
