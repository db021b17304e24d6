"""Tests for effective identity resolution and impersonation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tenantgate import (
    EffectiveIdentity,
    IdentityError,
    Impersonation,
    PlatformRole,
    TenantRole,
    resolve_identity,
)


def _provider(user="u1", platform=None, tenant="t1", role="manager") -> MagicMock:
    provider = MagicMock()
    provider.current_user_id.return_value = user
    provider.current_platform_role.return_value = platform
    provider.current_tenant_id.return_value = tenant
    provider.current_tenant_role.return_value = role
    return provider


class TestEffectiveIdentity:
    """Tests for EffectiveIdentity."""

    def test_roles_coerced_from_strings(self) -> None:
        identity = EffectiveIdentity(user_id="u1", tenant_id="t1", tenant_role="Sales_Staff", platform_role="super_admin")
        assert identity.tenant_role is TenantRole.SALES_STAFF
        assert identity.platform_role is PlatformRole.SUPER_ADMIN

    def test_unknown_tenant_role_raises(self) -> None:
        with pytest.raises(IdentityError) as exc_info:
            EffectiveIdentity(tenant_id="t1", tenant_role="janitor")
        assert exc_info.value.code == "IDENTITY_ERROR"
        assert exc_info.value.details["tenant_role"] == "janitor"

    def test_unknown_platform_role_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            EffectiveIdentity(platform_role="root")

    def test_bypass_flags(self) -> None:
        assert EffectiveIdentity(tenant_id="t1", tenant_role="owner").bypass
        assert EffectiveIdentity(platform_role="super_admin").bypass
        assert not EffectiveIdentity(tenant_id="t1", tenant_role="manager").bypass
        assert not EffectiveIdentity().bypass

    def test_role_label(self) -> None:
        assert EffectiveIdentity(tenant_role="accounts").role_label == "accounts"
        assert EffectiveIdentity(tenant_role="accounts", platform_role="super_admin").role_label == "super_admin"
        assert EffectiveIdentity().role_label is None

    def test_with_tenant(self) -> None:
        identity = EffectiveIdentity(user_id="u1", tenant_id="t1", tenant_role="manager")
        moved = identity.with_tenant("t2", "employee")
        assert moved.user_id == "u1"
        assert moved.tenant_id == "t2"
        assert moved.tenant_role is TenantRole.EMPLOYEE
        assert identity.tenant_id == "t1"


class TestResolveIdentity:
    """Tests for resolve_identity()."""

    def test_from_provider(self) -> None:
        identity = resolve_identity(_provider())
        assert identity == EffectiveIdentity(user_id="u1", tenant_id="t1", tenant_role=TenantRole.MANAGER)
        assert not identity.impersonating

    def test_impersonation_drops_platform_bypass(self) -> None:
        provider = _provider(platform="super_admin", tenant=None, role=None)
        identity = resolve_identity(provider, Impersonation("t9", "employee"))
        assert identity.tenant_id == "t9"
        assert identity.tenant_role is TenantRole.EMPLOYEE
        assert identity.platform_role is None
        assert identity.impersonating
        assert not identity.bypass

    def test_impersonation_defaults_to_owner(self) -> None:
        provider = _provider(platform="super_admin")
        identity = resolve_identity(provider, Impersonation("t9"))
        assert identity.tenant_role is TenantRole.OWNER
        assert identity.is_owner and not identity.is_super_admin

    def test_only_super_admin_may_impersonate(self) -> None:
        with pytest.raises(IdentityError):
            resolve_identity(_provider(platform=None), Impersonation("t9"))

    def test_impersonation_validates_inputs(self) -> None:
        with pytest.raises(IdentityError):
            Impersonation("")
        with pytest.raises(IdentityError):
            Impersonation("t1", "janitor")
