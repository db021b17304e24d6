"""Effective identity for an authorization session.

The identity is computed once per session start from the out-of-scope
identity subsystem (``IdentityProvider``) and an optional explicit
``Impersonation``. Every bypass decision reads this single value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Union

from .exceptions import IdentityError
from .permissions import PlatformRole, TenantRole, coerce_platform_role, coerce_role


class IdentityProvider(Protocol):
    """Read side of the authentication/session subsystem."""

    def current_user_id(self) -> Optional[str]: ...

    def current_platform_role(self) -> Optional[Union[PlatformRole, str]]: ...

    def current_tenant_id(self) -> Optional[str]: ...

    def current_tenant_role(self) -> Optional[Union[TenantRole, str]]: ...


@dataclass(frozen=True)
class Impersonation:
    """A platform operator acting as a role inside a tenant."""

    tenant_id: str
    role: Union[TenantRole, str] = TenantRole.OWNER

    def __post_init__(self) -> None:
        if not self.tenant_id:
            raise IdentityError("Impersonation requires a tenant_id")
        role = coerce_role(self.role)
        if role is None:
            raise IdentityError(f"Unknown tenant role for impersonation: {self.role!r}")
        object.__setattr__(self, "role", role)


@dataclass(frozen=True)
class EffectiveIdentity:
    """Who the engine is deciding for.

    - user_id: Authenticated user (None for anonymous/system)
    - tenant_id: Active organization (None = no tenant selected)
    - tenant_role: Role within that organization
    - platform_role: Platform super-role, if any
    - impersonating: True when a platform operator acts as a tenant role

    Role strings are coerced to enums at construction; unknown values raise
    ``IdentityError`` instead of silently falling through to a default.
    """

    user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    tenant_role: Optional[Union[TenantRole, str]] = None
    platform_role: Optional[Union[PlatformRole, str]] = None
    impersonating: bool = False

    def __post_init__(self) -> None:
        if self.tenant_role is not None:
            role = coerce_role(self.tenant_role)
            if role is None:
                raise IdentityError(f"Unknown tenant role: {self.tenant_role!r}", tenant_role=self.tenant_role)
            object.__setattr__(self, "tenant_role", role)
        if self.platform_role is not None:
            platform = coerce_platform_role(self.platform_role)
            if platform is None:
                raise IdentityError(f"Unknown platform role: {self.platform_role!r}", platform_role=self.platform_role)
            object.__setattr__(self, "platform_role", platform)

    @property
    def is_super_admin(self) -> bool:
        return self.platform_role is PlatformRole.SUPER_ADMIN

    @property
    def is_owner(self) -> bool:
        return self.tenant_role is TenantRole.OWNER

    @property
    def bypass(self) -> bool:
        """Super-role or owner: every check passes without consulting overrides."""
        return self.is_super_admin or self.is_owner

    @property
    def role_label(self) -> Optional[str]:
        if self.is_super_admin:
            return PlatformRole.SUPER_ADMIN.value
        return self.tenant_role.value if self.tenant_role else None

    def with_tenant(self, tenant_id: str, tenant_role: Union[TenantRole, str, None]) -> "EffectiveIdentity":
        """Same user and platform role in another tenant."""
        return EffectiveIdentity(
            user_id=self.user_id,
            tenant_id=tenant_id,
            tenant_role=tenant_role,
            platform_role=self.platform_role,
            impersonating=False,
        )


def resolve_identity(
    provider: IdentityProvider,
    impersonation: Optional[Impersonation] = None,
) -> EffectiveIdentity:
    """Compute the effective identity once for a session.

    When impersonating, the impersonated tenant and role replace the
    provider's, and the platform bypass is dropped so the operator sees
    exactly what that role sees.
    """
    platform_role = provider.current_platform_role()
    if impersonation is not None:
        if coerce_platform_role(platform_role) is not PlatformRole.SUPER_ADMIN:
            raise IdentityError("Only platform operators can impersonate a tenant role")
        return EffectiveIdentity(
            user_id=provider.current_user_id(),
            tenant_id=impersonation.tenant_id,
            tenant_role=impersonation.role,
            platform_role=None,
            impersonating=True,
        )

    return EffectiveIdentity(
        user_id=provider.current_user_id(),
        tenant_id=provider.current_tenant_id(),
        tenant_role=provider.current_tenant_role(),
        platform_role=platform_role,
    )


__all__ = [
    "EffectiveIdentity",
    "IdentityProvider",
    "Impersonation",
    "resolve_identity",
]
