"""Unified exception hierarchy for tenantgate.

All errors inherit from TenantGateError. This module provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for mapping codes back to error classes

Usage:
    from tenantgate.exceptions import FetchError, SubscriptionLostError

Only construction-time errors (configuration, identity, redirect-loop risk)
ever reach callers. Fetch and subscription failures are recovered inside
the reconciler, and every query method returns a safe default instead of
raising.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "TenantGateError",
    "ConfigurationError",
    "IdentityError",
    "FetchError",
    "SubscriptionLostError",
    "RedirectLoopError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
]


# ---- Exception Hierarchy ----------------------------------------------------


class TenantGateError(Exception):
    """Base exception for the authorization engine.

    Attributes:
        code: Stable error code string (e.g. "FETCH_ERROR").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(TenantGateError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class IdentityError(TenantGateError, ValueError):
    """Identity carries a role or tenant value outside the registry."""

    code: str = "IDENTITY_ERROR"


class FetchError(TenantGateError):
    """Reading the override table from the remote store failed."""

    code: str = "FETCH_ERROR"
    message: str = "Failed to fetch permission overrides"


class SubscriptionLostError(TenantGateError):
    """The push channel for change notifications disconnected."""

    code: str = "SUBSCRIPTION_LOST"
    message: str = "Change feed subscription lost"


class RedirectLoopError(ConfigurationError):
    """The guard's safe route is itself protected by a permission check."""

    code: str = "REDIRECT_LOOP_RISK"


# ---- Error Registry ---------------------------------------------------------

_E = TypeVar("_E", bound=type[TenantGateError])


class ErrorRegistry:
    """Registry for mapping stable error codes to error classes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[TenantGateError]] = {}

    def register(self, code: str, error_cls: type[TenantGateError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[TenantGateError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[TenantGateError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("STALE_TENANT")
        class StaleTenantError(TenantGateError):
            code = "STALE_TENANT"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


# Register base errors
error_registry.register("INTERNAL_ERROR", TenantGateError)
error_registry.register("CONFIGURATION_ERROR", ConfigurationError)
error_registry.register("IDENTITY_ERROR", IdentityError)
error_registry.register("FETCH_ERROR", FetchError)
error_registry.register("SUBSCRIPTION_LOST", SubscriptionLostError)
error_registry.register("REDIRECT_LOOP_RISK", RedirectLoopError)
