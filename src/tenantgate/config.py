"""Configuration contract for the tenantgate authorization engine.

Pydantic-validated settings shared by the session, reconciler, guard and
Redis adapters. Direct os.environ/os.getenv usage is limited to
``load_config_from_env()``; everything else receives an ``AuthzConfig``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_TRUTHY = ("true", "1", "yes", "on")


class AuthzConfig(BaseModel):
    """Settings for one authorization engine instance.

    Timing fields are in seconds. ``refresh_interval_seconds=None`` disables
    the periodic refresh; push events, visibility changes and explicit
    refresh calls still trigger reconciliation.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Remote store / change feed
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for the override store and change feed",
    )
    key_prefix: str = Field(
        default="tenantgate",
        min_length=1,
        description="Prefix for Redis keys and pub/sub channels",
    )

    # Access guard
    safe_route: str = Field(
        default="/",
        description="Route the guard redirects to when access is revoked; must be unprotected",
    )

    # Reconciliation
    refresh_interval_seconds: Optional[float] = Field(
        default=300.0,
        gt=0,
        description="Periodic refresh interval (None disables)",
    )
    fetch_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single override fetch",
    )
    resubscribe_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Initial delay before re-subscribing after the feed drops",
    )
    resubscribe_max_delay_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for the resubscribe backoff",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("safe_route")
    @classmethod
    def validate_safe_route(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("Safe route must be an absolute path starting with '/'")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @model_validator(mode="after")
    def validate_resubscribe_bounds(self) -> "AuthzConfig":
        if self.resubscribe_max_delay_seconds < self.resubscribe_delay_seconds:
            raise ValueError("resubscribe_max_delay_seconds must be >= resubscribe_delay_seconds")
        return self

    model_config = {
        "extra": "forbid",
    }


def _optional_float(raw: Optional[str], default: Optional[float]) -> Optional[float]:
    if raw is None:
        return default
    raw = raw.strip()
    if not raw or float(raw) == 0:
        return None
    return float(raw)


def load_config_from_env() -> AuthzConfig:
    """Load configuration from environment variables.

    This is the ONLY place where os.getenv is allowed.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL
    - TENANTGATE_KEY_PREFIX: Redis key/channel prefix
    - TENANTGATE_SAFE_ROUTE: Redirect target on revoked access
    - TENANTGATE_REFRESH_INTERVAL: Periodic refresh seconds (0 or empty disables)
    - TENANTGATE_FETCH_TIMEOUT: Override fetch timeout seconds
    - TENANTGATE_RESUBSCRIBE_DELAY: Initial resubscribe delay seconds
    - TENANTGATE_RESUBSCRIBE_MAX_DELAY: Resubscribe backoff cap seconds

    Returns:
        AuthzConfig instance with values from environment or defaults.
    """
    import os

    return AuthzConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in _TRUTHY,
        redis_url=os.getenv("REDIS_URL"),
        key_prefix=os.getenv("TENANTGATE_KEY_PREFIX", "tenantgate"),
        safe_route=os.getenv("TENANTGATE_SAFE_ROUTE", "/"),
        refresh_interval_seconds=_optional_float(os.getenv("TENANTGATE_REFRESH_INTERVAL"), 300.0),
        fetch_timeout_seconds=float(os.getenv("TENANTGATE_FETCH_TIMEOUT", "10")),
        resubscribe_delay_seconds=float(os.getenv("TENANTGATE_RESUBSCRIBE_DELAY", "1")),
        resubscribe_max_delay_seconds=float(os.getenv("TENANTGATE_RESUBSCRIBE_MAX_DELAY", "30")),
    )


__all__ = [
    "AuthzConfig",
    "LogLevel",
    "load_config_from_env",
]
