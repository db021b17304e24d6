from .permissions import (
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
from .config import AuthzConfig, LogLevel, load_config_from_env
from .exceptions import (
    ConfigurationError,
    FetchError,
    IdentityError,
    RedirectLoopError,
    SubscriptionLostError,
    TenantGateError,
)
from .identity import EffectiveIdentity, IdentityProvider, Impersonation, resolve_identity
from .feed import ChangeEvent, ChangeFeed, ChangeFilter, InMemoryChangeFeed, Subscription
from .overrides import InMemoryOverrideStore, OverrideRow, OverrideStore, OverrideStoreClient
from .redis_backend import RedisChangeFeed, RedisOverrideStore, build_redis_client
from .cache import CacheState, PermissionCache, PermissionSnapshot, build_snapshot, materially_different
from .navigation import MODULE_ROUTES, ROUTE_MODULES, LoggingNotifier, Navigator, Notice, Notifier, resolve_route
from .guard import AccessGuard, RouteCheck
from .reconciler import ChangeReconciler
from .session import AuthorizationSession, UiVisibility
from .logging import (
    safe_preview,
    redact_secrets,
    safe_log_value,
    TenantGateFormatter,
    SessionLoggerAdapter,
    setup_logging,
    get_session_logger,
)

__all__ = [
    'DEFAULT_PERMISSION_MATRIX',
    'MODULE_ALIASES',
    'PermissionAction',
    'PermissionModule',
    'PlatformRole',
    'TenantRole',
    'at_least',
    'canonicalize',
    'default_allows',
    'permission_key',
    'AuthzConfig',
    'LogLevel',
    'load_config_from_env',
    'ConfigurationError',
    'FetchError',
    'IdentityError',
    'RedirectLoopError',
    'SubscriptionLostError',
    'TenantGateError',
    'EffectiveIdentity',
    'IdentityProvider',
    'Impersonation',
    'resolve_identity',
    'ChangeEvent',
    'ChangeFeed',
    'ChangeFilter',
    'InMemoryChangeFeed',
    'Subscription',
    'InMemoryOverrideStore',
    'OverrideRow',
    'OverrideStore',
    'OverrideStoreClient',
    'RedisChangeFeed',
    'RedisOverrideStore',
    'build_redis_client',
    'CacheState',
    'PermissionCache',
    'PermissionSnapshot',
    'build_snapshot',
    'materially_different',
    'MODULE_ROUTES',
    'ROUTE_MODULES',
    'LoggingNotifier',
    'Navigator',
    'Notice',
    'Notifier',
    'resolve_route',
    'AccessGuard',
    'RouteCheck',
    'ChangeReconciler',
    'AuthorizationSession',
    'UiVisibility',
    'safe_preview',
    'redact_secrets',
    'safe_log_value',
    'TenantGateFormatter',
    'SessionLoggerAdapter',
    'setup_logging',
    'get_session_logger',
]
