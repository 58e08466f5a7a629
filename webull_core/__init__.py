"""
Webull - typed async brokerage API client

Library for interacting with the Webull API:
- Authentication and token lifecycle
- REST endpoints for accounts, orders, market data and watchlists
- Per-endpoint rate limiting and TTL response caching
- Supervised WebSocket streaming with auto-reconnect
- Paper trading support
"""

from .auth import AccessToken, AuthManager, Credentials, MemoryTokenStore, TokenStore
from .cache import CacheKey, CacheManager, ResponseCache
from .client import WebullClient
from .config import WebullConfig, build_config_from_env, load_config
from .credentials import (
    CredentialStore,
    EncryptedCredentialStore,
    MemoryCredentialStore,
    PersistentTokenStore,
)
from .decorators import rate_limited, retry_on_rate_limit
from .dispatcher import RequestDispatcher
from .errors import (
    ApiError,
    AuthenticationError,
    InvalidRequest,
    MfaRequired,
    NetworkError,
    RateLimitExceeded,
    SerializationError,
    Unauthorized,
    UnknownError,
    WebullError,
)
from .rate_limit import (
    BackoffStrategy,
    ConstantBackoff,
    ExponentialBackoff,
    LinearBackoff,
    RateLimiter,
)
from .responses import ApiEnvelope, Page, PaginatedEnvelope, Pagination
from .transport import AiohttpTransport, HttpResponse, HttpTransport
from .ws_client import EventStream, StreamingClient, WebSocketConnection
from .ws_events import ConnectionState, Event, EventType, decode_event
from .ws_subscription import SubscriptionRequest, SubscriptionType

__version__ = '0.1.0'

__all__ = [
    # Client
    'WebullClient',
    'WebullConfig',
    'load_config',
    'build_config_from_env',
    # Auth
    'AuthManager',
    'AccessToken',
    'Credentials',
    'TokenStore',
    'MemoryTokenStore',
    'CredentialStore',
    'MemoryCredentialStore',
    'EncryptedCredentialStore',
    'PersistentTokenStore',
    # Dispatch
    'RequestDispatcher',
    'HttpTransport',
    'HttpResponse',
    'AiohttpTransport',
    'ApiEnvelope',
    'PaginatedEnvelope',
    'Pagination',
    'Page',
    # Rate limiting
    'RateLimiter',
    'BackoffStrategy',
    'ConstantBackoff',
    'LinearBackoff',
    'ExponentialBackoff',
    'rate_limited',
    'retry_on_rate_limit',
    # Caching
    'ResponseCache',
    'CacheKey',
    'CacheManager',
    # Streaming
    'StreamingClient',
    'EventStream',
    'WebSocketConnection',
    'Event',
    'EventType',
    'ConnectionState',
    'SubscriptionRequest',
    'SubscriptionType',
    'decode_event',
    # Errors
    'WebullError',
    'AuthenticationError',
    'Unauthorized',
    'RateLimitExceeded',
    'ApiError',
    'NetworkError',
    'SerializationError',
    'InvalidRequest',
    'MfaRequired',
    'UnknownError',
]
