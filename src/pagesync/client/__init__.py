"""Client module - Rate-limited access to the remote document database."""

from pagesync.client.api import QueryResult, RemoteClient, RemoteRecord
from pagesync.client.errors import (
    AuthenticationError,
    NotConfiguredError,
    NotFoundError,
    RateLimitedError,
    RemoteError,
    TransportError,
)
from pagesync.client.rate_limiter import RateLimiter

__all__ = [
    # API
    "QueryResult",
    "RemoteClient",
    "RemoteRecord",
    # Errors
    "AuthenticationError",
    "NotConfiguredError",
    "NotFoundError",
    "RateLimitedError",
    "RemoteError",
    "TransportError",
    # Rate limiting
    "RateLimiter",
]
