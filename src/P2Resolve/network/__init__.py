"""Networking layer: shared HTTP client, retry policy, and the fetch/cache client."""

from .client import close_http_client, configure_http_client, create_http_client, get_http_client
from .fetch import FetchClient, cache_path_for
from .retry import create_http_retry_policy

__all__ = [
    "FetchClient",
    "cache_path_for",
    "close_http_client",
    "configure_http_client",
    "create_http_client",
    "create_http_retry_policy",
    "get_http_client",
]
