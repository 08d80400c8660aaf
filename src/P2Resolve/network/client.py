# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.network.client",
#   "purpose": "HTTPX + Hishel HTTP Client Factory.",
#   "sections": [
#     {
#       "id": "get-http-client",
#       "name": "get_http_client",
#       "anchor": "function-get-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "configure-http-client",
#       "name": "configure_http_client",
#       "anchor": "function-configure-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "close-http-client",
#       "name": "close_http_client",
#       "anchor": "function-close-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "create-http-client",
#       "name": "create_http_client",
#       "anchor": "function-create-http-client",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTPX + Hishel HTTP Client Factory.

Provides a process-wide, thread-safe HTTP client with RFC 9111 revalidation
caching and connection pooling, shared by every :class:`FetchClient` that is
not handed an explicit client.

Key design:
- **Lazy initialization**: the client is created on first use, not at import time.
- **PID-aware**: a forked child rebuilds the client instead of sharing sockets.
- **Swappable**: :func:`configure_http_client` installs a caller-supplied
  client (tests use ``httpx.MockTransport``).
"""

from __future__ import annotations

import logging
import os
import ssl
import threading
from pathlib import Path
from typing import Optional

import certifi
import hishel
import httpx

from ..settings import ResolverSettings, get_settings

logger = logging.getLogger(__name__)

# Hishel storage housekeeping interval; storage TTL comes from settings.
CACHE_STORAGE_CHECK_INTERVAL_SECONDS = 24 * 3600
CACHEABLE_METHODS = ["GET", "HEAD"]
CACHEABLE_STATUS_CODES = [200, 203, 300, 301, 308]


# ============================================================================
# Global Client State
# ============================================================================

_client: Optional[httpx.Client] = None
_client_lock = threading.Lock()
_client_bind_pid: Optional[int] = None


# ============================================================================
# Public API
# ============================================================================


def get_http_client(settings: Optional[ResolverSettings] = None) -> httpx.Client:
    """Get or create the shared HTTPX client.

    ``settings`` only matters on first use; later calls return the bound client.
    """
    global _client, _client_bind_pid

    if _client is not None and _client_bind_pid == os.getpid():
        return _client

    with _client_lock:
        if _client is not None and _client_bind_pid == os.getpid():
            return _client

        if _client is not None:
            logger.debug("Process forked; closing old HTTP client and rebuilding.")
            try:
                _client.close()
            except Exception as e:
                logger.debug(f"Error closing old client: {e}")

        _client = create_http_client(settings or get_settings())
        _client_bind_pid = os.getpid()
        return _client


def configure_http_client(client: httpx.Client) -> None:
    """Install ``client`` as the shared HTTP client."""
    global _client, _client_bind_pid

    with _client_lock:
        _client = client
        _client_bind_pid = os.getpid()


def close_http_client() -> None:
    """Close the shared client and release its resources.

    Safe to call multiple times or when no client has been created.
    """
    global _client, _client_bind_pid

    with _client_lock:
        if _client is not None:
            try:
                _client.close()
                logger.debug("HTTP client closed")
            except Exception as e:
                logger.error(f"Error closing HTTP client: {e}")
            finally:
                _client = None
                _client_bind_pid = None


# ============================================================================
# Implementation Details
# ============================================================================


def _http_cache_dir(settings: ResolverSettings) -> Path:
    cache_dir = settings.cache.dir / "http"
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def _create_ssl_context(verify: bool) -> ssl.SSLContext:
    """Create an SSL context backed by the certifi bundle."""
    if not verify:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED (development only!)")
        return ctx

    ctx = ssl.create_default_context(cafile=certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def create_http_client(settings: ResolverSettings) -> httpx.Client:
    """Create an HTTPX client configured from ``settings``.

    Redirects are followed since P2 mirrors routinely redirect to CDNs. The
    Hishel cache transport is skipped when ``settings.cache.enabled`` is false.
    """
    http = settings.http
    ssl_ctx = _create_ssl_context(http.verify_tls)

    transport: httpx.BaseTransport = httpx.HTTPTransport(
        retries=2,  # connect errors only
        verify=ssl_ctx,
        http2=http.http2,
        limits=httpx.Limits(
            max_connections=http.pool_max_connections,
            max_keepalive_connections=http.pool_keepalive_max,
            keepalive_expiry=http.keepalive_expiry,
        ),
    )

    if settings.cache.enabled:
        storage = hishel.FileStorage(
            base_path=str(_http_cache_dir(settings)),
            ttl=settings.cache.ttl_seconds,
            check_ttl_every=CACHE_STORAGE_CHECK_INTERVAL_SECONDS,
        )
        controller = hishel.Controller(
            cacheable_methods=CACHEABLE_METHODS,
            cacheable_status_codes=CACHEABLE_STATUS_CODES,
            allow_heuristics=False,
            cache_private=True,
        )
        transport = hishel.CacheTransport(
            transport=transport,
            storage=storage,
            controller=controller,
        )

    client = httpx.Client(
        transport=transport,
        timeout=httpx.Timeout(
            connect=http.timeout_connect,
            read=http.timeout_read,
            write=http.timeout_write,
            pool=http.timeout_pool,
        ),
        headers={"User-Agent": http.user_agent},
        follow_redirects=True,
        trust_env=http.trust_env,
    )

    logger.debug(
        "HTTPX client created",
        extra={"stage": "network", "http2": http.http2, "cache": settings.cache.enabled},
    )
    return client


__all__ = [
    "close_http_client",
    "configure_http_client",
    "create_http_client",
    "get_http_client",
]
