# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.network.fetch",
#   "purpose": "Turn locators into local files through the cached HTTP client, honouring offline mode",
#   "sections": [
#     {"id": "fetchclient", "name": "FetchClient", "anchor": "class-fetchclient", "kind": "class"},
#     {"id": "cache-path", "name": "cache_path_for", "anchor": "function-cache-path-for", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Fetch/cache client used by the resolution engine.

``FetchClient.fetch`` maps a locator to a local file or ``None`` when the
resource does not exist. ``file:`` locators are served in place; HTTP(S)
locators are downloaded into a content cache so the engine can reopen them
as archives or seekable streams. Offline mode answers exclusively from that
cache.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
from concurrent.futures import Executor, Future
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

import httpx
from tenacity import RetryError

from ..concurrency import create_executor
from ..errors import FetchError
from ..locators import Locator, last_segment, to_path
from ..settings import ResolverSettings, get_settings
from .client import get_http_client
from .retry import create_http_retry_policy

__all__ = ["FetchClient", "cache_path_for"]

LOGGER = logging.getLogger(__name__)

ABSENT_STATUS_CODES = frozenset({404, 410})


def cache_path_for(cache_dir: Path, locator: Locator) -> Path:
    """Return the content-cache file that holds a downloaded copy of ``locator``."""

    digest = hashlib.sha256(locator.encode("utf-8")).hexdigest()
    name = last_segment(locator) or "index"
    return cache_dir / "files" / digest[:2] / f"{digest[:24]}-{name}"


def _apply_last_modified(path: Path, response: httpx.Response) -> None:
    header = response.headers.get("Last-Modified")
    if not header:
        return
    try:
        timestamp = parsedate_to_datetime(header).timestamp()
    except (TypeError, ValueError):
        return
    os.utime(path, (timestamp, timestamp))


class FetchClient:
    """Resolve locators to local files, synchronously or on a worker pool."""

    def __init__(
        self,
        settings: Optional[ResolverSettings] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._http_client = http_client
        self._executor = executor
        self._owns_executor = False
        self._lock = threading.Lock()

    @property
    def offline(self) -> bool:
        return self.settings.offline

    @property
    def executor(self) -> Executor:
        with self._lock:
            if self._executor is None:
                self._executor = create_executor(
                    self.settings.concurrency.workers, thread_name_prefix="p2resolve-fetch"
                )
                self._owns_executor = True
            return self._executor

    @property
    def http_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = get_http_client(self.settings)
        return self._http_client

    def fetch(self, locator: Locator) -> Optional[Path]:
        """Return a local file holding ``locator``, or ``None`` if it does not exist."""

        scheme = urlsplit(locator).scheme
        if scheme == "file":
            path = to_path(locator)
            return path if path.is_file() else None
        if scheme in ("http", "https"):
            return self._fetch_remote(locator)
        raise FetchError(f"Unsupported locator scheme {scheme!r}: {locator}", locator=locator)

    def fetch_async(self, locator: Locator) -> "Future[Optional[Path]]":
        """Run :meth:`fetch` on the worker pool."""

        return self.executor.submit(self.fetch, locator)

    def close(self) -> None:
        with self._lock:
            if self._owns_executor and self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None
                self._owns_executor = False

    def _fetch_remote(self, locator: Locator) -> Optional[Path]:
        cached = cache_path_for(self.settings.cache.dir, locator)
        if self.offline:
            if cached.is_file():
                LOGGER.debug("offline: serving cached copy", extra={"locator": locator, "stage": "fetch"})
                return cached
            LOGGER.debug("offline: no cached copy", extra={"locator": locator, "stage": "fetch"})
            return None

        retry = self.settings.retry
        policy = create_http_retry_policy(
            max_attempts=retry.max_attempts,
            max_delay_seconds=retry.max_delay_seconds,
            backoff_max=retry.backoff_max,
        )
        try:
            response = policy(self.http_client.get, locator)
        except RetryError as exc:
            response = exc.last_attempt.result()
        except httpx.HTTPError as exc:
            return self._stale_or_raise(locator, cached, f"Failed to fetch {locator}: {exc}", None, exc)

        if response.status_code in ABSENT_STATUS_CODES:
            return None
        if response.is_error:
            return self._stale_or_raise(
                locator,
                cached,
                f"Failed to fetch {locator}: HTTP {response.status_code}",
                response.status_code,
                None,
            )

        self._store(cached, response)
        return cached

    def _stale_or_raise(
        self,
        locator: Locator,
        cached: Path,
        message: str,
        status_code: Optional[int],
        cause: Optional[BaseException],
    ) -> Path:
        if cached.is_file():
            LOGGER.warning(
                "%s; using cached copy", message, extra={"locator": locator, "stage": "fetch"}
            )
            return cached
        raise FetchError(message, locator=locator, status_code=status_code) from cause

    def _store(self, cached: Path, response: httpx.Response) -> None:
        cached.parent.mkdir(parents=True, exist_ok=True)
        part_path = cached.with_name(f"{cached.name}.{threading.get_ident()}.part")
        try:
            part_path.write_bytes(response.content)
            _apply_last_modified(part_path, response)
            os.replace(part_path, cached)
        finally:
            part_path.unlink(missing_ok=True)
