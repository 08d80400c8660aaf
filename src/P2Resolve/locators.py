# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.locators",
#   "purpose": "Locator helpers and the thread-safe locator set used for cycle and default bookkeeping",
#   "sections": [
#     {"id": "as-locator", "name": "as_locator", "anchor": "function-as-locator", "kind": "function"},
#     {"id": "normalize", "name": "normalize", "anchor": "function-normalize", "kind": "function"},
#     {"id": "resolve", "name": "resolve", "anchor": "function-resolve", "kind": "function"},
#     {"id": "with-path", "name": "with_path", "anchor": "function-with-path", "kind": "function"},
#     {"id": "locatorset", "name": "LocatorSet", "anchor": "class-locatorset", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Locator helpers.

Locators are absolute URIs held as plain strings, so they are immutable and
compare and hash structurally. ``file:`` locators address local repositories
and ``http(s):`` locators remote ones.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Iterable, Iterator, Set, Union
from urllib.parse import unquote, urljoin, urlsplit, urlunsplit
from urllib.request import url2pathname

__all__ = [
    "Locator",
    "LocatorSet",
    "as_locator",
    "is_local",
    "last_segment",
    "locator_path",
    "normalize",
    "raw_path",
    "resolve",
    "to_path",
    "with_path",
]

Locator = str


def as_locator(value: Union[str, Path]) -> Locator:
    """Return ``value`` as an absolute locator, converting filesystem paths to ``file:`` URIs."""

    if isinstance(value, Path):
        return value.expanduser().resolve().as_uri()
    text = str(value).strip()
    scheme = urlsplit(text).scheme
    # A single letter scheme is a Windows drive, not a URI scheme.
    if len(scheme) > 1:
        return text
    return Path(text).expanduser().resolve().as_uri()


def locator_path(locator: Locator) -> str:
    """Return the decoded path component of ``locator``."""

    return unquote(urlsplit(locator).path)


def last_segment(locator: Locator) -> str:
    return locator_path(locator).rsplit("/", 1)[-1]


def normalize(locator: Locator) -> Locator:
    """Return ``locator`` with a trailing slash so relative references resolve beneath it."""

    parts = urlsplit(locator)
    if parts.path.endswith("/"):
        return locator
    return urlunsplit(parts._replace(path=parts.path + "/"))


def resolve(base: Locator, reference: str) -> Locator:
    """Resolve ``reference`` against ``base`` per RFC 3986."""

    return urljoin(base, reference)


def with_path(locator: Locator, path: str) -> Locator:
    """Return ``locator`` with its raw path replaced by ``path``, dropping query and fragment."""

    parts = urlsplit(locator)
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def raw_path(locator: Locator) -> str:
    return urlsplit(locator).path


def is_local(locator: Locator) -> bool:
    return urlsplit(locator).scheme == "file"


def to_path(locator: Locator) -> Path:
    """Return the filesystem path addressed by a ``file:`` locator."""

    parts = urlsplit(locator)
    if parts.scheme != "file":
        raise ValueError(f"{locator} is not a file locator")
    return Path(url2pathname(parts.path))


class LocatorSet:
    """Set of locators safe to share between worker threads.

    :meth:`add` is an atomic test-and-insert, which is what cycle detection
    needs when sibling branches race into the same child.
    """

    def __init__(self, locators: Iterable[Locator] = ()) -> None:
        self._lock = threading.Lock()
        self._items: Set[Locator] = set(locators)

    def add(self, locator: Locator) -> bool:
        """Insert ``locator``; return ``False`` if it was already present."""

        with self._lock:
            if locator in self._items:
                return False
            self._items.add(locator)
            return True

    def update(self, locators: Iterable[Locator]) -> None:
        with self._lock:
            self._items.update(locators)

    def __contains__(self, locator: object) -> bool:
        with self._lock:
            return locator in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[Locator]:
        with self._lock:
            snapshot = sorted(self._items)
        return iter(snapshot)

    def __repr__(self) -> str:
        return f"LocatorSet({sorted(self)!r})"
