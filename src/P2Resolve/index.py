# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.index",
#   "purpose": "Read or synthesize the p2.index of a repository and canonicalize its listings",
#   "sections": [
#     {"id": "repositoryindex", "name": "RepositoryIndex", "anchor": "class-repositoryindex", "kind": "class"},
#     {"id": "canonicalize", "name": "canonicalize", "anchor": "function-canonicalize", "kind": "function"},
#     {"id": "indexresolver", "name": "IndexResolver", "anchor": "class-indexresolver", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Repository index (``p2.index``) handling.

A ``p2.index`` names, in precedence order, the metadata and artifact
listings a repository publishes::

    version = 1
    metadata.repository.factory.order = compositeContent.xml,\\!
    artifact.repository.factory.order = compositeArtifacts.xml,\\!

Entries after the ``!`` sentinel are disabled. Repositories without an index
get a synthesized one naming the well-known listing files.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .concurrency import map_future
from .errors import IncompatibleVersionError, MalformedDocumentError
from .locators import Locator, LocatorSet, raw_path, resolve
from .network.fetch import FetchClient
from .properties import load_properties, parameter_keys

__all__ = [
    "ARTIFACT_ORDER_KEY",
    "DEFAULT_ARTIFACT_LISTINGS",
    "DEFAULT_CONTENT_LISTINGS",
    "INDEX_FILENAME",
    "METADATA_ORDER_KEY",
    "IndexResolver",
    "RepositoryIndex",
    "canonicalize",
]

LOGGER = logging.getLogger(__name__)

INDEX_FILENAME = "p2.index"
SUPPORTED_VERSION = 1
METADATA_ORDER_KEY = "metadata.repository.factory.order"
ARTIFACT_ORDER_KEY = "artifact.repository.factory.order"
DISABLED_SENTINEL = "!"
DEFAULT_ARTIFACT_LISTINGS = ("compositeArtifacts.xml", "artifacts.xml")
DEFAULT_CONTENT_LISTINGS = ("compositeContent.xml", "content.xml")


@dataclass
class RepositoryIndex:
    """Candidate listing locators of one repository, in precedence order."""

    artifact_listings: List[Locator] = field(default_factory=list)
    content_listings: List[Locator] = field(default_factory=list)
    last_modified: float = 0.0
    synthesized: bool = False


def canonicalize(listings: List[Locator]) -> List[Locator]:
    """Drop ``X.xml.xz`` entries when ``X.xml`` is listed too.

    Lists with fewer than two entries are left untouched. The list is
    modified in place and returned.
    """

    if len(listings) < 2:
        return listings
    for locator in list(listings):
        if raw_path(locator).endswith(".xml"):
            compressed = locator + ".xz"
            while compressed in listings:
                listings.remove(compressed)
    return listings


def _listing_locators(value: Optional[str], index_locator: Locator) -> List[Locator]:
    locators: List[Locator] = []
    for path in parameter_keys(value):
        if path == DISABLED_SENTINEL:
            break
        locators.append(resolve(index_locator, path))
    return locators


class IndexResolver:
    """Produce a :class:`RepositoryIndex` from a ``p2.index`` locator."""

    def __init__(self, client: FetchClient, defaults: LocatorSet) -> None:
        self.client = client
        self.defaults = defaults

    def resolve_index(self, locator: Locator) -> RepositoryIndex:
        return self.index_from_file(locator, self.client.fetch(locator))

    def resolve_index_async(self, locator: Locator) -> "Future[RepositoryIndex]":
        return map_future(self.client.fetch_async(locator), lambda path: self.index_from_file(locator, path))

    def index_from_file(self, locator: Locator, path: Optional[Path]) -> RepositoryIndex:
        """Parse ``path`` as the index at ``locator``, or synthesize defaults when absent."""

        if path is None:
            index = self.default_index(locator)
        else:
            index = self.parse_index(path, locator)
        canonicalize(index.artifact_listings)
        canonicalize(index.content_listings)
        return index

    def default_index(self, locator: Locator) -> RepositoryIndex:
        """Synthesize the well-known listings next to ``locator`` and mark them as defaults."""

        index = RepositoryIndex(
            artifact_listings=[resolve(locator, name) for name in DEFAULT_ARTIFACT_LISTINGS],
            content_listings=[resolve(locator, name) for name in DEFAULT_CONTENT_LISTINGS],
            synthesized=True,
        )
        self.defaults.update(index.artifact_listings)
        self.defaults.update(index.content_listings)
        LOGGER.debug("no index at %s; using default listings", locator, extra={"locator": locator})
        return index

    def parse_index(self, path: Path, locator: Locator) -> RepositoryIndex:
        """Read the properties file at ``path`` fetched from ``locator``."""

        try:
            properties = load_properties(path)
        except OSError as exc:
            raise MalformedDocumentError(f"Unreadable index {locator}: {exc}") from exc

        version = properties.get("version")
        try:
            compatible = version is not None and int(version.strip()) == SUPPORTED_VERSION
        except ValueError:
            compatible = False
        if not compatible:
            raise IncompatibleVersionError(resolve(locator, "."), version)

        return RepositoryIndex(
            artifact_listings=_listing_locators(properties.get(ARTIFACT_ORDER_KEY), locator),
            content_listings=_listing_locators(properties.get(METADATA_ORDER_KEY), locator),
            last_modified=path.stat().st_mtime,
        )
