# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.engine",
#   "purpose": "Concurrently resolve a repository metadata graph into a flat artifact list",
#   "sections": [
#     {"id": "branchfailure", "name": "BranchFailure", "anchor": "class-branchfailure", "kind": "class"},
#     {"id": "resolutionresult", "name": "ResolutionResult", "anchor": "class-resolutionresult", "kind": "class"},
#     {"id": "repositoryresolver", "name": "RepositoryResolver", "anchor": "class-repositoryresolver", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Repository resolution engine.

:class:`RepositoryResolver` walks a P2 repository graph: composite documents
fan out into their children, ``p2.index`` files (found or synthesized) fan
out into their artifact listings, and leaf documents yield artifacts. Every
node is a future; children of one node resolve concurrently on a bounded pool
and are joined in declared order. A failing child is recovered to an empty
list so one dead mirror never sinks the rest of the graph.

Example:
    >>> with RepositoryResolver() as resolver:
    ...     artifacts = resolver.resolve("https://download.eclipse.org/releases/latest/")
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .concurrency import all_of, create_executor, failed, flat_map, map_future, recover, submit
from .content import ContentLocator
from .documents import Artifact, parse_artifacts, parse_composite
from .errors import CycleError, RepositoryResolutionError, UnreachableError
from .index import INDEX_FILENAME, IndexResolver, RepositoryIndex
from .locators import Locator, LocatorSet, as_locator, locator_path, normalize, resolve
from .network.fetch import FetchClient
from .settings import ResolverSettings, get_settings

__all__ = ["BranchFailure", "RepositoryResolver", "ResolutionResult"]

LOGGER = logging.getLogger(__name__)

COMPOSITE_ARTIFACTS = "/compositeArtifacts.xml"
ARTIFACTS = "/artifacts.xml"
ARTIFACTS_XZ = "/artifacts.xml.xz"
INDEX = "/" + INDEX_FILENAME
DOCUMENT_SUFFIXES = (COMPOSITE_ARTIFACTS, ARTIFACTS, ARTIFACTS_XZ, INDEX)

# (succeeded, artifacts, failure of a default listing still to be reported)
_Branch = Tuple[bool, List[Artifact], Optional[BaseException]]


@dataclass(frozen=True)
class BranchFailure:
    """A child branch that failed and was recovered to an empty result."""

    locator: Locator
    error: BaseException

    def __str__(self) -> str:
        return f"{self.locator}: {self.error}"


@dataclass
class ResolutionResult:
    """Artifacts of one top-level resolution plus the failures it recovered from."""

    root: Locator
    artifacts: List[Artifact] = field(default_factory=list)
    failures: List[BranchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class _Run:
    """State scoped to one top-level resolution call."""

    def __init__(self, root: Locator) -> None:
        self.root = root
        self.cycles = LocatorSet()
        self._failures: List[BranchFailure] = []
        self._lock = threading.Lock()

    def record(self, failure: BranchFailure) -> None:
        with self._lock:
            self._failures.append(failure)

    def failures(self) -> List[BranchFailure]:
        with self._lock:
            return list(self._failures)


def canonical_root(root: Union[str, Path]) -> Locator:
    """Return ``root`` as a locator, normalized unless it already names a document."""

    locator = as_locator(root)
    if locator_path(locator).endswith(DOCUMENT_SUFFIXES):
        return locator
    return normalize(locator)


class RepositoryResolver:
    """Resolve repository roots into flat artifact lists.

    The resolver may be reused for many roots; each call gets its own cycle
    set while the set of synthesized default locators persists for the
    resolver's lifetime. When ``client`` or ``executor`` are not supplied the
    resolver creates and owns them; :meth:`close` releases what it owns.
    """

    def __init__(
        self,
        client: Optional[FetchClient] = None,
        *,
        settings: Optional[ResolverSettings] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.settings = settings or (client.settings if client is not None else get_settings())
        self._owns_executor = executor is None
        self.executor = executor or create_executor(self.settings.concurrency.workers)
        self._owns_client = client is None
        self.client = client or FetchClient(self.settings, executor=self.executor)
        self.defaults = LocatorSet()
        self.content = ContentLocator(self.client, self.defaults)
        self.indexes = IndexResolver(self.client, self.defaults)

    def __enter__(self) -> "RepositoryResolver":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()
        if self._owns_executor:
            self.executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, root: Union[str, Path]) -> List[Artifact]:
        """Return every artifact reachable from ``root``, blocking until done."""

        return self.resolve_report(root).artifacts

    def resolve_report(self, root: Union[str, Path]) -> ResolutionResult:
        """Like :meth:`resolve` but also report the branch failures that were recovered."""

        return self.resolve_async(root).result()

    def resolve_async(self, root: Union[str, Path]) -> "Future[ResolutionResult]":
        """Start resolving ``root`` and return a future of the result."""

        locator = canonical_root(root)
        run = _Run(locator)
        LOGGER.info("resolving %s", locator, extra={"root": locator, "stage": "resolve"})
        return map_future(
            self._resolve(run, locator),
            lambda artifacts: ResolutionResult(locator, artifacts, run.failures()),
        )

    def resolve_index(self, root: Union[str, Path]) -> RepositoryIndex:
        """Return the (possibly synthesized) index of the repository at ``root``."""

        locator = as_locator(root)
        if not locator_path(locator).endswith(INDEX):
            locator = resolve(normalize(locator), INDEX_FILENAME)
        return self.indexes.resolve_index(locator)

    # ------------------------------------------------------------------
    # Graph traversal
    # ------------------------------------------------------------------

    def _resolve(self, run: _Run, locator: Locator) -> "Future[List[Artifact]]":
        if not run.cycles.add(locator):
            return failed(CycleError(locator))
        try:
            path = locator_path(locator)
            if path.endswith(COMPOSITE_ARTIFACTS):
                return self._composite(run, locator)
            if path.endswith(ARTIFACTS_XZ) or path.endswith(ARTIFACTS):
                return self._leaf(locator)
            if path.endswith(INDEX):
                return self._index(run, locator)
            index_locator = resolve(normalize(locator), INDEX_FILENAME)
            self.defaults.add(index_locator)
            return self._index(run, index_locator)
        except Exception as exc:
            return failed(exc)

    def _open(self, locator: Locator):
        stream = self.content.open(locator)
        if stream is None:
            raise UnreachableError(f"No content found for {locator}", locator=locator, reported=True)
        return stream

    def _leaf(self, locator: Locator) -> "Future[List[Artifact]]":
        stream = self._open(locator)
        try:
            return self.executor.submit(parse_artifacts, stream, locator)
        except BaseException:
            stream.close()
            raise

    def _composite(self, run: _Run, locator: Locator) -> "Future[List[Artifact]]":
        listing = parse_composite(self._open(locator), locator)
        children = [resolve(listing.base, child) for child in listing.children]
        return self._fan_out(run, locator, children, require_success=False)

    def _index(self, run: _Run, locator: Locator) -> "Future[List[Artifact]]":
        return flat_map(
            self.indexes.resolve_index_async(locator),
            lambda index: self._fan_out(
                run,
                locator,
                index.artifact_listings,
                require_success=index.synthesized,
            ),
        )

    def _fan_out(
        self,
        run: _Run,
        origin: Locator,
        children: Sequence[Locator],
        *,
        require_success: bool,
    ) -> "Future[List[Artifact]]":
        branches = [
            recover(
                map_future(
                    submit(self.executor, self._resolve, run, child),
                    lambda artifacts: (True, artifacts, None),
                ),
                self._recovery(run, child),
            )
            for child in children
        ]

        def _join(results: List[_Branch]) -> List[Artifact]:
            deferred = [(child, exc) for child, (_, _, exc) in zip(children, results) if exc is not None]
            if require_success and children and not any(ok for ok, _, _ in results):
                if deferred:
                    raise deferred[0][1]
                raise UnreachableError(f"No repository found at {resolve(origin, '.')}", locator=origin)
            for child, exc in deferred:
                self._report(run, child, exc)
            joined: List[Artifact] = []
            for _, artifacts, _ in results:
                joined.extend(artifacts)
            return joined

        return map_future(all_of(branches), _join)

    def _recovery(self, run: _Run, locator: Locator):
        def _recover(exc: BaseException) -> _Branch:
            if locator not in self.defaults:
                self._report(run, locator, exc)
                return False, [], None
            if isinstance(exc, (UnreachableError, CycleError)):
                LOGGER.debug("default listing %s unavailable: %s", locator, exc, extra={"locator": locator})
                return False, [], None
            # a default listing that exists but is broken is left to the join
            return False, [], exc

        return _recover

    def _report(self, run: _Run, locator: Locator, exc: BaseException) -> None:
        run.record(BranchFailure(locator, exc))
        if isinstance(exc, UnreachableError) and exc.reported:
            return
        LOGGER.error(
            "Failed to get artifacts for %s: %s",
            locator,
            exc,
            exc_info=None if isinstance(exc, RepositoryResolutionError) else exc,
            extra={"locator": locator, "root": run.root, "stage": "resolve"},
        )
