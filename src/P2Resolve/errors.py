"""Exception hierarchy shared across repository indexing, fetching, and resolution.

Resolving a P2 repository spans index discovery, HTTP retrieval, archive
unpacking, and XML parsing. The engine recovers most of these failures at the
branch where they happen, so callers mostly meet these types inside
:class:`~P2Resolve.engine.BranchFailure` records; only the root of a
resolution can raise them.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "RepositoryResolutionError",
    "CycleError",
    "UnreachableError",
    "FetchError",
    "IncompatibleVersionError",
    "MalformedDocumentError",
    "ConfigurationError",
]


class RepositoryResolutionError(RuntimeError):
    """Base exception for repository resolution failures."""


class CycleError(RepositoryResolutionError):
    """Raised when a locator is visited twice within one resolution."""

    def __init__(self, locator: str) -> None:
        super().__init__(f"Cycle detected: {locator} was already visited")
        self.locator = locator


class UnreachableError(RepositoryResolutionError):
    """Raised when no encoding of a locator could be fetched.

    ``reported`` is set when the lookup already logged the missing locator.
    """

    def __init__(self, message: str, *, locator: Optional[str] = None, reported: bool = False) -> None:
        super().__init__(message)
        self.locator = locator
        self.reported = reported


class FetchError(UnreachableError):
    """Raised when a transport or HTTP failure prevents a fetch."""

    def __init__(
        self,
        message: str,
        *,
        locator: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, locator=locator)
        self.status_code = status_code


class IncompatibleVersionError(RepositoryResolutionError):
    """Raised when a ``p2.index`` declares a version other than ``1``."""

    def __init__(self, root: str, version: Optional[str]) -> None:
        super().__init__(
            f"The repository {root} specifies an index file with an incompatible version {version}"
        )
        self.root = root
        self.version = version


class MalformedDocumentError(RepositoryResolutionError):
    """Raised when a metadata document or archive cannot be parsed."""


class ConfigurationError(RepositoryResolutionError):
    """Raised when settings or YAML configuration inputs are invalid."""
# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.errors",
#   "purpose": "Define the exception hierarchy used across index discovery, fetching, and resolution",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "traversal", "name": "Traversal Errors", "anchor": "TRV", "kind": "api"},
#     {"id": "fetch", "name": "Fetch & Document Errors", "anchor": "FET", "kind": "api"},
#     {"id": "configuration", "name": "Configuration Errors", "anchor": "CFG", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
