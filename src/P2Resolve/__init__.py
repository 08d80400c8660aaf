# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.__init__",
#   "purpose": "Public entry points for resolving artifacts published by P2 repositories",
#   "sections": []
# }
# === /NAVMAP ===

"""Resolve the artifacts published by federated P2 repositories.

Example:
    >>> from P2Resolve import RepositoryResolver
    >>> with RepositoryResolver() as resolver:
    ...     report = resolver.resolve_report("https://download.eclipse.org/releases/latest/")
    >>> len(report.artifacts), len(report.failures)
"""

from .documents import Artifact
from .engine import BranchFailure, RepositoryResolver, ResolutionResult
from .errors import (
    ConfigurationError,
    CycleError,
    FetchError,
    IncompatibleVersionError,
    MalformedDocumentError,
    RepositoryResolutionError,
    UnreachableError,
)
from .index import RepositoryIndex
from .network import FetchClient
from .settings import ResolverSettings, load_settings

__version__ = "0.3.0"

__all__ = [
    "Artifact",
    "BranchFailure",
    "ConfigurationError",
    "CycleError",
    "FetchClient",
    "FetchError",
    "IncompatibleVersionError",
    "MalformedDocumentError",
    "RepositoryIndex",
    "RepositoryResolutionError",
    "RepositoryResolver",
    "ResolutionResult",
    "ResolverSettings",
    "UnreachableError",
    "load_settings",
    "__version__",
]
