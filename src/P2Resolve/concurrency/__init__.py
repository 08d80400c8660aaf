# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.concurrency.__init__",
#   "purpose": "Concurrency helpers shared across P2Resolve components.",
#   "sections": []
# }
# === /NAVMAP ===

"""
Concurrency helpers shared across P2Resolve components.

Exposes :func:`create_executor` for the bounded fetch/parse pool and the
future combinators in :mod:`P2Resolve.concurrency.promises` that compose
resolution branches without blocking worker threads.
"""

from .executors import create_executor
from .promises import all_of, failed, flat_map, map_future, recover, resolved, submit

__all__ = [
    "all_of",
    "create_executor",
    "failed",
    "flat_map",
    "map_future",
    "recover",
    "resolved",
    "submit",
]
