"""Executor factory for the resolution worker pool."""

from __future__ import annotations

from concurrent import futures

Executor = futures.Executor


def create_executor(workers: int, *, thread_name_prefix: str = "p2resolve") -> Executor:
    """
    Return a bounded thread pool for IO-bound fetch and parse units.

    Args:
        workers: Desired concurrency level; must be at least one.
        thread_name_prefix: Prefix applied to worker thread names.

    Returns:
        A :class:`concurrent.futures.ThreadPoolExecutor`. The caller owns it
        and is responsible for shutting it down.
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    return futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix=thread_name_prefix)
