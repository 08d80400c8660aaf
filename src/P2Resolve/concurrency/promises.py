"""Callback-based combinators over :class:`concurrent.futures.Future`.

Resolution branches are futures chained with these helpers rather than
``Future.result()`` calls, so a worker thread never waits on another task and
a saturated pool cannot deadlock. Callbacks run on whichever thread completes
the source future, or immediately when it is already done.
"""

from __future__ import annotations

import threading
from concurrent.futures import CancelledError, Executor, Future
from typing import Any, Callable, List, Sequence, TypeVar

__all__ = [
    "all_of",
    "failed",
    "flat_map",
    "map_future",
    "recover",
    "resolved",
    "submit",
]

T = TypeVar("T")
U = TypeVar("U")


def resolved(value: T) -> "Future[T]":
    """Return a future already completed with ``value``."""

    future: "Future[T]" = Future()
    future.set_result(value)
    return future


def failed(exc: BaseException) -> "Future[Any]":
    """Return a future already failed with ``exc``."""

    future: "Future[Any]" = Future()
    future.set_exception(exc)
    return future


def submit(executor: Executor, fn: Callable[..., "Future[T]"], *args: Any) -> "Future[T]":
    """Run ``fn`` on ``executor`` and flatten the future it returns."""

    return flat_map(executor.submit(fn, *args), lambda inner: inner)


def _failure(future: Future) -> BaseException | None:
    if future.cancelled():
        return CancelledError()
    return future.exception()


def _forward(source: "Future[T]", target: "Future[T]") -> None:
    def _done(completed: "Future[T]") -> None:
        exc = _failure(completed)
        if exc is not None:
            target.set_exception(exc)
        else:
            target.set_result(completed.result())

    source.add_done_callback(_done)


def map_future(future: "Future[T]", fn: Callable[[T], U]) -> "Future[U]":
    """Return a future holding ``fn(value)`` once ``future`` succeeds."""

    out: "Future[U]" = Future()

    def _done(completed: "Future[T]") -> None:
        exc = _failure(completed)
        if exc is not None:
            out.set_exception(exc)
            return
        try:
            out.set_result(fn(completed.result()))
        except BaseException as error:
            out.set_exception(error)

    future.add_done_callback(_done)
    return out


def flat_map(future: "Future[T]", fn: Callable[[T], "Future[U]"]) -> "Future[U]":
    """Chain ``fn``, which returns a future, onto the success of ``future``."""

    out: "Future[U]" = Future()

    def _done(completed: "Future[T]") -> None:
        exc = _failure(completed)
        if exc is not None:
            out.set_exception(exc)
            return
        try:
            inner = fn(completed.result())
        except BaseException as error:
            out.set_exception(error)
            return
        _forward(inner, out)

    future.add_done_callback(_done)
    return out


def recover(future: "Future[T]", fn: Callable[[BaseException], T]) -> "Future[T]":
    """Replace a failure of ``future`` with ``fn(exc)``; successes pass through."""

    out: "Future[T]" = Future()

    def _done(completed: "Future[T]") -> None:
        exc = _failure(completed)
        if exc is None:
            out.set_result(completed.result())
            return
        try:
            out.set_result(fn(exc))
        except BaseException as error:
            out.set_exception(error)

    future.add_done_callback(_done)
    return out


def all_of(futures: Sequence["Future[T]"]) -> "Future[List[T]]":
    """Join ``futures`` into one future of their results, in submission order.

    The joined future fails with the first failure in submission order once
    every input has completed.
    """

    pending = list(futures)
    if not pending:
        return resolved([])

    out: "Future[List[T]]" = Future()
    lock = threading.Lock()
    remaining = [len(pending)]

    def _done(_: Future) -> None:
        with lock:
            remaining[0] -= 1
            if remaining[0]:
                return
        for candidate in pending:
            exc = _failure(candidate)
            if exc is not None:
                out.set_exception(exc)
                return
        out.set_result([candidate.result() for candidate in pending])

    for future in pending:
        future.add_done_callback(_done)
    return out
