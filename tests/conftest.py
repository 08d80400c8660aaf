"""
Pytest Configuration

Puts ``src`` on ``sys.path`` so the suite runs from a plain checkout and
isolates process-wide state (cached settings, the shared HTTP client, and
the ``P2Resolve`` logger handlers) between tests.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from P2Resolve.logging_utils import LOGGER_NAME  # noqa: E402
from P2Resolve.network import close_http_client  # noqa: E402
from P2Resolve.settings import reset_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop cached settings, the shared client, and managed log handlers around each test."""

    for name in ("P2RESOLVE_OFFLINE", "P2RESOLVE_REPOSITORIES"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()
    close_http_client()
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_p2resolve_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
