"""Tests for console and JSON lines logging setup."""

from __future__ import annotations

import json
import logging
import os
import sys
import time

from P2Resolve.logging_utils import JSONFormatter, _cleanup_logs, setup_logging
from P2Resolve.settings import LoggingSettings


def _managed(logger):
    return [h for h in logger.handlers if getattr(h, "_p2resolve_managed", False)]


def test_json_log_records_resolution_fields(tmp_path):
    settings = LoggingSettings(dir=tmp_path, level="INFO", emit_json_logs=True)
    logger = setup_logging(settings)

    logging.getLogger("P2Resolve.engine").error(
        "Failed to get artifacts for %s: %s",
        "https://e.org/r/",
        "boom",
        extra={"locator": "https://e.org/r/", "root": "https://e.org/", "stage": "resolve"},
    )
    for handler in logger.handlers:
        handler.flush()

    [log_file] = list(tmp_path.glob("p2resolve-*.jsonl"))
    payload = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert payload["level"] == "ERROR"
    assert payload["logger"] == "P2Resolve.engine"
    assert payload["message"] == "Failed to get artifacts for https://e.org/r/: boom"
    assert payload["locator"] == "https://e.org/r/"
    assert payload["root"] == "https://e.org/"
    assert payload["stage"] == "resolve"
    assert payload["timestamp"].endswith("Z")


def test_setup_is_idempotent(tmp_path):
    settings = LoggingSettings(dir=tmp_path, emit_json_logs=True)

    setup_logging(settings)
    logger = setup_logging(settings)

    assert len(_managed(logger)) == 2
    assert logger.propagate is False


def test_console_only_without_json(tmp_path):
    logger = setup_logging(LoggingSettings(dir=tmp_path, level="warning", emit_json_logs=False))

    assert [type(h) for h in _managed(logger)] == [logging.StreamHandler]
    assert logger.level == logging.WARNING
    assert not list(tmp_path.iterdir())


def test_formatter_includes_exception():
    try:
        raise ValueError("bad")
    except ValueError:
        record = logging.getLogger("P2Resolve").makeRecord(
            "P2Resolve", logging.ERROR, __file__, 1, "failed", (), exc_info=sys.exc_info()
        )

    payload = json.loads(JSONFormatter().format(record))

    assert "ValueError: bad" in payload["exc_info"]
    assert payload["locator"] is None


def test_cleanup_compresses_then_expires(tmp_path):
    old = tmp_path / "p2resolve-20200101.jsonl"
    old.write_text("{}\n", encoding="utf-8")
    expired = tmp_path / "p2resolve-20190101.jsonl.gz"
    expired.write_bytes(b"")
    stale = time.time() - 90 * 24 * 3600
    os.utime(old, (stale, stale))
    os.utime(expired, (stale, stale))

    actions = _cleanup_logs(tmp_path, retention_days=30)

    assert not old.exists()
    assert (tmp_path / "p2resolve-20200101.jsonl.gz").exists()
    assert not expired.exists()
    assert len(actions) == 2
