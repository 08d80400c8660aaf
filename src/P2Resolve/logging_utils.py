"""Structured logging helpers shared across P2Resolve components."""

from __future__ import annotations

import gzip
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from .settings import LoggingSettings

__all__ = ["JSONFormatter", "setup_logging"]

LOGGER_NAME = "P2Resolve"


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record for resolution runs."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string with resolution-specific fields."""

        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "locator": getattr(record, "locator", None),
            "root": getattr(record, "root", None),
            "stage": getattr(record, "stage", None),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _compress_old_log(path: Path) -> None:
    """Compress ``path`` into a ``.gz`` file and remove the original."""

    compressed_path = path.with_suffix(path.suffix + ".gz")
    with path.open("rb") as source, gzip.open(compressed_path, "wb") as target:
        target.write(source.read())
    path.unlink(missing_ok=True)


def _cleanup_logs(log_dir: Path, retention_days: int) -> List[str]:
    """Compress expired ``.jsonl`` logs and delete expired archives in ``log_dir``."""

    actions: List[str] = []
    now = datetime.now(timezone.utc)
    retention_delta = timedelta(days=retention_days)
    for file in log_dir.glob("*.jsonl"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            _compress_old_log(file)
            actions.append(f"Compressed {file.name} -> {file.name}.gz")
    for file in log_dir.glob("*.jsonl.gz"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            file.unlink(missing_ok=True)
            actions.append(f"Deleted expired archive {file.name}")
    return actions


def setup_logging(
    settings: Optional[LoggingSettings] = None,
    *,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``P2Resolve`` logger with console output and a rotating JSON log.

    Calling it again replaces the handlers a previous call installed.
    """

    settings = settings or LoggingSettings()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.level_int())

    for handler in list(logger.handlers):
        if getattr(handler, "_p2resolve_managed", False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.StreamHandler):
                stream = getattr(handler, "stream", None)
                if stream in (sys.stdout, sys.stderr):
                    continue
            handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    console_handler._p2resolve_managed = True  # type: ignore[attr-defined]
    logger.addHandler(console_handler)

    if settings.emit_json_logs:
        log_dir = settings.dir
        log_dir.mkdir(parents=True, exist_ok=True)
        for action in _cleanup_logs(log_dir, settings.retention_days):
            logger.debug(action)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            log_dir / f"p2resolve-{today}.jsonl",
            maxBytes=int(settings.max_log_size_mb * 1024 * 1024),
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._p2resolve_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
