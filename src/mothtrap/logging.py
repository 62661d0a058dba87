"""Audit log for mothtrap.

Every committed mutation is logged at INFO and every rejected one (denied
access, illegal transition, bad assignee) at WARNING, each tagged with the
bug, the acting user, and a dotted ``action`` such as ``bug.update``. Records
go to .mothtrap/mothtrap.log as JSON lines, rotated at 5MB with 3 backups.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

_LOG_FILENAME = "mothtrap.log"
_setup_lock = threading.Lock()
_MAX_BYTES = 5 * 1024 * 1024  # 5MB
_BACKUP_COUNT = 3

# ``extra=`` keys copied into the entry when present.
_AUDIT_KEYS = ("bug_id", "actor", "action", "duration_ms", "error")


class _AuditFormatter(logging.Formatter):
    """One JSON object per record, UTC timestamps to match the event table.

    Records that carry an ``action`` also get an ``outcome``: ``rejected`` at
    WARNING and above, ``applied`` otherwise.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _AUDIT_KEYS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if "action" in entry:
            entry["outcome"] = "rejected" if record.levelno >= logging.WARNING else "applied"
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


def setup_logging(mothtrap_dir: Path, *, level: int = logging.INFO) -> logging.Logger:
    """Attach the audit log file for *mothtrap_dir* to the ``mothtrap`` logger.

    The CLI and the HTTP server both call this on startup. Repeat calls for
    the same project keep the existing handler; a different project swaps it.
    """
    logger = logging.getLogger("mothtrap")
    log_path = mothtrap_dir / _LOG_FILENAME
    target_filename = os.path.abspath(str(log_path))

    with _setup_lock:
        for h in logger.handlers[:]:
            if not isinstance(h, RotatingFileHandler):
                continue
            if h.baseFilename == target_filename:
                return logger
            logger.removeHandler(h)
            h.close()

        handler = RotatingFileHandler(
            str(log_path),
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
        )
        handler.setFormatter(_AuditFormatter())
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger
