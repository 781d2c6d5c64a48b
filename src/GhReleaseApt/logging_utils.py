# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.logging_utils",
#   "purpose": "Structured logging helpers shared across import and assemble pipelines",
#   "sections": [
#     {"id": "mask-sensitive-data", "name": "mask_sensitive_data", "anchor": "function-mask-sensitive-data", "kind": "function"},
#     {"id": "generate-correlation-id", "name": "generate_correlation_id", "anchor": "function-generate-correlation-id", "kind": "function"},
#     {"id": "jsonformatter", "name": "JSONFormatter", "anchor": "class-jsonformatter", "kind": "class"},
#     {"id": "cleanup-logs", "name": "_cleanup_logs", "anchor": "function-cleanup-logs", "kind": "function"},
#     {"id": "setup-logging", "name": "setup_logging", "anchor": "function-setup-logging", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Structured logging helpers for the repository generator.

Console output stays human readable (``LEVEL: message``) while an optional
rotating JSON-lines file captures the structured ``extra`` fields (stage,
asset names, paths) for later inspection.  Tokens and key material are masked
before anything reaches disk.
"""

from __future__ import annotations

import gzip
import json
import logging
import sys
import uuid
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional, Union

__all__ = [
    "LOGGER_NAME",
    "JSONFormatter",
    "generate_correlation_id",
    "mask_sensitive_data",
    "setup_logging",
]

LOGGER_NAME = "GhReleaseApt"

_SENSITIVE_KEYS = {
    "authorization",
    "token",
    "github_token",
    "secret",
    "password",
    "signing_key",
    "private_key",
}

# Attributes present on every LogRecord; anything else came from ``extra``.
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Examples:
        >>> mask_sensitive_data({"token": "secret", "status": "ok"})
        {'token': '***masked***', 'status': 'ok'}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, str) and "BEGIN PGP PRIVATE KEY" in value:
            masked[key] = "***masked***"
        else:
            masked[key] = value
    return masked


def generate_correlation_id() -> str:
    """Create a short identifier linking the log records of one run."""
    return uuid.uuid4().hex[:12]


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string including ``extra`` fields."""

        now = datetime.now(timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "stage": getattr(record, "stage", None),
        }
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key in payload:
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def _compress_old_log(path: Path) -> None:
    """Compress ``path`` into a ``.gz`` file and remove the original."""

    compressed_path = path.with_suffix(path.suffix + ".gz")
    with path.open("rb") as source, gzip.open(compressed_path, "wb") as target:
        target.write(source.read())
    path.unlink(missing_ok=True)


def _cleanup_logs(log_dir: Path, retention_days: int) -> List[str]:
    """Rotate or purge log files in ``log_dir`` based on retention policy."""

    actions: List[str] = []
    now = datetime.now(timezone.utc)
    retention_delta = timedelta(days=retention_days)
    for file in log_dir.glob("*.jsonl"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            _compress_old_log(file)
            actions.append(f"compressed {file.name}")
    for file in log_dir.glob("*.jsonl.gz"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            file.unlink(missing_ok=True)
            actions.append(f"deleted {file.name}")
    return actions


def setup_logging(
    *,
    level: Union[int, str] = "INFO",
    log_dir: Optional[Path] = None,
    emit_json_logs: bool = True,
    retention_days: int = 30,
    max_log_size_mb: int = 100,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the package logger with console output and optional JSON files.

    Handlers installed by earlier calls are replaced so repeated CLI
    invocations in one process do not duplicate output.  ``level`` accepts a
    numeric logging level or its name.
    """

    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_ghapt_managed", False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.StreamHandler):
                stream = getattr(handler, "stream", None)
                if stream in (sys.stdout, sys.stderr):
                    continue
            handler.close()

    console_formatter = logging.Formatter("%(levelname)s: %(message)s")
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(console_formatter)
    stream_handler._ghapt_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if log_dir is not None and emit_json_logs:
        log_dir.mkdir(parents=True, exist_ok=True)
        for action in _cleanup_logs(log_dir, retention_days):
            logger.debug("log retention", extra={"stage": "logging", "action": action})
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            log_dir / f"gh-release-apt-{today}.jsonl",
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._ghapt_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
