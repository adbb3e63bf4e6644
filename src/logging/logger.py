# src/logging/logger.py — v1
"""JSON and text formatters for upload sessions, and the vidpipe root logger setup."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from vidpipe.logging.context import LogContext, get_context


def _timestamp() -> datetime:
    return datetime.now(timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, session context under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            entry["context"] = context

        # extra={"data": {...}}
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line console format: time, level, logger, session/upload, step."""

    def format(self, record: logging.LogRecord) -> str:
        prefix = [
            _timestamp().strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        tag = _session_tag(get_context())
        if tag:
            prefix.append(tag)
        text = f"{' '.join(prefix)} - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            text += "\n" + self.formatException(record.exc_info)
        return text


def _session_tag(ctx: LogContext) -> str:
    ids = "/".join(v for v in (ctx.session_id, ctx.upload_id) if v)
    tag = f"[{ids}]" if ids else ""
    if ctx.step:
        tag = f"{tag} ({ctx.step})".strip()
    return tag


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """Configure the ``vidpipe`` logger tree.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: "json" or "text".
        log_file: Optional rotating log file next to the stderr stream.
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
    """
    root_logger = logging.getLogger("vidpipe")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter: logging.Formatter = (
        JsonFormatter() if log_format == "json" else TextFormatter()
    )

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root_logger.addHandler(console)

    if log_file:
        from vidpipe.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(
            str(log_file), rotation=rotation, retention=retention
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
