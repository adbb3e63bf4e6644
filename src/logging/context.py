# src/logging/context.py — v1
"""Contextual logging support — attach session_id, upload_id, step to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per upload session.
_session_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "session_id", default=None
)
_upload_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "upload_id", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    session_id: str | None = None
    upload_id: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        session_id=_session_id.get(),
        upload_id=_upload_id.get(),
        step=_step.get(),
    )


def set_session_context(session_id: str, upload_id: str | None = None) -> None:
    """Set session-level context (called when an upload session starts)."""
    _session_id.set(session_id)
    _upload_id.set(upload_id)


def set_upload_context(upload_id: str) -> None:
    """Attach the upload id once the storage destination is known."""
    _upload_id.set(upload_id)


def set_step_context(step: str | None) -> None:
    """Set the pipeline step currently being driven."""
    _step.set(step)


def clear_context() -> None:
    """Reset all context variables."""
    _session_id.set(None)
    _upload_id.set(None)
    _step.set(None)
