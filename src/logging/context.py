# src/logging/context.py — v3
"""Contextual logging support: tag log records with the document, the
session and the converter step currently running.

The document tags are set once per session task. Converter tags are
scoped with ``converter_context`` so they never outlive their step.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

_document_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "document_id", default=None
)
_session_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "session_id", default=None
)
_converter: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "converter", default=None
)
# Chain step of the converter: "intermediate", "render[1-2]", "extract-text", ...
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Snapshot of the current logging context."""

    document_id: str | None = None
    session_id: str | None = None
    converter: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        document_id=_document_id.get(),
        session_id=_session_id.get(),
        converter=_converter.get(),
        step=_step.get(),
    )


def set_document_context(document_id: str, session_id: str) -> None:
    """Tag every later record of this task with the document and session."""
    _document_id.set(document_id)
    _session_id.set(session_id)


@contextmanager
def converter_context(converter: str, step: str | None = None) -> Iterator[None]:
    """Tag records with ``converter`` and ``step`` inside the block only.

    Usage:
        with converter_context("ghostscript", "render[3]"):
            await supervisor.run(...)
    """
    converter_token = _converter.set(converter)
    step_token = _step.set(step)
    try:
        yield
    finally:
        _step.reset(step_token)
        _converter.reset(converter_token)


def clear_context() -> None:
    """Reset all context variables."""
    _document_id.set(None)
    _session_id.set(None)
    _converter.set(None)
    _step.set(None)
