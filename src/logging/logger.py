# src/logging/logger.py — v3
"""JSON and text formatters, and setup of the ``docview`` logger from Settings."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from docview.logging.context import get_context

if TYPE_CHECKING:
    from docview.config.settings import Settings

ROOT_LOGGER_NAME = "docview"


class JsonFormatter(logging.Formatter):
    """Structured JSON log formatter, one object per line."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context_dict = ctx.as_dict()
        if context_dict:
            log_entry["context"] = context_dict

        # Extra data passed via logger.info(..., extra={"data": {...}})
        if hasattr(record, "data") and record.data:  # type: ignore[attr-defined]
            log_entry["data"] = record.data  # type: ignore[attr-defined]

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        parts = [
            datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        if ctx.document_id:
            parts.append(f"<{ctx.document_id}>")
        if ctx.converter:
            parts.append(f"[{ctx.converter}]")
        if ctx.step:
            parts.append(f"({ctx.step})")
        parts.append(f"- {record.getMessage()}")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(settings: Settings | None = None, verbose: bool = False) -> None:
    """Configure the ``docview`` logger from the logging fields of ``settings``.

    Without settings, INFO records go to stderr as text. ``verbose``
    forces DEBUG. Calling it again replaces the previous handlers.
    """
    level = "DEBUG" if verbose else (settings.log_level if settings else "INFO")
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers.clear()

    formatter: logging.Formatter
    if settings is not None and settings.log_format == "json":
        formatter = JsonFormatter()
    else:
        formatter = TextFormatter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings is not None and settings.log_file is not None:
        from docview.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(
            settings.log_file,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
