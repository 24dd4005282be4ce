# src/display/viewport.py — v1
"""Viewport state and the narrow display interface the core talks to.

The display layer owns painting, keybindings and prompts. The core only
asks it to redisplay a viewport, show a placeholder or text, print a
message, and answer two kinds of questions.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class Viewport:
    """One view onto a document, owned by the display layer."""

    viewport_id: str
    page: int = 1
    # (x, y, width, height) in image pixels, None = whole page
    slice: tuple[int, int, int, int] | None = None
    # Display-layer handle of the image currently painted, if any.
    image: Any = None

    def purge_image(self) -> None:
        self.image = None


class BaseDisplay(ABC):
    """Callbacks the conversion core uses to reach the user."""

    @abstractmethod
    def redisplay(self, viewport: Viewport, image_path: Path, force: bool = False) -> None:
        """Paint ``image_path`` into ``viewport``; ``force`` ignores cached images."""

    @abstractmethod
    def show_placeholder(self, viewport: Viewport, page: int) -> None:
        """Show a "cannot render" placeholder for ``page``."""

    @abstractmethod
    def show_text(self, text_path: Path) -> None:
        """Fallback: show the extracted plain text instead of images."""

    @abstractmethod
    def message(self, text: str) -> None:
        """Short status message for the user."""

    @abstractmethod
    async def prompt_password(self, prompt: str) -> str | None:
        """Ask for a document password; None when the user declines."""

    @abstractmethod
    async def confirm(self, question: str) -> bool:
        """Yes/no question."""


class LoggingDisplay(BaseDisplay):
    """Headless display that reports through the logger.

    Args:
        password: Answer for password prompts.
        assume_yes: Answer for confirmations.
    """

    def __init__(self, password: str | None = None, assume_yes: bool = True) -> None:
        self._password = password
        self._assume_yes = assume_yes
        self.painted: dict[str, Path] = {}

    def redisplay(self, viewport: Viewport, image_path: Path, force: bool = False) -> None:
        self.painted[viewport.viewport_id] = image_path
        viewport.image = image_path
        logger.info("[%s] page %d -> %s", viewport.viewport_id, viewport.page, image_path.name)

    def show_placeholder(self, viewport: Viewport, page: int) -> None:
        viewport.image = None
        logger.warning("[%s] cannot render page %d", viewport.viewport_id, page)

    def show_text(self, text_path: Path) -> None:
        logger.info("Text-only display: %s", text_path)

    def message(self, text: str) -> None:
        logger.info("%s", text)

    async def prompt_password(self, prompt: str) -> str | None:
        logger.info("%s%s", prompt, "<provided>" if self._password else "<none>")
        return self._password

    async def confirm(self, question: str) -> bool:
        logger.info("%s %s", question, "yes" if self._assume_yes else "no")
        return self._assume_yes
