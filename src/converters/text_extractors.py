# src/converters/text_extractors.py — v1
"""Plain-text extractors, one per source family.

Every tool writes form feeds between pages, which is what the search
index counts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docview.config.settings import Settings
    from docview.process.supervisor import ProcessSupervisor


class BaseTextExtractor(ABC):
    name: str = "to-txt"

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    @abstractmethod
    def program(self) -> str:
        """Executable invoked for extraction."""

    def build_args(self, source: Path, target: Path) -> list[str]:
        return [str(source), str(target)]

    async def extract(
        self,
        supervisor: ProcessSupervisor,
        source: Path,
        target: Path,
    ) -> bool:
        """Exit status alone decides success."""
        result = await supervisor.run(
            self.name, self.program, self.build_args(source, target), cwd=target.parent
        )
        return result.ok and target.is_file()


class PdfToTextExtractor(BaseTextExtractor):
    name = "pdf->txt"

    @property
    def program(self) -> str:
        return self._settings.pdftotext_program


class PsToAsciiExtractor(BaseTextExtractor):
    name = "ps->txt"

    @property
    def program(self) -> str:
        return self._settings.ps2ascii_program


class DjvuTextExtractor(BaseTextExtractor):
    name = "djvu->txt"

    @property
    def program(self) -> str:
        return self._settings.djvutxt_program
