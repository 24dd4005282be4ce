# src/converters/intermediate.py — v1
"""Converters producing the intermediate ``doc.pdf`` (dvi, ps, office formats)."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from docview.cache import layout

if TYPE_CHECKING:
    from docview.config.settings import Settings
    from docview.process.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


class BaseIntermediateConverter(ABC):
    """Two-argument ``source -> pdf`` conversion step."""

    name: str = "to-pdf"

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    @abstractmethod
    def program(self) -> str:
        """Executable invoked for the conversion."""

    def build_args(self, source: Path, target: Path) -> list[str]:
        return [str(source), str(target)]

    def finalize(self, source: Path, target: Path) -> Path:
        """Post-process tool output; returns the canonical intermediate path."""
        return target

    async def convert(
        self,
        supervisor: ProcessSupervisor,
        source: Path,
        out_dir: Path,
    ) -> Path | None:
        """Run the conversion; returns the intermediate pdf or None on failure."""
        target = layout.intermediate_pdf_path(out_dir)
        result = await supervisor.run(
            self.name, self.program, self.build_args(source, target), cwd=out_dir
        )
        if not result.ok:
            return None
        produced = self.finalize(source, target)
        if not produced.is_file():
            logger.warning("%s exited cleanly but %s is missing", self.name, produced)
            return None
        return produced


class DviToPdfConverter(BaseIntermediateConverter):
    name = "dvi->pdf"

    @property
    def program(self) -> str:
        return self._settings.dvipdf_program


class PsToPdfConverter(BaseIntermediateConverter):
    name = "ps->pdf"

    @property
    def program(self) -> str:
        return self._settings.ps2pdf_program


class OdfToPdfConverter(BaseIntermediateConverter):
    """Office-suite conversion; the tool only accepts an output directory."""

    name = "odf->pdf"

    @property
    def program(self) -> str:
        return self._settings.odf_program

    def build_args(self, source: Path, target: Path) -> list[str]:
        return [
            "--headless", "--convert-to", "pdf",
            "--outdir", str(target.parent), str(source),
        ]

    def finalize(self, source: Path, target: Path) -> Path:
        produced = target.parent / f"{source.stem}.pdf"
        if produced != target and produced.is_file():
            os.replace(produced, target)
        return target
