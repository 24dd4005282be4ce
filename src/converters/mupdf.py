# src/converters/mupdf.py — v1
"""MuPDF rasterizer: ``mutool draw`` on current releases, ``mudraw`` on old ones."""

from __future__ import annotations

import os
from pathlib import Path

from docview.converters.base_rasterizer import BaseRasterizer, PageRange, format_ranges


class MupdfRasterizer(BaseRasterizer):
    """Renders with MuPDF; ``%d`` in the output name is the real page number."""

    name = "mupdf"
    absolute_numbering = True
    password_marker = "cannot authenticate password"

    @property
    def program(self) -> str:
        if self._settings.mupdf_subcommand:
            return self._settings.mutool_program
        return self._settings.mudraw_program

    def _prefix(self) -> list[str]:
        return ["draw"] if self._settings.mupdf_subcommand else []

    def build_args(
        self,
        document: Path,
        output: Path,
        ranges: list[PageRange] | None,
        resolution: int,
        password: str | None,
    ) -> list[str]:
        args = self._prefix() + ["-o", str(output), "-r", str(resolution)]
        if password:
            args += ["-p", password]
        args.append(str(document))
        if ranges:
            args.append(format_ranges(ranges))
        return args

    def password_probe_args(self, document: Path) -> list[str] | None:
        return self._prefix() + ["-F", "txt", "-o", os.devnull, str(document), "1"]
