# src/converters/ghostscript.py — v1
"""Ghostscript rasterizer (PDF and PostScript to PNG)."""

from __future__ import annotations

from pathlib import Path

from docview.converters.base_rasterizer import BaseRasterizer, PageRange


class GhostscriptRasterizer(BaseRasterizer):
    """Renders with ``gs``; numbers output pages from 1 within each run."""

    name = "ghostscript"
    accepts_postscript = True
    absolute_numbering = False
    password_marker = "This file requires a password"

    @property
    def program(self) -> str:
        return self._settings.ghostscript_program

    def build_args(
        self,
        document: Path,
        output: Path,
        ranges: list[PageRange] | None,
        resolution: int,
        password: str | None,
    ) -> list[str]:
        if ranges is not None and len(ranges) != 1:
            raise ValueError("ghostscript renders one contiguous range per run")
        args = list(self._settings.ghostscript_options_list)
        args.append(f"-r{resolution}")
        if ranges:
            first, last = ranges[0]
            args += [f"-dFirstPage={first}", f"-dLastPage={last}"]
        if password:
            args.append(f"-sPDFPassword={password}")
        args += [f"-sOutputFile={output}", str(document)]
        return args

    def password_probe_args(self, document: Path) -> list[str] | None:
        return [
            "-dNODISPLAY", "-dSAFER", "-dBATCH", "-dNOPAUSE", "-q",
            "-dFirstPage=1", "-dLastPage=1", str(document),
        ]
