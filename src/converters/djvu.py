# src/converters/djvu.py — v2
"""DjVu rasterizer using ``ddjvu`` (TIFF pages) and ``djvused`` for page counts.

With ``-eachpage`` ddjvu fills ``%d`` with the real page number, so every
page list goes into a single run (``-page=1-2,4-5``).
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from docview.cache import layout
from docview.converters.base_rasterizer import BaseRasterizer, PageRange, format_ranges

if TYPE_CHECKING:
    from docview.process.supervisor import ProcessSupervisor


class DjvuRasterizer(BaseRasterizer):
    name = "ddjvu"
    page_ext = layout.TIFF
    absolute_numbering = True

    @property
    def program(self) -> str:
        return self._settings.ddjvu_program

    def build_args(
        self,
        document: Path,
        output: Path,
        ranges: list[PageRange] | None,
        resolution: int,
        password: str | None,
    ) -> list[str]:
        args = ["-format=tiff", f"-scale={resolution}"]
        single = ranges is not None and len(ranges) == 1 and ranges[0][0] == ranges[0][1]
        if ranges:
            args.append(f"-page={format_ranges(ranges)}")
        if not single:
            args.append("-eachpage")
        args += [str(document), str(output)]
        return args

    async def page_count(self, supervisor: ProcessSupervisor, document: Path) -> int | None:
        program = self._settings.djvused_program
        if not program or not supervisor.is_available(program):
            return None
        result = await supervisor.run("djvused", program, ["-e", "n", str(document)])
        if not result.ok:
            return None
        try:
            return int(result.output.strip().splitlines()[0])
        except (ValueError, IndexError):
            return None
