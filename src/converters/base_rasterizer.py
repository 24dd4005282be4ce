# src/converters/base_rasterizer.py — v1
"""Abstract rasterizer interface: document in, page images out.

A rasterizer never runs anything itself. It builds argv lists
(Invocation) that the conversion pipeline hands to the process
supervisor, and it knows how to post-process what the tool wrote.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from docview.cache import layout
from docview.core.models import Invocation

if TYPE_CHECKING:
    from docview.config.settings import Settings
    from docview.process.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

PageRange = tuple[int, int]

_PDFINFO_PAGES_RE = re.compile(r"^Pages:\s+(\d+)\s*$", re.MULTILINE)


def contiguous_ranges(pages: list[int]) -> list[PageRange]:
    """Collapse page numbers into sorted inclusive ranges.

    >>> contiguous_ranges([5, 1, 2, 4])
    [(1, 2), (4, 5)]
    """
    ranges: list[PageRange] = []
    for page in sorted(set(pages)):
        if ranges and page == ranges[-1][1] + 1:
            ranges[-1] = (ranges[-1][0], page)
        else:
            ranges.append((page, page))
    return ranges


def format_ranges(ranges: list[PageRange]) -> str:
    """``[(1, 2), (4, 4)]`` -> ``'1-2,4'``."""
    return ",".join(str(a) if a == b else f"{a}-{b}" for a, b in ranges)


class BaseRasterizer(ABC):
    """Unified interface for page rasterizers.

    Subclasses set ``absolute_numbering`` when the tool's ``%d`` output
    pattern is the real page number. Tools that count output pages from
    1 get ranges staged in a side directory and renamed afterwards.
    """

    name: str = "rasterizer"
    page_ext: str = layout.PNG
    accepts_postscript: bool = False
    absolute_numbering: bool = False
    password_marker: str | None = None

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    @abstractmethod
    def program(self) -> str:
        """Executable invoked for rendering."""

    @property
    def required_programs(self) -> list[str]:
        return [self.program]

    @abstractmethod
    def build_args(
        self,
        document: Path,
        output: Path,
        ranges: list[PageRange] | None,
        resolution: int,
        password: str | None,
    ) -> list[str]:
        """Argv (without program) rendering ``ranges`` of ``document`` to ``output``."""

    def password_probe_args(self, document: Path) -> list[str] | None:
        """Argv of a dry run whose output reveals a password requirement."""
        return None

    # --- Invocation planning ---

    def invocations(
        self,
        document: Path,
        out_dir: Path,
        pages: list[int] | None,
        resolution: int,
        password: str | None = None,
    ) -> list[Invocation]:
        """Plan the tool runs needed to render ``pages`` (None = whole document)."""
        pattern = layout.page_pattern(out_dir, self.page_ext)
        if pages is None:
            return [self._invocation(document, pattern, None, resolution, password, None)]

        ranges = contiguous_ranges(pages)
        if not ranges:
            return []
        if self.absolute_numbering:
            output = pattern
            if len(ranges) == 1 and ranges[0][0] == ranges[0][1]:
                output = out_dir / layout.page_filename(ranges[0][0], self.page_ext)
            return [self._invocation(document, output, ranges, resolution, password, sorted(set(pages)))]

        planned: list[Invocation] = []
        for first, last in ranges:
            span = list(range(first, last + 1))
            if first == last:
                output = out_dir / layout.page_filename(first, self.page_ext)
                planned.append(self._invocation(document, output, [(first, last)], resolution, password, span))
            elif first == 1:
                planned.append(self._invocation(document, pattern, [(first, last)], resolution, password, span))
            else:
                staging = layout.staging_dir(out_dir, first)
                inv = self._invocation(
                    document,
                    layout.page_pattern(staging, self.page_ext),
                    [(first, last)],
                    resolution,
                    password,
                    span,
                )
                planned.append(inv.model_copy(update={"staging_dir": staging, "first_page": first}))
        return planned

    def _invocation(
        self,
        document: Path,
        output: Path,
        ranges: list[PageRange] | None,
        resolution: int,
        password: str | None,
        pages: list[int] | None,
    ) -> Invocation:
        label = format_ranges(ranges) if ranges else "all"
        return Invocation(
            name=f"{self.name}[{label}]",
            program=self.program,
            args=self.build_args(document, output, ranges, resolution, password),
            pages=pages,
        )

    def prepare(self, invocation: Invocation) -> None:
        """Create directories an invocation writes into."""
        if invocation.staging_dir is not None:
            shutil.rmtree(invocation.staging_dir, ignore_errors=True)
            invocation.staging_dir.mkdir(mode=0o700)

    def finalize(self, invocation: Invocation, out_dir: Path) -> list[int]:
        """Move staged output into place; return the page numbers produced."""
        staging = invocation.staging_dir
        if staging is None:
            return invocation.pages or []
        produced: list[int] = []
        offset = (invocation.first_page or 1) - 1
        for name in layout.scan_page_files(staging):
            relative = layout.page_number(name)
            if relative is None:
                continue
            page = relative + offset
            os.replace(staging / name, out_dir / layout.page_filename(page, self.page_ext))
            produced.append(page)
        shutil.rmtree(staging, ignore_errors=True)
        return produced

    # --- Dry runs ---

    async def needs_password(self, supervisor: ProcessSupervisor, document: Path) -> bool:
        """Probe whether ``document`` is password protected."""
        args = self.password_probe_args(document)
        if args is None or self.password_marker is None:
            return False
        result = await supervisor.run(f"{self.name}-password-probe", self.program, args)
        protected = self.password_marker in result.output
        if protected:
            logger.info("%s is password protected", document.name)
        return protected

    async def page_count(self, supervisor: ProcessSupervisor, document: Path) -> int | None:
        """Number of pages via pdfinfo, or None when it cannot be determined."""
        program = self._settings.pdfinfo_program
        if not program or not supervisor.is_available(program):
            return None
        result = await supervisor.run("pdfinfo", program, [str(document)])
        if not result.ok:
            return None
        match = _PDFINFO_PAGES_RE.search(result.output)
        return int(match.group(1)) if match else None
