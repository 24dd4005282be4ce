# tests/unit/converters/test_rasterizers.py — v2
"""Tests for the rasterizers — argv building and invocation planning."""

from __future__ import annotations

import os

import pytest

from docview.cache import layout
from docview.config.settings import Settings
from docview.converters.base_rasterizer import contiguous_ranges, format_ranges
from docview.converters.djvu import DjvuRasterizer
from docview.converters.ghostscript import GhostscriptRasterizer
from docview.converters.mupdf import MupdfRasterizer
from docview.process.supervisor import ProcessSupervisor


@pytest.fixture
def plain_settings() -> Settings:
    return Settings(_env_file=None, ghostscript_options="-dSAFER,-sDEVICE=png16m")


class TestRanges:
    def test_contiguous(self):
        assert contiguous_ranges([5, 1, 2, 4]) == [(1, 2), (4, 5)]
        assert contiguous_ranges([3]) == [(3, 3)]
        assert contiguous_ranges([]) == []

    def test_dedup(self):
        assert contiguous_ranges([2, 2, 3]) == [(2, 3)]

    def test_format(self):
        assert format_ranges([(1, 2), (4, 4), (6, 9)]) == "1-2,4,6-9"


class TestGhostscript:
    def test_whole_document(self, plain_settings, tmp_path):
        gs = GhostscriptRasterizer(plain_settings)
        [inv] = gs.invocations(tmp_path / "a.pdf", tmp_path, None, 100)
        assert inv.args == [
            "-dSAFER", "-sDEVICE=png16m", "-r100",
            f"-sOutputFile={tmp_path / 'page-%d.png'}", str(tmp_path / "a.pdf"),
        ]
        assert inv.pages is None
        assert inv.name == "ghostscript[all]"

    def test_single_page_writes_exact_name(self, plain_settings, tmp_path):
        gs = GhostscriptRasterizer(plain_settings)
        [inv] = gs.invocations(tmp_path / "a.pdf", tmp_path, [3], 100)
        assert "-dFirstPage=3" in inv.args
        assert "-dLastPage=3" in inv.args
        assert f"-sOutputFile={tmp_path / 'page-3.png'}" in inv.args
        assert inv.staging_dir is None

    def test_bulk_ranges(self, plain_settings, tmp_path):
        gs = GhostscriptRasterizer(plain_settings)
        first, second = gs.invocations(tmp_path / "a.pdf", tmp_path, [1, 2, 4, 5], 100)
        assert first.staging_dir is None
        assert f"-sOutputFile={tmp_path / 'page-%d.png'}" in first.args
        assert first.pages == [1, 2]
        assert second.staging_dir == tmp_path / ".staging-4"
        assert second.first_page == 4
        assert f"-sOutputFile={tmp_path / '.staging-4' / 'page-%d.png'}" in second.args
        assert second.pages == [4, 5]

    def test_password(self, plain_settings, tmp_path):
        gs = GhostscriptRasterizer(plain_settings)
        [inv] = gs.invocations(tmp_path / "a.pdf", tmp_path, None, 100, password="pw")
        assert "-sPDFPassword=pw" in inv.args

    def test_single_range_only(self, plain_settings, tmp_path):
        gs = GhostscriptRasterizer(plain_settings)
        with pytest.raises(ValueError):
            gs.build_args(tmp_path / "a.pdf", tmp_path / "o", [(1, 1), (3, 3)], 100, None)

    def test_finalize_renumbers_staged_pages(self, plain_settings, tmp_path):
        gs = GhostscriptRasterizer(plain_settings)
        _, staged = gs.invocations(tmp_path / "a.pdf", tmp_path, [1, 2, 4, 5], 100)
        gs.prepare(staged)
        (staged.staging_dir / "page-1.png").write_bytes(b"4")
        (staged.staging_dir / "page-2.png").write_bytes(b"5")
        assert sorted(gs.finalize(staged, tmp_path)) == [4, 5]
        assert (tmp_path / "page-4.png").read_bytes() == b"4"
        assert (tmp_path / "page-5.png").read_bytes() == b"5"
        assert not staged.staging_dir.exists()

    def test_accepts_postscript(self, plain_settings):
        assert GhostscriptRasterizer(plain_settings).accepts_postscript


class TestMupdf:
    def test_subcommand(self, plain_settings, tmp_path):
        mu = MupdfRasterizer(plain_settings.model_copy(update={"rasterizer": "mupdf"}))
        [inv] = mu.invocations(tmp_path / "a.pdf", tmp_path, [1, 2, 4, 5], 72, password="pw")
        assert inv.program == "mutool"
        assert inv.args == [
            "draw", "-o", str(tmp_path / "page-%d.png"), "-r", "72", "-p", "pw",
            str(tmp_path / "a.pdf"), "1-2,4-5",
        ]
        assert inv.pages == [1, 2, 4, 5]

    def test_mudraw(self, plain_settings, tmp_path):
        mu = MupdfRasterizer(plain_settings.model_copy(update={"mupdf_subcommand": False}))
        [inv] = mu.invocations(tmp_path / "a.pdf", tmp_path, [3], 72)
        assert inv.program == "mudraw"
        assert inv.args[:2] == ["-o", str(tmp_path / "page-3.png")]

    def test_probe(self, plain_settings, tmp_path):
        mu = MupdfRasterizer(plain_settings)
        assert mu.password_probe_args(tmp_path / "a.pdf") == [
            "draw", "-F", "txt", "-o", os.devnull, str(tmp_path / "a.pdf"), "1",
        ]


class TestDjvu:
    def test_tiff_pages(self, plain_settings, tmp_path):
        dj = DjvuRasterizer(plain_settings)
        assert dj.page_ext == layout.TIFF
        [inv] = dj.invocations(tmp_path / "a.djvu", tmp_path, None, 100)
        assert inv.args == [
            "-format=tiff", "-scale=100", "-eachpage",
            str(tmp_path / "a.djvu"), str(tmp_path / "page-%d.tif"),
        ]

    def test_single_page(self, plain_settings, tmp_path):
        dj = DjvuRasterizer(plain_settings)
        [inv] = dj.invocations(tmp_path / "a.djvu", tmp_path, [2], 100)
        assert inv.args == [
            "-format=tiff", "-scale=100", "-page=2",
            str(tmp_path / "a.djvu"), str(tmp_path / "page-2.tif"),
        ]

    def test_ranges_in_one_run_with_real_numbers(self, plain_settings, tmp_path):
        dj = DjvuRasterizer(plain_settings)
        [inv] = dj.invocations(tmp_path / "a.djvu", tmp_path, [1, 2, 4, 5], 100)
        assert inv.args == [
            "-format=tiff", "-scale=100", "-page=1-2,4-5", "-eachpage",
            str(tmp_path / "a.djvu"), str(tmp_path / "page-%d.tif"),
        ]
        assert inv.staging_dir is None
        assert inv.pages == [1, 2, 4, 5]

    def test_finalize_keeps_page_numbers(self, plain_settings, tmp_path):
        dj = DjvuRasterizer(plain_settings)
        [inv] = dj.invocations(tmp_path / "a.djvu", tmp_path, [4, 5], 100)
        (tmp_path / "page-4.tif").write_bytes(b"4")
        (tmp_path / "page-5.tif").write_bytes(b"5")
        assert dj.finalize(inv, tmp_path) == [4, 5]
        assert layout.scan_page_files(tmp_path) == ["page-4.tif", "page-5.tif"]

    @pytest.mark.asyncio
    async def test_page_count(self, settings, make_document):
        doc = make_document("scan.djvu", ["a", "b", "c"], magic="AT&TFORM")
        assert await DjvuRasterizer(settings).page_count(ProcessSupervisor("t"), doc) == 3


class TestDryRuns:
    @pytest.mark.asyncio
    async def test_password_detected(self, settings, make_document):
        doc = make_document("locked.pdf", ["a"], flags=("ENCRYPTED",))
        gs = GhostscriptRasterizer(settings)
        assert await gs.needs_password(ProcessSupervisor("t"), doc)

    @pytest.mark.asyncio
    async def test_no_password(self, settings, make_document):
        doc = make_document("open.pdf", ["a"])
        assert not await GhostscriptRasterizer(settings).needs_password(ProcessSupervisor("t"), doc)

    @pytest.mark.asyncio
    async def test_page_count(self, settings, pdf_document):
        gs = GhostscriptRasterizer(settings)
        assert await gs.page_count(ProcessSupervisor("t"), pdf_document) == 5

    @pytest.mark.asyncio
    async def test_page_count_unknown(self, settings, make_document):
        doc = make_document("bad.pdf", ["a"], flags=("CORRUPT",))
        assert await GhostscriptRasterizer(settings).page_count(ProcessSupervisor("t"), doc) is None

    @pytest.mark.asyncio
    async def test_page_count_without_pdfinfo(self, settings, pdf_document, tmp_path):
        gs = GhostscriptRasterizer(settings.model_copy(update={"pdfinfo_program": str(tmp_path / "none")}))
        assert await gs.page_count(ProcessSupervisor("t"), pdf_document) is None
