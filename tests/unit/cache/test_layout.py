# tests/unit/cache/test_layout.py — v1
"""Tests for cache/layout.py — naming and page-file ordering."""

from __future__ import annotations

from pathlib import Path

import pytest

from docview.cache import layout
from docview.core.models import DocumentIdentity, DocumentType


class TestPageOrdering:
    def test_numeric_not_lexical(self):
        names = ["page-10.png", "page-2.png", "page-1.png"]
        assert layout.sort_page_files(names) == ["page-1.png", "page-2.png", "page-10.png"]
        assert sorted(names)[1] == "page-10.png"

    def test_hundreds(self):
        names = [f"page-{n}.png" for n in (100, 9, 10, 99, 1)]
        assert layout.sort_page_files(names) == [
            "page-1.png", "page-9.png", "page-10.png", "page-99.png", "page-100.png",
        ]

    def test_sort_key(self):
        assert layout.page_sort_key("page-2.png") < layout.page_sort_key("page-10.png")


class TestScan:
    def test_filters_and_sorts(self, tmp_path):
        for name in ["page-10.png", "page-2.png", "resolution.json", "doc.pdf", "page-0.png", "page-02.png"]:
            (tmp_path / name).write_bytes(b"x")
        assert layout.scan_page_files(tmp_path) == ["page-2.png", "page-10.png"]

    def test_tif_pages(self, tmp_path):
        (tmp_path / "page-3.tif").write_bytes(b"x")
        assert layout.scan_page_files(tmp_path) == ["page-3.tif"]

    def test_missing_directory(self, tmp_path):
        assert layout.scan_page_files(tmp_path / "gone") == []


class TestNames:
    def test_page_filename(self):
        assert layout.page_filename(7) == "page-7.png"
        assert layout.page_filename(7, layout.TIFF) == "page-7.tif"

    def test_page_filename_rejects_zero(self):
        with pytest.raises(ValueError):
            layout.page_filename(0)

    def test_page_number(self):
        assert layout.page_number("page-12.png") == 12
        assert layout.page_number("doc.txt") is None

    def test_pattern(self, tmp_path):
        assert layout.page_pattern(tmp_path).name == "page-%d.png"

    def test_entry_dir(self, tmp_path):
        identity = DocumentIdentity(
            path=Path("/docs/my report.pdf"), content_hash="abc", doc_type=DocumentType.PDF,
        )
        assert layout.entry_dir(tmp_path, identity) == tmp_path / "my_report.pdf-abc"

    @pytest.mark.parametrize("name, expected", [("a/b", "a_b"), ("..", "__"), ("", "_"), ("x:y", "x_y")])
    def test_sanitize(self, name, expected):
        assert layout.sanitize(name) == expected

    def test_artifact_paths(self, tmp_path):
        assert layout.witness_path(tmp_path).name == "resolution.json"
        assert layout.intermediate_pdf_path(tmp_path).name == "doc.pdf"
        assert layout.text_path(tmp_path).name == "doc.txt"
        assert layout.staging_dir(tmp_path, 4).name == ".staging-4"
