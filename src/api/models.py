# src/api/models.py — v2
"""API-level models: RenderRequest, RenderResult, SearchResult."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from docview.core.models import ConversionReport, DocumentType, SessionMode


class RenderRequest(BaseModel):
    """Input of facade.open_and_render()."""

    path: Path
    pages: list[int] = Field(default_factory=lambda: [1])
    doc_type: DocumentType | None = None
    resolution: int | None = Field(default=None, gt=0)
    password: str | None = None
    reconvert: bool = False


class RenderResult(BaseModel):
    """Return value of facade.open_and_render()."""

    path: Path
    doc_type: DocumentType
    cache_dir: Path
    mode: SessionMode
    resolution: int
    page_files: list[str] = Field(default_factory=list)
    from_cache: bool = False
    report: ConversionReport | None = None

    @property
    def page_count(self) -> int:
        return len(self.page_files)


class SearchResult(BaseModel):
    """Return value of facade.search_document()."""

    path: Path
    regex: str
    matches: dict[int, list[str]] = Field(default_factory=dict)

    @property
    def pages(self) -> list[int]:
        return sorted(self.matches)

    @property
    def match_count(self) -> int:
        return sum(len(lines) for lines in self.matches.values())
