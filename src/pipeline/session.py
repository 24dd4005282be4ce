# src/pipeline/session.py — v2
"""Per-document session state shared by every core operation.

One DocumentSession exists per opened document. It replaces ambient
globals: the current job, refresh timer, page snapshot, search index
and cache entry all live here and are passed by reference.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from docview.core.models import DocumentIdentity, DocumentType, SessionMode
from docview.display.viewport import Viewport
from docview.process.supervisor import ProcessSupervisor

if TYPE_CHECKING:
    from docview.cache.models import CacheEntry
    from docview.cache.store import CacheStore
    from docview.config.settings import Settings
    from docview.converters.converter_factory import ConverterSet
    from docview.display.page_store import PageRefresher
    from docview.display.viewport import BaseDisplay
    from docview.pipeline.job import ConversionJob
    from docview.search.index import SearchIndex


@dataclass
class DocumentSession:
    identity: DocumentIdentity
    settings: Settings
    cache_store: CacheStore
    entry: CacheEntry
    converters: ConverterSet
    display: BaseDisplay
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    supervisor: ProcessSupervisor | None = None
    viewports: list[Viewport] = field(default_factory=list)
    resolution: int = 0
    mode: SessionMode = "image"

    # === CONVERSION ===
    generation: int = 0
    job: ConversionJob | None = None
    refresher: PageRefresher | None = None
    page_files: list[str] = field(default_factory=list)

    # === PASSWORD ===
    password: str | None = None
    password_prompted: bool = False

    # === SEARCH ===
    search_index: SearchIndex | None = None
    search_regex: str | None = None

    def __post_init__(self) -> None:
        if self.supervisor is None:
            self.supervisor = ProcessSupervisor(
                self.session_id, kill_grace_seconds=self.settings.kill_grace_seconds
            )
        if not self.resolution:
            self.resolution = self.settings.resolution

    @property
    def doc_type(self) -> DocumentType:
        return self.identity.doc_type

    @property
    def directory(self) -> Path:
        return self.entry.directory

    @property
    def page_ext(self) -> str:
        return self.converters.rasterizer.page_ext

    @property
    def converting(self) -> bool:
        return self.job is not None and self.job.active

    # --- Generations ---

    def next_generation(self) -> int:
        self.generation += 1
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    # --- Viewports ---

    def add_viewport(self, viewport_id: str | None = None, page: int = 1) -> Viewport:
        viewport = Viewport(viewport_id=viewport_id or f"view-{len(self.viewports) + 1}", page=page)
        self.viewports.append(viewport)
        return viewport

    def remove_viewport(self, viewport: Viewport) -> None:
        self.viewports = [v for v in self.viewports if v is not viewport]

    def priority_pages(self) -> list[int]:
        """Pages visible in any viewport, ascending and unique."""
        return sorted({v.page for v in self.viewports if v.page >= 1})
