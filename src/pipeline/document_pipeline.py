# src/pipeline/document_pipeline.py — v3
"""Document pipeline: top-level orchestrator for one process.

Opens documents into sessions and drives their lifecycle:
  open     identity -> cache entry -> converter set -> reuse or convert
  revert   sanity-check the source, recompute identity, reconvert
  close    cancel the job and wait for its processes

Sessions never share state except the CacheStore and its locks.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable

from docview.cache import layout
from docview.cache.fingerprint import compute_identity
from docview.cache.store import CacheStore
from docview.converters.converter_factory import create_converters
from docview.core.models import ConversionReport, DocumentType
from docview.display.page_store import display_page
from docview.display.viewport import BaseDisplay, LoggingDisplay
from docview.logging.context import set_document_context
from docview.pipeline.conversion import cancel_conversion, reconvert, start_conversion
from docview.pipeline.session import DocumentSession
from docview.process.supervisor import ProcessSupervisor, ToolNotFoundError
from docview.search.text_extraction import extract_text

if TYPE_CHECKING:
    from docview.config.settings import Settings
    from docview.pipeline.job import ConversionJob

logger = logging.getLogger(__name__)


class DocumentPipeline:
    """Opens documents and runs their conversions.

    Usage:
        pipeline = DocumentPipeline(settings)
        session = await pipeline.open("paper.pdf", pages=[3])
        if session.job is not None:
            report = await session.job.wait()
    """

    def __init__(
        self,
        settings: Settings,
        cache_store: CacheStore | None = None,
        display: BaseDisplay | None = None,
    ) -> None:
        self._settings = settings
        self._cache_store = cache_store or CacheStore(settings.cache_root_path)
        self._display = display or LoggingDisplay()
        self._sessions: list[DocumentSession] = []

    @property
    def cache_store(self) -> CacheStore:
        return self._cache_store

    @property
    def sessions(self) -> list[DocumentSession]:
        return list(self._sessions)

    # --- Open / close ---

    async def open(
        self,
        path: Path | str,
        pages: Iterable[int] = (1,),
        doc_type: DocumentType | None = None,
        display: BaseDisplay | None = None,
        on_page_ready: Callable[[int], None] | None = None,
        on_complete: Callable[[ConversionReport], None] | None = None,
        render: bool = True,
        resolution: int | None = None,
    ) -> DocumentSession:
        """Open ``path`` with one viewport per entry of ``pages``.

        A complete cached conversion is displayed immediately; otherwise a
        conversion job starts in the background (``session.job``). When
        the rasterization chain cannot run, the session falls back to
        text mode or becomes unavailable. ``render=False`` only sets the
        session up, for callers that need text alone. A cached
        conversion made at another ``resolution`` than the one requested
        is replaced.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            DocumentTypeError: If the document type cannot be resolved.
            CacheSecurityError: If the cache directory is a symlink.
        """
        identity = compute_identity(path, doc_type)
        entry = self._cache_store.resolve(identity)
        session = DocumentSession(
            identity=identity,
            settings=self._settings,
            cache_store=self._cache_store,
            entry=entry,
            converters=create_converters(identity.doc_type, self._settings),
            display=display or self._display,
        )
        set_document_context(identity.short_id, session.session_id)
        for page in pages:
            session.add_viewport(page=page)
        self._sessions.append(session)
        logger.info(
            "Opened %s as %s (cache %s)",
            identity.basename, identity.doc_type.value, entry.directory.name,
        )

        missing = _missing_programs(session.converters.raster_programs)
        if missing:
            session.display.message(
                f"Cannot display {identity.basename} as images: "
                f"missing {', '.join(missing)}"
            )
            await self._fall_back_to_text(session)
            return session

        if resolution is not None:
            session.resolution = resolution
        if self._cache_store.already_converted(entry) and resolution in (None, entry.resolution):
            assert entry.resolution is not None
            session.resolution = entry.resolution
            session.page_files = list(entry.page_files)
            logger.info("Using cached pages of %s (%d)", identity.basename, len(entry.page_files))
            for viewport in session.viewports:
                display_page(session, viewport)
            return session

        if not render:
            return session
        start_conversion(session, on_page_ready=on_page_ready, on_complete=on_complete)
        return session

    async def close(self, session: DocumentSession) -> None:
        """Cancel the session's job and wait until its processes are gone."""
        job = session.job
        cancel_conversion(session)
        if job is not None:
            await job.wait()
        await session.supervisor.wait_idle()
        if session in self._sessions:
            self._sessions.remove(session)
        logger.debug("Closed session %s", session.session_id)

    async def _fall_back_to_text(self, session: DocumentSession) -> None:
        if _missing_programs(session.converters.text_programs):
            session.mode = "unavailable"
            session.display.message(f"No way to display {session.identity.basename}")
            return
        try:
            artifact = await extract_text(session)
        except ToolNotFoundError as exc:
            logger.warning("Text fallback failed: %s", exc)
            artifact = None
        if artifact is None:
            session.mode = "unavailable"
            session.display.message(f"No way to display {session.identity.basename}")
            return
        session.mode = "text"
        session.display.show_text(artifact)

    # --- Reconversion ---

    async def revert(
        self,
        session: DocumentSession,
        on_complete: Callable[[ConversionReport], None] | None = None,
    ) -> ConversionJob | None:
        """Re-read the source from disk and reconvert it.

        A source that fails the sanity check (a pdf being rewritten, say)
        is left alone: the user is told and None is returned.
        """
        source = session.identity.path
        if not source.is_file():
            session.display.message(f"{source} no longer exists; not reverting")
            return None
        if not await self._sanity_check(session):
            session.display.message(f"{source.name} looks corrupted; not reverting yet")
            return None

        cancel_conversion(session)
        identity = compute_identity(source, session.doc_type)
        if identity != session.identity:
            logger.info(
                "Content of %s changed (%s -> %s)",
                source.name, session.identity.content_hash[:8], identity.content_hash[:8],
            )
            session.identity = identity
            session.entry = self._cache_store.resolve(identity)
            session.password = None
            session.password_prompted = False
            set_document_context(identity.short_id, session.session_id)
        return reconvert(session, on_complete=on_complete)

    async def _sanity_check(self, session: DocumentSession) -> bool:
        """pdfinfo must accept a pdf source; other types are not checked."""
        program = self._settings.pdfinfo_program
        if session.doc_type is not DocumentType.PDF or not ProcessSupervisor.is_available(program):
            return True
        result = await session.supervisor.run(
            "pdfinfo-check", program, [str(session.identity.path)]
        )
        return result.ok

    def set_resolution(
        self,
        session: DocumentSession,
        resolution: int,
        on_complete: Callable[[ConversionReport], None] | None = None,
    ) -> ConversionJob:
        """Change the rendering resolution; the whole document is reconverted."""
        if resolution <= 0:
            raise ValueError(f"resolution must be positive, got {resolution}")
        session.resolution = resolution
        return reconvert(session, on_complete=on_complete)

    async def clear_cache(self, session: DocumentSession) -> None:
        """Drop the session's cached pages and text."""
        job = session.job
        cancel_conversion(session)
        if job is not None:
            await job.wait()
        async with self._cache_store.lock_for(session.entry):
            self._cache_store.purge(session.entry)
        session.page_files = layout.scan_page_files(session.directory)
        session.search_index = None
        for viewport in session.viewports:
            viewport.purge_image()


def _missing_programs(programs: list[str]) -> list[str]:
    return [p for p in programs if not ProcessSupervisor.is_available(p)]
