# src/api/facade.py — v3
"""Public API facade: one-shot rendering, searching and cache cleanup.

Usage:
    from docview.api.facade import open_and_render
    result = await open_and_render(RenderRequest(path=Path("paper.pdf")))
"""

from __future__ import annotations

import logging
from pathlib import Path

from docview.api.models import RenderRequest, RenderResult, SearchResult
from docview.cache.store import CacheStore
from docview.config.settings import Settings, load_settings
from docview.core.models import DocumentType
from docview.display.viewport import BaseDisplay, LoggingDisplay
from docview.pipeline.conversion import reconvert
from docview.pipeline.document_pipeline import DocumentPipeline
from docview.search.navigation import search

logger = logging.getLogger(__name__)


async def open_and_render(
    request: RenderRequest,
    settings: Settings | None = None,
    cache_store: CacheStore | None = None,
    display: BaseDisplay | None = None,
) -> RenderResult:
    """Render a document into the cache and wait for the conversion.

    Args:
        request: What to render.
        settings: Global settings. Loaded from the environment if None.
        cache_store: Shared cache store. One is created from settings if None.
        display: Display callbacks. Headless logging display if None.

    Returns:
        RenderResult describing the cache directory and its pages.

    Raises:
        FileNotFoundError: If the document does not exist.
        DocumentTypeError: If its type cannot be resolved.
    """
    settings = settings or load_settings()
    display = display or LoggingDisplay(password=request.password)
    pipeline = DocumentPipeline(settings, cache_store=cache_store, display=display)

    session = await pipeline.open(
        request.path,
        pages=request.pages,
        doc_type=request.doc_type,
        resolution=request.resolution,
    )
    from_cache = session.mode == "image" and session.job is None
    if request.reconvert and session.mode == "image":
        reconvert(session)
        from_cache = False

    report = None
    if session.job is not None:
        report = await session.job.wait()
    await pipeline.close(session)

    result = RenderResult(
        path=session.identity.path,
        doc_type=session.doc_type,
        cache_dir=session.directory,
        mode=session.mode,
        resolution=session.resolution,
        page_files=session.cache_store.page_files(session.entry),
        from_cache=from_cache,
        report=report,
    )
    logger.info(
        "%s: %d page file(s) in %s%s",
        result.path.name, result.page_count, result.cache_dir,
        " (cached)" if from_cache else "",
    )
    return result


async def search_document(
    path: Path | str,
    regex: str,
    settings: Settings | None = None,
    cache_store: CacheStore | None = None,
    doc_type: DocumentType | None = None,
    display: BaseDisplay | None = None,
) -> SearchResult:
    """Extract the text of ``path`` (cached) and index ``regex`` matches.

    No pages are rendered.

    Raises:
        InvalidSearchPatternError: If ``regex`` does not compile.
    """
    settings = settings or load_settings()
    pipeline = DocumentPipeline(settings, cache_store=cache_store, display=display)
    session = await pipeline.open(path, pages=[], doc_type=doc_type, render=False)
    try:
        index = await search(session, regex)
    finally:
        await pipeline.close(session)
    return SearchResult(path=session.identity.path, regex=regex, matches=index or {})


def clear_cache(settings: Settings | None = None, cache_store: CacheStore | None = None) -> int:
    """Remove every cache entry. Returns the number removed."""
    settings = settings or load_settings()
    store = cache_store or CacheStore(settings.cache_root_path)
    return store.clear_all()
