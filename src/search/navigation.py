# src/search/navigation.py — v1
"""Regex search over a session's document and match-to-match navigation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from docview.display.page_store import display_page
from docview.process.supervisor import ToolNotFoundError
from docview.search.index import (
    SearchIndex,
    build_index_from_file,
    compile_pattern,
    find_next,
    find_previous,
    first_page,
    last_page,
    match_count,
)
from docview.search.text_extraction import extract_text

if TYPE_CHECKING:
    from docview.display.viewport import Viewport
    from docview.pipeline.session import DocumentSession

logger = logging.getLogger(__name__)


async def search(session: DocumentSession, regex: str) -> SearchIndex | None:
    """Build a fresh index for ``regex`` and store it on the session.

    Returns None when no text could be extracted.

    Raises:
        InvalidSearchPatternError: If ``regex`` does not compile.
    """
    pattern = compile_pattern(regex)
    try:
        artifact = await extract_text(session)
    except ToolNotFoundError as exc:
        session.display.message(f"Cannot search {session.identity.basename}: {exc}")
        return None
    if artifact is None:
        session.display.message(f"No text could be extracted from {session.identity.basename}")
        return None

    index = build_index_from_file(pattern, artifact)
    session.search_index = index
    session.search_regex = regex
    session.display.message(
        f"{match_count(index)} match(es) for {regex!r} on {len(index)} page(s)"
    )
    return index


async def next_match(session: DocumentSession, viewport: Viewport) -> int | None:
    """Move ``viewport`` to the next page with a match.

    When nothing follows, the user is asked whether to wrap to the first
    match. Returns the new page, or None when the viewport did not move.
    """
    index = session.search_index
    if not index:
        session.display.message("No search results")
        return None
    target = find_next(index, viewport.page)
    if target is None:
        if not await session.display.confirm("No more matches. Wrap around to the first one?"):
            return None
        target = first_page(index)
    return _go_to(session, viewport, target)


async def previous_match(session: DocumentSession, viewport: Viewport) -> int | None:
    """Mirror of next_match towards the beginning of the document."""
    index = session.search_index
    if not index:
        session.display.message("No search results")
        return None
    target = find_previous(index, viewport.page)
    if target is None:
        if not await session.display.confirm("No previous matches. Wrap around to the last one?"):
            return None
        target = last_page(index)
    return _go_to(session, viewport, target)


def _go_to(session: DocumentSession, viewport: Viewport, page: int | None) -> int | None:
    if page is None:
        return None
    viewport.page = page
    viewport.purge_image()
    display_page(session, viewport)
    assert session.search_index is not None
    for line in session.search_index.get(page, []):
        logger.debug("page %d: %s", page, line)
    return page
