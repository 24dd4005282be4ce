# src/search/text_extraction.py — v2
"""Produce the plain-text artifact ``doc.txt`` for a session's document."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from docview.cache import layout
from docview.logging.context import converter_context

if TYPE_CHECKING:
    from docview.pipeline.session import DocumentSession

logger = logging.getLogger(__name__)


async def extract_text(session: DocumentSession) -> Path | None:
    """Return ``doc.txt``, extracting it first when it is not cached.

    dvi and odf documents are extracted from ``doc.pdf``; an existing one
    left by the rasterization chain is reused, otherwise the intermediate
    conversion runs first.

    Returns:
        Path of the text artifact, or None when a step failed.

    Raises:
        ToolNotFoundError: If a needed program is not installed.
    """
    target = layout.text_path(session.directory)
    async with session.cache_store.lock_for(session.entry):
        if target.is_file():
            logger.debug("Reusing extracted text %s", target)
            return target

        source = await _text_source(session)
        if source is None:
            return None

        extractor = session.converters.text_extractor
        with converter_context(extractor.name, "extract-text"):
            extracted = await extractor.extract(session.supervisor, source, target)
        if not extracted:
            logger.warning("Text extraction of %s failed", session.identity.basename)
            target.unlink(missing_ok=True)
            return None
    logger.info("Extracted text of %s", session.identity.basename)
    return target


async def _text_source(session: DocumentSession) -> Path | None:
    converters = session.converters
    if converters.text_source == "source" or converters.intermediate is None:
        return session.identity.path

    pdf = layout.intermediate_pdf_path(session.directory)
    if pdf.is_file():
        return pdf
    with converter_context(converters.intermediate.name, "extract-text"):
        return await converters.intermediate.convert(
            session.supervisor, session.identity.path, session.directory
        )
