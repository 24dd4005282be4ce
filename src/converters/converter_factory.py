# src/converters/converter_factory.py — v1
"""Factory: pick the converter capabilities for a document type.

Selection happens once per session; the resulting ConverterSet is held
by the session for its whole lifetime.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from docview.config.settings import Settings
from docview.converters.base_rasterizer import BaseRasterizer
from docview.converters.djvu import DjvuRasterizer
from docview.converters.ghostscript import GhostscriptRasterizer
from docview.converters.intermediate import (
    BaseIntermediateConverter,
    DviToPdfConverter,
    OdfToPdfConverter,
    PsToPdfConverter,
)
from docview.converters.mupdf import MupdfRasterizer
from docview.converters.text_extractors import (
    BaseTextExtractor,
    DjvuTextExtractor,
    PdfToTextExtractor,
    PsToAsciiExtractor,
)
from docview.core.models import DocumentType

# Registry maps settings.rasterizer -> rasterizer class for pdf-like input.
_RASTERIZER_REGISTRY: dict[str, type[BaseRasterizer]] = {
    "ghostscript": GhostscriptRasterizer,
    "mupdf": MupdfRasterizer,
}


class UnsupportedRasterizerError(ValueError):
    """Raised when settings name a rasterizer nobody registered."""


@dataclass
class ConverterSet:
    """Everything needed to turn one document type into pages and text."""

    doc_type: DocumentType
    rasterizer: BaseRasterizer
    intermediate: BaseIntermediateConverter | None
    text_extractor: BaseTextExtractor
    # Whether text is extracted from the source or from doc.pdf.
    text_source: Literal["source", "intermediate"]

    @property
    def raster_programs(self) -> list[str]:
        programs = list(self.rasterizer.required_programs)
        if self.intermediate is not None:
            programs.insert(0, self.intermediate.program)
        return programs

    @property
    def text_programs(self) -> list[str]:
        programs = [self.text_extractor.program]
        if self.text_source == "intermediate" and self.intermediate is not None:
            programs.insert(0, self.intermediate.program)
        return programs


def create_rasterizer(doc_type: DocumentType, settings: Settings) -> BaseRasterizer:
    """Create the rasterizer for ``doc_type``.

    Raises:
        UnsupportedRasterizerError: If settings.rasterizer is unknown.
    """
    if doc_type is DocumentType.DJVU:
        return DjvuRasterizer(settings)
    cls = _RASTERIZER_REGISTRY.get(settings.rasterizer)
    if cls is None:
        raise UnsupportedRasterizerError(
            f"No rasterizer {settings.rasterizer!r}. "
            f"Supported: {', '.join(sorted(_RASTERIZER_REGISTRY))}"
        )
    return cls(settings)


def create_intermediate(
    doc_type: DocumentType,
    rasterizer: BaseRasterizer,
    settings: Settings,
) -> BaseIntermediateConverter | None:
    """Intermediate pdf step of the chain, None when the source is rasterized directly."""
    if doc_type is DocumentType.DVI:
        return DviToPdfConverter(settings)
    if doc_type is DocumentType.ODF:
        return OdfToPdfConverter(settings)
    if doc_type is DocumentType.PS and not rasterizer.accepts_postscript:
        return PsToPdfConverter(settings)
    return None


def create_text_extractor(doc_type: DocumentType, settings: Settings) -> BaseTextExtractor:
    if doc_type is DocumentType.PS:
        return PsToAsciiExtractor(settings)
    if doc_type is DocumentType.DJVU:
        return DjvuTextExtractor(settings)
    # pdf directly; dvi and odf through their intermediate pdf
    return PdfToTextExtractor(settings)


def create_converters(doc_type: DocumentType, settings: Settings) -> ConverterSet:
    """Build the full ConverterSet for a session."""
    rasterizer = create_rasterizer(doc_type, settings)
    text_source: Literal["source", "intermediate"] = "source"
    if doc_type in (DocumentType.DVI, DocumentType.ODF):
        text_source = "intermediate"
    intermediate = create_intermediate(doc_type, rasterizer, settings)
    return ConverterSet(
        doc_type=doc_type,
        rasterizer=rasterizer,
        intermediate=intermediate,
        text_extractor=create_text_extractor(doc_type, settings),
        text_source=text_source,
    )


def supported_rasterizers() -> list[str]:
    return sorted(_RASTERIZER_REGISTRY)
