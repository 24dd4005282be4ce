# src/core/doc_type.py — v1
"""Document type resolution from file name and leading content bytes.

The two sources vote independently. Conflicting votes are fatal; a
single informative source decides; no information at all is fatal too.
"""

from __future__ import annotations

import logging
from pathlib import Path

from docview.core.models import DocumentType

logger = logging.getLogger(__name__)

# Number of leading bytes callers should read for sniffing.
SNIFF_BYTES = 16

_EXTENSION_TYPES: dict[str, DocumentType] = {
    ".pdf": DocumentType.PDF,
    ".ps": DocumentType.PS,
    ".eps": DocumentType.PS,
    ".dvi": DocumentType.DVI,
    ".djvu": DocumentType.DJVU,
    ".djv": DocumentType.DJVU,
    # Office suites, all converted through the odf converter
    ".odt": DocumentType.ODF,
    ".ods": DocumentType.ODF,
    ".odp": DocumentType.ODF,
    ".odg": DocumentType.ODF,
    ".fodt": DocumentType.ODF,
    ".sxw": DocumentType.ODF,
    ".doc": DocumentType.ODF,
    ".docx": DocumentType.ODF,
    ".xls": DocumentType.ODF,
    ".xlsx": DocumentType.ODF,
    ".ppt": DocumentType.ODF,
    ".pptx": DocumentType.ODF,
    ".rtf": DocumentType.ODF,
}

_MAGIC: list[tuple[bytes, DocumentType]] = [
    (b"%!", DocumentType.PS),
    (b"%PDF", DocumentType.PDF),
    (b"\xf7\x02", DocumentType.DVI),
    (b"AT&TFORM", DocumentType.DJVU),
]


class DocumentTypeError(Exception):
    """Base class for fatal type resolution failures."""


class DocumentTypeConflictError(DocumentTypeError):
    """File name and content disagree about the document type."""


class UndeterminedDocumentTypeError(DocumentTypeError):
    """Neither file name nor content identify the document type."""


def name_types(path: Path | str) -> set[DocumentType]:
    """Types suggested by the file extension (``.gz`` is looked through)."""
    suffixes = [s.lower() for s in Path(path).suffixes]
    if suffixes and suffixes[-1] == ".gz":
        suffixes = suffixes[:-1]
    if not suffixes:
        return set()
    found = _EXTENSION_TYPES.get(suffixes[-1])
    return {found} if found else set()


def content_types(head: bytes) -> set[DocumentType]:
    """Types suggested by magic bytes at the start of the content."""
    return {doc_type for magic, doc_type in _MAGIC if head.startswith(magic)}


def resolve_document_type(
    path: Path | str,
    head: bytes,
    override: DocumentType | None = None,
) -> DocumentType:
    """Resolve the DocumentType of a file.

    Args:
        path: Source file path (only its name is used).
        head: First bytes of the file, at least SNIFF_BYTES long if available.
        override: Caller-forced type; skips resolution entirely.

    Returns:
        The resolved DocumentType.

    Raises:
        DocumentTypeConflictError: Both sources are informative and disjoint.
        UndeterminedDocumentTypeError: Neither source is informative.
    """
    if override is not None:
        return override

    by_name = name_types(path)
    by_content = content_types(head)

    if by_name and by_content and not (by_name & by_content):
        raise DocumentTypeConflictError(
            f"Conflicting types for {Path(path).name}: "
            f"name suggests {sorted(t.value for t in by_name)}, "
            f"content suggests {sorted(t.value for t in by_content)}"
        )

    candidates = (by_name & by_content) or by_name or by_content
    if not candidates:
        raise UndeterminedDocumentTypeError(
            f"Cannot determine document type of {Path(path).name}"
        )

    # Every table maps to a single type, so the candidate set is a singleton.
    doc_type = next(iter(candidates))
    logger.debug("Resolved %s as %s", Path(path).name, doc_type.value)
    return doc_type


def read_head(path: Path, size: int = SNIFF_BYTES) -> bytes:
    """Read the first ``size`` bytes of ``path``."""
    with open(path, "rb") as fh:
        return fh.read(size)
