# src/cache/fingerprint.py — v3
"""Content fingerprinting of source documents.

The hash covers the raw bytes only, so renaming a file keeps its hash
while the sanitized basename still separates same-content copies under
different names.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from docview.core.doc_type import read_head, resolve_document_type
from docview.core.models import DocumentIdentity, DocumentType

_READ_CHUNK = 1 << 20


def content_hash(path: Path) -> str:
    """MD5 hex digest of the file content, read in 1 MiB chunks."""
    digest = hashlib.md5()  # noqa: S324
    with open(path, "rb") as fh:
        for block in iter(lambda: fh.read(_READ_CHUNK), b""):
            digest.update(block)
    return digest.hexdigest()


def bytes_hash(raw_bytes: bytes) -> str:
    """MD5 hex digest of in-memory content."""
    return hashlib.md5(raw_bytes).hexdigest()  # noqa: S324


def compute_identity(
    path: Path | str,
    doc_type: DocumentType | None = None,
) -> DocumentIdentity:
    """Compute the DocumentIdentity of a file on disk.

    Args:
        path: Source document.
        doc_type: Forced type; resolved from name and content when None.

    Raises:
        FileNotFoundError: If the path does not exist.
        DocumentTypeError: If the type cannot be resolved.
    """
    source = Path(path).expanduser().resolve()
    resolved = resolve_document_type(source, read_head(source), override=doc_type)
    return DocumentIdentity(
        path=source,
        content_hash=content_hash(source),
        doc_type=resolved,
    )
