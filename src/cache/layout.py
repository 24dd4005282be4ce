# src/cache/layout.py — v2
"""Cache directory structure definition.

    <root>/<sanitized-basename>-<content-hash>/
        page-<N>.png | page-<N>.tif
        resolution.json
        doc.pdf
        doc.txt
"""

from __future__ import annotations

import re
from pathlib import Path

from docview.core.models import DocumentIdentity

WITNESS_FILE = "resolution.json"
INTERMEDIATE_PDF = "doc.pdf"
TEXT_FILE = "doc.txt"
STAGING_PREFIX = ".staging-"

PNG = "png"
TIFF = "tif"

PAGE_FILE_RE = re.compile(r"^page-([1-9]\d*)\.(png|tif)$")

_HOSTILE_RE = re.compile(r'[/\\:*?"<>|\s\x00-\x1f]')


def sanitize(basename: str) -> str:
    """Replace path-hostile characters with underscores."""
    cleaned = _HOSTILE_RE.sub("_", basename)
    # A bare dot name would address the parent or the root itself.
    if cleaned in {"", ".", ".."}:
        cleaned = cleaned.replace(".", "_") or "_"
    return cleaned


def entry_dirname(identity: DocumentIdentity) -> str:
    return f"{sanitize(identity.basename)}-{identity.content_hash}"


def entry_dir(root: Path, identity: DocumentIdentity) -> Path:
    """Return the cache directory for a document identity."""
    return root / entry_dirname(identity)


def page_filename(page: int, ext: str = PNG) -> str:
    if page < 1:
        raise ValueError(f"Page numbers start at 1, got {page}")
    return f"page-{page}.{ext}"


def page_pattern(directory: Path, ext: str = PNG) -> Path:
    """printf-style output pattern understood by every rasterizer."""
    return directory / f"page-%d.{ext}"


def page_number(filename: str) -> int | None:
    """Page number encoded in a page-file name, None for other files."""
    match = PAGE_FILE_RE.match(filename)
    return int(match.group(1)) if match else None


def witness_path(directory: Path) -> Path:
    return directory / WITNESS_FILE


def intermediate_pdf_path(directory: Path) -> Path:
    return directory / INTERMEDIATE_PDF


def text_path(directory: Path) -> Path:
    return directory / TEXT_FILE


def staging_dir(directory: Path, first_page: int) -> Path:
    return directory / f"{STAGING_PREFIX}{first_page}"


# --- Page-file ordering ---

def page_sort_key(filename: str) -> tuple[int, str]:
    """Order unpadded page names numerically: length first, then lexically.

    ``page-2.png`` sorts before ``page-10.png`` although it is the
    larger string.
    """
    return (len(filename), filename)


def sort_page_files(filenames: list[str]) -> list[str]:
    return sorted(filenames, key=page_sort_key)


def scan_page_files(directory: Path) -> list[str]:
    """Sorted names of the page files currently present in ``directory``."""
    try:
        names = [p.name for p in directory.iterdir() if PAGE_FILE_RE.match(p.name)]
    except FileNotFoundError:
        return []
    return sort_page_files(names)
