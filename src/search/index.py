# src/search/index.py — v1
"""Regex search index over an extracted text artifact.

The artifact separates pages with form feeds. The index maps page
number (from 1) to the full text of every matching line on that page,
pages in ascending order.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\f"

SearchIndex = dict[int, list[str]]


class InvalidSearchPatternError(ValueError):
    """The search query is not a valid regular expression."""


def compile_pattern(regex: str | re.Pattern[str]) -> re.Pattern[str]:
    if isinstance(regex, re.Pattern):
        return regex
    try:
        return re.compile(regex)
    except re.error as exc:
        raise InvalidSearchPatternError(f"Invalid search pattern {regex!r}: {exc}") from exc


def build_index(regex: str | re.Pattern[str], text: str) -> SearchIndex:
    """Scan ``text`` once and collect matching lines per page.

    >>> build_index("match", "A\\fB match\\fC")
    {2: ['B match']}
    """
    pattern = compile_pattern(regex)
    index: SearchIndex = {}
    for page, chunk in enumerate(text.split(PAGE_SEPARATOR), start=1):
        for line in chunk.splitlines():
            if pattern.search(line):
                index.setdefault(page, []).append(line)
    return index


def build_index_from_file(regex: str | re.Pattern[str], path: Path) -> SearchIndex:
    text = path.read_text(encoding="utf-8", errors="replace")
    index = build_index(regex, text)
    logger.debug("Indexed %s: %d page(s) match", path.name, len(index))
    return index


def find_next(index: SearchIndex, page: int) -> int | None:
    """First page with a match strictly after ``page``."""
    return next((p for p in sorted(index) if p > page), None)


def find_previous(index: SearchIndex, page: int) -> int | None:
    """Last page with a match strictly before ``page``."""
    return next((p for p in sorted(index, reverse=True) if p < page), None)


def first_page(index: SearchIndex) -> int | None:
    return min(index) if index else None


def last_page(index: SearchIndex) -> int | None:
    return max(index) if index else None


def match_count(index: SearchIndex) -> int:
    return sum(len(lines) for lines in index.values())
