# src/main.py — v2
"""CLI entry point: render, search, clear-cache, info commands.

Usage:
    docview render <file> [-p PAGE ...] [--resolution DPI] [--reconvert]
    docview search <file> <regex>
    docview clear-cache
    docview info
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from docview.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _setup(args.verbose)
        args.settings = settings
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docview",
        description=f"docview v{__version__}: render documents to cached page images",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- render ---
    p_render = subparsers.add_parser(
        "render", help="Convert a document to page images",
    )
    p_render.add_argument("file", type=Path, help="Path to document")
    p_render.add_argument(
        "-p", "--page", dest="pages", type=int, action="append", default=None,
        help="Page to render first; repeat for several (default: 1)",
    )
    p_render.add_argument(
        "-t", "--type", dest="doc_type", default=None,
        choices=[t.value for t in _document_types()],
        help="Force the document type instead of guessing it",
    )
    p_render.add_argument(
        "--resolution", type=int, default=None,
        help="Rendering resolution in dpi (default: from settings)",
    )
    p_render.add_argument(
        "--password", default=None,
        help="Password for protected documents",
    )
    p_render.add_argument(
        "--reconvert", action="store_true",
        help="Discard cached pages and convert again",
    )
    p_render.set_defaults(func=_cmd_render)

    # --- search ---
    p_search = subparsers.add_parser(
        "search", help="Search the text of a document",
    )
    p_search.add_argument("file", type=Path, help="Path to document")
    p_search.add_argument("regex", help="Regular expression, matched per line")
    p_search.add_argument(
        "-t", "--type", dest="doc_type", default=None,
        choices=[t.value for t in _document_types()],
        help="Force the document type instead of guessing it",
    )
    p_search.set_defaults(func=_cmd_search)

    # --- clear-cache ---
    p_clear = subparsers.add_parser(
        "clear-cache", help="Delete every cached conversion",
    )
    p_clear.set_defaults(func=_cmd_clear_cache)

    # --- info ---
    p_info = subparsers.add_parser(
        "info", help="Show settings, cache entries and available tools",
    )
    p_info.set_defaults(func=_cmd_info)

    return parser


async def _cmd_render(args: argparse.Namespace) -> int:
    """Render one document and report its cache directory."""
    from docview.api.facade import open_and_render
    from docview.api.models import RenderRequest

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    request = RenderRequest(
        path=file_path,
        pages=args.pages or [1],
        doc_type=args.doc_type,
        resolution=args.resolution,
        password=args.password,
        reconvert=args.reconvert,
    )
    result = await open_and_render(request, settings=args.settings)

    print("\nRender complete:")
    print(f"  Document:    {result.path.name} ({result.doc_type.value})")
    print(f"  Mode:        {result.mode}")
    print(f"  Cache:       {result.cache_dir}")
    print(f"  Pages:       {result.page_count}")
    print(f"  Resolution:  {result.resolution} dpi")
    if result.from_cache:
        print("  Source:      cache")
    elif result.report is not None:
        print(f"  Status:      {result.report.status} ({result.report.duration_ms}ms)")
        for step in result.report.failed_steps:
            print(f"  Failed:      {step}")
        return 0 if result.report.status == "succeeded" else 2
    return 0 if result.mode != "unavailable" else 2


async def _cmd_search(args: argparse.Namespace) -> int:
    """Print every matching line, grouped by page."""
    from docview.api.facade import search_document

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    result = await search_document(
        file_path, args.regex, settings=args.settings, doc_type=args.doc_type,
    )
    for page in result.pages:
        for line in result.matches[page]:
            print(f"{page}: {line}")
    print(f"\n{result.match_count} match(es) on {len(result.pages)} page(s)")
    return 0 if result.matches else 1


async def _cmd_clear_cache(args: argparse.Namespace) -> int:
    from docview.api.facade import clear_cache

    removed = clear_cache(settings=args.settings)
    print(f"Removed {removed} cache entr{'y' if removed == 1 else 'ies'} "
          f"from {args.settings.cache_root_path}")
    return 0


async def _cmd_info(args: argparse.Namespace) -> int:
    """Display settings, cache contents and tool availability."""
    from docview.cache.store import CacheStore
    from docview.process.supervisor import find_program

    settings = args.settings
    store = CacheStore(settings.cache_root_path)
    entries = store.list_entries()

    print(f"\ndocview {__version__}")
    print(f"  Cache root:   {store.root}")
    print(f"  Entries:      {len(entries)}")
    print(f"  Resolution:   {settings.resolution} dpi")
    print(f"  Rasterizer:   {settings.rasterizer}")
    print("\nTools:")
    for label, program in _tool_programs(settings):
        location = find_program(program)
        print(f"  {label:<12} {program:<12} {location or 'not found'}")
    return 0


def _tool_programs(settings) -> list[tuple[str, str]]:
    return [
        ("ghostscript", settings.ghostscript_program),
        ("mutool", settings.mutool_program),
        ("mudraw", settings.mudraw_program),
        ("ddjvu", settings.ddjvu_program),
        ("djvused", settings.djvused_program),
        ("dvipdf", settings.dvipdf_program),
        ("ps2pdf", settings.ps2pdf_program),
        ("office", settings.odf_program),
        ("pdftotext", settings.pdftotext_program),
        ("ps2ascii", settings.ps2ascii_program),
        ("djvutxt", settings.djvutxt_program),
        ("pdfinfo", settings.pdfinfo_program),
    ]


def _document_types():
    from docview.core.models import DocumentType

    return list(DocumentType)


def _setup(verbose: bool):
    """Load settings and configure logging for CLI usage."""
    from docview.config.settings import load_settings
    from docview.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(settings, verbose=verbose)
    return settings


def cli_entry() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli_entry()
