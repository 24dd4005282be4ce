# tests/conftest.py — v3
"""Shared test fixtures for all unit and integration tests.

Provides settings rooted in tmp_path, a recording display, and fake
external tools: small Python programs that understand just enough of
the real tools' argv to write page files and text artifacts.

Fake document format (plain text, latin-1):
    first line       magic (``%PDF-1.4``, ``%!PS``, ...)
    ``PAGE <text>``  one line per page, ``<text>`` is the page's text
    ``ENCRYPTED``    rendering requires the password ``secret``
    ``BROKEN``       every render exits 1
    ``CORRUPT``      pdfinfo exits 1

A file named ``slow`` next to the document makes the fake rasterizer
sleep until it disappears.
"""

from __future__ import annotations

import json
import os
import stat
import sys
import textwrap
from pathlib import Path

import pytest

from docview.cache.store import CacheStore
from docview.config.settings import Settings
from docview.display.viewport import BaseDisplay, Viewport


# === FAKE TOOLS ===

_PRELUDE = '''\
import json, sys, time
from pathlib import Path

LOG = {log!r}
NAME = {name!r}
args = sys.argv[1:]
with open(LOG, "a", encoding="utf-8") as fh:
    fh.write(json.dumps({{"tool": NAME, "args": args}}) + "\\n")


def read_doc(path):
    lines = Path(path).read_text(encoding="latin-1").splitlines()
    pages = [line[5:] for line in lines if line.startswith("PAGE ")]
    return lines, pages


def wait_while_slow(path):
    marker = Path(path).parent / "slow"
    while marker.exists():
        time.sleep(0.05)


def parse_pages(spec, count):
    wanted = []
    for part in spec.split(","):
        first, _, last = part.partition("-")
        wanted.extend(range(int(first), int(last or first) + 1))
    return [p for p in wanted if p <= count]
'''

_GHOSTSCRIPT = '''
document = args[-1]
lines, pages = read_doc(document)
if "ENCRYPTED" in lines and "-sPDFPassword=secret" not in args:
    print("This file requires a password for access.")
    sys.exit(0 if "-dNODISPLAY" in args else 1)
if "-dNODISPLAY" in args:
    sys.exit(0)
wait_while_slow(document)
if "BROKEN" in lines:
    print("Error: /syntaxerror")
    sys.exit(1)
first, last, output = 1, len(pages), None
for arg in args:
    if arg.startswith("-dFirstPage="):
        first = int(arg.split("=", 1)[1])
    elif arg.startswith("-dLastPage="):
        last = int(arg.split("=", 1)[1])
    elif arg.startswith("-sOutputFile="):
        output = arg.split("=", 1)[1]
for relative, page in enumerate(range(first, min(last, len(pages)) + 1), start=1):
    target = output.replace("%d", str(relative))
    Path(target).write_bytes(("png:" + str(page)).encode())
'''

_PDFINFO = '''
lines, pages = read_doc(args[-1])
if "CORRUPT" in lines:
    print("Syntax Error: Couldn't read xref table")
    sys.exit(1)
print("Producer:       fake")
print("Pages:          %d" % len(pages))
'''

_PDFTOTEXT = '''
source, target = args[-2], args[-1]
lines, pages = read_doc(source)
Path(target).write_text("\\f".join(pages), encoding="utf-8")
'''

_TO_PDF = '''
source, target = args[-2], args[-1]
lines, pages = read_doc(source)
body = ["%PDF-1.4"] + [line for line in lines[1:]]
Path(target).write_text("\\n".join(body) + "\\n", encoding="latin-1")
'''

_MUTOOL = '''
if args and args[0] == "draw":
    args = args[1:]
options, positional, i = {}, [], 0
while i < len(args):
    if args[i] in ("-o", "-r", "-p", "-F"):
        options[args[i]] = args[i + 1]
        i += 2
    else:
        positional.append(args[i])
        i += 1
document = positional[0]
lines, pages = read_doc(document)
if "ENCRYPTED" in lines and options.get("-p") != "secret":
    print("error: cannot authenticate password")
    sys.exit(1)
if "-F" in options:
    sys.exit(0)
wait_while_slow(document)
if "BROKEN" in lines:
    sys.exit(1)
if len(positional) > 1:
    wanted = parse_pages(positional[1], len(pages))
else:
    wanted = list(range(1, len(pages) + 1))
for page in wanted:
    Path(options["-o"].replace("%d", str(page))).write_bytes(("png:" + str(page)).encode())
'''

_DDJVU = '''
document, output = args[-2], args[-1]
lines, pages = read_doc(document)
wait_while_slow(document)
spec = next((a.split("=", 1)[1] for a in args if a.startswith("-page=")), None)
wanted = parse_pages(spec, len(pages)) if spec else list(range(1, len(pages) + 1))
if "-eachpage" in args:
    for page in wanted:
        Path(output.replace("%d", str(page))).write_bytes(("tif:" + str(page)).encode())
else:
    Path(output).write_bytes(("tif:" + str(wanted[0])).encode())
'''

_DJVUSED = '''
lines, pages = read_doc(args[-1])
print(len(pages))
'''

_SOFFICE = '''
outdir, source = args[args.index("--outdir") + 1], args[-1]
lines, pages = read_doc(source)
body = ["%PDF-1.4"] + [line for line in lines[1:]]
Path(outdir, Path(source).stem + ".pdf").write_text("\\n".join(body) + "\\n", encoding="latin-1")
'''


class FakeTools:
    """Fake executables in ``directory`` plus the log of their invocations."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.log = directory / "calls.jsonl"
        directory.mkdir(parents=True, exist_ok=True)

    def install(self, name: str, body: str) -> str:
        script = self.directory / name
        prelude = _PRELUDE.format(log=str(self.log), name=name)
        script.write_text(
            f"#!{sys.executable}\n{prelude}\n{textwrap.dedent(body)}",
            encoding="utf-8",
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    def calls(self, tool: str | None = None) -> list[dict]:
        if not self.log.exists():
            return []
        entries = [json.loads(line) for line in self.log.read_text(encoding="utf-8").splitlines()]
        return [e for e in entries if tool is None or e["tool"] == tool]

    def render_calls(self) -> list[list[str]]:
        """Ghostscript invocations that render (dry runs excluded)."""
        return [c["args"] for c in self.calls("gs") if "-dNODISPLAY" not in c["args"]]


@pytest.fixture
def fake_tools(tmp_path: Path) -> FakeTools:
    tools = FakeTools(tmp_path / "bin")
    tools.install("gs", _GHOSTSCRIPT)
    tools.install("pdfinfo", _PDFINFO)
    tools.install("pdftotext", _PDFTOTEXT)
    tools.install("dvipdf", _TO_PDF)
    tools.install("ps2pdf", _TO_PDF)
    tools.install("mutool", _MUTOOL)
    tools.install("ddjvu", _DDJVU)
    tools.install("djvused", _DJVUSED)
    tools.install("soffice", _SOFFICE)
    return tools


# === SETTINGS / STORE ===


@pytest.fixture
def settings(tmp_path: Path, fake_tools: FakeTools) -> Settings:
    """Settings pointing every tool at a fake or at a missing program."""
    missing = str(tmp_path / "bin" / "not-installed")
    return Settings(
        _env_file=None,
        cache_root=tmp_path / "cache",
        refresh_interval=0.05,
        kill_grace_seconds=0.2,
        ghostscript_program=str(fake_tools.directory / "gs"),
        pdfinfo_program=str(fake_tools.directory / "pdfinfo"),
        pdftotext_program=str(fake_tools.directory / "pdftotext"),
        dvipdf_program=str(fake_tools.directory / "dvipdf"),
        ps2pdf_program=str(fake_tools.directory / "ps2pdf"),
        mutool_program=str(fake_tools.directory / "mutool"),
        mudraw_program=missing,
        ddjvu_program=str(fake_tools.directory / "ddjvu"),
        djvused_program=str(fake_tools.directory / "djvused"),
        odf_program=str(fake_tools.directory / "soffice"),
        ps2ascii_program=missing,
        djvutxt_program=missing,
    )


@pytest.fixture
def cache_store(settings: Settings) -> CacheStore:
    return CacheStore(settings.cache_root_path)


# === DISPLAY ===


class RecordingDisplay(BaseDisplay):
    """Display that records every call for assertions."""

    def __init__(self, password: str | None = None, confirm_answer: bool = True) -> None:
        self.password = password
        self.confirm_answer = confirm_answer
        self.events: list[tuple] = []
        self.prompts: list[str] = []
        self.questions: list[str] = []
        self.messages: list[str] = []

    def redisplay(self, viewport: Viewport, image_path: Path, force: bool = False) -> None:
        viewport.image = image_path
        self.events.append(("redisplay", viewport.viewport_id, image_path.name, force))

    def show_placeholder(self, viewport: Viewport, page: int) -> None:
        viewport.image = None
        self.events.append(("placeholder", viewport.viewport_id, page))

    def show_text(self, text_path: Path) -> None:
        self.events.append(("text", text_path.name))

    def message(self, text: str) -> None:
        self.messages.append(text)

    async def prompt_password(self, prompt: str) -> str | None:
        self.prompts.append(prompt)
        return self.password

    async def confirm(self, question: str) -> bool:
        self.questions.append(question)
        return self.confirm_answer

    def painted(self, viewport_id: str) -> list[str]:
        return [e[2] for e in self.events if e[0] == "redisplay" and e[1] == viewport_id]

    def placeholders(self) -> list[int]:
        return [e[2] for e in self.events if e[0] == "placeholder"]


@pytest.fixture
def display() -> RecordingDisplay:
    return RecordingDisplay()


# === DOCUMENTS ===


def write_document(
    path: Path,
    pages: list[str],
    magic: str = "%PDF-1.4",
    flags: tuple[str, ...] = (),
) -> Path:
    """Write a fake document understood by the fake tools."""
    lines = [magic, *flags, *(f"PAGE {text}" for text in pages)]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="latin-1")
    return path


@pytest.fixture
def pdf_document(tmp_path: Path) -> Path:
    """Five-page fake pdf."""
    return write_document(
        tmp_path / "docs" / "report.pdf",
        ["Intro", "Background", "The match is here", "Results", "Another match"],
    )


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep stray DOCVIEW_* variables of the developer out of tests."""
    for key in list(os.environ):
        if key.startswith("DOCVIEW_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_document(tmp_path: Path):
    """Factory: ``make_document("name.pdf", ["page text", ...], magic=..., flags=...)``."""

    def _make(name: str, pages: list[str], magic: str = "%PDF-1.4", flags: tuple[str, ...] = ()) -> Path:
        return write_document(tmp_path / "docs" / name, pages, magic=magic, flags=flags)

    return _make


@pytest.fixture
def pipeline(settings: Settings, cache_store: CacheStore, display: RecordingDisplay):
    from docview.pipeline.document_pipeline import DocumentPipeline

    return DocumentPipeline(settings, cache_store=cache_store, display=display)


@pytest.fixture
def make_session(settings: Settings, cache_store: CacheStore, display: RecordingDisplay):
    """Factory for a DocumentSession on ``path`` without starting a conversion."""
    from docview.cache.fingerprint import compute_identity
    from docview.converters.converter_factory import create_converters
    from docview.pipeline.session import DocumentSession

    def _make(path: Path, pages: tuple[int, ...] = (1,), **overrides) -> DocumentSession:
        session_settings = settings.model_copy(update=overrides) if overrides else settings
        identity = compute_identity(path)
        session = DocumentSession(
            identity=identity,
            settings=session_settings,
            cache_store=cache_store,
            entry=cache_store.resolve(identity),
            converters=create_converters(identity.doc_type, session_settings),
            display=display,
        )
        for page in pages:
            session.add_viewport(page=page)
        return session

    return _make
