# src/pipeline/conversion.py — v2
"""Conversion pipeline: per-type chain from source document to page images.

Chain per document type (intermediate step only where needed):

    pdf, djvu      rasterize source
    ps             rasterize source, or ps->pdf first if the rasterizer
                   cannot read PostScript
    dvi            dvi->pdf, rasterize doc.pdf
    odf            odf->pdf (renamed to doc.pdf), rasterize doc.pdf

Rasterization renders the visible (priority) pages first, each on its
own, and only then issues a single bulk pass over the remaining pages.
The completion witness is written after the whole chain succeeded.

Every job runs under the per-identity cache lock, so two sessions on
the same document never convert into the same directory at once.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from docview.cache import layout
from docview.core.models import ConversionReport, JobStatus, ProcessResult, RenderPass
from docview.display.page_store import PageRefresher, display_page
from docview.logging.context import converter_context, set_document_context
from docview.pipeline.job import ConversionJob
from docview.process.supervisor import ToolNotFoundError

if TYPE_CHECKING:
    from docview.pipeline.session import DocumentSession

logger = logging.getLogger(__name__)


# --- Public operations ---


def start_conversion(
    session: DocumentSession,
    purge: bool = False,
    on_page_ready: Callable[[int], None] | None = None,
    on_complete: Callable[[ConversionReport], None] | None = None,
) -> ConversionJob:
    """Start a new ConversionJob, discarding any job still running.

    Args:
        session: Document session to convert.
        purge: Delete the cache directory before converting even if it
            holds a complete conversion.
        on_page_ready: Called with each priority page once it rendered
            (or failed), before the bulk pass is issued.
        on_complete: Called with the final report of a job that was not
            superseded.

    Returns:
        The new job; ``await job.wait()`` for its report.
    """
    cancel_conversion(session)
    generation = session.next_generation()
    job = ConversionJob(
        generation=generation,
        resolution=session.resolution,
        priority_pages=session.priority_pages(),
        on_complete=on_complete,
        on_page_ready=on_page_ready,
    )
    session.job = job
    session.search_index = None
    job.task = asyncio.ensure_future(_run_job(session, job, purge))
    job.task.add_done_callback(lambda task: _job_task_done(job, task))
    logger.info(
        "Conversion job %d started for %s (priority pages: %s)",
        generation, session.identity.basename, job.priority_pages or "none",
    )
    return job


def reconvert(
    session: DocumentSession,
    on_page_ready: Callable[[int], None] | None = None,
    on_complete: Callable[[ConversionReport], None] | None = None,
) -> ConversionJob:
    """Cancel, purge the whole cache directory and convert from scratch."""
    return start_conversion(
        session, purge=True, on_page_ready=on_page_ready, on_complete=on_complete
    )


def cancel_conversion(session: DocumentSession) -> bool:
    """Abandon the active job: kill its processes and stop the refresh timer.

    Returns True if a job was active.
    """
    job = session.job
    session.supervisor.cancel_all()
    if session.refresher is not None:
        session.refresher.stop()
        session.refresher = None
    if job is None or not job.active:
        return False
    job.cancel()
    logger.info("Conversion job %d cancelled", job.generation)
    return True


# --- Job body ---


async def _run_job(session: DocumentSession, job: ConversionJob, purge: bool) -> ConversionReport:
    set_document_context(session.identity.short_id, session.session_id)
    status: JobStatus = "failed"
    try:
        async with session.cache_store.lock_for(session.entry):
            try:
                status = await _convert(session, job, purge)
            except asyncio.CancelledError:
                # Killed processes must be gone before the next job may purge.
                job.status = "cancelled"
                await _drain(job)
                raise
    except asyncio.CancelledError:
        job.finish("cancelled")
        raise
    except ToolNotFoundError as exc:
        if session.is_current(job.generation):
            session.display.message(f"Cannot convert {session.identity.basename}: {exc}")
    except OSError:
        logger.exception("Conversion job %d hit a filesystem error", job.generation)
    return _complete(session, job, status)


async def _convert(session: DocumentSession, job: ConversionJob, purge: bool) -> JobStatus:
    """Job body, run while holding the cache lock of the document."""
    store = session.cache_store
    if not session.is_current(job.generation):
        return "cancelled"

    if not purge and store.already_converted(session.entry):
        if store.read_witness(session.entry) == job.resolution:
            logger.info("Reusing complete conversion in %s", session.directory)
            return "succeeded"

    store.purge(session.entry)
    job.status = "running"
    session.page_files = []
    refresher = PageRefresher(session, job.generation, session.settings.refresh_interval)
    session.refresher = refresher
    refresher.start()

    status = await _run_chain(session, job)
    if status == "succeeded" and session.is_current(job.generation):
        store.write_witness(session.entry, job.resolution)
    return status


async def _run_chain(session: DocumentSession, job: ConversionJob) -> JobStatus:
    document = await _prepare_document(session, job)
    if document is None:
        return "failed"

    password = await _resolve_password(session, job, document)

    job.enqueue_priority()
    await _render_priority(session, job, document, password)

    bulk = await _bulk_pass(session, job, document)
    if bulk is not None:
        job.queue.append(bulk)
        await _render_pass(session, job, document, job.queue.popleft(), password)

    return "failed" if job.failed_steps else "succeeded"


async def _prepare_document(session: DocumentSession, job: ConversionJob) -> Path | None:
    """Run the intermediate step if the chain has one; return the raster input."""
    converter = session.converters.intermediate
    source = session.identity.path
    if converter is None:
        return source

    target = layout.intermediate_pdf_path(session.directory)
    with converter_context(converter.name, "intermediate"):
        result = await _spawn(
            session, job, converter.name, converter.program,
            converter.build_args(source, target),
        )
    if not result.ok:
        job.failed_steps.append(converter.name)
        if session.is_current(job.generation):
            session.display.message(f"{converter.name} failed for {source.name}")
        return None
    produced = converter.finalize(source, target)
    if not produced.is_file():
        job.failed_steps.append(converter.name)
        logger.warning("%s produced no %s", converter.name, produced.name)
        return None
    return produced


async def _resolve_password(
    session: DocumentSession, job: ConversionJob, document: Path
) -> str | None:
    """Probe once per session; prompt once if the document is protected."""
    if session.password is not None:
        return session.password
    if session.password_prompted:
        return None

    rasterizer = session.converters.rasterizer
    with converter_context(rasterizer.name, "password-probe"):
        protected = await rasterizer.needs_password(session.supervisor, document)
    if not protected:
        return None

    session.password_prompted = True
    password = await session.display.prompt_password(
        f"Password for {session.identity.basename}: "
    )
    if session.is_current(job.generation):
        session.password = password or None
    return password or None


async def _render_priority(
    session: DocumentSession, job: ConversionJob, document: Path, password: str | None
) -> None:
    passes = [job.queue.popleft() for _ in range(len(job.queue))]

    async def render_one(render_pass: RenderPass) -> None:
        await _render_pass(session, job, document, render_pass, password)
        assert render_pass.pages is not None
        page = render_pass.pages[0]
        if not session.is_current(job.generation):
            return
        _page_ready(session, job, page)

    await asyncio.gather(*(render_one(p) for p in passes))


def _page_ready(session: DocumentSession, job: ConversionJob, page: int) -> None:
    if session.refresher is not None:
        session.refresher.refresh()
    for viewport in session.viewports:
        if viewport.page == page:
            if not display_page(session, viewport, force=True):
                session.display.show_placeholder(viewport, page)
    if job.on_page_ready is not None:
        job.on_page_ready(page)


async def _bulk_pass(
    session: DocumentSession, job: ConversionJob, document: Path
) -> RenderPass | None:
    """The pass over every page not rendered as a priority page.

    Without priority pages, or when the page count is unknown, this is
    one whole-document pass.
    """
    if not job.priority_pages:
        return RenderPass(pages=None)
    rasterizer = session.converters.rasterizer
    with converter_context(rasterizer.name, "page-count"):
        count = await rasterizer.page_count(session.supervisor, document)
    if count is None:
        return RenderPass(pages=None)
    remaining = [p for p in range(1, count + 1) if p not in job.priority_pages]
    if not remaining:
        return None
    return RenderPass(pages=remaining)


async def _render_pass(
    session: DocumentSession,
    job: ConversionJob,
    document: Path,
    render_pass: RenderPass,
    password: str | None,
) -> list[int]:
    """Run every invocation of one pass; failures are recorded, not raised."""
    rasterizer = session.converters.rasterizer
    produced: list[int] = []
    for invocation in rasterizer.invocations(
        document, session.directory, render_pass.pages, job.resolution, password
    ):
        rasterizer.prepare(invocation)
        with converter_context(rasterizer.name, f"render[{render_pass.label}]"):
            result = await _spawn(session, job, invocation.name, invocation.program, invocation.args)
        if not result.ok:
            job.failed_steps.append(invocation.name)
            continue
        pages = rasterizer.finalize(invocation, session.directory)
        if invocation.pages is None:
            scanned = (layout.page_number(n) for n in layout.scan_page_files(session.directory))
            pages = [p for p in scanned if p is not None]
        produced += pages
    job.rendered += produced
    return produced


async def _spawn(
    session: DocumentSession,
    job: ConversionJob,
    name: str,
    program: str,
    args: list[str],
) -> ProcessResult:
    handle = await session.supervisor.spawn(
        name, program, args,
        on_complete=lambda result: _on_exit(session, job, result),
        cwd=session.directory,
    )
    job.live.append(handle)
    # Left in job.live on cancellation so the job can drain it.
    result = await handle.wait()
    job.live.remove(handle)
    return result


def _on_exit(session: DocumentSession, job: ConversionJob, result: ProcessResult) -> None:
    """Process-exit continuation, guarded against superseded generations."""
    job.exits.append(result)
    if not session.is_current(job.generation):
        logger.debug("Ignoring exit of %s from stale job %d", result.name, job.generation)
        return
    # Pick up pages immediately instead of waiting for the next tick.
    if result.ok and session.refresher is not None:
        session.refresher.refresh()


async def _drain(job: ConversionJob) -> None:
    """Wait for terminated processes of a cancelled job to exit."""
    if job.live:
        await asyncio.gather(*(h.wait() for h in list(job.live)), return_exceptions=True)


def _complete(session: DocumentSession, job: ConversionJob, status: JobStatus) -> ConversionReport:
    if job.status != "cancelled":
        job.status = status
    current = session.is_current(job.generation)
    if current:
        if session.refresher is not None:
            session.refresher.finish()
            session.refresher = None
        else:
            session.page_files = layout.scan_page_files(session.directory)
            for viewport in session.viewports:
                viewport.purge_image()
                display_page(session, viewport, force=True)
        session.resolution = job.resolution
    report = job.finish(job.status)
    logger.info(
        "Conversion job %d %s: %d page(s), %d failed step(s), %dms",
        job.generation, report.status, len(report.pages_rendered),
        len(report.failed_steps), report.duration_ms,
    )
    if current and job.on_complete is not None:
        job.on_complete(report)
    return report


def _job_task_done(job: ConversionJob, task: asyncio.Task) -> None:
    """Settle jobs whose task ended outside the normal completion path.

    A task cancelled before its first step never reaches its own handler.
    """
    if task.cancelled():
        job.finish("cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Conversion job %d crashed: %s", job.generation, exc, exc_info=exc)
        job.finish("failed")
