# src/pipeline/job.py — v1
"""ConversionJob: the live, cancellable unit of work for one document."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from docview.core.models import ConversionReport, JobStatus, ProcessResult, RenderPass

if TYPE_CHECKING:
    from docview.process.models import ProcessHandle


@dataclass
class ConversionJob:
    """Chain state of one conversion attempt.

    ``generation`` is captured at start; every continuation compares it
    with the session's current generation before touching shared state.
    """

    generation: int
    resolution: int
    priority_pages: list[int] = field(default_factory=list)
    on_complete: Callable[[ConversionReport], None] | None = None
    on_page_ready: Callable[[int], None] | None = None
    status: JobStatus = "pending"
    queue: deque[RenderPass] = field(default_factory=deque)
    live: list[ProcessHandle] = field(default_factory=list)
    exits: list[ProcessResult] = field(default_factory=list)
    rendered: list[int] = field(default_factory=list)
    failed_steps: list[str] = field(default_factory=list)
    task: asyncio.Task | None = None
    report: ConversionReport | None = None
    started_ns: int = field(default_factory=time.monotonic_ns)
    _done: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def active(self) -> bool:
        return self.status in ("pending", "running")

    @property
    def finished(self) -> bool:
        return self._done.is_set()

    def enqueue_priority(self) -> None:
        """Queue one pass per priority page; the bulk pass is queued later."""
        for page in self.priority_pages:
            self.queue.append(RenderPass(pages=[page], priority=True))

    def cancel(self) -> None:
        if self.active:
            self.status = "cancelled"
        if self.task is not None and not self.task.done():
            self.task.cancel()

    def finish(self, status: JobStatus) -> ConversionReport:
        """Freeze the outcome and wake waiters. Idempotent."""
        if self.report is None:
            if self.status != "cancelled":
                self.status = status
            self.report = ConversionReport(
                generation=self.generation,
                status=self.status,
                resolution=self.resolution,
                pages_rendered=sorted(set(self.rendered)),
                failed_steps=list(self.failed_steps),
                duration_ms=(time.monotonic_ns() - self.started_ns) // 1_000_000,
            )
            self._done.set()
        return self.report

    async def wait(self) -> ConversionReport:
        """Wait for the job to finish (including cancellation)."""
        await self._done.wait()
        assert self.report is not None
        return self.report
