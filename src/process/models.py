# src/process/models.py — v1
"""Live process handle held by the supervisor."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable

from docview.core.models import ProcessResult

CompletionCallback = Callable[[ProcessResult], None]


@dataclass
class ProcessHandle:
    """One running external program registered with a supervisor."""

    name: str
    program: str
    args: list[str]
    process: asyncio.subprocess.Process
    task: asyncio.Task[ProcessResult] | None = None
    on_complete: CompletionCallback | None = None
    cancelled: bool = False
    callbacks_done: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def alive(self) -> bool:
        return self.process.returncode is None

    async def wait(self) -> ProcessResult:
        """Wait for exit and for the completion callback to have run."""
        assert self.task is not None
        result = await asyncio.shield(self.task)
        await self.callbacks_done.wait()
        return result
