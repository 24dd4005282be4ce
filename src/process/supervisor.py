# src/process/supervisor.py — v2
"""Async spawning and bookkeeping of external converter processes.

Each document session owns one ProcessSupervisor. Completion is
delivered by the event loop when the child exits (no polling); failed
or killed converters are reported through the normal completion path
and logged, never raised.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

from docview.core.models import ProcessResult
from docview.process.models import CompletionCallback, ProcessHandle

logger = logging.getLogger(__name__)

_OUTPUT_TAIL = 400
_MASK = "***"

# Password options of the rasterizers: ghostscript inline, mupdf as next argv.
_SECRET_PREFIXES = ("-sPDFPassword=",)
_SECRET_FLAGS = ("-p",)


class ToolNotFoundError(Exception):
    """An external program required for a conversion step is not installed."""

    def __init__(self, program: str, purpose: str | None = None) -> None:
        self.program = program
        self.purpose = purpose
        detail = f" (needed for {purpose})" if purpose else ""
        super().__init__(f"Program {program!r} not found{detail}")


def find_program(program: str) -> str | None:
    """Absolute path of ``program`` if it is installed and executable."""
    return shutil.which(program)


def redact_args(args: list[str]) -> list[str]:
    """Copy of ``args`` with document passwords masked, for logs and results."""
    masked: list[str] = []
    hide_next = False
    for arg in args:
        if hide_next:
            masked.append(_MASK)
            hide_next = False
            continue
        prefix = next((p for p in _SECRET_PREFIXES if arg.startswith(p)), None)
        if prefix is not None:
            masked.append(prefix + _MASK)
            continue
        hide_next = arg in _SECRET_FLAGS
        masked.append(arg)
    return masked


def safe_cwd(requested: Path | str | None) -> Path:
    """Working directory for children: the request if real, else home."""
    if requested is not None:
        candidate = Path(requested)
        if candidate.is_absolute() and candidate.is_dir():
            return candidate
    home = Path.home()
    return home if home.is_dir() else Path("/")


def _status_for(returncode: int | None, cancelled: bool) -> str:
    if cancelled:
        return "cancelled"
    if returncode is None or returncode < 0:
        return "killed"
    return "finished" if returncode == 0 else "failed"


class ProcessSupervisor:
    """Tracks the live converter processes of one document session.

    Args:
        session_id: Owning session, used in log messages.
        kill_grace_seconds: Delay between terminate and kill on cancel.
    """

    def __init__(self, session_id: str, kill_grace_seconds: float = 2.0) -> None:
        self.session_id = session_id
        self._kill_grace = kill_grace_seconds
        self._live: dict[int, ProcessHandle] = {}
        self._timer: asyncio.Task | None = None

    # --- Introspection ---

    @property
    def live_handles(self) -> list[ProcessHandle]:
        return list(self._live.values())

    @property
    def live_names(self) -> list[str]:
        return [h.name for h in self._live.values()]

    @staticmethod
    def is_available(program: str) -> bool:
        return find_program(program) is not None

    # --- Spawning ---

    async def spawn(
        self,
        name: str,
        program: str,
        args: list[str],
        on_complete: CompletionCallback | None = None,
        cwd: Path | str | None = None,
    ) -> ProcessHandle:
        """Start ``program`` asynchronously and register it with the session.

        Raises:
            ToolNotFoundError: If ``program`` is not installed.
        """
        executable = find_program(program)
        if executable is None:
            raise ToolNotFoundError(program, purpose=name)

        workdir = safe_cwd(cwd)
        shown = redact_args(args)
        logger.debug("spawn %s: %s %s (cwd=%s)", name, program, " ".join(shown), workdir)

        process = await asyncio.create_subprocess_exec(
            executable,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=str(workdir),
        )
        handle = ProcessHandle(
            name=name,
            program=program,
            args=shown,
            process=process,
            on_complete=on_complete,
        )
        self._live[process.pid] = handle
        handle.task = asyncio.ensure_future(self._collect(handle))
        handle.task.add_done_callback(lambda _task: self._finish(handle))
        return handle

    async def run(
        self,
        name: str,
        program: str,
        args: list[str],
        cwd: Path | str | None = None,
    ) -> ProcessResult:
        """Spawn and wait. Cancelling the waiter terminates the child."""
        handle = await self.spawn(name, program, args, cwd=cwd)
        try:
            return await handle.wait()
        except asyncio.CancelledError:
            self._terminate(handle)
            raise

    async def _collect(self, handle: ProcessHandle) -> ProcessResult:
        stdout, _ = await handle.process.communicate()
        return ProcessResult(
            name=handle.name,
            program=handle.program,
            args=handle.args,
            returncode=handle.process.returncode,
            output=(stdout or b"").decode("utf-8", errors="replace"),
            status=_status_for(handle.process.returncode, handle.cancelled),
        )

    def _finish(self, handle: ProcessHandle) -> None:
        """Done-callback: unregister, log, then hand the result on."""
        self._live.pop(handle.pid, None)
        task = handle.task
        assert task is not None
        if task.cancelled():
            result = ProcessResult(
                name=handle.name, program=handle.program, args=handle.args,
                returncode=handle.process.returncode, status="cancelled",
            )
        elif task.exception() is not None:
            exc = task.exception()
            logger.warning("%s: lost track of process %d: %s", handle.name, handle.pid, exc)
            result = ProcessResult(
                name=handle.name, program=handle.program, args=handle.args,
                returncode=handle.process.returncode, output=str(exc), status="failed",
            )
        else:
            result = task.result()

        if result.ok:
            logger.debug("%s finished", handle.name)
        elif result.status == "cancelled":
            logger.info("%s cancelled", handle.name)
        else:
            logger.warning(
                "%s %s (exit %s): %s",
                handle.name, result.status, result.returncode,
                result.output[-_OUTPUT_TAIL:].strip(),
            )

        try:
            if handle.on_complete is not None:
                handle.on_complete(result)
        except Exception:
            logger.exception("Completion callback of %s raised", handle.name)
        finally:
            handle.callbacks_done.set()

    # --- Cancellation ---

    def set_timer(self, timer: asyncio.Task | None) -> None:
        """Register the session's refresh timer so cancel_all clears it."""
        self._timer = timer

    def cancel_all(self) -> int:
        """Terminate every live process and clear the refresh timer.

        Best-effort: processes that already exited are ignored.

        Returns:
            Number of processes signalled.
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        handles = list(self._live.values())
        for handle in handles:
            self._terminate(handle)
        if handles:
            logger.info(
                "Session %s: cancelled %d process(es): %s",
                self.session_id, len(handles), ", ".join(h.name for h in handles),
            )
        return len(handles)

    def _terminate(self, handle: ProcessHandle) -> None:
        handle.cancelled = True
        try:
            handle.process.terminate()
        except ProcessLookupError:
            return
        loop = asyncio.get_running_loop()
        loop.call_later(self._kill_grace, self._kill_if_alive, handle)

    @staticmethod
    def _kill_if_alive(handle: ProcessHandle) -> None:
        if handle.alive:
            try:
                handle.process.kill()
            except ProcessLookupError:
                pass

    async def wait_idle(self) -> None:
        """Wait until every live process has exited and been reported."""
        while self._live:
            handles = list(self._live.values())
            await asyncio.gather(*(h.wait() for h in handles), return_exceptions=True)
