# src/display/page_store.py — v1
"""Page store and incremental refresher.

While a conversion runs, a timer rescans the cache directory and tells
every viewport whose page just appeared to redisplay. When the job ends
the timer stops and every viewport is redisplayed unconditionally.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from docview.cache import layout

if TYPE_CHECKING:
    from docview.display.viewport import Viewport
    from docview.pipeline.session import DocumentSession

logger = logging.getLogger(__name__)


def page_file(session: DocumentSession, page: int) -> Path | None:
    """Path of the rendered ``page`` if it exists."""
    if page < 1:
        return None
    path = session.directory / layout.page_filename(page, session.page_ext)
    return path if path.is_file() else None


def display_page(session: DocumentSession, viewport: Viewport, force: bool = False) -> bool:
    """Show the viewport's page, or a placeholder once nothing more will come.

    Returns True when an image was painted.
    """
    path = page_file(session, viewport.page)
    if path is not None:
        session.display.redisplay(viewport, path, force=force)
        return True
    if not session.converting:
        session.display.show_placeholder(viewport, viewport.page)
    return False


class PageRefresher:
    """Periodic rescan of one session's cache directory for one job generation.

    Args:
        session: Session whose directory and viewports are refreshed.
        generation: Job generation this refresher belongs to.
        interval: Seconds between scans; None disables the timer.
    """

    def __init__(
        self,
        session: DocumentSession,
        generation: int,
        interval: float | None,
    ) -> None:
        self._session = session
        self._generation = generation
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task | None:
        if self._interval is None:
            logger.debug("Incremental refresh disabled")
            return None
        self._task = asyncio.ensure_future(self._loop())
        self._session.supervisor.set_timer(self._task)
        return self._task

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._session.refresher is self:
            self._session.supervisor.set_timer(None)

    async def _loop(self) -> None:
        assert self._interval is not None
        while True:
            await asyncio.sleep(self._interval)
            self.refresh()

    def refresh(self) -> list[str]:
        """Rescan, diff against the last snapshot, redisplay new target pages.

        Returns the newly appeared page-file names (empty for stale refreshers).
        """
        session = self._session
        if not session.is_current(self._generation):
            logger.debug("Ignoring refresh from stale generation %d", self._generation)
            return []

        current = layout.scan_page_files(session.directory)
        previous = set(session.page_files)
        appeared = [name for name in current if name not in previous]
        session.page_files = current
        if not appeared:
            return []

        fresh = set(appeared)
        for viewport in session.viewports:
            if layout.page_filename(viewport.page, session.page_ext) in fresh:
                display_page(session, viewport)
        logger.debug("%d new page file(s), %d total", len(appeared), len(current))
        return appeared

    def finish(self) -> None:
        """Stop the timer, drop cached images and force-redisplay every viewport."""
        self.stop()
        session = self._session
        if not session.is_current(self._generation):
            return
        session.page_files = layout.scan_page_files(session.directory)
        for viewport in session.viewports:
            viewport.purge_image()
            display_page(session, viewport, force=True)
