# src/cache/store.py — v1
"""Content-addressed, directory-per-document cache store.

One CacheStore instance is shared by every session of a process. It
owns the cache root, the completion-witness protocol and the
per-identity locks that serialise conversions of the same document.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path

from pydantic import ValidationError

from docview.cache import layout
from docview.cache.models import CacheEntry, ResolutionWitness
from docview.core.models import DocumentIdentity

logger = logging.getLogger(__name__)

PRIVATE_MODE = 0o700


class CacheSecurityError(Exception):
    """A cache path is a symbolic link or otherwise not ours to use."""


def make_private_dir(path: Path, parents: bool = False) -> Path:
    """Create ``path`` owner-only, or repair an existing directory.

    Raises:
        CacheSecurityError: If the path exists as a symlink or a non-directory.
    """
    try:
        path.mkdir(mode=PRIVATE_MODE, parents=parents)
        return path
    except FileExistsError:
        pass

    if path.is_symlink():
        raise CacheSecurityError(f"Refusing to use symlinked cache path {path}")
    if not path.is_dir():
        raise CacheSecurityError(f"Cache path {path} exists and is not a directory")
    if (path.stat().st_mode & 0o777) != PRIVATE_MODE:
        logger.info("Tightening permissions of %s to owner-only", path)
    os.chmod(path, PRIVATE_MODE)
    return path


class CacheStore:
    """Maps DocumentIdentity to stable on-disk cache directories."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()
        self._root_ready = False
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def root(self) -> Path:
        return self._root

    def ensure_root(self) -> Path:
        """Create (once) and return the cache root."""
        if not self._root_ready:
            make_private_dir(self._root, parents=True)
            self._root_ready = True
        return self._root

    # --- Entries ---

    def resolve(self, identity: DocumentIdentity) -> CacheEntry:
        """Return the CacheEntry for ``identity``, creating its directory."""
        root = self.ensure_root()
        directory = make_private_dir(layout.entry_dir(root, identity))
        entry = CacheEntry(identity=identity, directory=directory)
        return self.refresh(entry)

    def refresh(self, entry: CacheEntry) -> CacheEntry:
        """Re-read page files and witness from disk into ``entry``."""
        entry.page_files = self.page_files(entry)
        entry.resolution = self.read_witness(entry)
        return entry

    def page_files(self, entry: CacheEntry) -> list[str]:
        return layout.scan_page_files(entry.directory)

    def already_converted(self, entry: CacheEntry) -> bool:
        """True iff directory, readable witness and at least one page file exist."""
        directory = entry.directory
        if directory.is_symlink() or not directory.is_dir():
            return False
        if self.read_witness(entry) is None:
            return False
        return bool(self.page_files(entry))

    # --- Completion witness ---

    def read_witness(self, entry: CacheEntry) -> int | None:
        path = layout.witness_path(entry.directory)
        try:
            witness = ResolutionWitness.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as exc:
            logger.warning("Ignoring unreadable witness %s: %s", path, exc)
            return None
        return witness.resolution

    def write_witness(self, entry: CacheEntry, resolution: int) -> None:
        """Atomically write the witness; call only after the whole chain succeeded."""
        path = layout.witness_path(entry.directory)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(
            ResolutionWitness(resolution=resolution).model_dump_json(),
            encoding="utf-8",
        )
        os.replace(tmp, path)
        entry.resolution = resolution
        logger.debug("Wrote completion witness %s (resolution=%d)", path, resolution)

    def delete_witness(self, entry: CacheEntry) -> None:
        layout.witness_path(entry.directory).unlink(missing_ok=True)
        entry.resolution = None

    # --- Purging ---

    def purge(self, entry: CacheEntry) -> None:
        """Delete the entry directory recursively and recreate it empty.

        The witness goes first so no reader can pair it with pages that
        are about to disappear.
        """
        directory = entry.directory
        if directory.is_symlink():
            raise CacheSecurityError(f"Refusing to purge symlinked cache path {directory}")
        if directory.is_dir():
            self.delete_witness(entry)
            shutil.rmtree(directory)
        make_private_dir(directory)
        entry.page_files = []
        entry.resolution = None
        logger.info("Purged cache directory %s", directory)

    def clear_all(self) -> int:
        """Remove every cache entry under the root. Returns the count removed."""
        if not self._root.is_dir():
            return 0
        self.ensure_root()
        removed = 0
        for child in sorted(self._root.iterdir()):
            if child.is_symlink() or child.is_file():
                child.unlink()
            else:
                shutil.rmtree(child)
            removed += 1
        logger.info("Cleared %d cache entries under %s", removed, self._root)
        return removed

    def list_entries(self) -> list[Path]:
        """Cache directories currently present under the root."""
        if not self._root.is_dir():
            return []
        return sorted(
            p for p in self._root.iterdir() if p.is_dir() and not p.is_symlink()
        )

    # --- Serialisation ---

    def lock_for(self, entry: CacheEntry) -> asyncio.Lock:
        """Per-identity lock shared by all sessions viewing the same document."""
        lock = self._locks.get(entry.key)
        if lock is None:
            lock = self._locks[entry.key] = asyncio.Lock()
        return lock
