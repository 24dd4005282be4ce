# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DocumentType(str, Enum):
    """Document families the pipeline knows how to render."""

    DVI = "dvi"
    PDF = "pdf"
    PS = "ps"
    DJVU = "djvu"
    ODF = "odf"


# === IDENTITY ===


class DocumentIdentity(BaseModel):
    """Path and content hash of one source document.

    Frozen: recomputing the identity is the only way to move a source
    file to a different cache directory.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    content_hash: str
    doc_type: DocumentType

    @property
    def basename(self) -> str:
        return self.path.name

    @property
    def short_id(self) -> str:
        """Compact identifier used in log context."""
        return f"{self.basename}@{self.content_hash[:8]}"


# === PROCESSES ===

ProcessStatus = Literal["finished", "failed", "killed", "cancelled"]


class ProcessResult(BaseModel):
    """Outcome of one external program run."""

    name: str
    program: str
    args: list[str] = Field(default_factory=list)
    returncode: int | None = None
    output: str = ""
    status: ProcessStatus = "finished"

    @property
    def ok(self) -> bool:
        return self.status == "finished" and self.returncode == 0


# === CONVERSION ===

JobStatus = Literal["pending", "running", "succeeded", "failed", "cancelled"]
SessionMode = Literal["image", "text", "unavailable"]


class RenderPass(BaseModel):
    """One rasterization request.

    ``pages=None`` asks for the whole document in a single invocation.
    """

    pages: list[int] | None = None
    priority: bool = False

    @property
    def label(self) -> str:
        if self.pages is None:
            return "all"
        return ",".join(str(p) for p in self.pages)


class Invocation(BaseModel):
    """A fully built argv for one converter run."""

    name: str
    program: str
    args: list[str] = Field(default_factory=list)
    # Pages this invocation writes, in output order (None = unknown / all).
    pages: list[int] | None = None
    # When set, output lands in this staging directory and is renamed
    # into the cache directory afterwards.
    staging_dir: Path | None = None
    first_page: int | None = None


class ConversionReport(BaseModel):
    """Summary of a finished (or abandoned) conversion job."""

    generation: int
    status: JobStatus
    resolution: int
    pages_rendered: list[int] = Field(default_factory=list)
    failed_steps: list[str] = Field(default_factory=list)
    duration_ms: int = 0
