# src/cache/models.py — v2
"""Cache domain models: CacheEntry and ResolutionWitness."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from docview.core.models import DocumentIdentity


class ResolutionWitness(BaseModel):
    """Completion witness, written only after a full conversion chain."""

    resolution: int

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("resolution must be > 0")
        return v


class CacheEntry(BaseModel):
    """One document's cache directory and what has been observed in it."""

    identity: DocumentIdentity
    directory: Path
    page_files: list[str] = Field(default_factory=list)
    resolution: int | None = None

    @property
    def key(self) -> str:
        """Lock key; equal for every session looking at the same identity."""
        return self.directory.name
