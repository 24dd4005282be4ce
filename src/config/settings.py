# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for tool locations, rendering defaults, cache
location and logging. Every field can be set through a ``DOCVIEW_``
prefixed environment variable (``DOCVIEW_RESOLUTION=150``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DOCVIEW_",
        extra="ignore",
    )

    # === Cache ===
    cache_root: Path = Path("~/.cache/docview")

    # === Rendering ===
    resolution: int = 100
    refresh_interval: float | None = 1.0
    rasterizer: Literal["ghostscript", "mupdf"] = "ghostscript"
    mupdf_subcommand: bool = True
    ghostscript_options: str = (
        "-dSAFER,-dNOPAUSE,-dBATCH,-sDEVICE=png16m,"
        "-dTextAlphaBits=4,-dGraphicsAlphaBits=4"
    )

    # === External programs ===
    ghostscript_program: str = "gs"
    mutool_program: str = "mutool"
    mudraw_program: str = "mudraw"
    ddjvu_program: str = "ddjvu"
    djvused_program: str = "djvused"
    dvipdf_program: str = "dvipdf"
    ps2pdf_program: str = "ps2pdf"
    odf_program: str = "soffice"
    pdftotext_program: str = "pdftotext"
    ps2ascii_program: str = "ps2ascii"
    djvutxt_program: str = "djvutxt"
    pdfinfo_program: str = "pdfinfo"

    # === Process supervision ===
    kill_grace_seconds: float = 2.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("resolution must be > 0")
        return v

    @field_validator("refresh_interval")
    @classmethod
    def validate_refresh_interval(cls, v: float | None) -> float | None:  # noqa: N805
        """A missing interval disables incremental refresh; zero is not allowed."""
        if v is not None and v <= 0:
            raise ValueError("refresh_interval must be > 0 or unset")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        errors: list[str] = []

        if self.rasterizer == "ghostscript" and not self.ghostscript_program:
            errors.append("RASTERIZER=ghostscript requires GHOSTSCRIPT_PROGRAM")

        if self.rasterizer == "mupdf":
            program = self.mutool_program if self.mupdf_subcommand else self.mudraw_program
            if not program:
                errors.append("RASTERIZER=mupdf requires MUTOOL_PROGRAM or MUDRAW_PROGRAM")

        if self.kill_grace_seconds < 0:
            errors.append("KILL_GRACE_SECONDS must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def ghostscript_options_list(self) -> list[str]:
        """Parse comma-separated ghostscript options."""
        return [o.strip() for o in self.ghostscript_options.split(",") if o.strip()]

    @property
    def cache_root_path(self) -> Path:
        return Path(self.cache_root).expanduser()


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-document config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
