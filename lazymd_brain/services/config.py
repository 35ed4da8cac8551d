"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MAX_DOCUMENT_BYTES = 1_048_576
LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    workspace_root: Path = Field(..., description="Directory that document paths are relative to")
    autosave: bool = Field(
        default=True,
        description="Write accepted mutations back to disk before responding",
    )
    preload: bool = Field(
        default=False,
        description="Open every markdown file under the workspace at start-up",
    )
    max_document_bytes: int = Field(
        default=DEFAULT_MAX_DOCUMENT_BYTES,
        ge=1,
        description="Largest document accepted by open and write",
    )
    log_level: str = Field(default="INFO", description="Root logging level for entry points")

    @field_validator("workspace_root", mode="before")
    @classmethod
    def _normalize_workspace(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("LAZYMD_WORKSPACE is required")
        if isinstance(value, Path):
            path = value
        else:
            path = Path(value)
        return path.expanduser().resolve()

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Optional[str]) -> str:
        cleaned = (value or "INFO").strip().upper()
        if cleaned not in LOG_LEVELS:
            raise ValueError(f"LAZYMD_LOG_LEVEL must be one of {sorted(LOG_LEVELS)}")
        return cleaned


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


def _read_flag(key: str, default: str) -> bool:
    return (_read_env(key, default) or default).lower() not in {"0", "false", "no"}


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    workspace = _read_env("LAZYMD_WORKSPACE") or os.getcwd()
    max_bytes = _read_env("LAZYMD_MAX_DOCUMENT_BYTES", str(DEFAULT_MAX_DOCUMENT_BYTES))

    config = AppConfig(
        workspace_root=workspace,
        autosave=_read_flag("LAZYMD_AUTOSAVE", "true"),
        preload=_read_flag("LAZYMD_PRELOAD", "false"),
        max_document_bytes=max_bytes,
        log_level=_read_env("LAZYMD_LOG_LEVEL", "INFO"),
    )
    config.workspace_root.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = ["AppConfig", "get_config", "reload_config", "DEFAULT_MAX_DOCUMENT_BYTES"]
