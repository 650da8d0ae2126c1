from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.environment import GameEnvironment, ToolStage


SERVICE_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(SERVICE_ROOT / ".env", override=False)


def _default_concurrency() -> int:
    cpu = os.cpu_count() or 2
    return max(1, min(4, cpu // 2 if cpu > 2 else 1))


class CompileSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MAP_COMPILE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    service_name: str = "map-compile-service"
    host: str = "0.0.0.0"
    port: int = 8110
    log_level: str = "INFO"

    # Game + compile tools (MAP_COMPILE_ENVIRONMENT__TOOLS_DIRECTORY=... etc.)
    environment: GameEnvironment = Field(default_factory=GameEnvironment)

    # Pipeline
    temp_root: Path | None = None
    tool_timeout_seconds: int | None = Field(default=None, ge=1, le=86400)

    # Storage
    storage_dir: Path = Field(default_factory=lambda: SERVICE_ROOT / "data")
    uploads_subdir: str = "uploads"

    # Concurrency
    max_concurrent_jobs: int = Field(default_factory=_default_concurrency, ge=1, le=32)
    max_queue_size: int = Field(default=64, ge=1, le=10000)
    sync_wait_timeout_seconds: int = Field(default=1800, ge=30, le=86400)

    # Job lifecycle
    finished_job_ttl_seconds: int = Field(default=3600, ge=60, le=172800)
    cleanup_interval_seconds: int = Field(default=30, ge=5, le=3600)
    max_job_records: int = Field(default=2000, ge=100, le=200000)

    # Auth
    api_key: str | None = None

    @field_validator("temp_root", mode="after")
    @classmethod
    def _resolve_temp_root(cls, value: Path | None) -> Path | None:
        return value.expanduser().resolve() if value else None

    @property
    def uploads_dir(self) -> Path:
        return self.storage_dir / self.uploads_subdir

    def tool_status(self) -> dict[str, bool]:
        return {
            stage.value: self.environment.tool_path(stage).is_file()
            for stage in ToolStage
        }


settings = CompileSettings()
