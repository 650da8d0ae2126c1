from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core.environment import ToolStage
from .core.steps import split_arguments


class CompileJobStatus(str, Enum):
    queued = "queued"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    cancelled = "cancelled"


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class ToolArgument(BaseModel):
    """Command-line arguments for one compile tool stage (CSG, BSP, VIS, RAD)."""

    name: str
    arguments: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _canonical_name(cls, value: Any) -> str:
        name = str(value.value if isinstance(value, ToolStage) else value).strip().upper()
        if name not in {s.value for s in ToolStage}:
            raise ValueError(f"Unknown tool stage '{value}', expected one of CSG, BSP, VIS, RAD")
        return name

    @field_validator("arguments")
    @classmethod
    def _balanced_quotes(cls, value: str) -> str:
        split_arguments(value)
        return value


class CompileRequest(BaseModel):
    """Input for the map compile pipeline.

    ``map_source`` is the exported map text. ``file_name`` is the document's
    name; when it is empty or has no extension a random name is used.
    """

    file_name: str = ""
    map_source: str
    arguments: list[ToolArgument] = Field(default_factory=list)
    launch_confirmed: bool = False

    request_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

class DiagnosticEntry(BaseModel):
    category: str
    text: str


class CompileResult(BaseModel):
    success: bool = False
    map_file_name: str = ""
    steps_run: list[str] = Field(default_factory=list)
    # Destination paths of every file copy-back wrote
    copied: list[str] = Field(default_factory=list)
    diagnostics: list[DiagnosticEntry] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    elapsed: float = 0.0


# ---------------------------------------------------------------------------
# Job views (for /jobs endpoints)
# ---------------------------------------------------------------------------

class JobRecordView(BaseModel):
    id: str
    status: CompileJobStatus
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    progress: int = 0
    detail: str = ""

    request_summary: dict[str, Any] = Field(default_factory=dict)
    result: CompileResult | None = None
    error: dict[str, Any] | None = None


class AsyncJobAccepted(BaseModel):
    job_id: str
    status: CompileJobStatus = CompileJobStatus.queued
    status_url: str
    result_url: str
