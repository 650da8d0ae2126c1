"""
One compile, end to end: assemble the batch, run it, collect the outcome.

Shared by the job manager and the command-line script.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from ..schemas import CompileResult, DiagnosticEntry
from .batch import ProgressCallback
from .environment import GameEnvironment, create_batch
from .ports import (
    ERROR,
    CollectingDiagnostics,
    Diagnostics,
    Document,
    LoggingDiagnostics,
    PresetInteraction,
    UserInteraction,
)
from .stages import MAP_FILE_NAME

logger = logging.getLogger(__name__)


async def compile_document(
    document: Document,
    environment: GameEnvironment,
    arguments: Mapping[str, str] | Iterable[Any],
    interaction: UserInteraction | None = None,
    launch_confirmed: bool = False,
    diagnostics: Diagnostics | None = None,
    temp_root: Path | None = None,
    tool_timeout: int | None = None,
    progress_callback: ProgressCallback | None = None,
) -> CompileResult:
    """
    Run a full compile batch for ``document``.

    Tool start-up failures propagate (after the working directory has been
    removed); every other failure is reported through ``success=False`` and
    the error diagnostics.

    Without an ``interaction`` port every launch question is answered with
    ``launch_confirmed`` and launch problems land in the error diagnostics.
    """
    collected = CollectingDiagnostics(forward=diagnostics or LoggingDiagnostics())
    if interaction is None:
        interaction = PresetInteraction(answer=launch_confirmed, diagnostics=collected)

    batch = create_batch(
        environment,
        arguments,
        diagnostics=collected,
        interaction=interaction,
        temp_root=temp_root,
        tool_timeout=tool_timeout,
    )

    logger.info("Compiling %s (%d steps)", document.name, len(batch.steps))
    success = await batch.run(document, progress_callback=progress_callback)

    map_file_name = batch.variables.get(MAP_FILE_NAME) if MAP_FILE_NAME in batch.variables else ""
    return CompileResult(
        success=success,
        map_file_name=map_file_name,
        steps_run=list(batch.steps_run),
        copied=[str(p) for p in batch.copied_files],
        diagnostics=[DiagnosticEntry(category=c, text=t) for c, t in collected.entries],
        errors=collected.texts(ERROR),
        elapsed=round(batch.elapsed, 2),
    )
