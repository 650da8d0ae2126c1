"""
Goldsource game environment and compile batch assembly.

The environment describes where the game and the compile tools live and
which byproducts to copy where. ``create_batch`` turns it, plus the
per-stage tool arguments chosen for one compile, into a ready-to-run Batch:

  setup → export → [CSG] → [BSP] → [VIS] → [RAD] → validate → copy-back
        → cleanup → [launch]

A tool stage is included only when arguments were supplied for it.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import BaseModel

from .batch import Batch
from .launcher import DEFAULT_MOD, make_launch_step
from .ports import Diagnostics, PresetInteraction, UserInteraction
from .stages import (
    MAP_FILE,
    cleanup_working_directory,
    export_document,
    make_copy_back_step,
    make_setup_step,
    validate_output,
)
from .steps import BatchStep, CallbackStep, ProcessStep

logger = logging.getLogger(__name__)


class ToolStage(str, Enum):
    csg = "CSG"
    bsp = "BSP"
    vis = "VIS"
    rad = "RAD"


# Order the tools have to run in; each consumes the previous one's output.
TOOL_STAGE_ORDER: tuple[ToolStage, ...] = (ToolStage.csg, ToolStage.bsp, ToolStage.vis, ToolStage.rad)


class GameEnvironment(BaseModel):
    name: str = "Goldsource"

    base_directory: Path | None = None
    mod_directory: str = DEFAULT_MOD
    game_exe: str = "hl.exe"

    tools_directory: Path | None = None
    csg_exe: str = "hlcsg.exe"
    bsp_exe: str = "hlbsp.exe"
    vis_exe: str = "hlvis.exe"
    rad_exe: str = "hlrad.exe"

    # Copy to the game's maps folder (successful compiles only)
    game_copy_bsp: bool = True
    # Launch the game afterwards, optionally asking first
    game_run: bool = False
    game_ask: bool = True

    # Copy byproducts next to the source map
    map_copy_bsp: bool = False
    map_copy_map: bool = False
    map_copy_log: bool = True
    map_copy_err: bool = True
    map_copy_res: bool = False

    def tool_path(self, stage: ToolStage) -> Path:
        exe = {
            ToolStage.csg: self.csg_exe,
            ToolStage.bsp: self.bsp_exe,
            ToolStage.vis: self.vis_exe,
            ToolStage.rad: self.rad_exe,
        }[stage]
        if self.tools_directory is None:
            return Path(exe)
        return self.tools_directory / exe

    @property
    def game_maps_directory(self) -> Path | None:
        if self.base_directory is None:
            return None
        return self.base_directory / self.mod_directory / "maps"

    @property
    def game_executable(self) -> Path | None:
        if self.base_directory is None:
            return None
        return self.base_directory / self.game_exe


def group_arguments(arguments: Mapping[str, str] | Iterable[Any]) -> dict[str, str]:
    """
    Normalise tool arguments to ``{stage name: argument string}``.

    Accepts a mapping, ``(name, arguments)`` pairs, or objects with ``name``
    and ``arguments`` attributes. When a name repeats, the first one wins.
    """
    if isinstance(arguments, Mapping):
        return {str(k): str(v) for k, v in arguments.items()}

    grouped: dict[str, str] = {}
    for item in arguments:
        if isinstance(item, tuple):
            name, args = item
        else:
            name, args = item.name, item.arguments
        name = name.value if isinstance(name, ToolStage) else str(name)
        grouped.setdefault(name, args or "")
    return grouped


def create_batch(
    environment: GameEnvironment,
    arguments: Mapping[str, str] | Iterable[Any],
    diagnostics: Diagnostics | None = None,
    interaction: UserInteraction | None = None,
    temp_root: Path | None = None,
    tool_timeout: int | None = None,
) -> Batch:
    args = group_arguments(arguments)
    unknown = sorted(set(args) - {s.value for s in ToolStage})
    if unknown:
        logger.warning("Ignoring arguments for unknown tool stages: %s", unknown)

    steps: list[BatchStep] = [
        CallbackStep(make_setup_step(temp_root), name="setup"),
        CallbackStep(export_document, name="export"),
    ]

    for stage in TOOL_STAGE_ORDER:
        if stage.value not in args:
            continue
        steps.append(
            ProcessStep(
                str(environment.tool_path(stage)),
                args[stage.value] + ' "{' + MAP_FILE + '}"',
                name=stage.value,
                timeout=tool_timeout,
            )
        )

    steps.append(CallbackStep(validate_output, name="validate"))
    steps.append(CallbackStep(make_copy_back_step(environment), name="copy"))
    steps.append(CallbackStep(cleanup_working_directory, name="cleanup", always_run=True))

    if environment.game_run:
        port = interaction or PresetInteraction(answer=False, diagnostics=diagnostics)
        steps.append(CallbackStep(make_launch_step(environment, port), name="launch"))

    logger.info(
        "Assembled batch for %s: %s",
        environment.name, " → ".join(s.name for s in steps),
    )
    return Batch(steps, diagnostics=diagnostics)
