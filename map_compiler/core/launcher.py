"""
Post-compile game launch.

Only runs after a successful batch. Problems here (missing executable,
failed start) are reported to the user and never raised: the compile itself
has already finished by this point.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from compiler_shared import process_exec

from .ports import Document, UserInteraction
from .stages import MAP_FILE_NAME
from .steps import BatchCallbackFn, split_arguments

if TYPE_CHECKING:
    from .batch import Batch
    from .environment import GameEnvironment

logger = logging.getLogger(__name__)

DEFAULT_MOD = "valve"

LAUNCH_FAILED_TITLE = "Failed to launch!"
BAD_EXECUTABLE_MESSAGE = (
    "The location of the game executable is incorrect. "
    "Please ensure that the game configuration has been set up correctly."
)


def build_launch_arguments(mod_directory: str, map_name: str) -> str:
    game_arg = "" if mod_directory == DEFAULT_MOD else f"-game {mod_directory} "
    return f'{game_arg}-dev -console +map "{map_name}"'


def make_launch_step(environment: "GameEnvironment", interaction: UserInteraction) -> BatchCallbackFn:
    async def launch_game(batch: "Batch", document: Document) -> None:
        if not batch.successful:
            return

        if environment.game_ask:
            run_now = await interaction.confirm(
                "Compile Successful!",
                f"The compile of {document.name} completed successfully.\n"
                "Would you like to run the game now?",
            )
            if not run_now:
                return

        exe = environment.game_executable
        if exe is None or not exe.is_file():
            await interaction.notify(LAUNCH_FAILED_TITLE, BAD_EXECUTABLE_MESSAGE)
            return

        map_name = Path(batch.variables.get(MAP_FILE_NAME)).stem
        flags = build_launch_arguments(environment.mod_directory, map_name)

        try:
            process_exec.start_detached(str(exe), split_arguments(flags), cwd=str(exe.parent))
        except (OSError, ValueError) as e:
            logger.error("Game launch failed: %s", e)
            await interaction.notify(LAUNCH_FAILED_TITLE, f"Launching game failed: {e}")
            return

        logger.info("Launched %s %s", exe, flags)

    return launch_game
