"""
Fixed callback stages of a compile batch.

  setup_working_directory   : fresh temp dir → ``WorkingDirectory``
  export_document           : write the map → ``MapFileName`` / ``MapFile``
  validate_output           : .err file present or .bsp missing → failed
  copy_back                 : byproducts to the map's folder / game maps folder
  cleanup_working_directory : remove the temp dir

Stages that depend on the game environment are built by factory functions
so the environment is captured once, when the batch is assembled.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from compiler_shared.files import copy_if_exists, random_file_name, remove_tree

from .ports import DEBUG, ERROR, Document
from .steps import BatchCallbackFn

if TYPE_CHECKING:
    from .batch import Batch
    from .environment import GameEnvironment

logger = logging.getLogger(__name__)

WORKING_DIRECTORY = "WorkingDirectory"
MAP_FILE_NAME = "MapFileName"
MAP_FILE = "MapFile"

MAP_EXT = "map"
ERR_EXT = "err"
BSP_EXT = "bsp"
RES_EXT = "res"
LOG_EXT = "log"
LIN_EXT = "lin"
PTS_EXT = "pts"


def _sibling(batch: "Batch", extension: str) -> Path:
    return Path(batch.variables.get(MAP_FILE)).with_suffix(f".{extension}")


def make_setup_step(temp_root: Path | None = None) -> BatchCallbackFn:
    async def setup_working_directory(batch: "Batch", document: Document) -> None:
        parent = str(temp_root) if temp_root else None
        if parent:
            os.makedirs(parent, exist_ok=True)
        working_dir = tempfile.mkdtemp(prefix="compile_", dir=parent)
        batch.variables.set(WORKING_DIRECTORY, working_dir)
        batch.diagnostics.publish(DEBUG, f"Working directory is: {working_dir}\n")

    return setup_working_directory


def compiled_file_name(document_file_name: str) -> str:
    """``<stem>.map`` for the document, or a random stem when it has no usable name."""
    fn = (document_file_name or "").strip()
    if not fn or not Path(fn).suffix:
        fn = random_file_name()
    return f"{Path(fn).stem}.{MAP_EXT}"


async def export_document(batch: "Batch", document: Document) -> None:
    map_file_name = compiled_file_name(document.file_name)
    batch.variables.set(MAP_FILE_NAME, map_file_name)

    path = os.path.join(batch.variables.get(WORKING_DIRECTORY), map_file_name)
    batch.variables.set(MAP_FILE, path)

    await document.export(path)
    batch.diagnostics.publish(DEBUG, f"Map file is: {path}\n")


async def validate_output(batch: "Batch", document: Document) -> None:
    err_file = _sibling(batch, ERR_EXT)
    if err_file.is_file():
        errors = err_file.read_text(errors="replace")
        batch.successful = False
        batch.diagnostics.publish(ERROR, errors)

    bsp_file = _sibling(batch, BSP_EXT)
    if not bsp_file.is_file():
        batch.successful = False


def document_directory(document: Document) -> Path | None:
    fn = document.file_name or ""
    directory = os.path.dirname(fn)
    return Path(directory) if directory else None


def make_copy_back_step(environment: "GameEnvironment") -> BatchCallbackFn:
    async def copy_back(batch: "Batch", document: Document) -> None:
        map_dir = document_directory(document)
        game_map_dir = environment.game_maps_directory

        def copy(enabled: bool, extension: str, directory: Path | None) -> None:
            if not enabled:
                return
            copied = copy_if_exists(_sibling(batch, extension), directory)
            if copied is not None:
                batch.copied_files.append(copied)
                batch.diagnostics.publish(DEBUG, f"Copied {copied.name} to {directory}\n")

        copy(environment.map_copy_bsp, BSP_EXT, map_dir)
        copy(environment.map_copy_map, MAP_EXT, map_dir)
        copy(environment.map_copy_res, RES_EXT, map_dir)
        copy(environment.map_copy_err, ERR_EXT, map_dir)
        copy(environment.map_copy_log, LOG_EXT, map_dir)

        # pointfiles are how leaks get tracked down; always keep them
        copy(True, LIN_EXT, map_dir)
        copy(True, PTS_EXT, map_dir)

        publish_to_game = batch.successful and environment.game_copy_bsp
        copy(publish_to_game, BSP_EXT, game_map_dir)
        copy(publish_to_game, RES_EXT, game_map_dir)

    return copy_back


async def cleanup_working_directory(batch: "Batch", document: Document) -> None:
    working_dir = Path(batch.variables.get(WORKING_DIRECTORY))
    if remove_tree(working_dir):
        logger.info("Removed working directory %s", working_dir)
