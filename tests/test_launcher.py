"""
Tests for the post-compile game launch step.
"""

from pathlib import Path

import pytest

from compiler_shared import process_exec
from map_compiler.core.batch import Batch
from map_compiler.core.environment import GameEnvironment
from map_compiler.core.launcher import (
    BAD_EXECUTABLE_MESSAGE,
    build_launch_arguments,
    make_launch_step,
)
from map_compiler.core.ports import MapSourceDocument, PresetInteraction


@pytest.fixture
def game_dir(tmp_path: Path) -> Path:
    path = tmp_path / "Half-Life"
    path.mkdir()
    (path / "hl.exe").write_text("")
    return path


@pytest.fixture
def started(monkeypatch):
    calls = []

    def fake_start(executable, arguments, cwd=None):
        calls.append((executable, arguments))

    monkeypatch.setattr(process_exec, "start_detached", fake_start)
    return calls


def compiled_batch(successful=True) -> Batch:
    batch = Batch([])
    batch.variables.set("MapFileName", "mymap.map")
    batch.successful = successful
    return batch


DOC = MapSourceDocument("/maps/mymap.rmf", "")


class TestLaunchArguments:

    def test_default_mod_has_no_game_flag(self):
        assert build_launch_arguments("valve", "mymap") == '-dev -console +map "mymap"'

    def test_other_mod_selects_game(self):
        assert build_launch_arguments("cstrike", "de_test") == '-game cstrike -dev -console +map "de_test"'


class TestLaunchStep:

    @pytest.mark.asyncio
    async def test_launches_without_asking(self, game_dir, started):
        env = GameEnvironment(base_directory=game_dir, game_run=True, game_ask=False)
        interaction = PresetInteraction(answer=False)

        await make_launch_step(env, interaction)(compiled_batch(), DOC)

        assert started == [(str(game_dir / "hl.exe"), ["-dev", "-console", "+map", "mymap"])]
        assert interaction.questions == []

    @pytest.mark.asyncio
    async def test_mod_flag_included(self, game_dir, started):
        env = GameEnvironment(base_directory=game_dir, mod_directory="gearbox", game_run=True, game_ask=False)

        await make_launch_step(env, PresetInteraction(answer=True))(compiled_batch(), DOC)

        assert started[0][1] == ["-game", "gearbox", "-dev", "-console", "+map", "mymap"]

    @pytest.mark.asyncio
    async def test_skipped_when_compile_failed(self, game_dir, started):
        env = GameEnvironment(base_directory=game_dir, game_run=True, game_ask=True)
        interaction = PresetInteraction(answer=True)

        await make_launch_step(env, interaction)(compiled_batch(successful=False), DOC)

        assert started == []
        assert interaction.questions == []

    @pytest.mark.asyncio
    async def test_asks_and_respects_no(self, game_dir, started):
        env = GameEnvironment(base_directory=game_dir, game_run=True, game_ask=True)
        interaction = PresetInteraction(answer=False)

        await make_launch_step(env, interaction)(compiled_batch(), DOC)

        assert started == []
        assert "The compile of mymap.rmf completed successfully." in interaction.questions[0]

    @pytest.mark.asyncio
    async def test_asks_and_launches_on_yes(self, game_dir, started):
        env = GameEnvironment(base_directory=game_dir, game_run=True, game_ask=True)

        await make_launch_step(env, PresetInteraction(answer=True))(compiled_batch(), DOC)

        assert len(started) == 1

    @pytest.mark.asyncio
    async def test_missing_executable_reported(self, tmp_path, started):
        env = GameEnvironment(base_directory=tmp_path / "nope", game_run=True, game_ask=False)
        interaction = PresetInteraction(answer=True)
        batch = compiled_batch()

        await make_launch_step(env, interaction)(batch, DOC)

        assert started == []
        assert interaction.notifications == [BAD_EXECUTABLE_MESSAGE]
        assert batch.successful is True

    @pytest.mark.asyncio
    async def test_start_failure_reported_not_raised(self, game_dir, monkeypatch):
        def broken_start(executable, arguments, cwd=None):
            raise PermissionError("access denied")

        monkeypatch.setattr(process_exec, "start_detached", broken_start)
        env = GameEnvironment(base_directory=game_dir, game_run=True, game_ask=False)
        interaction = PresetInteraction(answer=True)

        await make_launch_step(env, interaction)(compiled_batch(), DOC)

        assert interaction.notifications == ["Launching game failed: access denied"]
