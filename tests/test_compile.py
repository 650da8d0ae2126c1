"""
End-to-end compile runs against the fake tool.
"""

import asyncio
from pathlib import Path

import pytest

from map_compiler.core.compile import compile_document
from map_compiler.core.exceptions import ArgumentTemplateError, ToolLaunchError
from map_compiler.core.launcher import BAD_EXECUTABLE_MESSAGE, LAUNCH_FAILED_TITLE
from map_compiler.core.ports import MapSourceDocument, PresetInteraction

LEAK_ERROR = "leaf node count exceeds limit"


class TestCompileDocument:

    @pytest.mark.asyncio
    async def test_successful_compile(self, document, python_tools_environment, tool_args, work_root, source_dir):
        env = python_tools_environment.model_copy(update={"map_copy_bsp": True})
        args = {"CSG": tool_args(), "BSP": tool_args("bsp", "log"), "VIS": tool_args(), "RAD": tool_args()}

        result = await compile_document(document, env, args, temp_root=work_root)

        assert result.success is True
        assert result.map_file_name == "mymap.map"
        assert result.steps_run == ["setup", "export", "CSG", "BSP", "VIS", "RAD", "validate", "copy", "cleanup"]
        assert (source_dir / "mymap.bsp").read_text() == "bsp"
        assert not (source_dir / "mymap.log").exists()
        assert list(work_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_no_tool_stages(self, document, python_tools_environment, work_root):
        result = await compile_document(document, python_tools_environment, {}, temp_root=work_root)

        assert result.success is False
        assert result.steps_run == ["setup", "export", "validate", "copy", "cleanup"]
        assert result.errors == []
        assert list(work_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_error_file_scenario(self, document, python_tools_environment, tool_args, work_root, source_dir):
        args = {"BSP": tool_args(f"err={LEAK_ERROR}", "lin", "pts")}

        result = await compile_document(document, python_tools_environment, args, temp_root=work_root)

        assert result.success is False
        assert result.errors == [LEAK_ERROR]
        assert sorted(p.name for p in source_dir.iterdir()) == ["mymap.lin", "mymap.pts"]
        assert list(work_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_tool_output_in_diagnostics(self, document, python_tools_environment, tool_args, work_root):
        result = await compile_document(document, python_tools_environment, {"CSG": tool_args()}, temp_root=work_root)

        output = [d.text for d in result.diagnostics if d.category == "output"]
        assert output and "fake tool read mymap.map" in output[0]

    @pytest.mark.asyncio
    async def test_tool_that_cannot_start_still_cleans_up(self, document, python_tools_environment, tool_args, work_root, tmp_path):
        env = python_tools_environment.model_copy(update={"tools_directory": tmp_path / "missing-tools"})

        with pytest.raises(ToolLaunchError):
            await compile_document(document, env, {"CSG": tool_args(), "BSP": tool_args("bsp")}, temp_root=work_root)

        assert list(work_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_launch_with_missing_executable(self, document, python_tools_environment, tool_args, work_root):
        env = python_tools_environment.model_copy(update={"game_run": True, "game_ask": False})
        interaction = PresetInteraction(answer=True)

        result = await compile_document(
            document, env, {"BSP": tool_args("bsp")}, interaction=interaction, temp_root=work_root,
        )

        assert result.success is True
        assert result.steps_run[-1] == "launch"
        assert interaction.notifications == [BAD_EXECUTABLE_MESSAGE]

    @pytest.mark.asyncio
    async def test_concurrent_compiles_use_separate_directories(self, python_tools_environment, tool_args, tmp_path, work_root):
        docs = []
        for i in range(3):
            folder = tmp_path / f"src{i}"
            folder.mkdir()
            docs.append(MapSourceDocument(str(folder / "same.rmf"), f"// map {i}\n"))

        results = await asyncio.gather(*[
            compile_document(d, python_tools_environment, {"BSP": tool_args("bsp")}, temp_root=work_root)
            for d in docs
        ])

        assert all(r.success for r in results)
        working_dirs = {
            d.text.split(": ", 1)[1].strip()
            for r in results for d in r.diagnostics
            if d.text.startswith("Working directory is:")
        }
        assert len(working_dirs) == 3
        assert all(not Path(w).exists() for w in working_dirs)

    @pytest.mark.asyncio
    async def test_confirmed_launch_problem_reported_in_errors(self, document, python_tools_environment, tool_args, work_root):
        env = python_tools_environment.model_copy(update={"game_run": True})

        result = await compile_document(
            document, env, {"BSP": tool_args("bsp")}, launch_confirmed=True, temp_root=work_root,
        )

        assert result.success is True
        assert result.errors == [f"{LAUNCH_FAILED_TITLE} {BAD_EXECUTABLE_MESSAGE}"]

    @pytest.mark.asyncio
    async def test_file_name_with_quote(self, python_tools_environment, tool_args, work_root, source_dir):
        doc = MapSourceDocument(str(source_dir / 'my"map.rmf'), "// quoted\n")

        result = await compile_document(doc, python_tools_environment, {"BSP": tool_args("bsp", "lin")}, temp_root=work_root)

        assert result.success is True
        assert result.map_file_name == 'my"map.map'
        assert (source_dir / 'my"map.lin').exists()

    @pytest.mark.asyncio
    async def test_unbalanced_arguments_abort_and_clean_up(self, document, python_tools_environment, work_root):
        with pytest.raises(ArgumentTemplateError):
            await compile_document(document, python_tools_environment, {"CSG": '-wadinclude "C:\\wads'}, temp_root=work_root)

        assert list(work_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_copied_files_listed(self, document, python_tools_environment, tool_args, work_root, source_dir):
        env = python_tools_environment.model_copy(update={"map_copy_log": True, "game_copy_bsp": True})
        maps_dir = env.game_maps_directory
        maps_dir.mkdir(parents=True)

        result = await compile_document(document, env, {"BSP": tool_args("bsp", "log", "pts")}, temp_root=work_root)

        assert sorted(result.copied) == sorted([
            str(source_dir / "mymap.log"),
            str(source_dir / "mymap.pts"),
            str(maps_dir / "mymap.bsp"),
        ])
