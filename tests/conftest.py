"""
Shared fixtures: a fake compile tool and a game environment that runs it.

The fake tool is a Python script invoked through the current interpreter.
Its last argument is the map file; every other argument names a sibling file
to create, as ``ext`` or ``ext=contents``:

    python fake_tool.py bsp log "err=leaf node count exceeds limit" /tmp/x/out.map
"""

import sys
import textwrap
from pathlib import Path

import pytest

from map_compiler.core.environment import GameEnvironment
from map_compiler.core.ports import CollectingDiagnostics, MapSourceDocument

FAKE_TOOL = textwrap.dedent(
    """
    import sys
    from pathlib import Path

    map_file = Path(sys.argv[-1])
    if not map_file.is_file():
        sys.exit(f"map file missing: {map_file}")
    print(f"fake tool read {map_file.name}")
    for spec in sys.argv[1:-1]:
        ext, _, text = spec.partition("=")
        map_file.with_suffix("." + ext).write_text(text or ext)
    """
)

MAP_SOURCE = '{\n"classname" "worldspawn"\n}\n'


@pytest.fixture
def fake_tool(tmp_path: Path) -> Path:
    path = tmp_path / "fake_tool.py"
    path.write_text(FAKE_TOOL)
    return path


@pytest.fixture
def tool_args(fake_tool: Path):
    """Build an argument string that makes the fake tool create ``outputs``."""

    def _build(*outputs: str) -> str:
        quoted = " ".join(f'"{o}"' for o in outputs)
        return f'"{fake_tool}" {quoted}'.strip()

    return _build


@pytest.fixture
def python_tools_environment(tmp_path: Path) -> GameEnvironment:
    """Every tool stage resolves to the running Python interpreter."""
    exe = Path(sys.executable)
    return GameEnvironment(
        base_directory=tmp_path / "game",
        tools_directory=exe.parent,
        csg_exe=exe.name,
        bsp_exe=exe.name,
        vis_exe=exe.name,
        rad_exe=exe.name,
        game_copy_bsp=False,
        map_copy_log=False,
        map_copy_err=False,
    )


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    path = tmp_path / "maps_src"
    path.mkdir()
    return path


@pytest.fixture
def document(source_dir: Path) -> MapSourceDocument:
    return MapSourceDocument(str(source_dir / "mymap.rmf"), MAP_SOURCE)


@pytest.fixture
def work_root(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def diagnostics() -> CollectingDiagnostics:
    return CollectingDiagnostics()
