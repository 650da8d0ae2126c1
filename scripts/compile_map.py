#!/usr/bin/env python3
"""
Standalone CLI for compiling a map with the configured Goldsource tools.

Usage:
  python scripts/compile_map.py /path/to/mymap.map --csg "" --bsp "" --vis "-fast" --rad ""

Tools without a flag are skipped. Game/tool locations come from the
MAP_COMPILE_ENVIRONMENT__* settings (or .env).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

SERVICE_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(SERVICE_ROOT))

from compiler_shared.logging import configure_logging
from map_compiler.core.compile import compile_document
from map_compiler.core.environment import TOOL_STAGE_ORDER
from map_compiler.core.exceptions import CompileError
from map_compiler.core.ports import ConsoleInteraction, MapSourceDocument


async def main() -> None:
    parser = argparse.ArgumentParser(description="Compile a Goldsource map to BSP")
    parser.add_argument("map_path", help="Path to the .map source")
    for stage in TOOL_STAGE_ORDER:
        parser.add_argument(
            f"--{stage.value.lower()}", dest=stage.value, default=None, metavar="ARGS",
            help=f"Run {stage.value} with these arguments",
        )
    parser.add_argument("--yes", action="store_true", help="Launch the game without asking")
    args = parser.parse_args()

    from map_compiler.config import settings
    configure_logging(settings.log_level)

    source = Path(args.map_path).resolve()
    if not source.is_file():
        print(f"Error: map file not found: {source}", file=sys.stderr)
        sys.exit(1)

    tool_args = {s.value: getattr(args, s.value) for s in TOOL_STAGE_ORDER if getattr(args, s.value) is not None}
    interaction = None if args.yes else ConsoleInteraction()

    print(f"Compiling: {source}")
    print(f"  Stages: {', '.join(tool_args) or '(none)'}")

    try:
        result = await compile_document(
            MapSourceDocument.from_file(source),
            settings.environment,
            tool_args,
            interaction=interaction,
            launch_confirmed=args.yes,
            temp_root=settings.temp_root,
            tool_timeout=settings.tool_timeout_seconds,
        )
    except CompileError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(2)

    for entry in result.diagnostics:
        stream = sys.stderr if entry.category == "error" else sys.stdout
        print(entry.text.rstrip(), file=stream)

    if result.success:
        print(f"\nSuccess: {result.map_file_name} compiled in {result.elapsed:.1f}s")
    else:
        print(f"\nFailed after {result.elapsed:.1f}s")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
