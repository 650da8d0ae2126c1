"""
Shared external-process execution helper.

Runs a command-line tool to completion and returns its captured output.
Exit codes are recorded but never interpreted here: the compile tools report
failure through the files they write, so callers decide what success means.

Start-up failures (missing executable, permission denied, ...) are not
caught; they surface to the caller as ``OSError``.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    executable: str
    arguments: list[str] = field(default_factory=list)
    returncode: int = -1
    stdout: str = ""
    stderr: str = ""
    elapsed: float = 0.0
    timed_out: bool = False

    @property
    def output(self) -> str:
        parts = [p for p in (self.stdout, self.stderr) if p]
        return "\n".join(parts)


def run_process_sync(
    executable: str,
    arguments: list[str],
    timeout: int | None = None,
    cwd: str | None = None,
) -> ProcessResult:
    """Execute ``executable`` with ``arguments`` and wait for it to exit."""
    logger.info("Process exec: %s %s", executable, " ".join(arguments))
    t0 = time.time()

    try:
        result = subprocess.run(
            [executable, *arguments],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            cwd=cwd,
        )
    except subprocess.TimeoutExpired as e:
        logger.error("Process TIMEOUT (%ss): %s", timeout, executable)
        return ProcessResult(
            executable=executable,
            arguments=list(arguments),
            stdout=_as_text(e.stdout),
            stderr=_as_text(e.stderr),
            elapsed=time.time() - t0,
            timed_out=True,
        )

    elapsed = time.time() - t0
    logger.info("Process exit: %s code=%d (%.1fs)", executable, result.returncode, elapsed)
    return ProcessResult(
        executable=executable,
        arguments=list(arguments),
        returncode=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        elapsed=elapsed,
    )


async def run_process(
    executable: str,
    arguments: list[str],
    timeout: int | None = None,
    cwd: str | None = None,
) -> ProcessResult:
    """Async wrapper: offloads blocking subprocess to thread-pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        run_process_sync,
        executable,
        arguments,
        timeout,
        cwd,
    )


def start_detached(executable: str, arguments: list[str], cwd: str | None = None) -> subprocess.Popen:
    """Start a process without waiting for it (used to hand off to the game)."""
    logger.info("Process start: %s %s", executable, " ".join(arguments))
    return subprocess.Popen(
        [executable, *arguments],
        cwd=cwd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )


def _as_text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value
