"""
Compile batch execution.

A batch is one compile run: a fixed list of steps, the variable store they
share, and a ``successful`` flag that starts true and can only go false.

Steps run strictly in order, each awaited to completion before the next
starts. A step reporting failure (clearing ``successful``) does not stop the
batch; later steps still run so byproducts get copied and the working
directory gets removed.

If a step *raises*, the remaining steps are abandoned except those marked
``always_run`` (cleanup), and the original exception is re-raised once they
have finished.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Iterable

from .ports import Diagnostics, Document, LoggingDiagnostics
from .steps import BatchStep
from .variables import VariableStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


class Batch:
    def __init__(
        self,
        steps: Iterable[BatchStep],
        diagnostics: Diagnostics | None = None,
    ):
        self._steps: tuple[BatchStep, ...] = tuple(steps)
        self.variables = VariableStore()
        self.diagnostics: Diagnostics = diagnostics or LoggingDiagnostics()
        self.steps_run: list[str] = []
        self.copied_files: list[Path] = []
        self.elapsed: float = 0.0
        self._successful = True
        self._started = False

    @property
    def steps(self) -> tuple[BatchStep, ...]:
        return self._steps

    @property
    def successful(self) -> bool:
        return self._successful

    @successful.setter
    def successful(self, value: bool) -> None:
        if value and not self._successful:
            logger.warning("Ignoring attempt to mark a failed batch successful")
            return
        self._successful = bool(value)

    async def run(self, document: Document, progress_callback: ProgressCallback | None = None) -> bool:
        if self._started:
            raise RuntimeError("A batch can only be run once")
        self._started = True

        total = len(self._steps)
        error: BaseException | None = None
        t0 = time.time()

        for index, step in enumerate(self._steps):
            if error is not None and not step.always_run:
                continue

            if progress_callback:
                progress_callback(step.name, index, total)

            try:
                await step.run(self, document)
            except Exception as e:
                if error is not None:
                    logger.exception("Step '%s' failed while unwinding an earlier error", step.name)
                else:
                    logger.error("Step '%s' raised, abandoning batch: %s", step.name, e)
                    self.successful = False
                    error = e
            self.steps_run.append(step.name)

        self.elapsed = time.time() - t0
        if error is not None:
            raise error

        logger.info(
            "Batch finished: successful=%s steps=%d (%.1fs)",
            self._successful, len(self.steps_run), self.elapsed,
        )
        return self._successful
