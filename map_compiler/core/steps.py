"""
Batch steps.

Two kinds of work make up a compile batch:

  ProcessStep  : run an external tool with a ``{Variable}`` argument template
  CallbackStep : run an async function against the batch and the document

Steps have no identity beyond their position in the batch; ``name`` is only
used for logs and progress reporting.
"""

from __future__ import annotations

import logging
import shlex
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Awaitable, Callable

from compiler_shared.process_exec import ProcessResult, run_process

from .exceptions import ArgumentTemplateError, ToolLaunchError
from .ports import OUTPUT, Document

if TYPE_CHECKING:
    from .batch import Batch
    from .variables import VariableStore

logger = logging.getLogger(__name__)

BatchCallbackFn = Callable[["Batch", Document], Awaitable[None]]


def split_arguments(text: str) -> list[str]:
    """
    Split a command line on whitespace, honouring double and single quotes.

    Backslashes are ordinary characters so Windows paths pass through as
    written. Raises ``ArgumentTemplateError`` on an unbalanced quote.
    """
    lexer = shlex.shlex(text, posix=True)
    lexer.whitespace_split = True
    lexer.escape = ""
    lexer.commenters = ""
    try:
        return list(lexer)
    except ValueError as e:
        raise ArgumentTemplateError(text, e) from e


class BatchStep(ABC):
    name: str = "step"
    # Steps that must still execute after an earlier step raised.
    always_run: bool = False

    @abstractmethod
    async def run(self, batch: "Batch", document: Document) -> None:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class ProcessStep(BatchStep):
    """
    Start ``executable`` and wait for it to exit.

    The exit code is not checked; a later validation step decides whether the
    tool did its job by looking at the files it left behind. An executable that
    cannot be started raises ``ToolLaunchError``.
    """

    def __init__(
        self,
        executable: str,
        arguments: str,
        name: str | None = None,
        timeout: int | None = None,
    ):
        self.executable = executable
        self.arguments = arguments
        self.name = name or executable
        self.timeout = timeout
        self.last_result: ProcessResult | None = None

    def resolve_arguments(self, variables: "VariableStore") -> str:
        return variables.substitute(self.arguments)

    def resolve_argv(self, variables: "VariableStore") -> list[str]:
        # Split the template, not the resolved text: values such as file
        # names stay one argument whatever quotes or spaces they contain.
        return [variables.substitute(token) for token in split_arguments(self.arguments)]

    async def run(self, batch: "Batch", document: Document) -> None:
        argv = self.resolve_argv(batch.variables)
        logger.info("[%s] %s %s", self.name, self.executable, self.resolve_arguments(batch.variables))

        try:
            result = await run_process(self.executable, argv, timeout=self.timeout)
        except OSError as e:
            raise ToolLaunchError(self.executable, argv, e) from e

        self.last_result = result
        if result.output:
            batch.diagnostics.publish(OUTPUT, result.output)
        if result.timed_out:
            logger.warning("[%s] killed after %ss timeout", self.name, self.timeout)


class CallbackStep(BatchStep):
    def __init__(self, callback: BatchCallbackFn, name: str | None = None, always_run: bool = False):
        self.callback = callback
        self.name = name or getattr(callback, "__name__", "callback")
        self.always_run = always_run

    async def run(self, batch: "Batch", document: Document) -> None:
        await self.callback(batch, document)
