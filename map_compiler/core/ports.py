"""
Collaborators the compile pipeline is handed rather than reaching for.

  Document        : the map being compiled: a file name and an export
                    operation that writes the map source to a path.
  Diagnostics     : publish-only compile log (progress, errors, tool output).
  UserInteraction : yes/no questions and notifications for the launch step.

Each port has small concrete implementations used by the service, the
command-line script and the tests.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

@runtime_checkable
class Document(Protocol):
    @property
    def file_name(self) -> str: ...

    @property
    def name(self) -> str: ...

    async def export(self, path: str) -> None: ...


class MapSourceDocument:
    """A document whose exported form is already known map source text."""

    def __init__(self, file_name: str, source: str, name: str | None = None):
        self._file_name = file_name or ""
        self._source = source
        self._name = name

    @property
    def file_name(self) -> str:
        return self._file_name

    @property
    def name(self) -> str:
        if self._name:
            return self._name
        return Path(self._file_name).name if self._file_name else "Untitled"

    async def export(self, path: str) -> None:
        target = Path(path)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, target.write_text, self._source, "utf-8")

    @classmethod
    def from_file(cls, path: Path) -> "MapSourceDocument":
        return cls(str(path), path.read_text(encoding="utf-8", errors="replace"))


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

DEBUG = "debug"
ERROR = "error"
OUTPUT = "output"


class Diagnostics(Protocol):
    def publish(self, category: str, text: str) -> None: ...


class LoggingDiagnostics:
    _levels = {DEBUG: logging.INFO, ERROR: logging.ERROR, OUTPUT: logging.DEBUG}

    def __init__(self, name: str = "map_compiler.compile"):
        self._logger = logging.getLogger(name)

    def publish(self, category: str, text: str) -> None:
        self._logger.log(self._levels.get(category, logging.INFO), "%s", text.rstrip())


@dataclass
class CollectingDiagnostics:
    """Keeps every message in publish order; optionally forwards to another channel."""

    forward: Diagnostics | None = None
    entries: list[tuple[str, str]] = field(default_factory=list)

    def publish(self, category: str, text: str) -> None:
        self.entries.append((category, text))
        if self.forward is not None:
            self.forward.publish(category, text)

    def texts(self, category: str) -> list[str]:
        return [text for cat, text in self.entries if cat == category]


# ---------------------------------------------------------------------------
# User interaction
# ---------------------------------------------------------------------------

class UserInteraction(Protocol):
    async def confirm(self, title: str, question: str) -> bool: ...

    async def notify(self, title: str, message: str) -> None: ...


class PresetInteraction:
    """
    Non-interactive port: every question gets the same preset answer and
    notifications are published to a diagnostics channel.
    """

    def __init__(self, answer: bool, diagnostics: Diagnostics | None = None):
        self.answer = answer
        self.diagnostics = diagnostics or LoggingDiagnostics()
        self.questions: list[str] = []
        self.notifications: list[str] = []

    async def confirm(self, title: str, question: str) -> bool:
        self.questions.append(question)
        return self.answer

    async def notify(self, title: str, message: str) -> None:
        self.notifications.append(message)
        self.diagnostics.publish(ERROR, f"{title} {message}")


class ConsoleInteraction:
    """Terminal port: y/n prompts on stdin, notifications on stdout."""

    async def confirm(self, title: str, question: str) -> bool:
        loop = asyncio.get_running_loop()
        reply = await loop.run_in_executor(None, input, f"{title}\n{question} [y/N] ")
        return reply.strip().lower() in {"y", "yes"}

    async def notify(self, title: str, message: str) -> None:
        print(f"{title}\n{message}")
