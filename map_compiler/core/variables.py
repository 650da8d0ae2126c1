"""
Batch variable store.

Holds the string values steps hand to each other during one compile run
(working directory, map file path, ...). Process steps reference them in
their argument templates as ``{Name}``; substitution happens when the
process is about to start, so later writes are visible to later steps.
"""

from __future__ import annotations

import re
from typing import Iterator

from .exceptions import MissingVariableError

_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")


class VariableStore:
    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def set(self, name: str, value: str) -> None:
        self._values[name] = str(value)

    def get(self, name: str) -> str:
        try:
            return self._values[name]
        except KeyError:
            raise MissingVariableError(name) from None

    def substitute(self, template: str) -> str:
        """Replace each ``{Name}`` with its value; unknown names stay as written."""

        def _replace(match: re.Match) -> str:
            return self._values.get(match.group(1), match.group(0))

        return _PLACEHOLDER_RE.sub(_replace, template)

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    def __getitem__(self, name: str) -> str:
        return self.get(name)

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"VariableStore({self._values!r})"
