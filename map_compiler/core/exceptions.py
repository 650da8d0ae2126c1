from __future__ import annotations


class CompileError(RuntimeError):
    """Base class for compile pipeline failures."""


class MissingVariableError(CompileError, KeyError):
    """
    A step read a batch variable that no earlier step has written.

    This is a step-ordering bug in the pipeline, not a user-facing failure.
    """

    def __init__(self, name: str):
        super().__init__(f"Batch variable '{name}' has not been set")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class ArgumentTemplateError(CompileError, ValueError):
    """A tool argument string could not be split into arguments (unbalanced quotes)."""

    def __init__(self, template: str, cause: ValueError):
        super().__init__(f"Cannot parse tool arguments {template!r}: {cause}")
        self.template = template


class ToolLaunchError(CompileError):
    """A compile tool could not be started at all."""

    def __init__(self, executable: str, arguments: list[str], cause: OSError):
        super().__init__(f"Unable to start '{executable}': {cause}")
        self.executable = executable
        self.arguments = arguments
        self.cause = cause
