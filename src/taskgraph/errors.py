"""Error taxonomy for the dependency graph engine.

Resolver and validator functions report data problems as return values.
These exceptions are raised by the structural mutators, the status engine
and document loading, where they describe a bad request or an unusable file.
"""

from __future__ import annotations

from typing import Any


class TaskGraphError(Exception):
    """Base class for every error raised by taskgraph."""


class ParseError(TaskGraphError):
    """A task/subtask address string is malformed."""

    def __init__(self, text: Any, reason: str) -> None:
        super().__init__(f"Invalid task address {text!r}: {reason}")
        self.text = text
        self.reason = reason


class NotFound(TaskGraphError):
    """An address does not resolve to a task or subtask."""

    def __init__(self, address: Any, what: str = "Task") -> None:
        super().__init__(f"{what} {address} not found")
        self.address = address


class InvalidOperation(TaskGraphError):
    """The request makes no sense for the addressed nodes."""


class WouldCreateCycle(TaskGraphError):
    """Adding the requested edge would close a dependency cycle."""

    def __init__(self, source: Any, target: Any, path: list[Any] | None = None) -> None:
        self.source = source
        self.target = target
        self.path = list(path or [])
        chain = " -> ".join(str(p) for p in self.path)
        msg = (
            f"Cannot add dependency {target} to {source}: "
            f"it would create a circular dependency"
        )
        if chain:
            msg += f" ({source} -> {chain})"
        super().__init__(msg)


class MalformedDocument(TaskGraphError):
    """The tasks document cannot be decoded into tasks and subtasks."""
