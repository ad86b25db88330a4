"""Task/subtask addresses: parsing, formatting, JSON encoding and resolution.

A dependency address is either ``TaskId(n)`` (written ``"n"``, stored as the
JSON integer ``n``) or ``SubtaskId(n, m)`` (written and stored as ``"n.m"``).
Entries of a dependency list that are neither become ``RawRef`` so the
document can still be loaded, validated and repaired.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator

from taskgraph.errors import ParseError

if TYPE_CHECKING:
    from taskgraph.tasks.model import Subtask, Task, TaskFile

# Bare integers below this value were historically read as sibling subtask ids.
LEGACY_SIBLING_THRESHOLD = 100


@dataclass(frozen=True, order=True)
class TaskId:
    id: int

    def __str__(self) -> str:
        return str(self.id)


@dataclass(frozen=True, order=True)
class SubtaskId:
    parent: int
    sub: int

    def __str__(self) -> str:
        return f"{self.parent}.{self.sub}"

    @property
    def task(self) -> TaskId:
        return TaskId(self.parent)


@dataclass(frozen=True, eq=True)
class RawRef:
    """A dependency entry that is not a valid address. Never resolves."""

    value: Any

    def __str__(self) -> str:
        return json.dumps(self.value)

    def __hash__(self) -> int:
        return hash(json.dumps(self.value, sort_keys=True))


TaskRef = TaskId | SubtaskId
DepRef = TaskId | SubtaskId | RawRef


def _parse_id(text: Any, segment: str) -> int:
    if not segment or not (segment.isascii() and segment.isdigit()):
        raise ParseError(text, f"non-numeric segment {segment!r}")
    value = int(segment)
    if value <= 0:
        raise ParseError(text, "ids must be positive integers")
    return value


def parse_ref(text: str | int | TaskRef) -> TaskRef:
    """Parse ``"12"`` / ``"12.3"`` (or an int, or an existing ref) into a TaskRef.

    Raises :class:`ParseError` for empty strings, non-numeric segments,
    more than one ``.`` separator and non-positive ids.
    """
    if isinstance(text, (TaskId, SubtaskId)):
        return text
    if isinstance(text, bool):
        raise ParseError(text, "not a task address")
    if isinstance(text, int):
        if text <= 0:
            raise ParseError(text, "ids must be positive integers")
        return TaskId(text)
    if not isinstance(text, str):
        raise ParseError(text, "not a task address")

    s = text.strip()
    if not s:
        raise ParseError(text, "empty address")
    parts = s.split(".")
    if len(parts) > 2:
        raise ParseError(text, "more than one '.' separator")
    if len(parts) == 1:
        return TaskId(_parse_id(text, parts[0]))
    return SubtaskId(_parse_id(text, parts[0]), _parse_id(text, parts[1]))


def parse_ref_list(text: str) -> list[TaskRef]:
    """Parse a comma-separated address list such as ``"1,2.3, 4"``."""
    return [parse_ref(item) for item in text.split(",") if item.strip()]


def format_ref(ref: DepRef) -> str:
    return str(ref)


def node_label(address: TaskRef) -> str:
    """``"Task 3"`` or ``"Subtask 3.1"``, for messages."""
    kind = "Subtask" if isinstance(address, SubtaskId) else "Task"
    return f"{kind} {address}"


def ref_to_json(ref: DepRef) -> Any:
    """Encode a ref the way tasks.json stores it."""
    if isinstance(ref, TaskId):
        return ref.id
    if isinstance(ref, SubtaskId):
        return str(ref)
    return ref.value


def ref_from_json(value: Any) -> DepRef:
    """Decode one stored dependency entry. Never raises."""
    try:
        return parse_ref(value)
    except ParseError:
        return RawRef(value)


def legacy_sibling_ref(value: Any, parent: int, sibling_ids: set[int]) -> SubtaskId | None:
    """Old-style reading of a bare integer inside a subtask's dependency list.

    Small integers matching a sibling subtask id were taken to mean that
    sibling. Returns ``None`` when the value would not have been reinterpreted.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if 0 < value < LEGACY_SIBLING_THRESHOLD and value in sibling_ids:
        return SubtaskId(parent, value)
    return None


# ── resolution ──────────────────────────────────────────────────────


def resolve(ref: DepRef, tf: TaskFile) -> Task | Subtask | None:
    """Return the node addressed by *ref*, or ``None`` when it does not exist."""
    if isinstance(ref, TaskId):
        return tf.get_task(ref.id)
    if isinstance(ref, SubtaskId):
        task = tf.get_task(ref.parent)
        if task is None:
            return None
        return task.get_subtask(ref.sub)
    return None


def exists(ref: DepRef, tf: TaskFile) -> bool:
    return resolve(ref, tf) is not None


def iter_nodes(tf: TaskFile) -> Iterator[tuple[TaskRef, Task | Subtask]]:
    """Yield ``(address, node)`` in document order: each task, then its subtasks."""
    for task in tf.tasks:
        yield TaskId(task.id), task
        for sub in task.subtasks:
            yield SubtaskId(task.id, sub.id), sub
