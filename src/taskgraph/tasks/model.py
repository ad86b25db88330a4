"""Task, Subtask and TaskFile data models, with tasks.json decoding/encoding."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from taskgraph import log
from taskgraph.errors import MalformedDocument
from taskgraph.tasks.refs import (
    DepRef,
    SubtaskId,
    TaskId,
    TaskRef,
    legacy_sibling_ref,
    ref_from_json,
    ref_to_json,
)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    REVIEW = "review"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_TASK_KEYS = (
    "id",
    "title",
    "description",
    "details",
    "testStrategy",
    "status",
    "priority",
    "dependencies",
    "subtasks",
)
_SUBTASK_KEYS = (
    "id",
    "title",
    "description",
    "details",
    "testStrategy",
    "status",
    "dependencies",
)


# Values a node carries when a key is absent from the file.
_EMPTY: dict[str, Any] = {
    "title": "",
    "description": "",
    "details": "",
    "testStrategy": "",
    "status": TaskStatus.PENDING.value,
    "priority": TaskPriority.MEDIUM.value,
    "dependencies": [],
    "subtasks": [],
}


def _encode(
    values: dict[str, Any],
    key_order: tuple[str, ...] | None,
    extra: dict[str, Any],
    omit_if_empty: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Lay out a node's keys for writing.

    A node read from a file keeps the keys it was read with, in the same
    order; a known key it lacked is only added once it holds a non-default
    value. A node built in code writes every key except empty *omit_if_empty*.
    """
    if key_order is None:
        kept = {k: v for k, v in values.items() if v or k not in omit_if_empty}
        key_order = ()
    else:
        kept = {
            k: v for k, v in values.items()
            if k == "id" or k in key_order or v != _EMPTY[k]
        }

    out: dict[str, Any] = {}
    for key in key_order:
        if key in kept:
            out[key] = kept[key]
        elif key in extra:
            out[key] = extra[key]
    for key, value in kept.items():
        out.setdefault(key, value)
    for key, value in extra.items():
        out.setdefault(key, value)
    return out


@dataclass
class Subtask:
    id: int
    title: str = ""
    description: str = ""
    details: str = ""
    test_strategy: str = ""
    status: TaskStatus = TaskStatus.PENDING
    dependencies: list[DepRef] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    # Keys as read from the file; None for nodes built in code.
    key_order: tuple[str, ...] | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        values = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "details": self.details,
            "testStrategy": self.test_strategy,
            "status": self.status.value,
            "dependencies": [ref_to_json(d) for d in self.dependencies],
        }
        return _encode(values, self.key_order, self.extra, ("details", "testStrategy"))


@dataclass
class Task:
    id: int
    title: str = ""
    description: str = ""
    details: str = ""
    test_strategy: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    dependencies: list[DepRef] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)
    key_order: tuple[str, ...] | None = field(default=None, compare=False, repr=False)

    def get_subtask(self, subtask_id: int) -> Subtask | None:
        for s in self.subtasks:
            if s.id == subtask_id:
                return s
        return None

    def next_subtask_id(self) -> int:
        return max((s.id for s in self.subtasks), default=0) + 1

    def to_dict(self) -> dict[str, Any]:
        values = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "details": self.details,
            "testStrategy": self.test_strategy,
            "status": self.status.value,
            "priority": self.priority.value,
            "dependencies": [ref_to_json(d) for d in self.dependencies],
            "subtasks": [s.to_dict() for s in self.subtasks],
        }
        return _encode(values, self.key_order, self.extra)


@dataclass
class TaskFile:
    tasks: list[Task] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    # Bookkeeping from decoding; not part of the document itself.
    malformed: list[TaskRef] = field(default_factory=list, compare=False, repr=False)
    legacy_refs: list[tuple[SubtaskId, SubtaskId]] = field(
        default_factory=list, compare=False, repr=False
    )

    def get_task(self, task_id: int) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def task_ids(self) -> list[int]:
        return [t.id for t in self.tasks]

    def next_task_id(self) -> int:
        return max(self.task_ids(), default=0) + 1

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"tasks": [t.to_dict() for t in self.tasks]}
        out.update(self.extra)
        return out

    @classmethod
    def from_dict(cls, data: Any, legacy_sibling_refs: bool = False) -> TaskFile:
        """Decode a tasks.json payload.

        Missing optional fields get defaults and a non-list ``dependencies``
        value is reset to ``[]`` (recorded in :attr:`malformed` so repair can
        report it). Anything else that cannot be decoded raises
        :class:`MalformedDocument`.
        """
        if not isinstance(data, dict):
            raise MalformedDocument("Document root must be an object")
        raw_tasks = data.get("tasks")
        if not isinstance(raw_tasks, list):
            raise MalformedDocument("Document must contain a 'tasks' array")

        tf = cls(extra={k: v for k, v in data.items() if k != "tasks"})
        for index, raw in enumerate(raw_tasks):
            tf.tasks.append(_decode_task(raw, index, tf, legacy_sibling_refs))
        return tf


# ── decoding helpers ─────────────────────────────────────────────────


def _coerce_id(value: Any, where: str) -> int:
    if isinstance(value, bool):
        raise MalformedDocument(f"{where}: id must be a positive integer, got {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        result = int(value.strip())
    else:
        raise MalformedDocument(f"{where}: id must be a positive integer, got {value!r}")
    if result <= 0:
        raise MalformedDocument(f"{where}: id must be a positive integer, got {value!r}")
    return result


def _coerce_text(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _coerce_enum(enum_cls: type[Enum], value: Any, default: Enum, where: str) -> Any:
    if value is None or value == "":
        return default
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise MalformedDocument(f"{where}: invalid value {value!r} (expected one of {allowed})")


def _decode_deps(
    raw: dict[str, Any],
    address: TaskRef,
    tf: TaskFile,
    siblings: set[int] | None = None,
    legacy: bool = False,
) -> list[DepRef]:
    value = raw.get("dependencies")
    if value is None:
        return []
    if not isinstance(value, list):
        tf.malformed.append(address)
        return []

    deps: list[DepRef] = []
    for item in value:
        if legacy and isinstance(address, SubtaskId):
            sibling = legacy_sibling_ref(item, address.parent, siblings or set())
            if sibling is not None:
                log.warn(
                    f"Subtask {address}: bare dependency {item} read as sibling {sibling}"
                )
                tf.legacy_refs.append((address, sibling))
                deps.append(sibling)
                continue
        deps.append(ref_from_json(item))
    return deps


def _decode_task(raw: Any, index: int, tf: TaskFile, legacy: bool) -> Task:
    where = f"tasks[{index}]"
    if not isinstance(raw, dict):
        raise MalformedDocument(f"{where}: task must be an object")
    task_id = _coerce_id(raw.get("id"), where)
    where = f"Task {task_id}"

    raw_subtasks = raw.get("subtasks")
    if raw_subtasks is None:
        raw_subtasks = []
    if not isinstance(raw_subtasks, list):
        raise MalformedDocument(f"{where}: 'subtasks' must be an array")

    sub_ids: list[int] = []
    for i, sub in enumerate(raw_subtasks):
        if not isinstance(sub, dict):
            raise MalformedDocument(f"{where}: subtasks[{i}] must be an object")
        sub_ids.append(_coerce_id(sub.get("id"), f"{where} subtasks[{i}]"))
    siblings = set(sub_ids)

    task = Task(
        id=task_id,
        title=_coerce_text(raw, "title"),
        description=_coerce_text(raw, "description"),
        details=_coerce_text(raw, "details"),
        test_strategy=_coerce_text(raw, "testStrategy"),
        status=_coerce_enum(TaskStatus, raw.get("status"), TaskStatus.PENDING, where),
        priority=_coerce_enum(TaskPriority, raw.get("priority"), TaskPriority.MEDIUM, where),
        dependencies=_decode_deps(raw, TaskId(task_id), tf),
        extra={k: v for k, v in raw.items() if k not in _TASK_KEYS},
        key_order=tuple(raw),
    )

    for sub_id, sub in zip(sub_ids, raw_subtasks):
        address = SubtaskId(task_id, sub_id)
        task.subtasks.append(
            Subtask(
                id=sub_id,
                title=_coerce_text(sub, "title"),
                description=_coerce_text(sub, "description"),
                details=_coerce_text(sub, "details"),
                test_strategy=_coerce_text(sub, "testStrategy"),
                status=_coerce_enum(
                    TaskStatus, sub.get("status"), TaskStatus.PENDING, f"Subtask {address}"
                ),
                dependencies=_decode_deps(sub, address, tf, siblings, legacy),
                extra={k: v for k, v in sub.items() if k not in _SUBTASK_KEYS},
                key_order=tuple(sub),
            )
        )
    return task
