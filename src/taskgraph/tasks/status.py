"""Status bookkeeping for tasks and subtasks.

Any status may move to any other status; nothing cascades to parents,
subtasks or dependents.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from taskgraph import log
from taskgraph.errors import InvalidOperation, NotFound
from taskgraph.tasks.model import TaskFile, TaskStatus
from taskgraph.tasks.refs import (
    SubtaskId,
    TaskRef,
    node_label,
    parse_ref,
    parse_ref_list,
    resolve,
)


@dataclass(frozen=True)
class StatusResult:
    address: TaskRef
    old_status: TaskStatus
    new_status: TaskStatus

    @property
    def changed(self) -> bool:
        return self.old_status is not self.new_status


def parse_status(value: str | TaskStatus) -> TaskStatus:
    """Return the :class:`TaskStatus` for *value*, case-insensitively."""
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in TaskStatus)
        raise InvalidOperation(f"Invalid status {value!r}. Valid statuses: {allowed}")


def set_status(
    tf: TaskFile,
    address: str | int | TaskRef,
    status: str | TaskStatus,
) -> StatusResult:
    """Set the status of the single node at *address*. See :func:`set_statuses` for several."""
    new_status = parse_status(status)
    ref = parse_ref(address)
    node = resolve(ref, tf)
    if node is None:
        raise NotFound(ref, "Subtask" if isinstance(ref, SubtaskId) else "Task")

    old_status = node.status
    node.status = new_status
    log.debug(f"{node_label(ref)}: {old_status.value} -> {new_status.value}")
    return StatusResult(ref, old_status, new_status)


def set_statuses(
    tf: TaskFile,
    addresses: str | Iterable[str | int | TaskRef],
    status: str | TaskStatus,
) -> list[StatusResult]:
    """Set the status of several nodes, given as a list or a comma-separated string.

    Every address is resolved before any node changes, so an unknown address
    leaves the document untouched.
    """
    new_status = parse_status(status)
    if isinstance(addresses, str):
        refs = parse_ref_list(addresses)
    else:
        refs = [parse_ref(a) for a in addresses]
    for ref in refs:
        if resolve(ref, tf) is None:
            raise NotFound(ref, "Subtask" if isinstance(ref, SubtaskId) else "Task")
    return [set_status(tf, ref, new_status) for ref in refs]
