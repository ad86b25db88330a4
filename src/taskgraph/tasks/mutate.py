"""Structural operations on the task graph.

Every operation resolves its addresses first (raising :class:`NotFound`),
rejects nonsensical requests with :class:`InvalidOperation`, edits the
document in place and finishes with :func:`repair` so the graph invariants
hold when it returns.
"""

from __future__ import annotations

from enum import Enum

from taskgraph import log
from taskgraph.errors import InvalidOperation, NotFound, WouldCreateCycle
from taskgraph.tasks.model import Subtask, Task, TaskFile
from taskgraph.tasks.refs import (
    DepRef,
    SubtaskId,
    TaskId,
    TaskRef,
    iter_nodes,
    node_label,
    parse_ref,
    resolve,
)
from taskgraph.tasks.repair import OnAction, repair
from taskgraph.tasks.validate import would_create_cycle


class RemoveMode(str, Enum):
    DELETE = "delete"
    CONVERT = "convert"


# ── lookup helpers ───────────────────────────────────────────────────


def _require_node(tf: TaskFile, address: TaskRef) -> Task | Subtask:
    node = resolve(address, tf)
    if node is None:
        what = "Subtask" if isinstance(address, SubtaskId) else "Task"
        raise NotFound(address, what)
    return node


def _require_task(tf: TaskFile, address: str | int | TaskRef, role: str = "Task") -> Task:
    ref = parse_ref(address)
    if isinstance(ref, SubtaskId):
        raise InvalidOperation(f"{role} must be a task id, got subtask {ref}")
    task = tf.get_task(ref.id)
    if task is None:
        raise NotFound(ref, role)
    return task


def _rewrite_refs(tf: TaskFile, old: TaskRef, new: TaskRef) -> int:
    """Replace every dependency on *old* with *new*. Returns the number of edges rewritten."""
    count = 0
    for _, node in iter_nodes(tf):
        if not isinstance(node.dependencies, list):
            continue
        for i, ref in enumerate(node.dependencies):
            if ref == old:
                node.dependencies[i] = new
                count += 1
    return count


# ── dependencies ─────────────────────────────────────────────────────


def add_dependency(
    tf: TaskFile,
    from_addr: str | int | TaskRef,
    to_addr: str | int | TaskRef,
    on_action: OnAction | None = None,
) -> bool:
    """Make *from_addr* depend on *to_addr*.

    Returns ``False`` when the dependency is already there; repair still runs. Raises
    :class:`WouldCreateCycle` without touching the document when the new edge
    would close a cycle.
    """
    source = parse_ref(from_addr)
    target = parse_ref(to_addr)
    node = _require_node(tf, source)
    _require_node(tf, target)

    if source == target:
        raise InvalidOperation(f"{node_label(source)} cannot depend on itself")
    if target in node.dependencies:
        log.warn(f"Dependency {target} already exists in {node_label(source)}")
        repair(tf, on_action)
        return False

    path = would_create_cycle(tf, source, target)
    if path is not None:
        raise WouldCreateCycle(source, target, path)

    node.dependencies.append(target)
    log.debug(f"{node_label(source)} now depends on {target}")
    repair(tf, on_action)
    return True


def remove_dependency(
    tf: TaskFile,
    from_addr: str | int | TaskRef,
    to_addr: str | int | TaskRef,
    on_action: OnAction | None = None,
) -> bool:
    """Remove every occurrence of *to_addr* from *from_addr*'s dependencies.

    A dependency that is not present is not an error; ``False`` is returned.
    *to_addr* does not need to resolve, so dangling entries can be removed.
    """
    source = parse_ref(from_addr)
    target: DepRef = parse_ref(to_addr)
    node = _require_node(tf, source)

    before = len(node.dependencies)
    node.dependencies = [ref for ref in node.dependencies if ref != target]
    removed = before != len(node.dependencies)
    if removed:
        log.debug(f"{node_label(source)} no longer depends on {target}")
    else:
        log.info(f"{node_label(source)} does not depend on {target}, no changes made")
    repair(tf, on_action)
    return removed


# ── promote / convert ────────────────────────────────────────────────


def promote_subtask_to_task(
    tf: TaskFile,
    parent_addr: str | int | TaskRef,
    subtask_id: int,
    on_action: OnAction | None = None,
) -> int:
    """Turn subtask ``parent.subtask_id`` into a new top-level task.

    The new task takes the next free task id and the parent's priority.
    Every reference to the subtask, anywhere in the document, is rewritten
    to point at the new task. Returns the new task id.
    """
    parent = _require_task(tf, parent_addr, "Parent task")
    sub = parent.get_subtask(subtask_id)
    old = SubtaskId(parent.id, subtask_id)
    if sub is None:
        raise NotFound(old, "Subtask")

    new_id = tf.next_task_id()
    new_ref = TaskId(new_id)
    task = Task(
        id=new_id,
        title=sub.title,
        description=sub.description,
        details=sub.details,
        test_strategy=sub.test_strategy,
        status=sub.status,
        priority=parent.priority,
        dependencies=list(sub.dependencies),
        extra=dict(sub.extra),
    )

    parent.subtasks = [s for s in parent.subtasks if s is not sub]
    tf.tasks.append(task)
    rewritten = _rewrite_refs(tf, old, new_ref)
    log.debug(f"Promoted subtask {old} to task {new_id} ({rewritten} reference(s) rewritten)")

    repair(tf, on_action)
    return new_id


def convert_task_to_subtask(
    tf: TaskFile,
    task_addr: str | int | TaskRef,
    parent_addr: str | int | TaskRef,
    on_action: OnAction | None = None,
) -> SubtaskId:
    """Move task *task_addr* under *parent_addr* as its next subtask.

    Every reference to the task is rewritten to the new subtask address.
    Returns that address.
    """
    task_ref = parse_ref(task_addr)
    parent_ref = parse_ref(parent_addr)
    if isinstance(task_ref, SubtaskId):
        raise InvalidOperation(f"{task_ref} is already a subtask")
    if isinstance(parent_ref, SubtaskId):
        if parent_ref.parent == task_ref.id:
            raise InvalidOperation(
                f"Cannot move task {task_ref} under its own subtask {parent_ref}"
            )
        raise InvalidOperation(f"Subtasks cannot have subtasks: {parent_ref}")
    if task_ref == parent_ref:
        raise InvalidOperation(f"Cannot make task {task_ref} a subtask of itself")

    task = _require_task(tf, task_ref)
    parent = _require_task(tf, parent_ref, "Parent task")
    if task.subtasks:
        raise InvalidOperation(
            f"Task {task.id} has {len(task.subtasks)} subtask(s); "
            "promote or clear them before converting it"
        )

    new_ref = SubtaskId(parent.id, parent.next_subtask_id())
    sub = Subtask(
        id=new_ref.sub,
        title=task.title,
        description=task.description,
        details=task.details,
        test_strategy=task.test_strategy,
        status=task.status,
        dependencies=list(task.dependencies),
        extra=dict(task.extra),
    )

    tf.tasks = [t for t in tf.tasks if t is not task]
    parent.subtasks.append(sub)
    rewritten = _rewrite_refs(tf, task_ref, new_ref)
    log.debug(f"Converted task {task_ref} to subtask {new_ref} ({rewritten} reference(s) rewritten)")

    repair(tf, on_action)
    return new_ref


# ── removal ──────────────────────────────────────────────────────────


def remove_subtask(
    tf: TaskFile,
    parent_addr: str | int | TaskRef,
    subtask_id: int,
    mode: RemoveMode = RemoveMode.DELETE,
    on_action: OnAction | None = None,
) -> int | None:
    """Delete subtask ``parent.subtask_id``, or promote it with ``RemoveMode.CONVERT``.

    In delete mode, dependencies on the removed subtask become dangling and
    are pruned by the trailing repair. In convert mode the new task id is
    returned.
    """
    if mode is RemoveMode.CONVERT:
        return promote_subtask_to_task(tf, parent_addr, subtask_id, on_action)

    parent = _require_task(tf, parent_addr, "Parent task")
    sub = parent.get_subtask(subtask_id)
    if sub is None:
        raise NotFound(SubtaskId(parent.id, subtask_id), "Subtask")

    parent.subtasks = [s for s in parent.subtasks if s is not sub]
    log.debug(f"Removed subtask {parent.id}.{subtask_id}")
    repair(tf, on_action)
    return None


def clear_subtasks(
    tf: TaskFile,
    task_addr: str | int | TaskRef,
    on_action: OnAction | None = None,
) -> int:
    """Remove all subtasks of a task. Returns how many were removed."""
    task = _require_task(tf, task_addr)
    count = len(task.subtasks)
    task.subtasks = []
    if count:
        log.debug(f"Cleared {count} subtask(s) from task {task.id}")
    repair(tf, on_action)
    return count


def remove_task(
    tf: TaskFile,
    task_addr: str | int | TaskRef,
    on_action: OnAction | None = None,
) -> int:
    """Remove a task together with its subtasks. Returns the number of nodes removed."""
    task = _require_task(tf, task_addr)
    count = 1 + len(task.subtasks)
    tf.tasks = [t for t in tf.tasks if t is not task]
    log.debug(f"Removed task {task.id} and {count - 1} subtask(s)")
    repair(tf, on_action)
    return count
