"""Graph repair: prune self-loops, dangling and cyclic edges in place."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from taskgraph import log
from taskgraph.tasks.model import TaskFile
from taskgraph.tasks.refs import DepRef, SubtaskId, TaskId, TaskRef, iter_nodes, node_label
from taskgraph.tasks.validate import Verdict, classify_edge


class RepairReason(str, Enum):
    SELF_LOOP = "self-loop"
    DANGLING = "dangling"
    CYCLIC = "cyclic"
    MALFORMED = "malformed"
    DUPLICATE = "duplicate"


_VERDICT_REASON = {
    Verdict.SELF_LOOP: RepairReason.SELF_LOOP,
    Verdict.DANGLING: RepairReason.DANGLING,
    Verdict.CYCLIC: RepairReason.CYCLIC,
}

# (node address, removed ref or None for a reset field, reason)
OnAction = Callable[[TaskRef, DepRef | None, RepairReason], None]


@dataclass(frozen=True)
class RepairAction:
    node: TaskRef
    removed: DepRef | None
    reason: RepairReason

    def describe(self) -> str:
        if self.reason is RepairReason.MALFORMED:
            return f"{node_label(self.node)}: reset non-list dependencies to []"
        return f"{node_label(self.node)}: removed {self.reason.value} dependency {self.removed}"


@dataclass
class RepairStats:
    """Collects repair actions. Pass an instance as ``on_action``."""

    actions: list[RepairAction] = field(default_factory=list)
    counts: Counter = field(default_factory=Counter)

    def __call__(self, node: TaskRef, removed: DepRef | None, reason: RepairReason) -> None:
        self.actions.append(RepairAction(node, removed, reason))
        self.counts[reason] += 1

    @property
    def total(self) -> int:
        return len(self.actions)

    @property
    def tasks_fixed(self) -> int:
        return len({a.node for a in self.actions if isinstance(a.node, TaskId)})

    @property
    def subtasks_fixed(self) -> int:
        return len({a.node for a in self.actions if isinstance(a.node, SubtaskId)})


def _emit(
    on_action: OnAction | None,
    node: TaskRef,
    removed: DepRef | None,
    reason: RepairReason,
) -> None:
    log.debug(RepairAction(node, removed, reason).describe())
    if on_action is not None:
        on_action(node, removed, reason)


def repair(tf: TaskFile, on_action: OnAction | None = None) -> bool:
    """Remove every self-loop, dangling and cyclic edge from *tf*.

    Edges are visited in document order and each one is classified against
    the document as already pruned, so of a two-node cycle only the first
    edge met is dropped. Other edges of a node are left alone. Returns
    ``True`` when anything changed; a second call returns ``False``.
    """
    changed = False

    for address in tf.malformed:
        _emit(on_action, address, None, RepairReason.MALFORMED)
        changed = True
    tf.malformed.clear()

    nodes = list(iter_nodes(tf))
    for address, node in nodes:
        if not isinstance(node.dependencies, list):
            node.dependencies = []
            _emit(on_action, address, None, RepairReason.MALFORMED)
            changed = True

    for address, node in nodes:
        deps = node.dependencies
        i = 0
        while i < len(deps):
            ref = deps[i]
            verdict = classify_edge(tf, address, ref)
            if verdict is Verdict.VALID:
                i += 1
                continue
            del deps[i]
            _emit(on_action, address, ref, _VERDICT_REASON[verdict])
            changed = True

    return changed


def dedupe_dependencies(tf: TaskFile, on_action: OnAction | None = None) -> bool:
    """Drop repeated entries from every dependency list, keeping the first."""
    changed = False
    for address, node in iter_nodes(tf):
        if not isinstance(node.dependencies, list):
            continue
        seen: set[DepRef] = set()
        unique: list[DepRef] = []
        for ref in node.dependencies:
            if ref in seen:
                _emit(on_action, address, ref, RepairReason.DUPLICATE)
                changed = True
                continue
            seen.add(ref)
            unique.append(ref)
        node.dependencies = unique
    return changed


def ensure_independent_subtask(tf: TaskFile) -> bool:
    """Make sure every task with subtasks has at least one subtask with no dependencies.

    When all subtasks of a task have dependencies, the first subtask's list is
    cleared.
    """
    changed = False
    for task in tf.tasks:
        if not task.subtasks:
            continue
        if any(not s.dependencies for s in task.subtasks):
            continue
        first = task.subtasks[0]
        log.debug(f"Clearing dependencies of subtask {task.id}.{first.id} so it can start first")
        first.dependencies = []
        changed = True
    return changed


def migrate_sibling_refs(tf: TaskFile) -> int:
    """Report bare sibling references that were read in legacy mode.

    The refs are already typed as subtask addresses, so saving the document
    writes them in explicit ``"parent.sub"`` form. Returns how many there were.
    """
    for address, sibling in tf.legacy_refs:
        log.info(f"{node_label(address)}: dependency {sibling.sub} rewritten as {sibling}")
    count = len(tf.legacy_refs)
    tf.legacy_refs.clear()
    return count
