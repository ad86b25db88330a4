"""Dependency graph validation: per-edge classification, cycle detection, schema checks."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from taskgraph import log
from taskgraph.tasks.model import TaskFile
from taskgraph.tasks.refs import (
    DepRef,
    SubtaskId,
    TaskId,
    TaskRef,
    iter_nodes,
    node_label,
    resolve,
)


class Verdict(str, Enum):
    VALID = "valid"
    SELF_LOOP = "self-loop"
    DANGLING = "dangling"
    CYCLIC = "cyclic"


@dataclass(frozen=True)
class EdgeVerdict:
    source: TaskRef
    ref: DepRef
    verdict: Verdict

    def message(self) -> str:
        label = node_label(self.source)
        if self.verdict is Verdict.SELF_LOOP:
            return f"{label} depends on itself"
        if self.verdict is Verdict.DANGLING:
            return f"{label} depends on non-existent task/subtask {self.ref}"
        if self.verdict is Verdict.CYCLIC:
            return f"{label} -> {self.ref} is part of a circular dependency chain"
        return f"{label} -> {self.ref} is valid"


def _is_address(ref: object) -> bool:
    return isinstance(ref, (TaskId, SubtaskId))


def _deps_of(address: TaskRef, tf: TaskFile) -> list[DepRef]:
    node = resolve(address, tf)
    if node is None or not isinstance(node.dependencies, list):
        return []
    return node.dependencies


def dependency_edges(tf: TaskFile) -> Iterator[tuple[TaskRef, DepRef]]:
    """Yield every ``(source, ref)`` edge in document order."""
    for address, node in iter_nodes(tf):
        if not isinstance(node.dependencies, list):
            continue
        for ref in node.dependencies:
            yield address, ref


# ── reachability ─────────────────────────────────────────────────────


def find_path(tf: TaskFile, start: DepRef, goal: TaskRef) -> list[TaskRef] | None:
    """Depth-first walk from *start* along dependency edges looking for *goal*.

    Returns the address chain ``[start, ..., goal]`` or ``None``. Each call
    keeps its own visited set, so the answer reflects the document as it is
    right now.
    """
    if not _is_address(start) or resolve(start, tf) is None:
        return None
    if start == goal:
        return [start]

    visited: set[TaskRef] = {start}
    stack = [(start, iter(_deps_of(start, tf)))]
    while stack:
        _, pending = stack[-1]
        for dep in pending:
            if not _is_address(dep) or dep in visited:
                continue
            if dep == goal:
                return [node for node, _ in stack] + [dep]
            visited.add(dep)
            if resolve(dep, tf) is None:
                continue
            stack.append((dep, iter(_deps_of(dep, tf))))
            break
        else:
            stack.pop()
    return None


def would_create_cycle(tf: TaskFile, source: TaskRef, target: TaskRef) -> list[TaskRef] | None:
    """Return the existing path ``target -> ... -> source`` if ``source -> target`` closes a cycle."""
    return find_path(tf, target, source)


def classify_edge(tf: TaskFile, source: TaskRef, ref: DepRef) -> Verdict:
    """Classify one edge: self-loop first, then dangling, then cyclic."""
    if ref == source:
        return Verdict.SELF_LOOP
    if not _is_address(ref) or resolve(ref, tf) is None:
        return Verdict.DANGLING
    if find_path(tf, ref, source) is not None:
        return Verdict.CYCLIC
    return Verdict.VALID


def classify(tf: TaskFile) -> list[EdgeVerdict]:
    """Classify every edge of a document snapshot, in document order."""
    return [
        EdgeVerdict(source, ref, classify_edge(tf, source, ref))
        for source, ref in dependency_edges(tf)
    ]


def invalid_edges(tf: TaskFile) -> list[EdgeVerdict]:
    return [v for v in classify(tf) if v.verdict is not Verdict.VALID]


# ── whole-graph check ────────────────────────────────────────────────


def detect_cycles(tf: TaskFile) -> str:
    """Return the first dependency cycle as ``"1 -> 2 -> 1"``, or ``""`` when acyclic."""
    white, gray, black = 0, 1, 2
    color: dict[TaskRef, int] = {address: white for address, _ in iter_nodes(tf)}

    for root in list(color):
        if color[root] != white:
            continue
        color[root] = gray
        stack = [(root, iter(_deps_of(root, tf)))]
        while stack:
            node, pending = stack[-1]
            for dep in pending:
                state = color.get(dep) if _is_address(dep) else None
                if state == gray:
                    chain = [n for n, _ in stack]
                    cycle = chain[chain.index(dep):] + [dep]
                    return " -> ".join(str(c) for c in cycle)
                if state == white:
                    color[dep] = gray
                    stack.append((dep, iter(_deps_of(dep, tf))))
                    break
            else:
                color[node] = black
                stack.pop()
    return ""


# ── schema + report ──────────────────────────────────────────────────


def validate(tf: TaskFile) -> list[str]:
    """Return human-readable problems with the document (empty when clean)."""
    errors: list[str] = []

    for task_id, count in Counter(tf.task_ids()).items():
        if count > 1:
            errors.append(f"Duplicate task id {task_id} ({count} tasks)")
    for task in tf.tasks:
        for sub_id, count in Counter(s.id for s in task.subtasks).items():
            if count > 1:
                errors.append(f"Task {task.id}: duplicate subtask id {sub_id} ({count} subtasks)")

    for address in tf.malformed:
        errors.append(f"{node_label(address)}: 'dependencies' is not a list")

    for verdict in invalid_edges(tf):
        errors.append(verdict.message())

    cycle = detect_cycles(tf)
    if cycle:
        errors.append(f"Dependency cycle: {cycle}")

    return errors


def validate_and_report(tf: TaskFile) -> bool:
    """Log every problem found. Returns ``True`` when the document is valid."""
    errors = validate(tf)
    if not errors:
        log.success("All dependencies are valid")
        return True

    log.error(f"Found {len(errors)} dependency issue(s):")
    for err in errors:
        log.error(f"  - {err}")
    return False
