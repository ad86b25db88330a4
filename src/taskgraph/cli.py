"""taskgraph CLI: validate, repair and restructure a tasks.json dependency graph.

Installed as ``taskgraph`` console_script via pipx / pip.
"""

from __future__ import annotations

import re
import sys
from typing import Callable

import click

from taskgraph import __version__, log
from taskgraph.config import Config
from taskgraph.errors import InvalidOperation, TaskGraphError
from taskgraph.tasks.io import load_task_file, save_task_file
from taskgraph.tasks.model import TaskFile, TaskStatus
from taskgraph.tasks.refs import SubtaskId, TaskId, parse_ref, parse_ref_list
from taskgraph.tasks.repair import RepairStats


# ── Custom Click group that accepts camelCase flags ──────────────────

class TaskgraphGroup(click.Group):
    """Rewrite camelCase long options (``--dependsOn``) to kebab-case before parsing."""

    _UPPER = re.compile(r"(?<=[a-z0-9])([A-Z])")

    @classmethod
    def _kebab(cls, arg: str) -> str:
        if not arg.startswith("--") or arg == "--":
            return arg
        name, sep, value = arg[2:].partition("=")
        if name.islower() or not name.isascii():
            return arg
        return "--" + cls._UPPER.sub(r"-\1", name).lower() + sep + value

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        rewritten = [self._kebab(a) for a in args]
        return super().parse_args(ctx, rewritten)


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

STATUS_CHOICES = [s.value for s in TaskStatus]


def _edit(cfg: Config, action: Callable[[TaskFile], bool], save: bool = True) -> bool:
    """Load the document, run *action*, save when it reports a change.

    Engine errors are logged and turned into exit code 1.
    """
    path = cfg.tasks_path()
    try:
        tf = load_task_file(path, legacy_sibling_refs=cfg.legacy_sibling_refs)
        changed = action(tf)
    except TaskGraphError as exc:
        log.error(str(exc))
        sys.exit(1)

    if changed and save:
        save_task_file(path, tf)
        log.debug(f"Wrote {path}")
    return changed


def _log_repairs(stats: RepairStats) -> None:
    for action in stats.actions:
        log.info(action.describe())


def _subtask_ref(text: str) -> SubtaskId:
    ref = parse_ref(text)
    if not isinstance(ref, SubtaskId):
        raise InvalidOperation(f"Expected a subtask id like 5.2, got {text}")
    return ref


def _task_refs(text: str) -> list[TaskId]:
    refs = parse_ref_list(text)
    for ref in refs:
        if not isinstance(ref, TaskId):
            raise InvalidOperation(f"Expected a task id, got subtask {ref}")
    return refs


@click.group(cls=TaskgraphGroup, context_settings=CONTEXT_SETTINGS)
@click.option("-f", "--file", "tasks_file", default="", help="Path to tasks.json (default: tasks/tasks.json)")
@click.option(
    "--legacy-sibling-refs",
    is_flag=True,
    help="Read small bare integers in subtask dependencies as sibling subtask ids",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="taskgraph")
@click.pass_context
def main(ctx: click.Context, tasks_file: str, legacy_sibling_refs: bool, verbose: bool) -> None:
    """taskgraph: keep a tasks.json dependency graph consistent.

    \b
    EXAMPLES:
      taskgraph validate                        # Report invalid dependencies
      taskgraph fix                             # Prune invalid dependencies
      taskgraph add-dep --id 3 --depends-on 1   # Task 3 depends on task 1
      taskgraph set-status --id 3,4.1 --status done
      taskgraph promote --id 5.2                # Subtask 5.2 becomes a task
      taskgraph convert --id 7 --parent 5       # Task 7 becomes subtask of 5
    """
    cfg = Config(tasks_file=tasks_file, legacy_sibling_refs=legacy_sibling_refs, verbose=verbose)
    log.set_verbose(cfg.verbose)
    ctx.obj = cfg


# ── Validation / repair ──────────────────────────────────────────────


@main.command()
@click.pass_obj
def validate(cfg: Config) -> None:
    """Report self, missing and circular dependencies without changing anything."""
    from taskgraph.tasks.validate import validate_and_report

    ok = True

    def _check(tf: TaskFile) -> bool:
        nonlocal ok
        subtasks = sum(len(t.subtasks) for t in tf.tasks)
        log.info(f"Checking {len(tf.tasks)} task(s) and {subtasks} subtask(s)…")
        ok = validate_and_report(tf)
        return False

    _edit(cfg, _check, save=False)
    if not ok:
        log.info("Run `taskgraph fix` to remove invalid dependencies.")
        sys.exit(1)


@main.command()
@click.option("--dedupe", is_flag=True, help="Also remove duplicate dependency entries")
@click.option(
    "--ensure-independent",
    is_flag=True,
    help="Clear the first subtask's dependencies when every subtask of a task has some",
)
@click.option("--dry-run", is_flag=True, help="Show what would change without saving")
@click.pass_obj
def fix(cfg: Config, dedupe: bool, ensure_independent: bool, dry_run: bool) -> None:
    """Remove self, missing and circular dependencies."""
    from taskgraph.tasks.repair import (
        RepairReason,
        dedupe_dependencies,
        ensure_independent_subtask,
        repair,
    )

    stats = RepairStats()

    def _fix(tf: TaskFile) -> bool:
        changed = False
        if dedupe:
            changed |= dedupe_dependencies(tf, stats)
        changed |= repair(tf, stats)
        if ensure_independent:
            changed |= ensure_independent_subtask(tf)
        return changed

    changed = _edit(cfg, _fix, save=not dry_run)

    _log_repairs(stats)

    if stats.total:
        log.success(f"Fixed {stats.total} dependency issue(s)")
        log.info(f"  Invalid dependencies removed:  {stats.counts[RepairReason.DANGLING]}")
        log.info(f"  Self-dependencies removed:     {stats.counts[RepairReason.SELF_LOOP]}")
        log.info(f"  Circular dependencies removed: {stats.counts[RepairReason.CYCLIC]}")
        log.info(f"  Duplicate dependencies removed: {stats.counts[RepairReason.DUPLICATE]}")
        log.info(f"  Malformed lists reset:         {stats.counts[RepairReason.MALFORMED]}")
        log.info(f"  Tasks fixed: {stats.tasks_fixed}  Subtasks fixed: {stats.subtasks_fixed}")
    elif changed:
        log.success("Updated subtask dependencies")
    else:
        log.success("No dependency issues found - all dependencies are valid")

    if changed and dry_run:
        log.warn("Dry run: changes were not saved")


@main.command("migrate-refs")
@click.pass_obj
def migrate_refs(cfg: Config) -> None:
    """Rewrite bare sibling subtask references as explicit parent.sub ids."""
    from taskgraph.tasks.repair import migrate_sibling_refs

    cfg.legacy_sibling_refs = True
    count = 0

    def _migrate(tf: TaskFile) -> bool:
        nonlocal count
        count = migrate_sibling_refs(tf)
        return count > 0

    _edit(cfg, _migrate)
    if count:
        log.success(f"Rewrote {count} sibling reference(s)")
    else:
        log.info("No legacy sibling references found")


# ── Dependencies ─────────────────────────────────────────────────────


@main.command("add-dep")
@click.option("-i", "--id", "task_id", required=True, help="Task or subtask that gets the dependency")
@click.option("-d", "--depends-on", required=True, help="Task or subtask it depends on")
@click.pass_obj
def add_dep(cfg: Config, task_id: str, depends_on: str) -> None:
    """Add a dependency, refusing self-references and cycles."""
    from taskgraph.tasks.mutate import add_dependency

    stats = RepairStats()
    added = False

    def _add(tf: TaskFile) -> bool:
        nonlocal added
        added = add_dependency(tf, task_id, depends_on, stats)
        return added or stats.total > 0

    _edit(cfg, _add)
    _log_repairs(stats)
    if added:
        log.success(f"{task_id} now depends on {depends_on}")


@main.command("remove-dep")
@click.option("-i", "--id", "task_id", required=True, help="Task or subtask to edit")
@click.option("-d", "--depends-on", required=True, help="Dependency to remove")
@click.pass_obj
def remove_dep(cfg: Config, task_id: str, depends_on: str) -> None:
    """Remove a dependency. Missing dependencies are not an error."""
    from taskgraph.tasks.mutate import remove_dependency

    stats = RepairStats()
    removed = False

    def _remove(tf: TaskFile) -> bool:
        nonlocal removed
        removed = remove_dependency(tf, task_id, depends_on, stats)
        return removed or stats.total > 0

    _edit(cfg, _remove)
    _log_repairs(stats)
    if removed:
        log.success(f"{task_id} no longer depends on {depends_on}")


# ── Status ───────────────────────────────────────────────────────────


@main.command("set-status")
@click.option("-i", "--id", "ids", required=True, help="Comma-separated task/subtask ids (e.g. 3,4.1)")
@click.option(
    "-s",
    "--status",
    required=True,
    type=click.Choice(STATUS_CHOICES, case_sensitive=False),
    help="New status",
)
@click.pass_obj
def set_status_cmd(cfg: Config, ids: str, status: str) -> None:
    """Set the status of one or more tasks/subtasks."""
    from taskgraph.tasks.status import set_statuses

    def _apply(tf: TaskFile) -> bool:
        changed = False
        for result in set_statuses(tf, ids, status):
            log.success(
                f"{result.address}: {result.old_status.value} -> {result.new_status.value}"
            )
            changed |= result.changed
        return changed

    _edit(cfg, _apply)


# ── Structure ────────────────────────────────────────────────────────


@main.command()
@click.option("-i", "--id", "subtask_id", required=True, help="Subtask to promote (e.g. 5.2)")
@click.pass_obj
def promote(cfg: Config, subtask_id: str) -> None:
    """Turn a subtask into a standalone task."""
    from taskgraph.tasks.mutate import promote_subtask_to_task

    new_id = 0

    def _promote(tf: TaskFile) -> bool:
        nonlocal new_id
        ref = _subtask_ref(subtask_id)
        new_id = promote_subtask_to_task(tf, ref.task, ref.sub)
        return True

    _edit(cfg, _promote)
    log.success(f"Subtask {subtask_id} is now task {new_id}")


@main.command()
@click.option("-i", "--id", "task_id", required=True, help="Task to convert")
@click.option("-p", "--parent", required=True, help="Task that will contain it")
@click.pass_obj
def convert(cfg: Config, task_id: str, parent: str) -> None:
    """Turn a task into a subtask of another task."""
    from taskgraph.tasks.mutate import convert_task_to_subtask

    new_ref: SubtaskId | None = None

    def _convert(tf: TaskFile) -> bool:
        nonlocal new_ref
        new_ref = convert_task_to_subtask(tf, task_id, parent)
        return True

    _edit(cfg, _convert)
    log.success(f"Task {task_id} is now subtask {new_ref}")


@main.command("remove-subtask")
@click.option("-i", "--id", "ids", required=True, help="Comma-separated subtask ids (e.g. 5.2,5.3)")
@click.option("-c", "--convert", "to_task", is_flag=True, help="Promote to a task instead of deleting")
@click.pass_obj
def remove_subtask_cmd(cfg: Config, ids: str, to_task: bool) -> None:
    """Delete subtasks, or promote them with --convert."""
    from taskgraph.tasks.mutate import RemoveMode, remove_subtask

    mode = RemoveMode.CONVERT if to_task else RemoveMode.DELETE

    def _remove(tf: TaskFile) -> bool:
        for item in ids.split(","):
            if not item.strip():
                continue
            ref = _subtask_ref(item)
            new_id = remove_subtask(tf, ref.task, ref.sub, mode)
            if new_id is None:
                log.success(f"Removed subtask {ref}")
            else:
                log.success(f"Subtask {ref} is now task {new_id}")
        return True

    _edit(cfg, _remove)


@main.command("clear-subtasks")
@click.option("-i", "--id", "ids", default="", help="Comma-separated task ids")
@click.option("--all", "all_tasks", is_flag=True, help="Clear subtasks of every task")
@click.pass_obj
def clear_subtasks_cmd(cfg: Config, ids: str, all_tasks: bool) -> None:
    """Remove all subtasks of the given tasks."""
    from taskgraph.tasks.mutate import clear_subtasks

    if not ids and not all_tasks:
        raise click.UsageError("Provide --id or --all.")

    stats = RepairStats()

    def _clear(tf: TaskFile) -> bool:
        targets = [TaskId(t.id) for t in tf.tasks] if all_tasks else _task_refs(ids)
        total = 0
        for ref in targets:
            total += clear_subtasks(tf, ref, stats)
        log.success(f"Cleared {total} subtask(s) from {len(targets)} task(s)")
        return total > 0 or stats.total > 0

    _edit(cfg, _clear)
    _log_repairs(stats)


@main.command("remove-task")
@click.option("-i", "--id", "ids", required=True, help="Comma-separated task ids")
@click.pass_obj
def remove_task_cmd(cfg: Config, ids: str) -> None:
    """Delete tasks with their subtasks; dependencies on them are pruned."""
    from taskgraph.tasks.mutate import remove_task

    def _remove(tf: TaskFile) -> bool:
        for ref in _task_refs(ids):
            count = remove_task(tf, ref)
            log.success(f"Removed task {ref} ({count} node(s))")
        return True

    _edit(cfg, _remove)

