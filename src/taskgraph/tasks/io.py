"""Load and save the tasks.json document."""

from __future__ import annotations

import json
from pathlib import Path

from taskgraph import log
from taskgraph.errors import MalformedDocument
from taskgraph.io_utils import read_text, write_text_atomic
from taskgraph.tasks.model import TaskFile


def load_task_file(path: Path | str, legacy_sibling_refs: bool = False) -> TaskFile:
    """Read and decode *path*. Raises :class:`MalformedDocument` on any failure."""
    p = Path(path)
    if not p.is_file():
        raise MalformedDocument(f"Tasks file not found: {p}")
    try:
        data = json.loads(read_text(p))
    except json.JSONDecodeError as exc:
        raise MalformedDocument(f"{p}: invalid JSON ({exc})") from exc
    except UnicodeDecodeError as exc:
        raise MalformedDocument(f"{p}: not UTF-8 text ({exc})") from exc

    tf = TaskFile.from_dict(data, legacy_sibling_refs=legacy_sibling_refs)
    log.debug(f"Loaded {len(tf.tasks)} task(s) from {p}")
    return tf


def dump_task_file(tf: TaskFile) -> str:
    return json.dumps(tf.to_dict(), indent=2, ensure_ascii=False) + "\n"


def save_task_file(path: Path | str, tf: TaskFile) -> None:
    """Write *tf* to *path*, replacing the file atomically."""
    write_text_atomic(path, dump_task_file(tf))
    log.debug(f"Saved {len(tf.tasks)} task(s) to {path}")
