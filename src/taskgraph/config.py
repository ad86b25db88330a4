"""Configuration defaults, env vars, and runtime options for taskgraph."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path


DEFAULT_TASKS_FILE = "tasks/tasks.json"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUTHY


@dataclass
class Config:
    """Runtime configuration. CLI flags win over environment variables."""

    tasks_file: str = ""

    # Read bare integers in subtask dependency lists as sibling subtask ids
    legacy_sibling_refs: bool = False

    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.tasks_file:
            self.tasks_file = os.environ.get("TASKGRAPH_TASKS_FILE") or DEFAULT_TASKS_FILE
        if not self.legacy_sibling_refs:
            self.legacy_sibling_refs = _env_flag("TASKGRAPH_LEGACY_SIBLING_REFS")

    def tasks_path(self) -> Path:
        """Absolute path of the tasks document; relative paths hang off the repo root."""
        p = Path(self.tasks_file)
        if p.is_absolute():
            return p
        return resolve_repo_root() / p


def resolve_repo_root() -> Path:
    """Return the git repository root, falling back to cwd."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
            check=True,
        )
        return Path(result.stdout.strip())
    except (subprocess.CalledProcessError, FileNotFoundError):
        return Path.cwd()
