"""Shared fixtures for taskgraph tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- Use taskgraph.io_utils read_text/write_text for consistent UTF-8 I/O.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from taskgraph.io_utils import write_text
from taskgraph.tasks.model import Subtask, Task, TaskFile
from taskgraph.tasks.refs import DepRef, ref_from_json


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register opt-in switch for subprocess end-to-end tests."""
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run end-to-end tests marked with 'e2e'.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip e2e tests unless explicitly enabled."""
    if config.getoption("--run-e2e"):
        return

    skip_e2e = pytest.mark.skip(
        reason="E2E tests are skipped by default. Use --run-e2e to include them.",
    )
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


def _deps(values: list[Any] | None) -> list[DepRef]:
    return [ref_from_json(v) for v in values or []]


def _make_subtask(
    id: int,
    title: str = "",
    depends_on: list[Any] | None = None,
) -> Subtask:
    return Subtask(id=id, title=title or f"Subtask {id}", dependencies=_deps(depends_on))


def _make_task(
    id: int,
    title: str = "",
    depends_on: list[Any] | None = None,
    subtasks: list[Subtask] | None = None,
) -> Task:
    return Task(
        id=id,
        title=title or f"Task {id}",
        dependencies=_deps(depends_on),
        subtasks=subtasks or [],
    )


def _make_task_file(tasks: list[Task]) -> TaskFile:
    return TaskFile(tasks=tasks)


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances (dependencies in tasks.json form)."""
    return _make_task


@pytest.fixture
def make_subtask():
    """Factory fixture that creates Subtask instances."""
    return _make_subtask


@pytest.fixture
def make_task_file():
    """Factory fixture that creates TaskFile instances."""
    return _make_task_file


@pytest.fixture
def sample_doc() -> dict[str, Any]:
    """A small valid document: 1 <- 2 <- 3, task 5 with three subtasks."""
    return {
        "tasks": [
            {"id": 1, "title": "Setup", "status": "done", "priority": "high", "dependencies": []},
            {"id": 2, "title": "Models", "dependencies": [1]},
            {"id": 3, "title": "API", "dependencies": [2]},
            {
                "id": 5,
                "title": "UI",
                "dependencies": [3],
                "subtasks": [
                    {"id": 1, "title": "Layout", "status": "pending", "dependencies": []},
                    {"id": 2, "title": "Forms", "details": "use htmx", "dependencies": ["5.1"]},
                    {"id": 3, "title": "Polish", "dependencies": ["5.2"]},
                ],
            },
        ],
    }


@pytest.fixture
def tasks_json(tmp_path: Path, sample_doc: dict[str, Any]) -> Path:
    """Write *sample_doc* to ``tmp_path/tasks/tasks.json`` and return the path."""
    path = tmp_path / "tasks" / "tasks.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    write_text(path, json.dumps(sample_doc, indent=2))
    return path
