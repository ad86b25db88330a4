"""Tests for loading and saving tasks.json."""

from __future__ import annotations

import json

import pytest

from taskgraph.errors import MalformedDocument
from taskgraph.io_utils import read_text, write_text, write_text_atomic
from taskgraph.tasks.io import dump_task_file, load_task_file, save_task_file
from taskgraph.tasks.model import Task, TaskFile
from taskgraph.tasks.refs import SubtaskId, TaskId
from taskgraph.tasks.repair import repair


class TestLoad:
    def test_loads_document(self, tasks_json):
        tf = load_task_file(tasks_json)
        assert tf.task_ids() == [1, 2, 3, 5]
        assert tf.get_task(5).subtasks[2].dependencies == [SubtaskId(5, 2)]

    def test_legacy_mode(self, tmp_path):
        path = tmp_path / "tasks.json"
        write_text(path, json.dumps({"tasks": [{"id": 2, "subtasks": [{"id": 1}, {"id": 2, "dependencies": [1]}]}]}))
        assert load_task_file(path).get_task(2).subtasks[1].dependencies == [TaskId(1)]
        legacy = load_task_file(path, legacy_sibling_refs=True)
        assert legacy.get_task(2).subtasks[1].dependencies == [SubtaskId(2, 1)]

    def test_missing_file(self, tmp_path):
        with pytest.raises(MalformedDocument, match="not found"):
            load_task_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "tasks.json"
        write_text(path, "{not json")
        with pytest.raises(MalformedDocument, match="invalid JSON"):
            load_task_file(path)

    def test_not_utf8(self, tmp_path):
        path = tmp_path / "tasks.json"
        path.write_bytes(b'{"tasks": ["\xff"]}')
        with pytest.raises(MalformedDocument):
            load_task_file(path)

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "tasks.json"
        write_text(path, '{"tasks": 3}')
        with pytest.raises(MalformedDocument):
            load_task_file(path)


class TestSave:
    def test_save_then_load(self, tasks_json):
        tf = load_task_file(tasks_json)
        tf.get_task(2).dependencies.append(SubtaskId(5, 1))
        save_task_file(tasks_json, tf)

        data = json.loads(read_text(tasks_json))
        assert data["tasks"][1]["dependencies"] == [1, "5.1"]
        assert load_task_file(tasks_json).to_dict() == tf.to_dict()

    def test_repair_rewrites_only_the_pruned_edge(self, tmp_path):
        doc = {
            "tasks": [
                {"title": "Root", "id": 1, "dependencies": [1], "complexity": 3},
                {
                    "id": 2,
                    "title": "B",
                    "status": "done",
                    "dependencies": [1],
                    "subtasks": [
                        {"id": 1, "title": "s", "details": "", "status": "pending", "dependencies": []},
                    ],
                },
                {"id": 3, "dependencies": [], "title": "C", "description": "", "priority": "medium"},
            ],
            "metadata": {"version": 1},
        }
        path = tmp_path / "tasks.json"
        write_text(path, json.dumps(doc, indent=2, ensure_ascii=False) + "\n")

        tf = load_task_file(path)
        assert repair(tf) is True
        save_task_file(path, tf)

        doc["tasks"][0]["dependencies"] = []
        assert read_text(path) == json.dumps(doc, indent=2, ensure_ascii=False) + "\n"

    def test_dump_format(self, sample_doc):
        text = dump_task_file(TaskFile.from_dict(sample_doc))
        assert text.endswith("}\n")
        assert text.startswith('{\n  "tasks"')

    def test_non_ascii_kept_readable(self, tmp_path):
        path = tmp_path / "tasks.json"
        save_task_file(path, TaskFile(tasks=[Task(id=1, title="Añadir caché")]))
        assert "Añadir caché" in read_text(path)


class TestAtomicWrite:
    def test_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "a" / "b" / "out.txt"
        write_text_atomic(path, "hello")
        assert read_text(path) == "hello"

    def test_replaces_existing(self, tmp_path):
        path = tmp_path / "out.txt"
        write_text(path, "old")
        write_text_atomic(path, "new")
        assert read_text(path) == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["out.txt"]

    def test_failure_keeps_old_content_and_cleans_up(self, tmp_path, monkeypatch):
        import taskgraph.io_utils as io_utils

        path = tmp_path / "out.txt"
        write_text(path, "old")

        def _boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(io_utils.os, "replace", _boom)
        with pytest.raises(OSError):
            write_text_atomic(path, "new")
        assert read_text(path) == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["out.txt"]
