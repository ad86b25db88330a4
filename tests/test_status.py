"""Tests for taskgraph.tasks.status."""

from __future__ import annotations

import pytest

from taskgraph.errors import InvalidOperation, NotFound
from taskgraph.tasks.model import TaskFile, TaskStatus
from taskgraph.tasks.refs import SubtaskId, TaskId
from taskgraph.tasks.status import StatusResult, parse_status, set_status, set_statuses


class TestParseStatus:
    @pytest.mark.parametrize("text", ["done", "DONE", " Done "])
    def test_case_insensitive(self, text):
        assert parse_status(text) is TaskStatus.DONE

    def test_enum_passes_through(self):
        assert parse_status(TaskStatus.REVIEW) is TaskStatus.REVIEW

    def test_invalid(self):
        with pytest.raises(InvalidOperation, match="Valid statuses"):
            parse_status("finished")


class TestSetStatus:
    def test_task(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        result = set_status(tf, "2", "in-progress")
        assert result == StatusResult(TaskId(2), TaskStatus.PENDING, TaskStatus.IN_PROGRESS)
        assert result.changed
        assert tf.get_task(2).status is TaskStatus.IN_PROGRESS

    def test_subtask_only(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        set_status(tf, "5.2", TaskStatus.DONE)
        task = tf.get_task(5)
        assert task.get_subtask(2).status is TaskStatus.DONE
        assert task.status is TaskStatus.PENDING
        assert task.get_subtask(1).status is TaskStatus.PENDING

    def test_does_not_cascade_to_subtasks(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        set_status(tf, 5, "done")
        assert all(s.status is TaskStatus.PENDING for s in tf.get_task(5).subtasks)

    def test_any_transition_allowed(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        result = set_status(tf, 1, "pending")
        assert result.old_status is TaskStatus.DONE
        assert tf.get_task(1).status is TaskStatus.PENDING

    def test_unchanged(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        assert not set_status(tf, 1, "done").changed

    def test_not_found(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        with pytest.raises(NotFound, match="Subtask 5.9 not found"):
            set_status(tf, "5.9", "done")
        with pytest.raises(NotFound):
            set_status(tf, 4, "done")

    def test_invalid_status_leaves_document(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        with pytest.raises(InvalidOperation):
            set_status(tf, SubtaskId(5, 1), "blocked")
        assert tf.to_dict() == TaskFile.from_dict(sample_doc).to_dict()


class TestSetStatuses:
    def test_comma_separated(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        results = set_statuses(tf, "2, 5.1", "review")
        assert [r.address for r in results] == [TaskId(2), SubtaskId(5, 1)]
        assert tf.get_task(2).status is TaskStatus.REVIEW
        assert tf.get_task(5).get_subtask(1).status is TaskStatus.REVIEW

    def test_list_of_addresses(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        results = set_statuses(tf, [1, SubtaskId(5, 3)], TaskStatus.DEFERRED)
        assert [r.old_status for r in results] == [TaskStatus.DONE, TaskStatus.PENDING]
        assert all(r.new_status is TaskStatus.DEFERRED for r in results)

    def test_unknown_address_changes_nothing(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        with pytest.raises(NotFound):
            set_statuses(tf, "2,9", "done")
        assert tf.get_task(2).status is TaskStatus.PENDING

    def test_invalid_status_checked_first(self, sample_doc):
        tf = TaskFile.from_dict(sample_doc)
        with pytest.raises(InvalidOperation):
            set_statuses(tf, "2", "blocked")
