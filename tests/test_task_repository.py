"""Tests for the TaskRepository class."""
import pytest

from notegraph.exceptions import ErrorCode, ValidationError
from notegraph.models.schema import ParsedTask, TaskStatus


def test_tasks_derived_in_line_order(note_repository, task_repository):
    note_id = note_repository.create_note("Todo", content="- [ ] A\n- [x] B\n- [>] C\n- [-] D")
    tasks = task_repository.get_tasks_by_note(note_id)
    assert [(t.content, t.status, t.line_number) for t in tasks] == [
        ("A", TaskStatus.PENDING, 0),
        ("B", TaskStatus.DONE, 1),
        ("C", TaskStatus.DEFERRED, 2),
        ("D", TaskStatus.CANCELLED, 3),
    ]


def test_first_line_only(note_repository, task_repository):
    note_id = note_repository.create_note(
        "Accents", content="- [x] Tâche terminée\nPremiere ligne\nDeuxieme ligne"
    )
    tasks = task_repository.get_tasks_by_note(note_id)
    assert len(tasks) == 1
    assert tasks[0].content == "Tâche terminée"
    assert tasks[0].status == TaskStatus.DONE


def test_all_tasks_carry_note_title(note_repository, task_repository):
    note_repository.create_note("First", content="- [ ] one")
    note_repository.create_note("Second", content="- [x] two")
    tasks = task_repository.get_all_tasks()
    assert {(t.note_title, t.content) for t in tasks} == {
        ("First", "one"),
        ("Second", "two"),
    }


def test_tasks_by_status(note_repository, task_repository):
    note_repository.create_note("Mixed", content="- [ ] open\n- [x] closed\n- [ ] other")
    pending = task_repository.get_tasks_by_status(TaskStatus.PENDING)
    assert sorted(t.content for t in pending) == ["open", "other"]
    done = task_repository.get_tasks_by_status("done")
    assert [t.content for t in done] == ["closed"]


def test_unknown_status_rejected(task_repository):
    with pytest.raises(ValidationError) as exc_info:
        task_repository.get_tasks_by_status("blocked")
    assert exc_info.value.code == ErrorCode.INVALID_TASK_STATUS


def test_count_by_status_zero_filled(note_repository, task_repository):
    assert task_repository.count_tasks_by_status() == {s: 0 for s in TaskStatus}
    note_repository.create_note("Mixed", content="- [ ] a\n- [ ] b\n- [-] c")
    counts = task_repository.count_tasks_by_status()
    assert counts[TaskStatus.PENDING] == 2
    assert counts[TaskStatus.CANCELLED] == 1
    assert counts[TaskStatus.DONE] == 0


def test_deleted_notes_excluded(note_repository, task_repository):
    note_id = note_repository.create_note("Gone", content="- [ ] hidden")
    note_repository.delete_note(note_id)
    assert task_repository.get_all_tasks() == []
    assert task_repository.count_tasks_by_status()[TaskStatus.PENDING] == 0


def test_replace_create_delete(note_repository, task_repository):
    note_id = note_repository.create_note("Manual")
    assert task_repository.create_tasks_for_note(
        note_id, [ParsedTask(content="x", status=TaskStatus.PENDING, line_number=4)]
    ) == 1
    assert task_repository.replace_tasks_for_note(
        note_id,
        [
            ParsedTask(content="b", status=TaskStatus.DONE, line_number=2),
            ParsedTask(content="a", status=TaskStatus.PENDING, line_number=1),
        ],
    ) == 2
    assert [t.content for t in task_repository.get_tasks_by_note(note_id)] == ["a", "b"]
    assert task_repository.delete_tasks_by_note(note_id) == 2
    assert task_repository.get_tasks_by_note(note_id) == []
