"""Tests for service data models."""

from datetime import timezone

from groveui.enums import CreatedBy, NotificationLevel, TaskStatus, Verb
from groveui.models import (
    CommitList,
    NotificationEntry,
    OperationResult,
    Project,
    Task,
    verb_available,
)
from tests.conftest import make_ref, make_task


def test_task_from_dict_coerces_ids_and_times():
    task = Task.from_dict(
        {
            "id": 42,
            "name": "Fix login",
            "branch": "grove/fix-login",
            "target": "main",
            "status": "LIVE",
            "additions": "12",
            "commits": [{"hash": "abc1234", "message": "wip", "time_ago": "2m"}],
            "updated_at": "2025-03-01T10:00:00Z",
            "created_by": "agent",
        }
    )
    assert task.id == "42"
    assert task.status == TaskStatus.LIVE
    assert task.additions == 12
    assert task.commits[0].hash == "abc1234"
    assert task.updated_at.tzinfo == timezone.utc
    assert task.updated_at.hour == 10
    assert task.created_by == CreatedBy.AGENT


def test_unknown_status_is_broken():
    """Unrecognized states keep git-state verbs off."""
    task = Task.from_dict({"id": "t1", "status": "exploded"})
    assert task.status == TaskStatus.BROKEN
    assert not task.can_operate


def test_bad_timestamp_falls_back_to_epoch():
    task = Task.from_dict({"id": "t1", "updated_at": "yesterday"})
    assert task.updated_at.year == 1970


def test_bad_counts_fall_back_to_zero():
    task = Task.from_dict(
        {"id": "t1", "additions": "lots", "deletions": None, "files_changed": [], "commits": ["x"]}
    )
    assert (task.additions, task.deletions, task.files_changed) == (0, 0, 0)
    assert task.commits == ()
    assert CommitList.from_dict({"total": "n/a"}).total == 0


def test_project_skips_malformed_tasks():
    project = Project.from_dict({"id": "p1", "tasks": ["oops", {"id": "t1"}]})
    assert [t.id for t in project.tasks] == ["t1"]


def test_verb_availability_by_status():
    live = make_task(status=TaskStatus.LIVE)
    broken = make_task(status=TaskStatus.BROKEN)
    archived = make_task(status=TaskStatus.ARCHIVED)

    assert all(verb_available(live, v) for v in Verb if v != Verb.RECOVER)
    assert not verb_available(live, Verb.RECOVER)

    assert verb_available(broken, Verb.COMMIT)
    assert verb_available(broken, Verb.ARCHIVE)
    assert not verb_available(broken, Verb.SYNC)
    assert not verb_available(broken, Verb.MERGE)
    assert not verb_available(broken, Verb.REBASE)

    assert verb_available(archived, Verb.RECOVER)
    assert verb_available(archived, Verb.CLEAN)
    assert not verb_available(archived, Verb.COMMIT)
    assert not verb_available(archived, Verb.ARCHIVE)


def test_task_ref_key_includes_project():
    a = make_ref("t1", "p1")
    b = make_ref("t1", "p2")
    assert a.key == "p1:t1"
    assert a.key != b.key


def test_operation_result_acknowledge_counts_as_success():
    assert OperationResult.from_dict(None).success
    assert OperationResult.from_dict({"message": "archived"}).message == "archived"
    result = OperationResult.from_dict({"success": False, "message": "nope"})
    assert not result.success
    assert result.message == "nope"


def test_commit_list_total_defaults_to_len():
    assert CommitList.from_dict({"commits": [{"hash": "a"}, {"hash": "b"}]}).total == 2
    assert CommitList.from_dict({"total": 5, "commits": []}).total == 5


def test_notification_entry_unknown_level_is_notice():
    entry = NotificationEntry.from_dict({"project_id": 1, "task_id": 2, "level": "loud"})
    assert entry.level == NotificationLevel.NOTICE
    assert entry.key == "1:2"


def test_project_from_dict_parses_tasks():
    project = Project.from_dict(
        {"id": "p1", "current_branch": "develop", "tasks": [{"id": "t1", "target": "develop"}]}
    )
    assert project.current_branch == "develop"
    assert project.tasks[0].target == "develop"
