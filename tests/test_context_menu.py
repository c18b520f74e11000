"""Tests for context menu construction."""

from unittest.mock import MagicMock

from groveui.context_menu import build_context_menu
from groveui.enums import TaskStatus
from tests.conftest import make_task


def handlers(can_recover: bool = True) -> MagicMock:
    mock = MagicMock()
    mock.can_recover = can_recover
    return mock


def ids(items):
    return [item.id for item in items]


def test_active_task_menu():
    items = build_context_menu(make_task(status=TaskStatus.LIVE), handlers())
    assert ids(items) == [
        "enter", "div1", "commit", "rebase", "sync", "merge", "div2", "archive", "reset", "clean",
    ]
    assert not any(item.disabled for item in items)
    by_id = {item.id: item for item in items}
    assert by_id["archive"].variant == "warning"
    assert by_id["clean"].variant == "danger"
    assert by_id["div1"].divider


def test_broken_task_disables_branch_verbs():
    items = {i.id: i for i in build_context_menu(make_task(status=TaskStatus.BROKEN), handlers())}
    for item_id in ("rebase", "sync", "merge", "archive"):
        assert items[item_id].disabled
    for item_id in ("enter", "commit", "reset", "clean"):
        assert not items[item_id].disabled


def test_archived_task_menu():
    task = make_task(status=TaskStatus.ARCHIVED)
    assert ids(build_context_menu(task, handlers())) == ["recover", "div1", "clean"]
    assert ids(build_context_menu(task, handlers(can_recover=False))) == ["clean"]


def test_items_call_handlers():
    h = handlers()
    items = {i.id: i for i in build_context_menu(make_task(), h)}
    items["commit"].on_click()
    h.commit.assert_called_once()
