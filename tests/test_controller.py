"""Tests for TaskWorkspaceController wiring (no UI)."""

import asyncio

import pytest

from groveui.controller import TaskWorkspaceController
from groveui.enums import InfoTab, NotificationLevel, TaskFilter, TaskStatus, Verb, ViewMode
from groveui.models import CommitList
from tests.conftest import make_entry, make_project, make_service, make_task


async def settle(rounds: int = 10):
    """Let spawned background coroutines run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_controller(service, **kwargs) -> TaskWorkspaceController:
    kwargs.setdefault("project_id", "p1")
    ctl = TaskWorkspaceController(service, poll_interval=60, **kwargs)
    ctl.toasts = []
    ctl.on_toast = ctl.toasts.append
    return ctl


@pytest.mark.asyncio
async def test_refresh_seeds_order(service):
    ctl = make_controller(service)
    assert await ctl.refresh()
    assert [r.task_id for r in ctl.ordered_refs()] == ["t1", "t2", "t3"]


@pytest.mark.asyncio
async def test_refresh_keeps_user_order_and_appends_new(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.move_task(0, "down")
    service.projects["p1"].tasks.append(make_task("t4"))
    await ctl.refresh()
    assert [r.task_id for r in ctl.ordered_refs()] == ["t2", "t1", "t3", "t4"]


@pytest.mark.asyncio
async def test_refresh_updates_selected_copy(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.select(ctl.ordered_refs()[0])
    service.projects["p1"].tasks[0] = make_task("t1", status=TaskStatus.CONFLICT)
    await ctl.refresh()
    assert ctl.view.selected.task.status == TaskStatus.CONFLICT


@pytest.mark.asyncio
async def test_search_filters_visible(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.set_search("task t2")
    assert [r.task_id for r in ctl.visible_refs()] == ["t2"]
    ctl.set_search("grove/t3")
    assert [r.task_id for r in ctl.visible_refs()] == ["t3"]


@pytest.mark.asyncio
async def test_j_k_wrap_around(service):
    ctl = make_controller(service)
    await ctl.refresh()
    assert ctl.router.dispatch("j")
    assert ctl.view.selected_key == "p1:t1"
    ctl.router.dispatch("k")
    assert ctl.view.selected_key == "p1:t3"
    ctl.router.dispatch("down")
    assert ctl.view.selected_key == "p1:t1"


@pytest.mark.asyncio
async def test_navigation_keys_inert_in_workspace(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.double_select(ctl.ordered_refs()[0])
    assert not ctl.router.dispatch("j")
    assert ctl.router.dispatch("escape")
    assert ctl.view.mode == ViewMode.INFO


@pytest.mark.asyncio
async def test_enter_and_tab_keys(service):
    ctl = make_controller(service)
    await ctl.refresh()
    assert not ctl.router.dispatch("enter")
    ctl.router.dispatch("j")
    ctl.router.dispatch("2")
    assert ctl.view.info_tab == InfoTab.GIT
    ctl.router.dispatch("enter")
    assert ctl.view.mode == ViewMode.WORKSPACE


@pytest.mark.asyncio
async def test_quick_select(service):
    ctl = make_controller(service)
    await ctl.refresh()
    assert ctl.router.dispatch("ctrl+2")
    assert ctl.view.selected_key == "p1:t2"
    assert ctl.router.modifier_held
    ctl.router.dispatch("ctrl+9")
    assert ctl.view.selected_key == "p1:t2"


@pytest.mark.asyncio
async def test_ctrl_arrows_move_selected(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.router.dispatch("j")
    ctl.router.dispatch("ctrl+down")
    assert [r.task_id for r in ctl.ordered_refs()] == ["t2", "t1", "t3"]


@pytest.mark.asyncio
async def test_drag_reorders_visible_rows(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.start_drag(2)
    ctl.drag_over(0)
    assert ctl.drop()
    assert [r.task_id for r in ctl.ordered_refs()] == ["t3", "t1", "t2"]


@pytest.mark.asyncio
async def test_open_dialog_captures_keys(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.router.dispatch("j")
    ctl.router.dispatch("c")
    assert ctl.view.open_dialog_for("p1:t1") == Verb.COMMIT
    assert ctl.is_captured()
    assert not ctl.router.dispatch("j")

    ctl.cancel_dialog(ctl.view.selected, Verb.COMMIT)
    assert not ctl.is_captured()


@pytest.mark.asyncio
async def test_space_opens_menu_and_item_runs(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.router.dispatch("j")
    assert ctl.router.dispatch("space")
    assert ctl.view.context_menu is not None
    assert ctl.is_captured()

    item = next(i for i in ctl.menu_items() if i.id == "sync")
    ctl.activate_menu_item(item)
    await settle()
    assert ctl.view.context_menu is None
    service.sync_task.assert_awaited_once_with("p1", "t1")


@pytest.mark.asyncio
async def test_operation_keys_need_operable_task():
    service = make_service([make_project("p1", [make_task("t1", status=TaskStatus.BROKEN)])])
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.router.dispatch("j")
    assert not ctl.router.dispatch("m")
    assert ctl.router.dispatch("c")


@pytest.mark.asyncio
async def test_merge_then_archive_from_prompt(service):
    """Merge a one-commit task, accept the archive prompt, land back on the list."""
    service.get_commits.return_value = CommitList(total=1)
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.router.dispatch("j")
    ctl.router.dispatch("m")
    await settle()

    service.merge_task.assert_awaited_once()
    assert ctl.cascade.awaiting
    assert ctl.is_captured()
    assert "Merged successfully" in ctl.toasts

    await ctl.cascade.archive()
    service.archive_task.assert_awaited_once_with("p1", "t1", force=False)
    assert not ctl.view.has_task
    assert ctl.view.mode == ViewMode.LIST
    assert not ctl.is_captured()


@pytest.mark.asyncio
async def test_merge_then_keep(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.router.dispatch("j")
    await ctl.merge()
    ctl.cascade.keep()
    service.archive_task.assert_not_awaited()
    assert ctl.view.mode == ViewMode.LIST


@pytest.mark.asyncio
async def test_selecting_dismisses_notification(service):
    service.list_all_hooks.return_value = [make_entry("t2")]
    ctl = make_controller(service)
    await ctl.notifications.poll()
    await ctl.refresh()

    ctl.select(ctl.data_source.find("p1:t2"))
    assert ctl.notifications.lookup("t2") is None
    await settle()
    service.dismiss_hook.assert_awaited_once_with("p1", "t2")


@pytest.mark.asyncio
async def test_all_projects_sorted_by_notification():
    service = make_service(
        [
            make_project("p1", [make_task("a", minutes=5)]),
            make_project("p2", [make_task("b", minutes=1)]),
        ]
    )
    service.list_all_hooks.return_value = [make_entry("b", "p2", NotificationLevel.CRITICAL)]
    ctl = make_controller(service, project_id=None)
    await ctl.start()
    try:
        assert [r.key for r in ctl.ordered_refs()] == ["p2:b", "p1:a"]
    finally:
        await ctl.stop()


@pytest.mark.asyncio
async def test_activate_notification_navigates_to_workspace(service):
    ctl = make_controller(service)
    await ctl.refresh()
    seen = []
    ctl.on_navigate = lambda page, data: seen.append((page, data))

    ctl.activate_notification(make_entry("t3"))
    assert seen == [("tasks", {"project_id": "p1", "task_id": "t3", "view_mode": "workspace"})]

    assert ctl.navigate(seen[0][1])
    assert ctl.view.selected_key == "p1:t3"
    assert ctl.view.mode == ViewMode.WORKSPACE


@pytest.mark.asyncio
async def test_navigation_waits_for_task_to_load(service):
    ctl = make_controller(service)
    assert not ctl.navigate({"project_id": "p1", "task_id": "t2", "view_mode": "info"})
    assert ctl.pending_navigation is not None

    await ctl.refresh()
    assert ctl.pending_navigation is None
    assert ctl.view.selected_key == "p1:t2"
    assert ctl.view.mode == ViewMode.INFO


@pytest.mark.asyncio
async def test_filter_switch_clears_selection_and_refetches(service):
    ctl = make_controller(service)
    await ctl.refresh()
    ctl.router.dispatch("j")
    ctl.set_filter(TaskFilter.ARCHIVED)
    assert not ctl.view.has_task
    await settle()
    service.list_tasks.assert_awaited_with("p1", TaskFilter.ARCHIVED)


@pytest.mark.asyncio
async def test_recover_needs_host_support():
    service = make_service([make_project("p1")])
    service.list_tasks.return_value = [make_task("old", status=TaskStatus.ARCHIVED)]
    ctl = make_controller(service, can_recover=False)
    ctl.data_source.set_filter(TaskFilter.ARCHIVED)
    await ctl.refresh()
    ctl.router.dispatch("j")

    assert [i.id for i in ctl.menu_items()] == []
    ctl.open_context_menu()
    assert [i.id for i in ctl.menu_items()] == ["clean"]
    await ctl.recover()
    service.recover_task.assert_not_awaited()


@pytest.mark.asyncio
async def test_help_toggle(service):
    ctl = make_controller(service)
    ctl.router.dispatch("question_mark")
    assert ctl.view.show_help
    ctl.router.dispatch("?")
    assert not ctl.view.show_help


@pytest.mark.asyncio
async def test_help_rows_cover_every_bound_key(service):
    ctl = make_controller(service)
    described = {b.key for bs in ctl.router.bindings.values() for b in bs if b.description}
    assert described == set(ctl.router.bindings)

    rows = {action: keys for keys, action in ctl.router.help_rows()}
    assert rows["Next task"] == "j / down"
    assert rows["Jump to task by position"] == "ctrl+1-9 / ctrl+0"
    assert rows["Move task up / down"] == "ctrl+up / ctrl+down"
