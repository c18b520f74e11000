"""App-level UI tests against a fake task service."""

from unittest.mock import patch

import pytest
from textual.widgets import Input, Static

from groveui import config, layout
from groveui.app import GroveApp
from groveui.enums import PaneType, TaskFilter, Verb, ViewMode
from groveui.screens import ChoiceScreen, HelpScreen, LayoutScreen, TextPromptScreen
from tests.conftest import make_project, make_service, make_task


async def wait_for_workers(app):
    """Wait for all workers to complete."""
    await app.workers.wait_for_complete()


@pytest.fixture
def app(service):
    return GroveApp(project_id="p1", service=service)


@pytest.mark.asyncio
async def test_app_lists_tasks_on_startup(app):
    async with app.run_test() as pilot:
        await wait_for_workers(app)
        await pilot.pause()
        assert app.query_one("#search", Input)
        rendered = str(app.query_one("#tasks", Static).render())
        assert "Task t1" in rendered
        assert "Task t3" in rendered


@pytest.mark.asyncio
async def test_j_selects_and_shows_info(app):
    async with app.run_test() as pilot:
        await wait_for_workers(app)
        await pilot.press("j")
        assert app.controller.view.selected_key == "p1:t1"
        assert app.controller.view.mode == ViewMode.INFO
        await pilot.press("enter")
        assert app.controller.view.mode == ViewMode.WORKSPACE


@pytest.mark.asyncio
async def test_commit_dialog_submits(app, service):
    async with app.run_test() as pilot:
        await wait_for_workers(app)
        await pilot.press("j", "c")
        await pilot.pause()
        assert isinstance(app.screen, TextPromptScreen)

        await pilot.press(*"wip")
        await pilot.press("enter")
        await wait_for_workers(app)
        await pilot.pause()

        service.commit_task.assert_awaited_once_with("p1", "t1", "wip")
        assert not isinstance(app.screen, TextPromptScreen)
        assert app.controller.view.open_dialog_for("p1:t1") is None


@pytest.mark.asyncio
async def test_escape_cancels_dialog(app, service):
    async with app.run_test() as pilot:
        await wait_for_workers(app)
        await pilot.press("j", "c")
        await pilot.pause()
        await pilot.press("escape")
        await pilot.pause()
        assert app.controller.view.open_dialog_for("p1:t1") is None
        service.commit_task.assert_not_awaited()


@pytest.mark.asyncio
async def test_space_opens_action_menu(app):
    async with app.run_test() as pilot:
        await wait_for_workers(app)
        await pilot.press("j", "space")
        await pilot.pause()
        assert isinstance(app.screen, ChoiceScreen)
        await pilot.press("escape")
        await pilot.pause()
        assert app.controller.view.context_menu is None


@pytest.mark.asyncio
async def test_help_toggles(app):
    async with app.run_test() as pilot:
        await wait_for_workers(app)
        await pilot.press("question_mark")
        await pilot.pause()
        assert isinstance(app.screen, HelpScreen)
        actions = [action for _keys, action in app.screen.shortcuts]
        assert "Merge" in actions
        assert "Edit workspace layouts" in actions
        await pilot.press("escape")
        await pilot.pause()
        assert not app.controller.view.show_help


@pytest.mark.asyncio
async def test_search_filters_list(app):
    async with app.run_test() as pilot:
        await wait_for_workers(app)
        await pilot.press("slash")
        assert app.focused is app.query_one("#search", Input)
        await pilot.press(*"t2")
        await pilot.pause()
        assert [r.task_id for r in app.controller.visible_refs()] == ["t2"]
        await pilot.press("escape")
        assert app.focused is None


@pytest.mark.asyncio
async def test_f_toggles_archived_filter(app, service):
    async with app.run_test() as pilot:
        await wait_for_workers(app)
        await pilot.press("f")
        await wait_for_workers(app)
        assert app.controller.data_source.filter == TaskFilter.ARCHIVED
        service.list_tasks.assert_awaited_with("p1", TaskFilter.ARCHIVED)


@pytest.mark.asyncio
async def test_merge_prompt_then_keep():
    service = make_service([make_project("p1", [make_task("t1")])])
    app = GroveApp(project_id="p1", service=service)
    async with app.run_test() as pilot:
        await wait_for_workers(app)
        await pilot.press("j", "m")
        await wait_for_workers(app)
        await pilot.pause()
        assert app.controller.cascade.awaiting
        assert isinstance(app.screen, ChoiceScreen)

        await pilot.press("escape")
        await pilot.pause()
        assert not app.controller.cascade.awaiting
        assert app.controller.view.mode == ViewMode.LIST
        service.archive_task.assert_not_awaited()
        assert app.controller.view.peek_dialog("p1:t1", Verb.MERGE) is None


@pytest.mark.asyncio
async def test_layout_editor_splits_and_saves(app):
    with patch.dict(config.CONFIG, {"layouts": []}), patch.object(config, "save") as save:
        async with app.run_test() as pilot:
            await wait_for_workers(app)
            await pilot.press("L")
            await pilot.pause()
            assert isinstance(app.screen, LayoutScreen)

            await pilot.press("h", "t")
            editor = app.screen.editor
            assert layout.count_panes(editor.current.root) == 2
            assert editor.selected_pane.pane_type == PaneType.CUSTOM

            await pilot.press("ctrl+s")
            save.assert_called_once_with()
            await pilot.press("escape")
            await pilot.pause()
            assert not isinstance(app.screen, LayoutScreen)

        saved = layout.load_layouts()
        assert layout.count_panes(saved[0].root) == 2


@pytest.mark.asyncio
async def test_layout_editor_escape_discards_edits(app):
    with patch.dict(config.CONFIG, {"layouts": []}), patch.object(config, "save") as save:
        async with app.run_test() as pilot:
            await wait_for_workers(app)
            await pilot.press("L")
            await pilot.pause()
            await pilot.press("v", "escape")
            await pilot.pause()
            assert not isinstance(app.screen, LayoutScreen)
        save.assert_not_called()
        assert config.CONFIG["layouts"] == []
