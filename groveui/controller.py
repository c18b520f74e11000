"""TaskWorkspaceController: wires data, ordering, view state and operations.

The controller is UI-free. The host (GroveApp) sets the callback
attributes, forwards keys to controller.router.dispatch() and renders
from controller.view / controller.visible_refs().
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from groveui.context_menu import ContextMenuItem, build_context_menu
from groveui.data_source import TaskDataSource
from groveui.enums import InfoTab, MergeMethod, TaskFilter, Verb, ViewMode
from groveui.errors import log_exception
from groveui.hotkeys import QUICK_SELECT_KEYS, HotkeyRouter
from groveui.models import NotificationEntry, TaskRef, task_key
from groveui.notifications import NotificationCorrelator, sort_by_notification
from groveui.operations import OperationPipeline
from groveui.ordering import Direction, OrderingStore
from groveui.post_merge import PostMergeCascade
from groveui.protocols import NotificationService, TaskService
from groveui.view_state import ViewStateMachine

log = logging.getLogger(__name__)

TASKS_PAGE = "tasks"

INFO_TAB_KEYS = {
    "1": InfoTab.STATS,
    "2": InfoTab.GIT,
    "3": InfoTab.NOTES,
    "4": InfoTab.COMMENTS,
}


class TaskWorkspaceController:
    """Owns the task page state and implements TaskOperationHandlers.

    Args:
        service: Task service.
        notification_service: Hook service. Defaults to service.
        project_id: Single project to show, or None for all projects.
        can_recover: Whether archived tasks may be recovered from this host.
        poll_interval: Notification poll interval override (seconds).
        spawn: Schedules background coroutines. Defaults to asyncio tasks.
    """

    def __init__(
        self,
        service: TaskService,
        notification_service: NotificationService | None = None,
        *,
        project_id: str | None = None,
        can_recover: bool = True,
        poll_interval: float | None = None,
        spawn: Callable[[Awaitable[Any]], Any] | None = None,
    ) -> None:
        self._can_recover = can_recover
        self._spawn_fn = spawn
        self._background: set[asyncio.Task[Any]] = set()

        self.data_source = TaskDataSource(service, project_id)
        self.notifications = NotificationCorrelator(
            notification_service or service, poll_interval  # type: ignore[arg-type]
        )
        self.ordering = OrderingStore()
        self.view = ViewStateMachine()
        self.pipeline = OperationPipeline(service, self.view, self.data_source, self.refresh)
        self.cascade = PostMergeCascade(self.pipeline, self._cleanup_after_merge)
        self.router = HotkeyRouter(is_captured=self.is_captured, spawn=self.spawn)

        # Pending jump requested before the task was loaded: (key or task id, mode)
        self.pending_navigation: tuple[str, ViewMode] | None = None

        # Callbacks for UI integration (set by GroveApp)
        self.on_toast: Callable[[str], None] | None = None
        self.on_changed: Callable[[], None] | None = None
        self.on_navigate: Callable[[str, dict[str, Any]], None] | None = None
        self.on_scroll_to: Callable[[TaskRef], None] | None = None
        self.on_focus_search: Callable[[], None] | None = None

        self.pipeline.on_toast = self._toast
        self.pipeline.on_changed = self._changed
        self.pipeline.on_merged = self.cascade.enter
        self.cascade.on_changed = self._changed
        self.notifications.add_listener(self._on_notifications_changed)

        self._bind_hotkeys()

    # -- lifecycle --------------------------------------------------------

    async def start(self) -> None:
        """Initial fetch, then begin notification polling."""
        await self.notifications.poll()
        await self.refresh()
        self.notifications.start()

    async def stop(self) -> None:
        await self.notifications.stop()
        for task in list(self._background):
            task.cancel()

    def spawn(self, coro: Awaitable[Any]) -> Any:
        """Run a coroutine in the background, logging any exception."""
        if self._spawn_fn is not None:
            return self._spawn_fn(coro)
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_exception(exc, "Background task failed")  # type: ignore[arg-type]

    def _toast(self, message: str) -> None:
        if self.on_toast:
            self.on_toast(message)

    def _changed(self) -> None:
        if self.on_changed:
            self.on_changed()

    # -- data -------------------------------------------------------------

    @property
    def is_cross_project(self) -> bool:
        return self.data_source.is_cross_project

    async def refresh(self) -> bool:
        """Refetch tasks and reconcile order, selection and pending navigation."""
        ok = await self.data_source.refresh()
        if ok:
            self._reconcile()
        self._changed()
        return ok

    def _reconcile(self) -> None:
        refs = self.data_source.refs
        if self.is_cross_project:
            refs = sort_by_notification(refs, self.notifications)
        self.ordering.reconcile([r.key for r in refs])

        if self.view.selected is not None:
            fresh = self.data_source.find(self.view.selected.key)
            if fresh is not None:
                self.view.replace_selected(fresh)
        self._consume_pending_navigation()

    def _on_notifications_changed(self) -> None:
        # All-projects order depends on notifications; the list refetches with them
        if self.is_cross_project and self.data_source.loaded:
            self.spawn(self.refresh())
        else:
            self._changed()

    def ordered_refs(self) -> list[TaskRef]:
        """All loaded tasks in display order."""
        by_key = {r.key: r for r in self.data_source.refs}
        ordered = [by_key[k] for k in self.ordering.keys if k in by_key]
        placed = set(self.ordering.keys)
        # Fetched mid-drag: not in the order yet
        ordered.extend(r for r in self.data_source.refs if r.key not in placed)
        return ordered

    def visible_refs(self) -> list[TaskRef]:
        """Display order filtered by the search text (name, branch, project)."""
        refs = self.ordered_refs()
        query = self.view.search.strip().lower()
        if not query:
            return refs
        return [
            r
            for r in refs
            if query in r.task.name.lower()
            or query in r.task.branch.lower()
            or query in r.project_name.lower()
        ]

    def set_filter(self, task_filter: TaskFilter) -> None:
        if self.data_source.filter == task_filter:
            return
        self.data_source.set_filter(task_filter)
        self.view.clear()
        self.spawn(self.refresh())

    def set_search(self, text: str) -> None:
        self.view.set_search(text)
        self._changed()

    # -- selection --------------------------------------------------------

    def select(self, ref: TaskRef) -> bool:
        """Select a task, dismissing its notification. Idempotent."""
        changed = self.view.select(ref)
        if changed:
            self._dismiss_notification(ref)
            self._changed()
        return changed

    def double_select(self, ref: TaskRef) -> bool:
        changed = self.view.double_select(ref)
        if changed:
            self._dismiss_notification(ref)
            self._changed()
        return changed

    def _dismiss_notification(self, ref: TaskRef) -> None:
        if self.notifications.discard(ref.project_id, ref.task_id):
            self.spawn(self.notifications.dismiss(ref.project_id, ref.task_id))

    def close(self) -> None:
        self.view.close()
        self._changed()

    def _select_and_scroll(self, ref: TaskRef) -> None:
        self.select(ref)
        if self.on_scroll_to:
            self.on_scroll_to(ref)

    def select_next(self) -> bool:
        return self._step(1)

    def select_previous(self) -> bool:
        return self._step(-1)

    def _step(self, delta: int) -> bool:
        refs = self.visible_refs()
        if not refs or not self.view.not_in_workspace:
            return False
        keys = [r.key for r in refs]
        key = self.view.selected_key
        current = keys.index(key) if key in keys else -1
        if current == -1:
            index = 0 if delta > 0 else len(refs) - 1
        else:
            index = (current + delta) % len(refs)
        self._select_and_scroll(refs[index])
        return True

    def quick_select(self, index: int) -> bool:
        """Select the index-th visible task (ctrl+1 is 0, ctrl+0 is 9)."""
        refs = self.visible_refs()
        if not 0 <= index < len(refs):
            return False
        self._select_and_scroll(refs[index])
        return True

    # -- navigation from notifications ------------------------------------

    def activate_notification(self, entry: NotificationEntry) -> None:
        """Jump to a notified task's workspace via the host's navigation callback."""
        if self.notifications.discard(entry.project_id, entry.task_id):
            self.spawn(self.notifications.dismiss(entry.project_id, entry.task_id))
        if self.on_navigate:
            self.on_navigate(
                TASKS_PAGE,
                {
                    "project_id": entry.project_id,
                    "task_id": entry.task_id,
                    "view_mode": str(ViewMode.WORKSPACE),
                },
            )

    def navigate(self, data: dict[str, Any]) -> bool:
        """Apply navigation data. Deferred until the task shows up in a fetch."""
        task_id = str(data.get("task_id") or "")
        if not task_id:
            return False
        project_id = data.get("project_id")
        target = task_key(str(project_id), task_id) if project_id else task_id
        try:
            mode = ViewMode(data.get("view_mode") or ViewMode.INFO)
        except ValueError:
            mode = ViewMode.INFO
        self.pending_navigation = (target, mode)
        return self._consume_pending_navigation()

    def _consume_pending_navigation(self) -> bool:
        if self.pending_navigation is None:
            return False
        target, mode = self.pending_navigation
        ref = self.data_source.find(target) or self.data_source.find_task(target)
        if ref is None:
            return False
        self.pending_navigation = None
        if mode == ViewMode.WORKSPACE and ref.task.is_active:
            self.double_select(ref)
        else:
            self.select(ref)
        if self.on_scroll_to:
            self.on_scroll_to(ref)
        return True

    # -- ordering ---------------------------------------------------------

    def _order_index(self, display_index: int) -> int | None:
        refs = self.visible_refs()
        if not 0 <= display_index < len(refs):
            return None
        key = refs[display_index].key
        return self.ordering.keys.index(key) if key in self.ordering.keys else None

    def move_task(self, display_index: int, direction: Direction) -> bool:
        """Swap a visible task with its visible neighbour."""
        refs = self.visible_refs()
        other = display_index - 1 if direction == "up" else display_index + 1
        if not (0 <= display_index < len(refs) and 0 <= other < len(refs)):
            return False
        keys = self.ordering.keys
        a, b = refs[display_index].key, refs[other].key
        if a not in keys or b not in keys:
            return False
        i, j = keys.index(a), keys.index(b)
        keys[i], keys[j] = keys[j], keys[i]
        self._changed()
        return True

    def start_drag(self, display_index: int) -> None:
        index = self._order_index(display_index)
        if index is not None:
            self.ordering.start_drag(index)

    def drag_over(self, display_index: int) -> None:
        index = self._order_index(display_index)
        if index is not None:
            self.ordering.drag_over(index)

    def drag_leave(self) -> None:
        self.ordering.drag_leave()

    def drop(self) -> bool:
        moved = self.ordering.drop()
        self._changed()
        return moved

    # -- overlays ---------------------------------------------------------

    def is_captured(self) -> bool:
        """A modal layer owns the keyboard."""
        key = self.view.selected_key
        return bool(
            (key is not None and self.view.open_dialog_for(key) is not None)
            or self.view.context_menu is not None
            or self.pipeline.pending_archive is not None
            or self.pipeline.dirty_error is not None
            or self.cascade.awaiting
        )

    def open_context_menu(self, ref: TaskRef | None = None, position: tuple[int, int] = (0, 0)) -> bool:
        ref = ref or self.view.selected
        if ref is None:
            return False
        self.select(ref)
        self.view.open_context_menu(ref, position)
        self._changed()
        return True

    def close_context_menu(self) -> None:
        self.view.close_context_menu()
        self._changed()

    def menu_items(self) -> list[ContextMenuItem]:
        menu = self.view.context_menu
        if menu is None:
            return []
        return build_context_menu(menu.ref.task, self)

    def activate_menu_item(self, item: ContextMenuItem) -> None:
        self.close_context_menu()
        if item.disabled or item.divider or item.on_click is None:
            return
        result = item.on_click()
        if asyncio.iscoroutine(result):
            self.spawn(result)

    def set_info_tab(self, tab: InfoTab) -> None:
        self.view.set_info_tab(tab)
        self._changed()

    def toggle_help(self) -> None:
        self.view.toggle_help()
        self._changed()

    # -- TaskOperationHandlers --------------------------------------------

    @property
    def can_recover(self) -> bool:
        return self._can_recover

    def enter_workspace(self) -> None:
        if self.view.enter_workspace():
            self._changed()

    def commit(self) -> None:
        self.pipeline.open_commit(self.view.selected)

    async def sync(self) -> None:
        await self.pipeline.sync(self.view.selected)

    async def merge(self) -> None:
        await self.pipeline.merge(self.view.selected)

    async def rebase(self) -> None:
        await self.pipeline.rebase(self.view.selected)

    async def archive(self) -> None:
        await self.pipeline.archive(self.view.selected)

    def reset(self) -> None:
        self.pipeline.open_reset(self.view.selected)

    def clean(self) -> None:
        self.pipeline.open_clean(self.view.selected)

    async def recover(self) -> None:
        if self._can_recover:
            await self.pipeline.recover(self.view.selected)

    # -- dialog submissions -----------------------------------------------

    async def submit_commit(self, ref: TaskRef, message: str) -> bool:
        return await self.pipeline.submit_commit(ref, message)

    async def submit_merge(self, ref: TaskRef, method: MergeMethod) -> bool:
        return await self.pipeline.submit_merge(ref, method)

    async def submit_rebase(self, ref: TaskRef, new_target: str) -> bool:
        return await self.pipeline.submit_rebase(ref, new_target)

    async def confirm_reset(self, ref: TaskRef) -> bool:
        return await self.pipeline.confirm_reset(ref)

    async def confirm_clean(self, ref: TaskRef) -> bool:
        return await self.pipeline.confirm_clean(ref)

    def cancel_dialog(self, ref: TaskRef, verb: Verb) -> None:
        self.pipeline.cancel_dialog(ref, verb)

    def _cleanup_after_merge(self) -> None:
        self.view.clear()
        self._changed()

    # -- hotkeys ----------------------------------------------------------

    def _bind_hotkeys(self) -> None:
        view = self.view
        bind = self.router.bind

        def has_task_outside_workspace() -> bool:
            return view.has_task and view.not_in_workspace

        bind(["j", "down"], self.select_next, lambda: view.not_in_workspace, "Next task")
        bind(["k", "up"], self.select_previous, lambda: view.not_in_workspace, "Previous task")
        bind("enter", self.enter_workspace, has_task_outside_workspace, "Enter workspace")
        bind(
            "escape",
            self.close,
            lambda: view.has_task or not view.not_in_workspace,
            "Close task",
        )
        for key, tab in INFO_TAB_KEYS.items():
            bind(
                key,
                lambda tab=tab: self.set_info_tab(tab),
                has_task_outside_workspace,
                "Info tabs: stats, git, notes, comments",
            )
        bind("space", self.open_context_menu, has_task_outside_workspace, "Task actions")
        bind("c", self.commit, lambda: view.is_active, "Commit")
        bind("s", self.sync, lambda: view.can_operate, "Sync")
        bind("m", self.merge, lambda: view.can_operate, "Merge")
        bind("b", self.rebase, lambda: view.can_operate, "Change target branch")
        bind("r", self._panel(view.review_shortcut), lambda: view.is_active, "Toggle review")
        bind("e", self._panel(view.editor_shortcut), lambda: view.is_active, "Toggle editor")
        bind("t", self._panel(view.terminal_shortcut), lambda: view.is_active, "Toggle terminal")
        bind("/", self._focus_search, lambda: view.not_in_workspace, "Search")
        bind("?", self.toggle_help, description="Help")
        move = "Move task up / down"
        bind("ctrl+up", lambda: self._move_selected("up"), has_task_outside_workspace, move)
        bind("ctrl+down", lambda: self._move_selected("down"), has_task_outside_workspace, move)
        for index, key in enumerate(QUICK_SELECT_KEYS):
            bind(
                key,
                lambda index=index: self._quick_select_key(index),
                description="Jump to task by position",
                label="ctrl+1-9 / ctrl+0",
            )

    def _panel(self, shortcut: Callable[[], bool]) -> Callable[[], None]:
        def handler() -> None:
            if shortcut():
                self._changed()

        return handler

    def _focus_search(self) -> None:
        if self.on_focus_search:
            self.on_focus_search()

    def _quick_select_key(self, index: int) -> None:
        # Terminals report no bare modifier events; show the hints on first use
        self.router.set_modifier_held(True)
        self.quick_select(index)

    def _move_selected(self, direction: Direction) -> None:
        keys = [r.key for r in self.visible_refs()]
        key = self.view.selected_key
        if key in keys:
            self.move_task(keys.index(key), direction)
