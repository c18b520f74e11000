"""Grove task workspace - Textual application."""

from __future__ import annotations

import logging
from typing import Any, Callable

from rich.console import Group
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Input, Static

from groveui.client import GroveClient
from groveui.config import get_toast_timeout
from groveui.controller import TaskWorkspaceController
from groveui.enums import InfoTab, MergeMethod, TaskFilter, TaskStatus, Verb, ViewMode
from groveui.errors import set_notify_callback as set_log_notify_callback
from groveui.layout import LayoutEditor, load_layouts, render
from groveui.models import TaskRef
from groveui.protocols import NotificationService, TaskService
from groveui.screens import ChoiceScreen, HelpScreen, LayoutScreen, TextPromptScreen

log = logging.getLogger(__name__)

STATUS_STYLE = {
    TaskStatus.LIVE: ("●", "green"),
    TaskStatus.IDLE: ("○", "dim"),
    TaskStatus.MERGED: ("✓", "magenta"),
    TaskStatus.CONFLICT: ("!", "yellow"),
    TaskStatus.BROKEN: ("✗", "red"),
    TaskStatus.ARCHIVED: ("▪", "dim"),
}

LEVEL_STYLE = {"critical": "bold red", "warn": "yellow", "notice": "cyan"}


class GroveApp(App):
    """Keyboard-driven task list and workspace for a Grove server."""

    TITLE = "Grove"
    AUTO_FOCUS = None

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", priority=True, show=False),
        Binding("f", "toggle_filter", "Active / archived (single project)", show=False),
        Binding("L", "edit_layouts", "Edit workspace layouts", show=False),
    ]

    DEFAULT_CSS = """
    #status {
        height: 1;
        padding: 0 1;
        background: $panel;
    }

    #search {
        height: 3;
    }

    #main {
        height: 1fr;
    }

    #task-list {
        width: 44;
        border-right: solid $panel;
    }

    #detail {
        width: 1fr;
        padding: 0 1;
    }

    #footer {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    def __init__(
        self,
        project_id: str | None = None,
        server_url: str | None = None,
        service: TaskService | None = None,
        notification_service: NotificationService | None = None,
    ) -> None:
        super().__init__()
        self._owns_client = service is None
        self.service: Any = service or GroveClient(server_url)
        self.controller = TaskWorkspaceController(
            self.service,
            notification_service,
            project_id=project_id,
            spawn=self._spawn,
        )
        # Kind of modal currently pushed by _sync_modals, if any
        self._modal: str | None = None

    def _spawn(self, coro: Any) -> Any:
        return self.run_worker(coro, exit_on_error=False)

    def compose(self) -> ComposeResult:
        yield Static("", id="status")
        yield Input(placeholder="Search tasks (/)", id="search")
        with Horizontal(id="main"):
            with VerticalScroll(id="task-list"):
                yield Static("Loading...", id="tasks")
            with VerticalScroll(id="detail"):
                yield Static("", id="info")
        yield Static(
            "? help  j/k move  space actions  c/s/m/b verbs  L layouts  ctrl+q quit",
            id="footer",
        )

    async def on_mount(self) -> None:
        # Keys go to the router unless the search box has focus
        for scroll in self.query(VerticalScroll):
            scroll.can_focus = False

        set_log_notify_callback(
            lambda msg, severity: self.notify(msg, severity=severity, timeout=5)
        )

        ctl = self.controller
        ctl.on_toast = lambda msg: self.notify(msg, timeout=get_toast_timeout())
        ctl.on_changed = self._on_state_changed
        ctl.on_navigate = self._on_navigate
        ctl.on_scroll_to = self._scroll_to
        ctl.on_focus_search = lambda: self.query_one("#search", Input).focus()
        ctl.router.on_modifier_changed = lambda _held: self._render_tasks()

        self.run_worker(ctl.start(), exit_on_error=False)

    async def on_unmount(self) -> None:
        set_log_notify_callback(None)
        self.controller.on_changed = None
        await self.controller.stop()
        if self._owns_client:
            await self.service.aclose()

    # -- keys -------------------------------------------------------------

    def on_key(self, event: events.Key) -> None:
        if len(self.screen_stack) > 1:
            return
        search = self.query_one("#search", Input)
        if self.focused is search:
            if event.key in ("escape", "enter", "down"):
                self.set_focus(None)
                event.prevent_default()
                event.stop()
            return
        if not event.key.startswith("ctrl+"):
            self.controller.router.set_modifier_held(False)
        if self.controller.router.dispatch(event.key):
            event.prevent_default()
            event.stop()

    def on_app_blur(self, event: events.AppBlur) -> None:
        self.controller.router.on_blur()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search":
            self.controller.set_search(event.value)

    def action_toggle_filter(self) -> None:
        ctl = self.controller
        if ctl.is_cross_project or len(self.screen_stack) > 1:
            return
        current = ctl.data_source.filter
        ctl.set_filter(TaskFilter.ARCHIVED if current == TaskFilter.ACTIVE else TaskFilter.ACTIVE)

    def action_edit_layouts(self) -> None:
        if self._modal is not None or len(self.screen_stack) > 1:
            return
        screen = LayoutScreen(LayoutEditor(load_layouts()))
        self._push("layouts", screen, lambda _saved: self._render_detail())

    # -- controller callbacks ---------------------------------------------

    def _on_state_changed(self) -> None:
        self._render_tasks()
        self._render_detail()
        self._render_status()
        self._sync_modals()

    def _on_navigate(self, page: str, data: dict[str, Any]) -> None:
        log.info("Navigate to %s %s", page, data)
        self.controller.navigate(data)

    def _scroll_to(self, ref: TaskRef) -> None:
        keys = [r.key for r in self.controller.visible_refs()]
        if ref.key in keys:
            scroll = self.query_one("#task-list", VerticalScroll)
            scroll.scroll_to(y=max(0, keys.index(ref.key) - 2), animate=False)

    # -- rendering --------------------------------------------------------

    def _render_status(self) -> None:
        ctl = self.controller
        if ctl.is_cross_project:
            scope = "All projects"
        else:
            project = ctl.data_source.project
            scope = project.name if project else ctl.data_source.project_id or ""
            scope += f" · {ctl.data_source.filter}"
        mode = ctl.view.mode.value
        self.query_one("#status", Static).update(
            Text(f"{scope}  [{mode}]  {len(ctl.data_source.refs)} tasks")
        )

    def _render_tasks(self) -> None:
        ctl = self.controller
        refs = ctl.visible_refs()
        text = Text()
        if not refs:
            text.append("No tasks" if ctl.data_source.loaded else "Loading...", style="dim")
        show_numbers = ctl.router.modifier_held
        for i, ref in enumerate(refs):
            icon, color = STATUS_STYLE.get(ref.task.status, ("?", "dim"))
            selected = ref.key == ctl.view.selected_key
            line_style = "reverse" if selected else ""
            if show_numbers and i < 10:
                text.append(f"{(i + 1) % 10} ", style="bold")
            text.append(f"{icon} ", style=color)
            text.append(ref.task.name or ref.task.id, style=line_style)
            if ctl.is_cross_project and ref.project_name:
                text.append(f"  {ref.project_name}", style="dim")
            entry = ctl.notifications.lookup_key(ref.project_id, ref.task_id)
            if entry:
                text.append(f"  ◆ {entry.level}", style=LEVEL_STYLE.get(str(entry.level), ""))
            text.append("\n")
        self.query_one("#tasks", Static).update(text)

    def _render_detail(self) -> None:
        ctl = self.controller
        view = ctl.view
        ref = view.selected
        info = self.query_one("#info", Static)
        if ref is None or view.mode == ViewMode.LIST:
            info.update(Text("Select a task (j/k) to see details", style="dim"))
            return
        task = ref.task
        if view.mode == ViewMode.WORKSPACE:
            layouts = load_layouts()
            panels = [p for p, on in (("review", view.review_open), ("editor", view.editor_open)) if on]
            header = Text(f"Workspace: {task.name}\n", style="bold")
            header.append(f"{task.path or task.branch}\n", style="dim")
            if panels:
                header.append(f"Open: {', '.join(panels)}\n")
            info.update(Group(header, render(layouts[0])) if layouts else header)
            return

        text = Text()
        text.append(f"{task.name}\n", style="bold")
        text.append(f"{task.branch} → {task.target}  ({task.status})\n\n", style="dim")
        tabs = "  ".join(
            f"[{n}] {tab.value}" if tab != view.info_tab else f"[{n}] {tab.value.upper()}"
            for n, tab in enumerate(InfoTab, start=1)
        )
        text.append(tabs + "\n\n")
        if view.info_tab == InfoTab.STATS:
            text.append(f"+{task.additions} ", style="green")
            text.append(f"-{task.deletions} ", style="red")
            text.append(f"in {task.files_changed} files\n")
            text.append(f"Created {task.created_at:%Y-%m-%d %H:%M} by {task.created_by}\n")
            text.append(f"Updated {task.updated_at:%Y-%m-%d %H:%M}\n")
        elif view.info_tab == InfoTab.GIT:
            if not task.commits:
                text.append("No commits\n", style="dim")
            for commit in task.commits:
                text.append(f"{commit.hash[:7]} ", style="yellow")
                text.append(f"{commit.message}  ")
                text.append(f"{commit.time_ago}\n", style="dim")
        else:
            text.append(f"No {view.info_tab.value}\n", style="dim")
        info.update(text)

    # -- modals -----------------------------------------------------------

    def _push(self, kind: str, screen: Any, callback: Callable[[Any], None]) -> None:
        self._modal = kind

        def done(result: Any) -> None:
            self._modal = None
            callback(result)
            self._sync_modals()

        self.push_screen(screen, done)

    def _dialog_error(self, ref: TaskRef, verb: Verb) -> Callable[[], str | None]:
        def error() -> str | None:
            state = self.controller.view.peek_dialog(ref.key, verb)
            return state.error if state else None

        return error

    def _dialog_action(self, ref: TaskRef, verb: Verb, submit: Callable[[Any], Any]):
        async def action(value: Any) -> bool:
            await submit(value)
            state = self.controller.view.peek_dialog(ref.key, verb)
            return state is None or not state.is_open

        return action

    def _cancel_if_open(self, ref: TaskRef, verb: Verb) -> Callable[[Any], None]:
        def callback(result: Any) -> None:
            state = self.controller.view.peek_dialog(ref.key, verb)
            if result is None and state is not None and state.is_open:
                self.controller.cancel_dialog(ref, verb)

        return callback

    def _sync_modals(self) -> None:
        """Push the screen for whichever modal state the controller is in."""
        if self._modal is not None:
            return
        ctl = self.controller
        view = ctl.view
        pipeline = ctl.pipeline

        if pipeline.dirty_error is not None:
            self._push(
                "dirty",
                ChoiceScreen(
                    "Uncommitted changes",
                    [("ok", "OK", False)],
                    lines=[pipeline.dirty_error.text],
                ),
                lambda _r: pipeline.dismiss_dirty_error(),
            )
            return

        if pipeline.pending_archive is not None:
            pending = pipeline.pending_archive
            self._push(
                "archive-confirm",
                ChoiceScreen(
                    "Archive task?",
                    [("confirm", "Archive", False), ("cancel", "Cancel", False)],
                    lines=pending.lines,
                    action=self._archive_confirm_action,
                ),
                lambda r: pipeline.cancel_archive() if r is None else None,
            )
            return

        if ctl.cascade.state is not None:
            state = ctl.cascade.state
            self._push(
                "post-merge",
                ChoiceScreen(
                    f"Merged {state.task_name}. Archive it now?",
                    [("archive", "Archive now", False), ("keep", "Keep for now", False)],
                    action=self._post_merge_action,
                ),
                lambda r: ctl.cascade.keep() if r is None else None,
            )
            return

        if view.context_menu is not None:
            items = [item for item in ctl.menu_items() if not item.divider]
            by_id = {item.id: item for item in items}
            self._push(
                "menu",
                ChoiceScreen(
                    view.context_menu.ref.task.name,
                    [(item.id, item.label, item.disabled) for item in items],
                ),
                lambda r: ctl.activate_menu_item(by_id[r]) if r in by_id else ctl.close_context_menu(),
            )
            return

        ref = view.selected
        verb = view.open_dialog_for(ref.key) if ref else None
        if ref is not None and verb is not None:
            self._push_dialog(ref, verb)
            return

        if view.show_help:
            self._push("help", HelpScreen(self.help_rows()), lambda _r: ctl.toggle_help())

    def help_rows(self) -> list[tuple[str, str]]:
        """Router bindings followed by the app's own."""
        rows = self.controller.router.help_rows()
        rows += [(b.key, b.description) for b in self.BINDINGS if b.description]
        return rows

    def _push_dialog(self, ref: TaskRef, verb: Verb) -> None:
        ctl = self.controller
        name = ref.task.name
        error = self._dialog_error(ref, verb)
        cancel = self._cancel_if_open(ref, verb)

        if verb == Verb.COMMIT:
            screen: Any = TextPromptScreen(
                f"Commit changes in {name}",
                placeholder="Commit message",
                action=self._dialog_action(ref, verb, lambda msg: ctl.submit_commit(ref, msg)),
                error=error,
            )
        elif verb == Verb.MERGE:
            screen = ChoiceScreen(
                f"Merge {name} into {ref.task.target}",
                [
                    (MergeMethod.SQUASH, "Squash", False),
                    (MergeMethod.MERGE_COMMIT, "Merge commit", False),
                ],
                action=self._dialog_action(ref, verb, lambda m: ctl.submit_merge(ref, m)),
                error=error,
            )
        elif verb == Verb.REBASE:
            branches = ctl.pipeline.branches.get(ref.key, [])
            screen = ChoiceScreen(
                f"Change target branch of {name}",
                [(b, b, b == ref.task.target) for b in branches],
                action=self._dialog_action(ref, verb, lambda b: ctl.submit_rebase(ref, b)),
                error=error,
            )
        elif verb == Verb.RESET:
            screen = ChoiceScreen(
                f"Reset {name}?",
                [("confirm", "Reset", False), ("cancel", "Cancel", False)],
                lines=["Discards all changes and recreates the worktree."],
                action=self._confirm_action(ref, verb, lambda: ctl.confirm_reset(ref)),
            )
        elif verb == Verb.CLEAN:
            screen = ChoiceScreen(
                f"Delete {name}?",
                [("confirm", "Delete", False), ("cancel", "Cancel", False)],
                lines=["Removes the worktree and the branch. This cannot be undone."],
                action=self._confirm_action(ref, verb, lambda: ctl.confirm_clean(ref)),
            )
        else:
            log.warning("No dialog for %s", verb)
            return
        self._push(str(verb), screen, cancel)

    async def _archive_confirm_action(self, value: Any) -> bool:
        if value == "confirm":
            await self.controller.pipeline.confirm_archive()
        else:
            self.controller.pipeline.cancel_archive()
        return True

    async def _post_merge_action(self, value: Any) -> bool:
        if value == "archive":
            await self.controller.cascade.archive()
        else:
            self.controller.cascade.keep()
        return True

    def _confirm_action(self, ref: TaskRef, verb: Verb, confirm: Callable[[], Any]):
        async def action(value: Any) -> bool:
            if value == "confirm":
                await confirm()
            else:
                self.controller.cancel_dialog(ref, verb)
            return True

        return action
