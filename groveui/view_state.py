"""ViewStateMachine: selection, view mode and dialog state.

Modes: LIST (nothing selected), INFO (task details), WORKSPACE (task
session with optional review/editor sub-panels). Dialog state is kept
per (task key, verb) so a slow request for one task never leaks into
another task's dialog.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from groveui.enums import InfoTab, TaskStatus, Verb, ViewMode
from groveui.models import TaskRef


@dataclass
class DialogState:
    is_open: bool = False
    is_loading: bool = False
    error: str | None = None


@dataclass
class ContextMenuState:
    ref: TaskRef
    position: tuple[int, int] = (0, 0)


@dataclass
class ViewStateMachine:
    selected: TaskRef | None = None
    mode: ViewMode = ViewMode.LIST
    search: str = ""
    context_menu: ContextMenuState | None = None
    info_tab: InfoTab = InfoTab.STATS
    show_help: bool = False
    review_open: bool = False
    editor_open: bool = False
    dialogs: dict[tuple[str, Verb], DialogState] = field(default_factory=dict)

    # -- guards -----------------------------------------------------------

    @property
    def has_task(self) -> bool:
        return self.selected is not None

    @property
    def is_active(self) -> bool:
        return self.selected is not None and self.selected.task.is_active

    @property
    def can_operate(self) -> bool:
        return self.selected is not None and self.selected.task.can_operate

    @property
    def not_in_workspace(self) -> bool:
        return self.mode != ViewMode.WORKSPACE

    @property
    def selected_key(self) -> str | None:
        return self.selected.key if self.selected else None

    # -- transitions ------------------------------------------------------

    def select(self, ref: TaskRef) -> bool:
        """Select a task. LIST moves to INFO; other modes keep their mode.

        Returns False when nothing changed.
        """
        if self.mode == ViewMode.LIST:
            self.selected = ref
            self.mode = ViewMode.INFO
            return True
        if self.selected is not None and self.selected.key == ref.key:
            if self.selected == ref:
                return False
        self.selected = ref
        return True

    def double_select(self, ref: TaskRef) -> bool:
        """Open a task's workspace. Archived tasks cannot enter one."""
        if ref.task.status == TaskStatus.ARCHIVED:
            return False
        self.selected = ref
        self.mode = ViewMode.WORKSPACE
        self._close_panels()
        return True

    def enter_workspace(self) -> bool:
        if not self.is_active or self.mode != ViewMode.INFO:
            return False
        self.mode = ViewMode.WORKSPACE
        self._close_panels()
        return True

    def close(self) -> None:
        """Step back one level: WORKSPACE -> INFO -> LIST."""
        if self.mode == ViewMode.WORKSPACE:
            self.mode = ViewMode.INFO
            self._close_panels()
        elif self.mode == ViewMode.INFO:
            self.mode = ViewMode.LIST
            self.selected = None

    def clear(self) -> None:
        """Drop the selection and go back to the list."""
        self.selected = None
        self.mode = ViewMode.LIST
        self.context_menu = None
        self._close_panels()

    def replace_selected(self, ref: TaskRef) -> None:
        """Swap in a newer copy of the selected task (same key)."""
        if self.selected is not None and self.selected.key == ref.key:
            self.selected = ref

    def _close_panels(self) -> None:
        self.review_open = False
        self.editor_open = False

    # -- workspace sub-panels ---------------------------------------------

    def review_shortcut(self) -> bool:
        return self._panel_shortcut("review")

    def editor_shortcut(self) -> bool:
        return self._panel_shortcut("editor")

    def _panel_shortcut(self, panel: str) -> bool:
        # Review and editor share the same slot
        if not self.is_active:
            return False
        if self.mode == ViewMode.INFO:
            self.mode = ViewMode.WORKSPACE
            self.review_open = panel == "review"
            self.editor_open = panel == "editor"
            return True
        if self.mode == ViewMode.WORKSPACE:
            if panel == "review":
                self.review_open = not self.review_open
                self.editor_open = False
            else:
                self.editor_open = not self.editor_open
                self.review_open = False
            return True
        return False

    def terminal_shortcut(self) -> bool:
        """Toggle WORKSPACE <-> INFO. Open sub-panels close first."""
        if not self.is_active:
            return False
        if self.mode == ViewMode.INFO:
            self.mode = ViewMode.WORKSPACE
            return True
        if self.mode == ViewMode.WORKSPACE:
            if self.review_open or self.editor_open:
                self._close_panels()
            else:
                self.mode = ViewMode.INFO
            return True
        return False

    # -- overlays ---------------------------------------------------------

    def open_context_menu(self, ref: TaskRef, position: tuple[int, int] = (0, 0)) -> None:
        self.context_menu = ContextMenuState(ref=ref, position=position)

    def close_context_menu(self) -> None:
        self.context_menu = None

    def set_info_tab(self, tab: InfoTab) -> None:
        self.info_tab = tab

    def toggle_help(self) -> None:
        self.show_help = not self.show_help

    def set_search(self, text: str) -> None:
        self.search = text

    # -- dialogs ----------------------------------------------------------

    def dialog(self, key: str, verb: Verb) -> DialogState:
        """Dialog state for (task, verb), created on first access."""
        return self.dialogs.setdefault((key, verb), DialogState())

    def peek_dialog(self, key: str, verb: Verb) -> DialogState | None:
        return self.dialogs.get((key, verb))

    def open_dialog(self, key: str, verb: Verb) -> DialogState:
        state = self.dialog(key, verb)
        state.is_open = True
        state.error = None
        return state

    def close_dialog(self, key: str, verb: Verb) -> None:
        state = self.dialogs.get((key, verb))
        if state is None:
            return
        state.is_open = False
        state.error = None
        if not state.is_loading:
            del self.dialogs[(key, verb)]

    def begin(self, key: str, verb: Verb) -> DialogState | None:
        """Mark (task, verb) as loading. None if it already is."""
        state = self.dialog(key, verb)
        if state.is_loading:
            return None
        state.is_loading = True
        state.error = None
        return state

    def settle(self, key: str, verb: Verb) -> None:
        """Clear the loading flag, dropping the record if the dialog is closed."""
        state = self.dialogs.get((key, verb))
        if state is None:
            return
        state.is_loading = False
        if not state.is_open:
            del self.dialogs[(key, verb)]

    def open_dialog_for(self, key: str) -> Verb | None:
        """The verb whose dialog is open for a task, if any."""
        for (k, verb), state in self.dialogs.items():
            if k == key and state.is_open:
                return verb
        return None

    def is_loading(self, key: str, verb: Verb) -> bool:
        state = self.dialogs.get((key, verb))
        return state is not None and state.is_loading
