"""Modal screens for task dialogs, confirmations and menus."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Sequence

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Input, Markdown, OptionList, Static
from textual.widgets.option_list import Option

from groveui.enums import SplitDirection
from groveui.help_data import format_help
from groveui.layout import PANE_LABELS, LayoutEditor, render

# Runs the dialog's action. True means done (close), False means stay open.
Action = Callable[[Any], Awaitable[bool]]


class DialogScreen(ModalScreen[Any]):
    """Shared layout: title, detail lines, body, inline error."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    DEFAULT_CSS = """
    DialogScreen {
        align: center middle;
    }

    DialogScreen #dialog {
        width: 64;
        height: auto;
        max-height: 80%;
        padding: 1 2;
        border: round $primary;
        background: $surface;
    }

    DialogScreen .dialog-title {
        text-style: bold;
        margin-bottom: 1;
    }

    DialogScreen .dialog-line {
        color: $text-muted;
    }

    DialogScreen #dialog-error {
        color: $error;
        margin-top: 1;
    }

    DialogScreen #dialog-error.hidden {
        display: none;
    }
    """

    def __init__(
        self,
        title: str,
        *,
        lines: Sequence[str] = (),
        action: Action | None = None,
        error: Callable[[], str | None] | None = None,
    ) -> None:
        super().__init__()
        self._title = title
        self._lines = list(lines)
        self._action = action
        self._error = error

    def compose(self) -> ComposeResult:
        with Vertical(id="dialog"):
            yield Static(self._title, classes="dialog-title", markup=False)
            for line in self._lines:
                yield Static(line, classes="dialog-line", markup=False)
            yield from self.compose_body()
            yield Static("", id="dialog-error", classes="hidden", markup=False)

    def compose_body(self) -> ComposeResult:
        yield from ()

    def _show_error(self, text: str | None) -> None:
        label = self.query_one("#dialog-error", Static)
        label.update(text or "")
        label.set_class(not text, "hidden")

    def _set_busy(self, busy: bool) -> None:
        pass

    @work(exclusive=True, group="dialog")
    async def _run(self, value: Any) -> None:
        if self._action is None:
            self.dismiss(value)
            return
        self._set_busy(True)
        self._show_error(None)
        done = await self._action(value)
        if done:
            self.dismiss(value)
            return
        self._set_busy(False)
        self._show_error(self._error() if self._error else None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class TextPromptScreen(DialogScreen):
    """Single-line text entry (commit message, layout name, pane command)."""

    def __init__(
        self, title: str, placeholder: str = "", value: str = "", **kwargs: Any
    ) -> None:
        super().__init__(title, **kwargs)
        self._placeholder = placeholder
        self._value = value

    def compose_body(self) -> ComposeResult:
        yield Input(self._value, placeholder=self._placeholder, id="dialog-input")

    def on_mount(self) -> None:
        self.query_one("#dialog-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        text = event.value.strip()
        if not text:
            self._show_error("Cannot be empty")
            return
        self._run(text)

    def _set_busy(self, busy: bool) -> None:
        self.query_one("#dialog-input", Input).disabled = busy


class ChoiceScreen(DialogScreen):
    """Pick one option. Options are (value, label, disabled) triples."""

    def __init__(
        self,
        title: str,
        options: Sequence[tuple[Any, str, bool]],
        **kwargs: Any,
    ) -> None:
        super().__init__(title, **kwargs)
        self._options = list(options)

    def compose_body(self) -> ComposeResult:
        yield OptionList(
            *[
                Option(label, id=f"opt-{i}", disabled=disabled)
                for i, (_value, label, disabled) in enumerate(self._options)
            ],
            id="dialog-options",
        )

    def on_mount(self) -> None:
        self.query_one("#dialog-options", OptionList).focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        value, _label, disabled = self._options[event.option_index]
        if not disabled:
            self._run(value)

    def _set_busy(self, busy: bool) -> None:
        self.query_one("#dialog-options", OptionList).disabled = busy


class HelpScreen(ModalScreen[None]):
    """Keyboard shortcut reference built from the live bindings."""

    BINDINGS = [
        Binding("escape", "dismiss", "Close"),
        Binding("question_mark", "dismiss", "Close"),
    ]

    DEFAULT_CSS = """
    HelpScreen {
        align: center middle;
    }

    HelpScreen #help {
        width: 70;
        height: auto;
        max-height: 90%;
        padding: 1 2;
        border: round $primary;
        background: $surface;
    }
    """

    def __init__(self, rows: Sequence[tuple[str, str]]) -> None:
        super().__init__()
        self.shortcuts = list(rows)

    def compose(self) -> ComposeResult:
        with Vertical(id="help"):
            yield Markdown(format_help(self.shortcuts))


class LayoutScreen(ModalScreen[bool]):
    """Edit the saved workspace layouts. Dismisses with True if anything was saved."""

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("j,down", "pane(1)", "Next pane", show=False),
        Binding("k,up", "pane(-1)", "Previous pane", show=False),
        Binding("right", "layout(1)", "Next layout", show=False),
        Binding("left", "layout(-1)", "Previous layout", show=False),
        Binding("h", "split('horizontal')", "Split side by side", show=False),
        Binding("v", "split('vertical')", "Split top / bottom", show=False),
        Binding("d", "delete_pane", "Delete pane", show=False),
        Binding("t", "cycle_type", "Pane type", show=False),
        Binding("x", "command", "Custom command", show=False),
        Binding("n", "new_layout", "New layout", show=False),
        Binding("D", "remove_layout", "Remove layout", show=False),
        Binding("r", "rename", "Rename layout", show=False),
        Binding("ctrl+s", "save", "Save", show=False),
    ]

    DEFAULT_CSS = """
    LayoutScreen {
        align: center middle;
    }

    LayoutScreen #layouts {
        width: 72;
        height: auto;
        max-height: 90%;
        padding: 1 2;
        border: round $primary;
        background: $surface;
    }

    LayoutScreen #layout-title {
        text-style: bold;
        margin-bottom: 1;
    }

    LayoutScreen #layout-hint {
        color: $text-muted;
        margin-top: 1;
    }
    """

    HINT = (
        "j/k pane  ←/→ layout  h/v split  d delete  t type  x command\n"
        "n new  r rename  D remove  ctrl+s save  esc close"
    )

    def __init__(self, editor: LayoutEditor) -> None:
        super().__init__()
        self.editor = editor
        self.saved = False

    def compose(self) -> ComposeResult:
        with Vertical(id="layouts"):
            yield Static("", id="layout-title", markup=False)
            yield Static("", id="layout-tree")
            yield Static(self.HINT, id="layout-hint", markup=False)

    def on_mount(self) -> None:
        self.refresh_view()

    def refresh_view(self) -> None:
        editor = self.editor
        title = f"Layout {editor.index + 1}/{len(editor.layouts)}: {editor.current.name}"
        if editor.dirty:
            title += " (unsaved)"
        self.query_one("#layout-title", Static).update(title)
        self.query_one("#layout-tree", Static).update(
            render(editor.current, selected=editor.pane_id)
        )

    def action_pane(self, step: int) -> None:
        self.editor.select_pane(step)
        self.refresh_view()

    def action_layout(self, step: int) -> None:
        self.editor.select_layout(step)
        self.refresh_view()

    def action_split(self, direction: str) -> None:
        split_direction = SplitDirection(direction)
        if not self.editor.can_split(split_direction):
            self.notify("Split limit reached for this pane", severity="warning")
            return
        self.editor.split(split_direction)
        self.refresh_view()

    def action_delete_pane(self) -> None:
        if not self.editor.can_delete():
            self.notify("A layout needs at least one pane", severity="warning")
            return
        self.editor.delete()
        self.refresh_view()

    def action_cycle_type(self) -> None:
        self.editor.cycle_type()
        self.refresh_view()

    def action_command(self) -> None:
        pane = self.editor.selected_pane

        def done(command: str | None) -> None:
            if command:
                self.editor.set_command(command)
                self.refresh_view()

        self.app.push_screen(
            TextPromptScreen(
                f"Command for {PANE_LABELS[pane.pane_type]} pane",
                placeholder="e.g. npm run dev",
                value=pane.custom_command or "",
            ),
            done,
        )

    def action_new_layout(self) -> None:
        self.editor.add_layout()
        self.refresh_view()

    def action_remove_layout(self) -> None:
        if not self.editor.remove_layout():
            self.notify("Cannot remove the last layout", severity="warning")
            return
        self.refresh_view()

    def action_rename(self) -> None:
        def done(name: str | None) -> None:
            if name and self.editor.rename(name):
                self.refresh_view()

        self.app.push_screen(
            TextPromptScreen("Rename layout", value=self.editor.current.name), done
        )

    def action_save(self) -> None:
        self.editor.save()
        self.saved = True
        self.notify("Layouts saved")
        self.refresh_view()

    def action_close(self) -> None:
        self.dismiss(self.saved)
