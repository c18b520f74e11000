"""HotkeyRouter: single dispatch point for task-page keys.

Bindings are (key, handler, enabled) triples. The router is inert while
a key-capturing layer (dialog, context menu, archive prompt) is open;
that layer gets the keys instead.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

log = logging.getLogger(__name__)

# Textual key names -> binding names
KEY_ALIASES = {
    "slash": "/",
    "question_mark": "?",
    "return": "enter",
    "esc": "escape",
}

QUICK_SELECT_KEYS = [f"ctrl+{n}" for n in "1234567890"]


def _always() -> bool:
    return True


@dataclass
class Binding:
    key: str
    handler: Callable[[], Any]
    enabled: Callable[[], bool] = _always
    description: str = ""
    # Key text for the help table when the raw key names read badly
    label: str = ""


def normalize_key(key: str) -> str:
    return KEY_ALIASES.get(key, key)


def quick_select_index(key: str) -> int | None:
    """ctrl+1..ctrl+9 -> 0..8, ctrl+0 -> 9."""
    try:
        return QUICK_SELECT_KEYS.index(normalize_key(key))
    except ValueError:
        return None


class HotkeyRouter:
    """Routes key names to bindings.

    Args:
        is_captured: Returns True while a modal layer owns the keyboard.
        spawn: Schedules a coroutine returned by an async handler
            (default asyncio.ensure_future).
    """

    def __init__(
        self,
        is_captured: Callable[[], bool] = lambda: False,
        spawn: Callable[[Awaitable[Any]], Any] | None = None,
    ) -> None:
        self.bindings: dict[str, list[Binding]] = {}
        self.is_captured = is_captured
        self.spawn = spawn or asyncio.ensure_future
        self.modifier_held = False
        self.on_modifier_changed: Callable[[bool], None] | None = None

    def bind(
        self,
        keys: str | list[str],
        handler: Callable[[], Any],
        enabled: Callable[[], bool] = _always,
        description: str = "",
        label: str = "",
    ) -> None:
        for key in [keys] if isinstance(keys, str) else keys:
            self.bindings.setdefault(key, []).append(
                Binding(key, handler, enabled, description, label)
            )

    def dispatch(self, key: str) -> bool:
        """Run the first enabled binding for key. True if one ran."""
        if self.is_captured():
            return False
        key = normalize_key(key)
        for binding in self.bindings.get(key, []):
            if not binding.enabled():
                continue
            log.debug("Hotkey %s", key)
            result = binding.handler()
            if inspect.isawaitable(result):
                self.spawn(result)
            return True
        return False

    # -- quick-select affordance ------------------------------------------

    def set_modifier_held(self, held: bool) -> None:
        if held == self.modifier_held:
            return
        self.modifier_held = held
        if self.on_modifier_changed:
            self.on_modifier_changed(held)

    def on_blur(self) -> None:
        """Window lost focus: the modifier release will never arrive."""
        self.set_modifier_held(False)

    def help_rows(self) -> list[tuple[str, str]]:
        """(keys, description) per described action, in binding order.

        Keys bound to the same description share a row.
        """
        keys: dict[str, list[str]] = {}
        labels: dict[str, str] = {}
        for bindings in self.bindings.values():
            for b in bindings:
                if not b.description:
                    continue
                keys.setdefault(b.description, []).append(b.key)
                if b.label:
                    labels.setdefault(b.description, b.label)
        return [
            (labels.get(description) or " / ".join(names), description)
            for description, names in keys.items()
        ]
