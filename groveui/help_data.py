"""Help formatting for the ? overlay."""

from __future__ import annotations

from typing import Iterable

# Textual key names that read badly in the table
KEY_DISPLAY = {
    "space": "Space",
    "enter": "Enter",
    "escape": "Esc",
    "down": "Down",
    "up": "Up",
}


def display_key(keys: str) -> str:
    """Prettify a "j / down" style key string."""
    return " / ".join(KEY_DISPLAY.get(k, k) for k in keys.split(" / "))


def format_help(rows: Iterable[tuple[str, str]]) -> str:
    """Format (keys, action) rows as a markdown shortcut table."""
    lines = ["# Keyboard Shortcuts\n", "| Key | Action |", "|-----|--------|"]
    for keys, action in rows:
        lines.append(f"| `{display_key(keys)}` | {action} |")
    return "\n".join(lines)
