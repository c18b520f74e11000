"""ContextMenuBuilder: task + handlers -> menu items."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Literal

from groveui.enums import TaskStatus
from groveui.models import Task
from groveui.protocols import TaskOperationHandlers

Variant = Literal["default", "warning", "danger"]


@dataclass(frozen=True)
class ContextMenuItem:
    id: str
    label: str = ""
    on_click: Callable[[], Any] | None = None
    variant: Variant = "default"
    disabled: bool = False
    divider: bool = False


DIVIDER_PREFIX = "div"


def _divider(n: int) -> ContextMenuItem:
    return ContextMenuItem(id=f"{DIVIDER_PREFIX}{n}", divider=True)


def build_context_menu(task: Task, handlers: TaskOperationHandlers) -> list[ContextMenuItem]:
    """Menu for one task.

    Archived tasks only offer recover (when the host supports it) and
    clean. Broken tasks keep the full menu with the branch-moving verbs
    and archive disabled.
    """
    if task.is_archived:
        items = []
        if handlers.can_recover:
            items.append(ContextMenuItem("recover", "Recover", handlers.recover))
            items.append(_divider(1))
        items.append(ContextMenuItem("clean", "Clean", handlers.clean, variant="danger"))
        return items

    broken = task.status == TaskStatus.BROKEN
    return [
        ContextMenuItem("enter", "Enter Workspace", handlers.enter_workspace),
        _divider(1),
        ContextMenuItem("commit", "Commit", handlers.commit),
        ContextMenuItem("rebase", "Rebase", handlers.rebase, disabled=broken),
        ContextMenuItem("sync", "Sync", handlers.sync, disabled=broken),
        ContextMenuItem("merge", "Merge", handlers.merge, disabled=broken),
        _divider(2),
        ContextMenuItem("archive", "Archive", handlers.archive, variant="warning", disabled=broken),
        ContextMenuItem("reset", "Reset", handlers.reset, variant="danger"),
        ContextMenuItem("clean", "Clean", handlers.clean, variant="danger"),
    ]
