"""Enums for magic strings used throughout the codebase."""

from enum import Enum


class StrEnum(str, Enum):
    """String enum base class (compatible with Python < 3.11)."""

    def __str__(self) -> str:
        return self.value


class TaskStatus(StrEnum):
    """Task lifecycle status as reported by the service."""

    LIVE = "live"
    IDLE = "idle"
    MERGED = "merged"
    CONFLICT = "conflict"
    BROKEN = "broken"
    ARCHIVED = "archived"


class CreatedBy(StrEnum):
    USER = "user"
    AGENT = "agent"


class TaskFilter(StrEnum):
    """Task list filter accepted by list_tasks."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class ViewMode(StrEnum):
    """How much of the selected task is shown."""

    LIST = "list"
    INFO = "info"
    WORKSPACE = "workspace"


class InfoTab(StrEnum):
    """Info panel tabs (hotkeys 1-4)."""

    STATS = "stats"
    GIT = "git"
    NOTES = "notes"
    COMMENTS = "comments"


class Verb(StrEnum):
    """Git lifecycle operations on a task."""

    COMMIT = "commit"
    SYNC = "sync"
    MERGE = "merge"
    REBASE = "rebase"
    ARCHIVE = "archive"
    RESET = "reset"
    CLEAN = "clean"
    RECOVER = "recover"


class MergeMethod(StrEnum):
    SQUASH = "squash"
    MERGE_COMMIT = "merge-commit"


class NotificationLevel(StrEnum):
    """Hook notification levels, most urgent first."""

    CRITICAL = "critical"
    WARN = "warn"
    NOTICE = "notice"

    @property
    def rank(self) -> int:
        return {"critical": 3, "warn": 2, "notice": 1}[self.value]


class PaneType(StrEnum):
    """Functional panel hosted by a layout pane."""

    AGENT = "agent"
    GROVE = "grove"
    FILE_PICKER = "file-picker"
    SHELL = "shell"
    CUSTOM = "custom"


class SplitDirection(StrEnum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
