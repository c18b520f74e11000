"""Dataclasses for task service data."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from groveui.enums import CreatedBy, NotificationLevel, TaskStatus, Verb

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Verbs each status forbids. Everything else is allowed.
_ARCHIVED_FORBIDS = frozenset(
    {Verb.COMMIT, Verb.SYNC, Verb.MERGE, Verb.REBASE, Verb.ARCHIVE, Verb.RESET}
)
_BROKEN_FORBIDS = frozenset({Verb.SYNC, Verb.MERGE, Verb.REBASE})


def _str_id(value: object) -> str:
    """Coerce an ID (int, str, or None) to str. None becomes ""."""
    return "" if value is None else str(value)


def _parse_time(value: object) -> datetime:
    """Parse an ISO 8601 timestamp. Bad or missing values become the epoch."""
    if not isinstance(value, str) or not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_int(value: object) -> int:
    """Parse a count. Bad or missing values become 0."""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def dict_items(value: object) -> list[dict]:
    """The dict entries of a JSON list. Anything else is dropped."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _parse_status(value: object) -> TaskStatus:
    try:
        return TaskStatus(str(value or "").lower())
    except ValueError:
        # Unknown state: keep git-state verbs disabled
        return TaskStatus.BROKEN


@dataclass(frozen=True)
class Commit:
    hash: str
    message: str = ""
    time_ago: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Commit:
        return cls(
            hash=data.get("hash") or "",
            message=data.get("message") or "",
            time_ago=data.get("time_ago") or "",
        )


@dataclass(frozen=True)
class Task:
    """A unit of work bound to its own worktree and branch."""

    id: str
    name: str = ""
    branch: str = ""
    target: str = ""
    status: TaskStatus = TaskStatus.IDLE
    additions: int = 0
    deletions: int = 0
    files_changed: int = 0
    commits: tuple[Commit, ...] = ()
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH
    created_by: CreatedBy = CreatedBy.USER
    path: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Task:
        try:
            created_by = CreatedBy(data.get("created_by") or "user")
        except ValueError:
            created_by = CreatedBy.USER
        return cls(
            id=_str_id(data.get("id")),
            name=data.get("name") or "",
            branch=data.get("branch") or "",
            target=data.get("target") or "",
            status=_parse_status(data.get("status")),
            additions=_parse_int(data.get("additions")),
            deletions=_parse_int(data.get("deletions")),
            files_changed=_parse_int(data.get("files_changed")),
            commits=tuple(Commit.from_dict(c) for c in dict_items(data.get("commits"))),
            created_at=_parse_time(data.get("created_at")),
            updated_at=_parse_time(data.get("updated_at")),
            created_by=created_by,
            path=data.get("path") or "",
        )

    @property
    def is_archived(self) -> bool:
        return self.status == TaskStatus.ARCHIVED

    @property
    def is_active(self) -> bool:
        return self.status != TaskStatus.ARCHIVED

    @property
    def can_operate(self) -> bool:
        """Active and not broken: git-state verbs are allowed."""
        return self.is_active and self.status != TaskStatus.BROKEN

    def with_target(self, target: str) -> Task:
        return replace(self, target=target)


def verb_available(task: Task, verb: Verb) -> bool:
    """Whether a verb may be triggered for a task in its current status."""
    if verb == Verb.RECOVER:
        return task.is_archived
    if task.is_archived:
        return verb not in _ARCHIVED_FORBIDS
    if task.status == TaskStatus.BROKEN:
        return verb not in _BROKEN_FORBIDS
    return True


@dataclass(frozen=True)
class TaskRef:
    """A task together with the project it belongs to.

    Used for both single-project and cross-project lists so every
    operation knows which project to address.
    """

    task: Task
    project_id: str
    project_name: str = ""

    @property
    def key(self) -> str:
        """Stable identity across refreshes."""
        return task_key(self.project_id, self.task.id)

    @property
    def task_id(self) -> str:
        return self.task.id

    def with_task(self, task: Task) -> TaskRef:
        return replace(self, task=task)


def task_key(project_id: str, task_id: str) -> str:
    return f"{project_id}:{task_id}"


@dataclass
class Project:
    id: str
    name: str = ""
    path: str = ""
    current_branch: str = ""
    tasks: list[Task] = field(default_factory=list)
    added_at: datetime = _EPOCH

    @classmethod
    def from_dict(cls, data: dict) -> Project:
        return cls(
            id=_str_id(data.get("id")),
            name=data.get("name") or "",
            path=data.get("path") or "",
            current_branch=data.get("current_branch") or "",
            tasks=[Task.from_dict(t) for t in dict_items(data.get("tasks"))],
            added_at=_parse_time(data.get("added_at")),
        )


@dataclass(frozen=True)
class NotificationEntry:
    """A server-raised attention flag on a (project, task) pair."""

    project_id: str
    task_id: str
    level: NotificationLevel = NotificationLevel.NOTICE
    message: str = ""
    timestamp: datetime = _EPOCH
    task_name: str = ""
    project_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> NotificationEntry:
        try:
            level = NotificationLevel(str(data.get("level") or "notice").lower())
        except ValueError:
            level = NotificationLevel.NOTICE
        return cls(
            project_id=_str_id(data.get("project_id")),
            task_id=_str_id(data.get("task_id")),
            level=level,
            message=data.get("message") or "",
            timestamp=_parse_time(data.get("timestamp")),
            task_name=data.get("task_name") or "",
            project_name=data.get("project_name") or "",
        )

    @property
    def key(self) -> str:
        return task_key(self.project_id, self.task_id)


@dataclass(frozen=True)
class OperationResult:
    """Logical outcome of a git operation: the service answered."""

    success: bool
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> OperationResult:
        # Endpoints that only acknowledge (archive, delete) count as success
        if not data or "success" not in data:
            return cls(success=True, message=(data or {}).get("message") or "")
        return cls(success=bool(data.get("success")), message=data.get("message") or "")


@dataclass(frozen=True)
class CommitList:
    total: int
    commits: tuple[Commit, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> CommitList:
        commits = tuple(Commit.from_dict(c) for c in dict_items(data.get("commits")))
        total = data.get("total")
        return cls(total=_parse_int(total) if total is not None else len(commits), commits=commits)


@dataclass(frozen=True)
class BranchInfo:
    name: str
    is_current: bool = False


@dataclass(frozen=True)
class BranchList:
    branches: tuple[BranchInfo, ...]
    current: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> BranchList:
        return cls(
            branches=tuple(
                BranchInfo(name=b.get("name") or "", is_current=bool(b.get("is_current")))
                for b in dict_items(data.get("branches"))
            ),
            current=data.get("current") or "",
        )

    @property
    def names(self) -> list[str]:
        return [b.name for b in self.branches]
