"""Service and capability protocols for the task workspace."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from groveui.enums import MergeMethod, TaskFilter
    from groveui.models import (
        BranchList,
        CommitList,
        NotificationEntry,
        OperationResult,
        Project,
        Task,
    )


class TaskService(Protocol):
    """Operation contract of the worktree backend.

    Every method raises ServiceError when the request itself fails; a
    service-side refusal comes back as OperationResult(success=False).
    """

    async def list_projects(self) -> list[Project]:
        """List registered projects (without tasks)."""
        ...

    async def list_tasks(self, project_id: str, filter: TaskFilter) -> list[Task]: ...

    async def get_project(self, project_id: str) -> Project:
        """Get one project with its task collection."""
        ...

    async def commit_task(
        self, project_id: str, task_id: str, message: str
    ) -> OperationResult: ...

    async def sync_task(self, project_id: str, task_id: str) -> OperationResult: ...

    async def get_commits(self, project_id: str, task_id: str) -> CommitList: ...

    async def merge_task(
        self, project_id: str, task_id: str, method: MergeMethod
    ) -> OperationResult: ...

    async def rebase_to(
        self, project_id: str, task_id: str, new_target: str
    ) -> OperationResult: ...

    async def get_branches(self, project_id: str) -> BranchList: ...

    async def archive_task(
        self, project_id: str, task_id: str, force: bool = False
    ) -> OperationResult: ...

    async def recover_task(self, project_id: str, task_id: str) -> OperationResult: ...

    async def delete_task(self, project_id: str, task_id: str) -> OperationResult: ...

    async def reset_task(self, project_id: str, task_id: str) -> OperationResult: ...


class NotificationService(Protocol):
    """Hook notifications raised by agents and scripts."""

    async def list_all_hooks(self) -> list[NotificationEntry]: ...

    async def dismiss_hook(self, project_id: str, task_id: str) -> None: ...


class TaskOperationHandlers(Protocol):
    """Capability set the context menu and hotkeys drive.

    Implemented by TaskWorkspaceController. Hosts that cannot recover
    archived tasks report can_recover = False.
    """

    @property
    def can_recover(self) -> bool: ...

    def enter_workspace(self) -> None: ...

    def commit(self) -> None: ...

    async def rebase(self) -> None: ...

    async def sync(self) -> None: ...

    async def merge(self) -> None: ...

    async def archive(self) -> None: ...

    def reset(self) -> None: ...

    def clean(self) -> None: ...

    async def recover(self) -> None: ...
