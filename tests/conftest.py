"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from groveui.data_source import TaskDataSource
from groveui.enums import NotificationLevel, TaskStatus
from groveui.models import (
    BranchInfo,
    BranchList,
    CommitList,
    NotificationEntry,
    OperationResult,
    Project,
    Task,
    TaskRef,
)
from groveui.operations import OperationPipeline
from groveui.view_state import ViewStateMachine

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)

OK = OperationResult(success=True)


def make_task(
    task_id: str = "t1",
    *,
    status: TaskStatus = TaskStatus.IDLE,
    target: str = "main",
    minutes: int = 0,
    **kwargs,
) -> Task:
    """Task with sensible defaults. minutes offsets updated_at from BASE_TIME."""
    kwargs.setdefault("name", f"Task {task_id}")
    kwargs.setdefault("branch", f"grove/{task_id}")
    return Task(
        id=task_id,
        status=status,
        target=target,
        updated_at=BASE_TIME + timedelta(minutes=minutes),
        **kwargs,
    )


def make_ref(task_id: str = "t1", project_id: str = "p1", **kwargs) -> TaskRef:
    return TaskRef(task=make_task(task_id, **kwargs), project_id=project_id, project_name=f"Project {project_id}")


def make_project(
    project_id: str = "p1", tasks: list[Task] | None = None, branch: str = "main"
) -> Project:
    return Project(
        id=project_id,
        name=f"Project {project_id}",
        current_branch=branch,
        tasks=list(tasks or []),
    )


def make_entry(
    task_id: str, project_id: str = "p1", level: NotificationLevel = NotificationLevel.NOTICE
) -> NotificationEntry:
    return NotificationEntry(project_id=project_id, task_id=task_id, level=level, message="hi")


def make_service(projects: list[Project] | None = None) -> MagicMock:
    """Task + notification service double backed by a list of projects.

    get_project/list_projects read from service.projects so tests can
    swap the data between refreshes.
    """
    service = MagicMock()
    service.projects = {p.id: p for p in projects or []}

    async def get_project(project_id: str) -> Project:
        return service.projects[project_id]

    async def list_projects() -> list[Project]:
        return list(service.projects.values())

    service.get_project = AsyncMock(side_effect=get_project)
    service.list_projects = AsyncMock(side_effect=list_projects)
    service.list_tasks = AsyncMock(return_value=[])
    service.commit_task = AsyncMock(return_value=OK)
    service.sync_task = AsyncMock(return_value=OK)
    service.get_commits = AsyncMock(return_value=CommitList(total=1))
    service.merge_task = AsyncMock(return_value=OK)
    service.rebase_to = AsyncMock(return_value=OK)
    service.get_branches = AsyncMock(
        return_value=BranchList(branches=(BranchInfo("main", True), BranchInfo("develop")))
    )
    service.archive_task = AsyncMock(return_value=OK)
    service.recover_task = AsyncMock(return_value=OK)
    service.delete_task = AsyncMock(return_value=OK)
    service.reset_task = AsyncMock(return_value=OK)
    service.list_all_hooks = AsyncMock(return_value=[])
    service.dismiss_hook = AsyncMock(return_value=None)
    return service


def make_pipeline(service=None) -> OperationPipeline:
    """Pipeline over a one-project service. Toasts collect in pipeline.toasts."""
    service = service or make_service([make_project("p1", [make_task("t1"), make_task("t2")])])
    pipeline = OperationPipeline(
        service, ViewStateMachine(), TaskDataSource(service, "p1"), AsyncMock(return_value=True)
    )
    pipeline.toasts = []
    pipeline.on_toast = pipeline.toasts.append
    return pipeline


@pytest.fixture
def service():
    """Service with one project holding three idle tasks on main."""
    tasks = [make_task("t1", minutes=1), make_task("t2", minutes=2), make_task("t3", minutes=3)]
    return make_service([make_project("p1", tasks)])
