"""TaskDataSource: fetches and caches the task list.

Two scopes:
- single project: tasks whose target is the project's current branch
  (active filter) or archived tasks for that branch (archived filter)
- all projects: every non-archived task targeting its project's current
  branch, across all registered projects

The last successful fetch wins. A failed refresh keeps the previous list
so optimistic local patches stay visible until the next good fetch.
"""

from __future__ import annotations

import asyncio
import logging

from groveui.enums import TaskFilter
from groveui.errors import ServiceError
from groveui.models import Project, Task, TaskRef
from groveui.protocols import TaskService

log = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"


class TaskDataSource:
    """Read-only mirror of the service's task collection.

    Args:
        service: Task service implementation.
        project_id: Restrict to one project. None means all projects.
    """

    def __init__(self, service: TaskService, project_id: str | None = None) -> None:
        self.service = service
        self.project_id = project_id
        self.filter = TaskFilter.ACTIVE
        self.project: Project | None = None
        self.refs: list[TaskRef] = []
        self.loaded = False
        self._lock = asyncio.Lock()

    @property
    def is_cross_project(self) -> bool:
        return self.project_id is None

    async def refresh(self) -> bool:
        """Refetch tasks. Returns False (keeping old data) on service failure."""
        # Serialize refreshes so a slow earlier fetch cannot overwrite a later one
        async with self._lock:
            try:
                if self.project_id is None:
                    refs = await self._fetch_all_projects()
                else:
                    refs = await self._fetch_project(self.project_id)
            except ServiceError as e:
                log.warning("Failed to refresh tasks: %s", e)
                return False

            self.refs = _dedupe(refs)
            self.loaded = True
        return True

    async def _fetch_project(self, project_id: str) -> list[TaskRef]:
        project = await self.service.get_project(project_id)
        self.project = project
        branch = project.current_branch or DEFAULT_BRANCH

        if self.filter == TaskFilter.ARCHIVED:
            tasks = await self.service.list_tasks(project_id, TaskFilter.ARCHIVED)
        else:
            tasks = [t for t in project.tasks if t.is_active]

        return [
            TaskRef(task=t, project_id=project.id, project_name=project.name)
            for t in tasks
            if t.target == branch
        ]

    async def _fetch_all_projects(self) -> list[TaskRef]:
        projects = await self.service.list_projects()
        results = await asyncio.gather(
            *(self._fetch_cross_project(p.id) for p in projects)
        )
        return [ref for refs in results for ref in refs]

    async def _fetch_cross_project(self, project_id: str) -> list[TaskRef]:
        # One unreachable project must not blank the whole list
        try:
            project = await self.service.get_project(project_id)
        except ServiceError as e:
            log.debug("Skipping project %s: %s", project_id, e)
            return []
        return [
            TaskRef(task=t, project_id=project.id, project_name=project.name)
            for t in project.tasks
            if t.target == project.current_branch and t.is_active
        ]

    def find(self, key: str) -> TaskRef | None:
        return next((r for r in self.refs if r.key == key), None)

    def find_task(self, task_id: str) -> TaskRef | None:
        return next((r for r in self.refs if r.task.id == task_id), None)

    def patch_task(self, key: str, task: Task) -> None:
        """Replace one cached task locally without refetching."""
        self.refs = [r.with_task(task) if r.key == key else r for r in self.refs]

    def set_filter(self, task_filter: TaskFilter) -> None:
        """Switch single-project filter. Takes effect on the next refresh."""
        self.filter = task_filter


def _dedupe(refs: list[TaskRef]) -> list[TaskRef]:
    seen: set[str] = set()
    result = []
    for ref in refs:
        if ref.key in seen:
            continue
        seen.add(ref.key)
        result.append(ref)
    return result
