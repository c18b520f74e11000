"""HTTP client for the Grove task service.

Implements both TaskService and NotificationService over the /api/v1
REST endpoints. Non-2xx responses raise ApiError; connection problems
raise ServiceUnavailable.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from groveui.config import get_server_timeout, get_server_url
from groveui.enums import MergeMethod, TaskFilter
from groveui.errors import ApiError, ServiceUnavailable
from groveui.models import (
    BranchList,
    CommitList,
    NotificationEntry,
    OperationResult,
    Project,
    Task,
    dict_items,
)

log = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _extract_error(response: httpx.Response) -> tuple[str, dict[str, Any]]:
    """Pull a human message and the JSON body (if any) out of an error response."""
    text = response.text
    if not text:
        return response.reason_phrase, {}
    try:
        data = json.loads(text)
    except ValueError:
        return text, {}
    if not isinstance(data, dict):
        return text, {}
    message = data.get("message") or data.get("error") or data.get("detail") or text
    return str(message), data


class GroveClient:
    """Async client for one Grove server.

    Args:
        base_url: Server root, e.g. http://localhost:3001. Defaults to config.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or get_server_url()).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else get_server_timeout(),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, f"{API_PREFIX}{path}", params=params, json=body
            )
        except httpx.TransportError as e:
            log.debug("%s %s failed: %s", method, path, e)
            raise ServiceUnavailable(f"Cannot reach {self.base_url}: {e}") from e

        if response.is_error:
            message, data = _extract_error(response)
            log.debug("%s %s -> %s %s", method, path, response.status_code, message)
            raise ApiError(response.status_code, message, data)

        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as e:
            raise ApiError(response.status_code, "Invalid JSON response") from e
        if not isinstance(payload, dict):
            raise ApiError(response.status_code, "Unexpected response shape")
        return payload

    # -- projects ---------------------------------------------------------

    async def list_projects(self) -> list[Project]:
        data = await self._request("GET", "/projects")
        return [Project.from_dict(p) for p in dict_items((data or {}).get("projects"))]

    async def get_project(self, project_id: str) -> Project:
        data = await self._request("GET", f"/projects/{project_id}")
        return Project.from_dict(data or {})

    async def get_branches(self, project_id: str) -> BranchList:
        data = await self._request("GET", f"/projects/{project_id}/branches")
        return BranchList.from_dict(data or {})

    # -- tasks ------------------------------------------------------------

    async def list_tasks(
        self, project_id: str, filter: TaskFilter = TaskFilter.ACTIVE
    ) -> list[Task]:
        data = await self._request(
            "GET", f"/projects/{project_id}/tasks", params={"filter": str(filter)}
        )
        return [Task.from_dict(t) for t in dict_items((data or {}).get("tasks"))]

    async def _task_op(
        self, project_id: str, task_id: str, op: str, body: dict[str, Any] | None = None
    ) -> OperationResult:
        data = await self._request(
            "POST", f"/projects/{project_id}/tasks/{task_id}/{op}", body=body
        )
        return OperationResult.from_dict(data)

    async def commit_task(
        self, project_id: str, task_id: str, message: str
    ) -> OperationResult:
        return await self._task_op(project_id, task_id, "commit", {"message": message})

    async def sync_task(self, project_id: str, task_id: str) -> OperationResult:
        return await self._task_op(project_id, task_id, "sync")

    async def get_commits(self, project_id: str, task_id: str) -> CommitList:
        data = await self._request("GET", f"/projects/{project_id}/tasks/{task_id}/commits")
        return CommitList.from_dict(data or {})

    async def merge_task(
        self, project_id: str, task_id: str, method: MergeMethod
    ) -> OperationResult:
        return await self._task_op(project_id, task_id, "merge", {"method": str(method)})

    async def rebase_to(
        self, project_id: str, task_id: str, new_target: str
    ) -> OperationResult:
        return await self._task_op(project_id, task_id, "rebase-to", {"target": new_target})

    async def archive_task(
        self, project_id: str, task_id: str, force: bool = False
    ) -> OperationResult:
        return await self._task_op(
            project_id, task_id, "archive", {"force": True} if force else None
        )

    async def recover_task(self, project_id: str, task_id: str) -> OperationResult:
        return await self._task_op(project_id, task_id, "recover")

    async def reset_task(self, project_id: str, task_id: str) -> OperationResult:
        return await self._task_op(project_id, task_id, "reset")

    async def delete_task(self, project_id: str, task_id: str) -> OperationResult:
        data = await self._request("DELETE", f"/projects/{project_id}/tasks/{task_id}")
        return OperationResult.from_dict(data)

    # -- hooks ------------------------------------------------------------

    async def list_all_hooks(self) -> list[NotificationEntry]:
        data = await self._request("GET", "/hooks")
        return [NotificationEntry.from_dict(h) for h in dict_items((data or {}).get("hooks"))]

    async def dismiss_hook(self, project_id: str, task_id: str) -> None:
        await self._request("DELETE", f"/projects/{project_id}/hooks/{task_id}")
