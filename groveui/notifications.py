"""NotificationCorrelator: polls hook notifications and correlates them to tasks.

At most one entry is kept per (project, task). The poller is an asyncio
task owned by whoever calls start(); stop() must be called when the
session ends.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from groveui.config import get_poll_interval
from groveui.errors import ServiceError, log_exception
from groveui.models import NotificationEntry, TaskRef, task_key
from groveui.protocols import NotificationService

log = logging.getLogger(__name__)


class NotificationCorrelator:
    """Mirror of the server's hook notifications, refreshed on a timer."""

    def __init__(
        self, service: NotificationService, interval: float | None = None
    ) -> None:
        self.service = service
        self.interval = interval if interval is not None else get_poll_interval()
        self.entries: dict[str, NotificationEntry] = {}
        self._task: asyncio.Task[None] | None = None
        self._listeners: list[Callable[[], None]] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Call callback whenever the entry set changes."""
        self._listeners.append(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()

    def start(self) -> None:
        """Begin polling. Idempotent."""
        if self.running:
            return
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Cancel the poller and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll()
            except Exception as e:
                # Keep polling; the next round may succeed
                log_exception(e, "Hook poll failed")
            await asyncio.sleep(self.interval)

    async def poll(self) -> None:
        """Fetch the current hook list once, replacing local entries."""
        try:
            hooks = await self.service.list_all_hooks()
        except ServiceError as e:
            log.debug("Hook poll failed: %s", e)
            return
        entries: dict[str, NotificationEntry] = {}
        for entry in hooks:
            # First entry per task wins
            entries.setdefault(entry.key, entry)
        if entries != self.entries:
            self.entries = entries
            self._notify()

    def lookup(self, task_id: str) -> NotificationEntry | None:
        """Find the entry for a task id, ignoring project."""
        return next((e for e in self.entries.values() if e.task_id == task_id), None)

    def lookup_key(self, project_id: str, task_id: str) -> NotificationEntry | None:
        return self.entries.get(task_key(project_id, task_id))

    def discard(self, project_id: str, task_id: str) -> bool:
        """Drop the local entry only. True if there was one."""
        if self.entries.pop(task_key(project_id, task_id), None) is None:
            return False
        self._notify()
        return True

    async def dismiss(self, project_id: str, task_id: str) -> None:
        """Remove the local entry immediately, then tell the server.

        Remote failures are logged only; the next poll reconciles.
        """
        self.discard(project_id, task_id)
        try:
            await self.service.dismiss_hook(project_id, task_id)
        except ServiceError as e:
            log.debug("Failed to dismiss hook for %s/%s: %s", project_id, task_id, e)


def sort_by_notification(
    refs: list[TaskRef], correlator: NotificationCorrelator
) -> list[TaskRef]:
    """Notified tasks first (critical > warn > notice), then most recently updated."""

    def sort_key(ref: TaskRef):
        entry = correlator.lookup_key(ref.project_id, ref.task_id)
        rank = entry.level.rank if entry else 0
        return (-rank, -ref.task.updated_at.timestamp())

    return sorted(refs, key=sort_key)
