"""PostMergeCascade: offer to archive a task right after it merged."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from groveui.models import TaskRef
from groveui.operations import OperationPipeline

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AwaitingArchiveDecision:
    task_id: str
    task_name: str
    project_id: str
    ref: TaskRef


class PostMergeCascade:
    """Idle -> AwaitingArchiveDecision -> Idle.

    Both archive() and keep() end with the cleanup callback (clear the
    selection, back to the list). The one exception is a server-side
    archive confirmation: the decision moves to the pipeline's pending
    confirm, which cleans up when the user answers it.
    """

    def __init__(self, pipeline: OperationPipeline, cleanup: Callable[[], None]) -> None:
        self.pipeline = pipeline
        self.cleanup = cleanup
        self.state: AwaitingArchiveDecision | None = None
        self.on_changed: Callable[[], None] | None = None

    @property
    def awaiting(self) -> bool:
        return self.state is not None

    def _changed(self) -> None:
        if self.on_changed:
            self.on_changed()

    async def enter(self, ref: TaskRef) -> None:
        """Called by the pipeline once a merge succeeded and the list refreshed."""
        self.state = AwaitingArchiveDecision(
            task_id=ref.task_id,
            task_name=ref.task.name,
            project_id=ref.project_id,
            ref=ref,
        )
        log.info("Merged %s, awaiting archive decision", ref.key)
        self._changed()

    async def archive(self) -> bool:
        state = self.state
        if state is None:
            return False
        self.state = None
        archived = await self.pipeline.archive(state.ref, context="after-merge")
        pending = self.pipeline.pending_archive
        if pending is not None and pending.ref.key == state.ref.key:
            # User will confirm or cancel; the pipeline cleans up then
            self._changed()
            return False
        self._finish()
        return archived

    def keep(self) -> None:
        if self.state is None:
            return
        self.state = None
        self._finish()

    def _finish(self) -> None:
        self.cleanup()
        self._changed()
