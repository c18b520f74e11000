"""OperationPipeline: guarded async git verbs with shared loading/toast plumbing.

Every verb captures the TaskRef it was triggered for. Loading and error
state live in the ViewStateMachine keyed by (task key, verb), so a
response arriving after the user moved on only touches its own task.

Failure handling:
- ServiceError (transport or non-2xx) -> generic "Failed to ..." message
- OperationResult(success=False) -> server message, inline for commit and
  merge dialogs, toast for everything else
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

from groveui.data_source import TaskDataSource
from groveui.enums import MergeMethod, TaskFilter, Verb
from groveui.errors import ApiError, ServiceError
from groveui.models import TaskRef, verb_available
from groveui.protocols import TaskService
from groveui.view_state import ViewStateMachine

log = logging.getLogger(__name__)

ArchiveContext = Literal["normal", "after-merge"]

# "Target branch 'main' has uncommitted changes", "Cannot merge: 'main' has ..."
_DIRTY_TARGET_RE = re.compile(r"['‘’]([^'‘’]+)['‘’].*has uncommitted changes")


@dataclass(frozen=True)
class DirtyBranchError:
    """Sync or merge refused because a worktree has uncommitted changes."""

    operation: Verb
    branch: str
    is_worktree: bool

    @property
    def text(self) -> str:
        where = "Your task worktree" if self.is_worktree else f"Branch '{self.branch}'"
        return (
            f"{self.operation.value.capitalize()} blocked: {where} has uncommitted "
            "changes. Commit or stash them first."
        )


def parse_dirty_branch(message: str, operation: Verb, task_branch: str) -> DirtyBranchError | None:
    """Recognize the server's dirty-branch refusals. None for anything else."""
    if "Worktree has uncommitted changes" in message:
        return DirtyBranchError(operation, task_branch, is_worktree=True)
    match = _DIRTY_TARGET_RE.search(message)
    if match:
        return DirtyBranchError(operation, match.group(1), is_worktree=False)
    return None


@dataclass
class PendingArchiveConfirm:
    """Archive the server refused without force, waiting for the user."""

    ref: TaskRef
    context: ArchiveContext = "normal"
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def lines(self) -> list[str]:
        """Human summary of what archiving will throw away."""
        d = self.details
        lines = [
            f"Task: {d.get('task_name') or self.ref.task.name}",
            f"Branch: {d.get('branch') or self.ref.task.branch}",
            f"Target: {d.get('target') or self.ref.task.target}",
        ]
        if d.get("dirty_check_failed"):
            lines.append("Unable to verify working tree status.")
        if d.get("worktree_dirty"):
            lines.append("Working tree contains uncommitted changes.")
            lines.append("These changes will be permanently lost upon archiving.")
        if d.get("merge_check_failed"):
            lines.append("Unable to verify merge status.")
        if d.get("branch_merged") is False:
            lines.append("Branch has not been merged into target.")
        return lines


class OperationPipeline:
    """Runs git verbs against the task service.

    Args:
        service: Task service.
        view: View state (selection and per-task dialog state).
        data_source: Task cache, used for optimistic patches and the filter.
        refresh: Coroutine that refetches and reconciles the task list.
    """

    def __init__(
        self,
        service: TaskService,
        view: ViewStateMachine,
        data_source: TaskDataSource,
        refresh: Callable[[], Awaitable[Any]],
    ) -> None:
        self.service = service
        self.view = view
        self.data_source = data_source
        self.refresh = refresh
        self.branches: dict[str, list[str]] = {}
        self.dirty_error: DirtyBranchError | None = None
        self.pending_archive: PendingArchiveConfirm | None = None

        # Callbacks (set by the controller)
        self.on_toast: Callable[[str], None] | None = None
        self.on_changed: Callable[[], None] | None = None
        self.on_merged: Callable[[TaskRef], Awaitable[None]] | None = None

    def _toast(self, message: str) -> None:
        log.info(message)
        if self.on_toast:
            self.on_toast(message)

    def _changed(self) -> None:
        if self.on_changed:
            self.on_changed()

    def _available(self, ref: TaskRef | None, verb: Verb) -> bool:
        return ref is not None and verb_available(ref.task, verb)

    def _clear_if_selected(self, ref: TaskRef) -> None:
        if self.view.selected_key == ref.key:
            self.view.clear()

    # -- commit -----------------------------------------------------------

    def open_commit(self, ref: TaskRef | None) -> bool:
        if ref is None or not self._available(ref, Verb.COMMIT):
            return False
        self.view.open_dialog(ref.key, Verb.COMMIT)
        self._changed()
        return True

    async def submit_commit(self, ref: TaskRef, message: str) -> bool:
        state = self.view.begin(ref.key, Verb.COMMIT)
        if state is None:
            return False
        self._changed()
        try:
            result = await self.service.commit_task(ref.project_id, ref.task_id, message)
        except ServiceError as e:
            log.info("Failed to commit %s: %s", ref.key, e)
            state.error = "Failed to commit changes"
            return False
        else:
            if not result.success:
                state.error = result.message or "Commit failed"
                return False
            self._toast("Changes committed successfully")
            self.view.close_dialog(ref.key, Verb.COMMIT)
            await self.refresh()
            return True
        finally:
            self.view.settle(ref.key, Verb.COMMIT)
            self._changed()

    # -- sync -------------------------------------------------------------

    async def sync(self, ref: TaskRef | None) -> bool:
        if ref is None or not self._available(ref, Verb.SYNC):
            return False
        if self.view.begin(ref.key, Verb.SYNC) is None:
            return False
        self._changed()
        try:
            result = await self.service.sync_task(ref.project_id, ref.task_id)
        except ServiceError as e:
            log.info("Failed to sync %s: %s", ref.key, e)
            self._toast("Failed to sync task")
            return False
        else:
            if result.success:
                self._toast(result.message or "Synced successfully")
                await self.refresh()
                return True
            dirty = parse_dirty_branch(result.message, Verb.SYNC, ref.task.branch)
            if dirty:
                self.dirty_error = dirty
            else:
                self._toast(result.message or "Sync failed")
            return False
        finally:
            self.view.settle(ref.key, Verb.SYNC)
            self._changed()

    # -- merge ------------------------------------------------------------

    async def merge(self, ref: TaskRef | None) -> bool:
        """Merge directly when there is at most one commit, else ask for a method.

        Returns True if a merge request was issued and succeeded.
        """
        if ref is None or not self._available(ref, Verb.MERGE):
            return False
        state = self.view.begin(ref.key, Verb.MERGE)
        if state is None:
            return False
        self._changed()
        try:
            commits = await self.service.get_commits(ref.project_id, ref.task_id)
        except ServiceError as e:
            log.debug("Commit count for %s unavailable, asking for method: %s", ref.key, e)
            total = None
        else:
            total = commits.total

        if total is None or total > 1:
            self.view.open_dialog(ref.key, Verb.MERGE)
            self.view.settle(ref.key, Verb.MERGE)
            self._changed()
            return False

        try:
            return await self._do_merge(ref, MergeMethod.MERGE_COMMIT, in_dialog=False)
        finally:
            self.view.settle(ref.key, Verb.MERGE)
            self._changed()

    async def submit_merge(self, ref: TaskRef, method: MergeMethod) -> bool:
        if self.view.begin(ref.key, Verb.MERGE) is None:
            return False
        self._changed()
        try:
            return await self._do_merge(ref, method, in_dialog=True)
        finally:
            self.view.settle(ref.key, Verb.MERGE)
            self._changed()

    async def _do_merge(self, ref: TaskRef, method: MergeMethod, *, in_dialog: bool) -> bool:
        state = self.view.dialog(ref.key, Verb.MERGE)
        try:
            result = await self.service.merge_task(ref.project_id, ref.task_id, method)
        except ServiceError as e:
            log.info("Failed to merge %s: %s", ref.key, e)
            if in_dialog:
                state.error = "Failed to merge task"
            else:
                self._toast("Failed to merge task")
            return False

        if not result.success:
            dirty = parse_dirty_branch(result.message, Verb.MERGE, ref.task.branch)
            if dirty:
                self.view.close_dialog(ref.key, Verb.MERGE)
                self.dirty_error = dirty
            elif in_dialog:
                state.error = result.message or "Merge failed"
            else:
                self._toast(result.message or "Merge failed")
            return False

        self._toast(result.message or "Merged successfully")
        self.view.close_dialog(ref.key, Verb.MERGE)
        await self.refresh()
        if self.on_merged:
            await self.on_merged(ref)
        return True

    # -- rebase -----------------------------------------------------------

    async def rebase(self, ref: TaskRef | None) -> bool:
        """Load branches and open the target picker."""
        if ref is None or not self._available(ref, Verb.REBASE):
            return False
        if self.view.begin(ref.key, Verb.REBASE) is None:
            return False
        self._changed()
        try:
            branches = await self.service.get_branches(ref.project_id)
        except ServiceError as e:
            log.info("Failed to load branches for %s: %s", ref.project_id, e)
            self._toast("Failed to load branches")
            return False
        else:
            self.branches[ref.key] = branches.names
            self.view.open_dialog(ref.key, Verb.REBASE)
            return True
        finally:
            self.view.settle(ref.key, Verb.REBASE)
            self._changed()

    async def submit_rebase(self, ref: TaskRef, new_target: str) -> bool:
        if self.view.begin(ref.key, Verb.REBASE) is None:
            return False
        self._changed()
        try:
            result = await self.service.rebase_to(ref.project_id, ref.task_id, new_target)
        except ServiceError as e:
            log.info("Failed to rebase %s: %s", ref.key, e)
            self._toast("Failed to change target branch")
            return False
        else:
            if not result.success:
                self._toast(result.message or "Failed to change target branch")
                return False
            self._toast(result.message or "Target branch changed")
            self.view.close_dialog(ref.key, Verb.REBASE)
            self.branches.pop(ref.key, None)
            # Optimistic: kept even if the refresh below fails
            patched = ref.with_task(ref.task.with_target(new_target))
            self.data_source.patch_task(ref.key, patched.task)
            self.view.replace_selected(patched)
            await self.refresh()
            return True
        finally:
            self.view.settle(ref.key, Verb.REBASE)
            self._changed()

    # -- archive ----------------------------------------------------------

    async def archive(
        self,
        ref: TaskRef | None,
        *,
        force: bool = False,
        context: ArchiveContext = "normal",
    ) -> bool:
        """Archive a task. A 409 confirm-required becomes pending_archive."""
        if ref is None or not self._available(ref, Verb.ARCHIVE):
            return False
        if self.view.begin(ref.key, Verb.ARCHIVE) is None:
            return False
        self._changed()
        try:
            result = await self.service.archive_task(ref.project_id, ref.task_id, force=force)
        except ApiError as e:
            if e.needs_archive_confirm and not force:
                self.pending_archive = PendingArchiveConfirm(ref, context, e.data)
            else:
                log.info("Failed to archive %s: %s", ref.key, e)
                self._toast(e.message or "Failed to archive task")
            return False
        except ServiceError as e:
            log.info("Failed to archive %s: %s", ref.key, e)
            self._toast("Failed to archive task")
            return False
        else:
            if not result.success:
                self._toast(result.message or "Failed to archive task")
                return False
            await self.refresh()
            self._toast("Task archived")
            self._clear_if_selected(ref)
            return True
        finally:
            self.view.settle(ref.key, Verb.ARCHIVE)
            self._changed()

    async def confirm_archive(self) -> bool:
        """Force-archive the pending task. After-merge confirms always clean up."""
        pending, self.pending_archive = self.pending_archive, None
        if pending is None:
            return False
        archived = await self.archive(pending.ref, force=True, context=pending.context)
        if pending.context == "after-merge":
            self.view.clear()
            self._changed()
        return archived

    def cancel_archive(self) -> None:
        pending, self.pending_archive = self.pending_archive, None
        if pending is not None and pending.context == "after-merge":
            self.view.clear()
        self._changed()

    # -- reset ------------------------------------------------------------

    def open_reset(self, ref: TaskRef | None) -> bool:
        if ref is None or not self._available(ref, Verb.RESET):
            return False
        self.view.open_dialog(ref.key, Verb.RESET)
        self._changed()
        return True

    async def confirm_reset(self, ref: TaskRef) -> bool:
        if self.view.begin(ref.key, Verb.RESET) is None:
            return False
        self._changed()
        try:
            result = await self.service.reset_task(ref.project_id, ref.task_id)
        except ServiceError as e:
            log.info("Failed to reset %s: %s", ref.key, e)
            self._toast("Failed to reset task")
            return False
        else:
            if not result.success:
                self._toast(result.message or "Reset failed")
                return False
            self._toast(result.message or "Task reset successfully")
            await self.refresh()
            return True
        finally:
            self.view.close_dialog(ref.key, Verb.RESET)
            self.view.settle(ref.key, Verb.RESET)
            self._changed()

    # -- clean ------------------------------------------------------------

    def open_clean(self, ref: TaskRef | None) -> bool:
        if ref is None or not self._available(ref, Verb.CLEAN):
            return False
        self.view.open_dialog(ref.key, Verb.CLEAN)
        self._changed()
        return True

    async def confirm_clean(self, ref: TaskRef) -> bool:
        if self.view.begin(ref.key, Verb.CLEAN) is None:
            return False
        self._changed()
        try:
            result = await self.service.delete_task(ref.project_id, ref.task_id)
        except ServiceError as e:
            log.info("Failed to delete %s: %s", ref.key, e)
            self._toast("Failed to delete task")
            return False
        else:
            if not result.success:
                self._toast(result.message or "Failed to delete task")
                return False
            await self.refresh()
            self._toast("Task deleted successfully")
            self._clear_if_selected(ref)
            return True
        finally:
            self.view.close_dialog(ref.key, Verb.CLEAN)
            self.view.settle(ref.key, Verb.CLEAN)
            self._changed()

    # -- recover ----------------------------------------------------------

    async def recover(self, ref: TaskRef | None) -> bool:
        """Bring an archived task back and switch to the active list."""
        if ref is None or not self._available(ref, Verb.RECOVER):
            return False
        if self.view.begin(ref.key, Verb.RECOVER) is None:
            return False
        self._changed()
        try:
            result = await self.service.recover_task(ref.project_id, ref.task_id)
        except ServiceError as e:
            log.info("Failed to recover %s: %s", ref.key, e)
            self._toast("Failed to recover task")
            return False
        else:
            if not result.success:
                self._toast(result.message or "Failed to recover task")
                return False
            self._toast(result.message or "Task recovered")
            self.data_source.set_filter(TaskFilter.ACTIVE)
            await self.refresh()
            self.view.clear()
            return True
        finally:
            self.view.settle(ref.key, Verb.RECOVER)
            self._changed()

    # -- dialogs ----------------------------------------------------------

    def cancel_dialog(self, ref: TaskRef, verb: Verb) -> None:
        self.view.close_dialog(ref.key, verb)
        if verb == Verb.REBASE:
            self.branches.pop(ref.key, None)
        self._changed()

    def dismiss_dirty_error(self) -> None:
        self.dirty_error = None
        self._changed()
