"""Status changes and deletion.

Completing a task also completes every descendant held in the current
forest. That cascade is best-effort: the parent's change is committed
first and stays committed; descendants whose update fails are put back
to their prior status and reported, never retried.
"""

import asyncio
import logging

from pydantic import BaseModel, Field

from canopy.domain.shared import Err, GatewayError, MoveRejected, Ok, PersistenceFailure, Result
from canopy.domain.task import (
    MoveRolledBack,
    Task,
    TaskDeleted,
    TaskStatus,
    TaskStatusChanged,
    descendants,
    map_nodes,
    remove_subtree,
    update_task_in_tree,
)

from .forest import ForestState
from .ports import TaskGateway

logger = logging.getLogger(__name__)


class CascadeReport(BaseModel):
    """Outcome of a committed status change.

    Attributes:
        task_id: The task whose status was changed
        status: The new status
        updated: Descendants completed along with it
        failed: Descendants left in their prior state
    """

    task_id: str
    status: TaskStatus
    updated: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed)


def _set_statuses(roots: list[Task], statuses: dict[str, TaskStatus]) -> list[Task]:
    if not statuses:
        return roots

    def apply(node: Task) -> Task:
        status = statuses.get(node.id)
        if status is None or status == node.status:
            return node
        return node.model_copy(update={"status": status})

    return map_nodes(roots, apply)


class StatusService:
    """Commits status changes and deletions against one forest."""

    def __init__(self, gateway: TaskGateway, state: ForestState) -> None:
        self._gateway = gateway
        self._state = state

    async def change_status(
        self,
        task_id: str,
        status: TaskStatus,
    ) -> Result[CascadeReport, MoveRejected | PersistenceFailure]:
        """Set a task's status, cascading ``complete`` to its descendants.

        Args:
            task_id: Task to update
            status: New status

        Returns:
            Ok(CascadeReport) once the task's own change is committed,
            Err(MoveRejected) for an unknown task or unchanged status,
            Err(PersistenceFailure) when the task's own update failed
        """
        task = self._state.find(task_id)
        if task is None:
            return Err(MoveRejected(task_id=task_id, reason="Task is not in the current tree"))
        if task.status == status:
            return Err(MoveRejected(task_id=task_id, reason=f"Task is already {status.value}"))

        previous = task.status
        self._state.replace(lambda roots: update_task_in_tree(roots, task_id, status=status))
        try:
            echo = await self._gateway.update_task_status(task_id, status)
        except GatewayError as exc:
            logger.warning(f"Status change of {task_id} failed, rolling back: {exc}")
            self._state.replace(lambda roots: update_task_in_tree(roots, task_id, status=previous))
            self._state.record(MoveRolledBack(task_id=task_id, operation="update_task_status", reason=str(exc)))
            return Err(PersistenceFailure(task_id=task_id, operation="update_task_status", message=str(exc)))

        self._state.ingest([echo])
        report = CascadeReport(task_id=task_id, status=status)
        if status == TaskStatus.COMPLETE:
            report = await self._cascade_complete(task_id, report)

        self._state.record(
            TaskStatusChanged(
                task_id=task_id,
                status=status,
                previous_status=previous,
                cascaded=report.updated,
                cascade_failed=report.failed,
            )
        )
        logger.info(f"Status of {task_id} set to {status.value} ({len(report.updated)} descendants cascaded)")
        return Ok(report)

    async def _cascade_complete(self, task_id: str, report: CascadeReport) -> CascadeReport:
        node = self._state.find(task_id)
        if node is None:
            return report
        pending = [child for child in descendants(node) if child.status != TaskStatus.COMPLETE]
        if not pending:
            return report

        prior = {child.id: child.status for child in pending}
        self._state.replace(lambda roots: _set_statuses(roots, dict.fromkeys(prior, TaskStatus.COMPLETE)))

        outcomes = await asyncio.gather(
            *(self._gateway.update_task_status(child_id, TaskStatus.COMPLETE) for child_id in prior),
            return_exceptions=True,
        )

        echoes: list[Task] = []
        failed: dict[str, TaskStatus] = {}
        for child_id, outcome in zip(prior, outcomes):
            if isinstance(outcome, GatewayError):
                logger.warning(f"Cascade to {child_id} failed: {outcome}")
                failed[child_id] = prior[child_id]
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                echoes.append(outcome)

        if failed:
            self._state.replace(lambda roots: _set_statuses(roots, failed))
            logger.error(f"Completion of {task_id} cascaded partially: {len(failed)}/{len(prior)} descendants failed")
        if echoes:
            self._state.ingest(echoes)

        return report.model_copy(
            update={
                "updated": [child_id for child_id in prior if child_id not in failed],
                "failed": list(failed),
            }
        )

    async def delete_task(self, task_id: str) -> Result[int, PersistenceFailure]:
        """Delete a task remotely, then drop it and its local descendants.

        Returns:
            Ok(number of nodes removed from the forest) or
            Err(PersistenceFailure) with the forest untouched
        """
        try:
            await self._gateway.delete_task(task_id)
        except GatewayError as exc:
            logger.error(f"Failed to delete {task_id}: {exc}")
            return Err(PersistenceFailure(task_id=task_id, operation="delete_task", message=str(exc)))

        node = self._state.find(task_id)
        removed = {task_id}
        if node is not None:
            removed |= {child.id for child in descendants(node)}
        self._state.replace(lambda roots: remove_subtree(roots, task_id))
        self._state.forget(removed)
        self._state.record(TaskDeleted(task_id=task_id, removed=len(removed) if node is not None else 0))
        logger.info(f"Deleted {task_id} with {len(removed) - 1} local descendants")
        return Ok(len(removed) if node is not None else 0)
