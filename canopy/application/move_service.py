"""Drag-and-drop move coordination.

Runs one drag gesture through ``IDLE -> DRAGGING -> COMMITTING ->
SETTLED | ROLLED_BACK``. The planned change is applied to the forest
before the first network call so the UI reflects it immediately; on
failure the node is put back exactly where it was.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from canopy.domain.shared import Err, GatewayError, MoveRejected, Ok, PersistenceFailure, Result
from canopy.domain.task import (
    POSITION_STEP,
    DropTarget,
    MovePlan,
    MoveRolledBack,
    PositionUpdate,
    Task,
    TaskMoved,
    apply_move,
    plan_move,
    revert_move,
)
from canopy.domain.types import ContainerKey

from .forest import ForestState
from .ports import TaskGateway

logger = logging.getLogger(__name__)


class DragPhase(str, Enum):
    """Lifecycle of one drag gesture."""

    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"
    SETTLED = "settled"
    ROLLED_BACK = "rolled_back"


@dataclass
class DragSession:
    """State of one drag gesture.

    ``plan`` holds the pre-drag snapshot from the moment of the drop
    until the commit settles or rolls back. ``committed`` collects the
    echo of every call the store accepted, so a later failure knows what
    has to be undone.
    """

    task_id: str
    source: ContainerKey
    phase: DragPhase = DragPhase.DRAGGING
    target: DropTarget | None = None
    plan: MovePlan | None = None
    calls: list[str] = field(default_factory=list)
    committed: list[Task] = field(default_factory=list)


class MoveCoordinator:
    """Plans, applies and persists drag gestures against one forest."""

    def __init__(
        self,
        gateway: TaskGateway,
        state: ForestState,
        step: float = POSITION_STEP,
    ) -> None:
        self._gateway = gateway
        self._state = state
        self._step = step

    def begin_drag(self, task_id: str) -> Result[DragSession, MoveRejected]:
        """Start dragging a node.

        A node whose previous move is still being persisted cannot be
        picked up again until that commit settles.
        """
        if task_id in self._state.in_flight:
            return Err(MoveRejected(task_id=task_id, reason="A previous move of this task is still saving"))
        task = self._state.find(task_id)
        if task is None:
            return Err(MoveRejected(task_id=task_id, reason="Task is not in the current tree"))
        source = ContainerKey(task.origin.value, task.parent_id, task.status.value)
        return Ok(DragSession(task_id=task_id, source=source))

    def cancel(self, session: DragSession) -> DragSession:
        """Abandon a drag before the drop; nothing changes."""
        if session.phase == DragPhase.DRAGGING:
            session.phase = DragPhase.IDLE
        return session

    async def drop(
        self,
        session: DragSession,
        target: DropTarget,
    ) -> Result[DragSession, MoveRejected | PersistenceFailure]:
        """Finish a drag on ``target``.

        Validation failures leave the forest untouched and return the
        session to ``IDLE``. Otherwise the move is applied locally first,
        then persisted with the minimal set of calls.
        """
        if session.phase != DragPhase.DRAGGING:
            return Err(MoveRejected(task_id=session.task_id, reason=f"Drag is {session.phase.value}"))
        if session.task_id in self._state.in_flight:
            session.phase = DragPhase.IDLE
            return Err(MoveRejected(task_id=session.task_id, reason="A previous move of this task is still saving"))

        session.target = target
        planned = plan_move(self._state.roots, session.task_id, target, self._step, self._state.root_level)
        if isinstance(planned, Err):
            session.phase = DragPhase.IDLE
            logger.info(f"Move of {session.task_id} rejected: {planned.error.reason}")
            return planned

        plan = planned.value
        session.plan = plan
        session.phase = DragPhase.COMMITTING
        self._state.in_flight.add(plan.task_id)
        self._state.replace(lambda roots: apply_move(roots, plan))

        try:
            echoes = await self._persist(session, plan)
        except GatewayError as exc:
            return Err(await self._roll_back(session, plan, exc))
        finally:
            self._state.in_flight.discard(plan.task_id)

        if echoes:
            self._state.ingest(echoes)
        session.phase = DragPhase.SETTLED
        logger.info(
            f"Moved {plan.task_id} ({plan.kind.value}) from {session.source} to "
            f"{target.container()} at {plan.position}"
        )
        self._state.record(
            TaskMoved(
                task_id=plan.task_id,
                kind=plan.kind.value,
                parent_id=plan.parent_id,
                previous_parent_id=plan.previous_parent_id,
                position=plan.position,
                status=plan.status,
                renumbered=len(plan.renumbered),
            )
        )
        return Ok(session)

    async def move(
        self,
        task_id: str,
        target: DropTarget,
    ) -> Result[DragSession, MoveRejected | PersistenceFailure]:
        """Pick up and drop in one step (keyboard moves, CLI)."""
        started = self.begin_drag(task_id)
        if isinstance(started, Err):
            return started
        return await self.drop(started.value, target)

    async def _persist(self, session: DragSession, plan: MovePlan) -> list[Task]:
        batch = plan.position_batch()
        if batch:
            session.calls.append("bulk_update_positions")
            session.committed.extend(await self._gateway.bulk_update_positions(batch))
        if plan.parent_changed:
            session.calls.append("update_task_position+parent")
            session.committed.append(
                await self._gateway.update_task_position(plan.task_id, plan.position, plan.parent_id)
            )
        elif plan.position_changed and not batch:
            session.calls.append("update_task_position")
            session.committed.append(await self._gateway.update_task_position(plan.task_id, plan.position))
        if plan.status_changed:
            session.calls.append("update_task_status")
            session.committed.append(await self._gateway.update_task_status(plan.task_id, plan.status))
        return session.committed

    async def _undo_committed(self, plan: MovePlan, committed: list[Task]) -> None:
        """Restore the pre-drag values of everything the store already took."""
        saved = {task.id for task in committed}
        if plan.task_id in saved:
            if plan.parent_changed:
                await self._gateway.update_task_position(
                    plan.task_id, plan.previous_position, plan.previous_parent_id
                )
            else:
                await self._gateway.update_task_position(plan.task_id, plan.previous_position)
        restore = [
            PositionUpdate(id=task_id, position=position)
            for task_id, position in plan.previous_positions.items()
            if task_id in saved
        ]
        if restore:
            await self._gateway.bulk_update_positions(restore)

    async def _roll_back(self, session: DragSession, plan: MovePlan, exc: GatewayError) -> PersistenceFailure:
        operation = session.calls[-1] if session.calls else plan.kind.value
        logger.warning(f"Move of {plan.task_id} failed during {operation}, rolling back: {exc}")
        self._state.replace(lambda roots: revert_move(roots, plan))
        if session.committed:
            try:
                await self._undo_committed(plan, session.committed)
            except GatewayError as undo_exc:
                logger.error(f"Could not undo the saved part of move {plan.task_id}: {undo_exc}")
                # Show what the store actually holds
                self._state.ingest(session.committed)
        session.phase = DragPhase.ROLLED_BACK
        self._state.record(MoveRolledBack(task_id=plan.task_id, operation=operation, reason=str(exc)))
        return PersistenceFailure(task_id=plan.task_id, operation=operation, message=str(exc))
