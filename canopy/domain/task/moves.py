"""Drag-and-drop move planning.

Turns a drop gesture into a ``MovePlan``: the staged position, parent and
status changes for one node, together with the snapshot needed to undo
them. Planning validates every lock, depth, origin and ancestry rule
before anything is changed; applying and reverting a plan are pure
forest transformations.

All functions are pure - no I/O, no side effects.
"""

from enum import Enum

from pydantic import BaseModel, Field

from canopy.domain.shared import Err, MoveRejected, Ok, Result, flat_map
from canopy.domain.types import ContainerKey

from .models import MAX_LEVEL, PositionUpdate, Task, TaskOrigin, TaskStatus
from .positioning import POSITION_STEP, plan_insert
from .traversal import ForestIndex, find_node, index_forest, insert_node, remove_subtree, reposition


class MoveKind(str, Enum):
    """Which persistence calls a committed move needs."""

    REORDER = "reorder"
    REPARENT = "reparent"
    STATUS = "status"
    STATUS_REORDER = "status_reorder"
    STATUS_REPARENT = "status_reparent"


class DropTarget(BaseModel):
    """Where a dragged node was dropped.

    ``index`` counts the destination siblings without the dragged node.
    ``None`` keeps the current position (a bare board-column drop) or
    appends when the parent changes. ``status`` is set for board columns.
    """

    parent_id: str | None
    origin: TaskOrigin
    index: int | None = None
    status: TaskStatus | None = None

    def container(self) -> ContainerKey:
        return ContainerKey(
            origin=self.origin.value,
            parent_id=self.parent_id,
            status=self.status.value if self.status else None,
        )


class MovePlan(BaseModel):
    """Staged changes for one node plus the pre-drag snapshot."""

    model_config = {"frozen": True}

    task_id: str
    previous_parent_id: str | None
    previous_position: float
    previous_status: TaskStatus
    parent_id: str | None
    position: float
    status: TaskStatus
    renumbered: list[PositionUpdate] = Field(default_factory=list)
    previous_positions: dict[str, float] = Field(default_factory=dict)

    @property
    def parent_changed(self) -> bool:
        return self.parent_id != self.previous_parent_id

    @property
    def position_changed(self) -> bool:
        return self.parent_changed or self.position != self.previous_position

    @property
    def status_changed(self) -> bool:
        return self.status != self.previous_status

    @property
    def kind(self) -> MoveKind:
        if self.status_changed:
            if self.parent_changed:
                return MoveKind.STATUS_REPARENT
            if self.position_changed:
                return MoveKind.STATUS_REORDER
            return MoveKind.STATUS
        if self.parent_changed:
            return MoveKind.REPARENT
        return MoveKind.REORDER

    def position_batch(self) -> list[PositionUpdate]:
        """Updates to send as one bulk write, empty when nothing is renumbered.

        When the node stays under the same parent it travels in the batch
        with its renumbered siblings, so the new order lands in one write.
        """
        if not self.renumbered:
            return []
        if self.parent_changed:
            return list(self.renumbered)
        return [*self.renumbered, PositionUpdate(id=self.task_id, position=self.position)]


# =============================================================================
# Validation
# =============================================================================


def _locked_in_chain(index: ForestIndex, task_id: str) -> str | None:
    for candidate in [task_id, *index.ancestors(task_id)]:
        node = index.get(candidate)
        if node is not None and node.is_locked:
            return candidate
    return None


def _check_source(index: ForestIndex, task_id: str) -> Result[Task, MoveRejected]:
    task = index.get(task_id)
    if task is None:
        return Err(MoveRejected(task_id=task_id, reason="Task is not in the current tree"))

    locked = _locked_in_chain(index, task_id)
    if locked is not None:
        which = "Task is locked" if locked == task_id else f"Ancestor {locked} is locked"
        return Err(MoveRejected(task_id=task_id, reason=which))
    return Ok(task)


def _check_destination(
    index: ForestIndex,
    task: Task,
    target: DropTarget,
) -> Result[int, MoveRejected]:
    """Validate the destination and return the node's new level."""
    if target.origin != task.origin:
        return Err(MoveRejected(task_id=task.id, reason="Cannot move between templates and projects"))

    if target.parent_id == index.scope_parent_id:
        # Dropped among the forest roots
        if target.parent_id is None and not task.is_root:
            return Err(MoveRejected(task_id=task.id, reason="Cannot move a task out of its project"))
        if target.parent_id is None and task.is_root:
            # Reordering projects never changes depth
            return Ok(index.levels[task.id])
        new_level = index.levels[task.id] - len(index.ancestors(task.id))
    else:
        parent = index.get(target.parent_id)
        if parent is None:
            return Err(MoveRejected(task_id=task.id, reason="Destination is not in the current tree"))
        if parent.origin != task.origin:
            return Err(MoveRejected(task_id=task.id, reason="Cannot move between templates and projects"))
        if parent.root_id != task.root_id:
            return Err(MoveRejected(task_id=task.id, reason="Cannot move a task to another project"))
        if index.is_same_or_descendant(parent.id, task.id):
            return Err(MoveRejected(task_id=task.id, reason="Cannot move a task into its own subtree"))
        if _locked_in_chain(index, parent.id) is not None:
            return Err(MoveRejected(task_id=task.id, reason="Destination is locked"))
        new_level = index.levels[parent.id] + 1

    if new_level + index.height(task.id) > MAX_LEVEL:
        return Err(
            MoveRejected(
                task_id=task.id,
                reason=f"Move would nest tasks deeper than level {MAX_LEVEL}",
            )
        )
    return Ok(new_level)


# =============================================================================
# Planning
# =============================================================================


def _plan_position(
    index: ForestIndex,
    task: Task,
    target: DropTarget,
    step: float,
) -> Result[MovePlan, MoveRejected]:
    parent_id = target.parent_id
    # Projects and templates can share the root list; only same-origin
    # siblings count as neighbours
    siblings = [s for s in index.siblings(parent_id) if s.origin == task.origin]
    status = target.status or task.status
    same_parent = parent_id == task.parent_id

    if same_parent and target.index is None:
        position_plan = None
    else:
        others = len([s for s in siblings if s.id != task.id])
        insert_at = target.index if target.index is not None else others
        position_plan = plan_insert(siblings, insert_at, task.id, step)
        if position_plan is None:
            return Err(MoveRejected(task_id=task.id, reason="No room between locked siblings"))

    if same_parent and status == task.status:
        current_index = [s.id for s in siblings].index(task.id)
        if position_plan is None or target.index == current_index:
            return Err(MoveRejected(task_id=task.id, reason="Task is already there"))

    positions = {s.id: s.position for s in siblings}
    renumbered = position_plan.renumbered if position_plan else []
    return Ok(
        MovePlan(
            task_id=task.id,
            previous_parent_id=task.parent_id,
            previous_position=task.position,
            previous_status=task.status,
            parent_id=parent_id,
            position=position_plan.position if position_plan else task.position,
            status=status,
            renumbered=renumbered,
            previous_positions={u.id: positions[u.id] for u in renumbered},
        )
    )


def plan_move(
    roots: list[Task],
    task_id: str,
    target: DropTarget,
    step: float = POSITION_STEP,
    root_level: int = 0,
) -> Result[MovePlan, MoveRejected]:
    """Plan a drop of ``task_id`` onto ``target``.

    Rejects the move when the task or one of its ancestors is locked,
    when the destination is locked, belongs to another origin or project,
    lies inside the task's own subtree, or would push the task or any of
    its descendants past ``MAX_LEVEL``. Dropping a task back where it
    already is is rejected as a no-op, and so is a drop between locked
    siblings that sit too close to make room.

    Args:
        roots: The current forest
        task_id: Id of the dragged task
        target: Where it was dropped
        step: Position spacing for end inserts and renormalization
        root_level: Level of the forest roots (0 when roots are projects)

    Returns:
        Ok(MovePlan) or Err(MoveRejected)
    """
    index = index_forest(roots, root_level)
    return flat_map(
        _check_source(index, task_id),
        lambda task: flat_map(
            _check_destination(index, task, target),
            lambda _level: _plan_position(index, task, target, step),
        ),
    )


# =============================================================================
# Applying
# =============================================================================


def _relocate(
    roots: list[Task],
    task_id: str,
    parent_id: str | None,
    position: float,
    status: TaskStatus,
) -> list[Task]:
    node = find_node(roots, task_id)
    if node is None:
        return roots
    moved = node.model_copy(update={"parent_id": parent_id, "position": position, "status": status})
    return insert_node(remove_subtree(roots, task_id), moved, parent_id)


def apply_move(roots: list[Task], plan: MovePlan) -> list[Task]:
    """Return a forest with the plan's staged changes applied."""
    renumbered = {u.id: u.position for u in plan.renumbered}
    roots = reposition(roots, renumbered)
    return _relocate(roots, plan.task_id, plan.parent_id, plan.position, plan.status)


def revert_move(roots: list[Task], plan: MovePlan) -> list[Task]:
    """Return a forest with the node and renumbered siblings restored.

    Only the fields the plan touched are restored, so unrelated changes
    merged in since the drop survive.
    """
    roots = _relocate(
        roots,
        plan.task_id,
        plan.previous_parent_id,
        plan.previous_position,
        plan.previous_status,
    )
    return reposition(roots, dict(plan.previous_positions))
