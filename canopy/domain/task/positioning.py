"""Sparse sibling positioning.

Siblings are ordered by a numeric ``position``. New positions are picked
between the two neighbours of the insertion point so untouched siblings
never need renumbering. Only when the gap between neighbours has been
halved away does the run of unlocked siblings around the insertion
point get renumbered, in one batch. Locked siblings never move.

All functions are pure - no I/O, no side effects.
"""

from pydantic import BaseModel, Field

from .models import PositionUpdate, Task

# =============================================================================
# Positioning Constants
# =============================================================================

POSITION_STEP = 1000  # Spacing between siblings at the end of a list
MIN_GAP = 1e-3  # Neighbours closer than this can no longer be split


# =============================================================================
# Value Objects
# =============================================================================


class PositionPlan(BaseModel):
    """Where a node goes, plus any sibling renumbering it requires.

    ``renumbered`` is empty in the common case. When it is not, it holds
    the new positions of the other siblings and must be persisted as one
    bulk update together with ``position`` for the moving node.
    """

    position: float
    renumbered: list[PositionUpdate] = Field(default_factory=list)

    @property
    def needs_batch(self) -> bool:
        return bool(self.renumbered)


# =============================================================================
# Allocation
# =============================================================================


def allocate_position(
    prev_position: float | None,
    next_position: float | None,
    step: float = POSITION_STEP,
) -> float | None:
    """Compute a position strictly between two neighbours.

    Args:
        prev_position: Position of the sibling before the slot, or None at
            the start of the list
        next_position: Position of the sibling after the slot, or None at
            the end of the list
        step: Spacing used at either end of the list

    Returns:
        The new position, or None when the neighbours are too close to
        split and the sibling list must be renormalized
    """
    if prev_position is None and next_position is None:
        return float(step)

    if next_position is None:
        return prev_position + step

    if prev_position is None:
        if next_position > MIN_GAP:
            return next_position / 2
        return next_position - step

    if next_position - prev_position < MIN_GAP:
        return None

    midpoint = (prev_position + next_position) / 2
    # Large magnitudes can round the midpoint onto a neighbour
    if not prev_position < midpoint < next_position:
        return None
    return midpoint


def renormalize(ids: list[str], step: float = POSITION_STEP) -> list[PositionUpdate]:
    """Assign evenly spaced integer positions in the given order.

    Positions start at ``step`` rather than zero so the first slot can
    still be halved.
    """
    return [PositionUpdate(id=task_id, position=(index + 1) * step) for index, task_id in enumerate(ids)]


def _spread(
    ids: list[str],
    lower: float | None,
    upper: float | None,
    step: float = POSITION_STEP,
) -> list[PositionUpdate] | None:
    """Space ``ids`` evenly, strictly between two fixed positions.

    A missing bound means the run reaches that end of the list. Returns
    None when the bounds are too close to fit every id ``MIN_GAP`` apart.
    """
    if lower is None and upper is None:
        return renormalize(ids, step)

    slots = len(ids) + 1
    if lower is None:
        lower = 0.0 if upper / slots >= MIN_GAP else upper - slots * step
    if upper is None:
        upper = lower + slots * step

    gap = (upper - lower) / slots
    if gap < MIN_GAP:
        return None
    return [PositionUpdate(id=task_id, position=lower + (n + 1) * gap) for n, task_id in enumerate(ids)]


def plan_insert(
    siblings: list[Task],
    index: int,
    moving_id: str,
    step: float = POSITION_STEP,
) -> PositionPlan | None:
    """Plan the position for a node dropped at ``index`` among ``siblings``.

    The moving node is ignored if it already sits in ``siblings``, so
    ``index`` always counts the other siblings only. When the gap at the
    insertion point is exhausted, only the run of unlocked siblings
    around it is renumbered; locked siblings keep their positions and
    bound the run.

    Args:
        siblings: Destination siblings (any order)
        index: Insertion index among the other siblings; clamped to range
        moving_id: Id of the node being placed
        step: Spacing used for end inserts and renormalization

    Returns:
        PositionPlan for the moving node, or None when locked siblings
        leave no room at ``index``
    """
    others = sorted((s for s in siblings if s.id != moving_id), key=lambda s: s.position)
    index = max(0, min(index, len(others)))

    prev_position = others[index - 1].position if index > 0 else None
    next_position = others[index].position if index < len(others) else None

    position = allocate_position(prev_position, next_position, step)
    if position is not None:
        return PositionPlan(position=position)

    start = index
    while start > 0 and not others[start - 1].is_locked:
        start -= 1
    end = index
    while end < len(others) and not others[end].is_locked:
        end += 1

    order = [s.id for s in others[start:end]]
    order.insert(index - start, moving_id)
    updates = _spread(
        order,
        others[start - 1].position if start > 0 else None,
        others[end].position if end < len(others) else None,
        step,
    )
    if updates is None:
        return None

    current = {s.id: s.position for s in others}
    moving = next(u for u in updates if u.id == moving_id)
    renumbered = [u for u in updates if u.id != moving_id and current[u.id] != u.position]
    return PositionPlan(position=moving.position, renumbered=renumbered)
