"""Task domain events.

Immutable records of committed changes to the forest. They are produced
by the application services once the backing store has acknowledged a
change (or refused one, for rollbacks).

All events are pure data structures - no I/O, no side effects.
"""

from canopy.domain.shared.events import DomainEvent

from .models import TaskOrigin, TaskStatus


class TaskMoved(DomainEvent):
    """Event raised when a drag commit settles.

    Carries both ends of the move so a feed can say "moved from X to Y".
    """

    task_id: str
    kind: str
    parent_id: str | None
    previous_parent_id: str | None
    position: float
    status: TaskStatus
    renumbered: int = 0


class MoveRolledBack(DomainEvent):
    """Event raised when a drag commit fails and local state is restored."""

    task_id: str
    operation: str
    reason: str


class TaskStatusChanged(DomainEvent):
    """Event raised when a status change is committed.

    ``cascaded`` lists descendants completed along with the task;
    ``cascade_failed`` lists those left in their prior state.
    """

    task_id: str
    status: TaskStatus
    previous_status: TaskStatus
    cascaded: list[str] = []
    cascade_failed: list[str] = []


class TaskDeleted(DomainEvent):
    """Event raised when a task and its descendants are deleted."""

    task_id: str
    removed: int


class SubtreeCloned(DomainEvent):
    """Event raised when a deep clone has been committed and ingested."""

    source_root_id: str
    new_root_id: str
    new_parent_id: str | None
    origin: TaskOrigin
    task_count: int
    resource_count: int
