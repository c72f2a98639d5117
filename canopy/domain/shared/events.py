"""Base domain event infrastructure.

Domain events are immutable records of something that happened to the
forest: a committed move, a rollback, a status change, a deletion or a
clone. The forest owner keeps them in order so the surrounding UI can
render notifications or an activity feed.

Example usage:
    >>> class TaskArchived(DomainEvent):
    ...     task_id: str
    ...
    >>> event = TaskArchived(task_id="task-123")
    >>> print(f"Event {event.event_id} occurred at {event.timestamp}")
"""

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field


class DomainEvent(BaseModel):
    """Base class for all domain events.

    Each event has a unique ID and a UTC timestamp taken at creation.
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}
