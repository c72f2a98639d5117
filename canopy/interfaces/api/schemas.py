"""Request schemas for the canopy API.

Responses reuse the domain models directly (``Task``, ``RootsPage``,
``CloneResult``).
"""

from pydantic import BaseModel

from canopy.domain.task import CloneOverrides, PositionUpdate, TaskOrigin, TaskStatus
from canopy.domain.types import UNSET, Unset


class PositionRequest(BaseModel):
    """Move a task within or across sibling lists.

    ``parent_id`` is only applied when present in the body; an explicit
    ``null`` asks for the task to become a root.
    """

    position: float
    parent_id: str | None = None

    def requested_parent(self) -> str | None | Unset:
        if "parent_id" in self.model_fields_set:
            return self.parent_id
        return UNSET


class BulkPositionsRequest(BaseModel):
    """A renormalization batch."""

    updates: list[PositionUpdate]


class StatusRequest(BaseModel):
    status: TaskStatus


class CloneRequest(BaseModel):
    """Deep-clone the task in the path under ``new_parent_id``."""

    new_parent_id: str | None = None
    new_origin: TaskOrigin = TaskOrigin.INSTANCE
    creator_id: str | None = None
    overrides: CloneOverrides | None = None
