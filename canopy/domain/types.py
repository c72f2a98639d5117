"""Domain value objects for canopy.

Immutable value objects shared by the planner, the services and the
gateways.
"""

from dataclasses import dataclass
from enum import Enum


class Unset(Enum):
    """Marker for "argument not provided".

    Distinguishes an omitted ``parent_id`` (leave the parent untouched)
    from an explicit ``None`` (make the node a root).
    """

    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


UNSET = Unset.UNSET


@dataclass(frozen=True)
class ContainerKey:
    """Identity of a drop container.

    A drag gesture resolves a source and a destination container. In tree
    view the status slot is ``None``; in board view it names the column.

    Example:
        column = ContainerKey("instance", "phase-1", status="blocked")
        str(column)  # "instance:phase-1[blocked]"
    """

    origin: str
    parent_id: str | None
    status: str | None = None

    def __str__(self) -> str:
        parent = self.parent_id or "<root>"
        if self.status:
            return f"{self.origin}:{parent}[{self.status}]"
        return f"{self.origin}:{parent}"
