"""Gateway port consumed by the application services.

Any backing store or transport that implements these coroutines can
drive the engine: the in-process ``TaskStore``, the HTTP
``RestTaskGateway``, or a fake in tests. Implementations raise
``GatewayError`` subclasses on failure.
"""

from typing import Protocol

from canopy.domain.task import (
    CloneOverrides,
    CloneResult,
    PositionUpdate,
    RootsPage,
    Task,
    TaskOrigin,
    TaskStatus,
)
from canopy.domain.types import UNSET, Unset


class TaskGateway(Protocol):
    """Operations the engine needs from the surrounding system."""

    async def fetch_children(self, task_id: str) -> list[Task]:
        """Return the whole subtree rooted at ``task_id``, flat, root included."""
        ...

    async def fetch_roots_page(self, offset: int, limit: int) -> RootsPage:
        """Return one page of root tasks in position order."""
        ...

    async def update_task_position(
        self,
        task_id: str,
        position: float,
        parent_id: str | None | Unset = UNSET,
    ) -> Task:
        """Set a task's position; ``parent_id`` is only changed when passed."""
        ...

    async def bulk_update_positions(self, updates: list[PositionUpdate]) -> list[Task]:
        """Apply a renormalization batch."""
        ...

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Task:
        """Set a task's status."""
        ...

    async def delete_task(self, task_id: str) -> None:
        """Delete a task; descendants are removed by the store."""
        ...

    async def clone_subtree(
        self,
        source_root_id: str,
        new_parent_id: str | None,
        new_origin: TaskOrigin,
        creator_id: str | None,
        overrides: CloneOverrides | None = None,
    ) -> CloneResult:
        """Atomically deep-clone a subtree."""
        ...
