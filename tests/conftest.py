"""Shared fixtures: task builders and an in-memory gateway."""

import asyncio

import pytest

from canopy.application import ForestState
from canopy.domain.shared import Err, GatewayError, TaskNotFound
from canopy.domain.task import (
    CloneOverrides,
    CloneResult,
    PositionUpdate,
    Resource,
    RootsPage,
    Task,
    TaskOrigin,
    TaskStatus,
    build_tree,
    collect_subtree,
    prepare_deep_clone,
)
from canopy.domain.types import UNSET, Unset


def make_task(
    task_id: str,
    parent_id: str | None = None,
    position: float = 1000.0,
    root_id: str | None = None,
    **fields,
) -> Task:
    """Build a task; non-root tasks belong to project ``p1`` unless told otherwise."""
    if root_id is None:
        root_id = task_id if parent_id is None else "p1"
    return Task(id=task_id, parent_id=parent_id, root_id=root_id, position=position, **fields)


def project_rows() -> list[Task]:
    """Project p1 with two phases; phase a has three ordered tasks."""
    return [
        make_task("p1", title="Project"),
        make_task("a", "p1", 1000, title="Phase A"),
        make_task("b", "p1", 2000, title="Phase B"),
        make_task("a1", "a", 1000, title="A1"),
        make_task("a2", "a", 2000, title="A2"),
        make_task("a3", "a", 3000, title="A3"),
    ]


def ids(nodes: list[Task]) -> list[str]:
    return [node.id for node in nodes]


class FakeGateway:
    """In-memory ``TaskGateway`` that records calls and fails on demand.

    ``failures`` maps an operation name, or ``"operation:task_id"``, to
    the exception to raise. ``gates`` maps the same keys to events the
    call waits on before answering.
    """

    def __init__(self, tasks: list[Task] | None = None, resources: list[Resource] | None = None):
        self.tasks: dict[str, Task] = {task.id: task.record() for task in tasks or []}
        self.resources: list[Resource] = list(resources or [])
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.short_fetch = False

    async def _enter(self, operation: str, task_id: str | None = None) -> None:
        for key in (f"{operation}:{task_id}", operation):
            gate = self.gates.get(key)
            if gate is not None:
                await gate.wait()
                break
        for key in (f"{operation}:{task_id}", operation):
            if key in self.failures:
                raise self.failures[key]

    def _get(self, task_id: str) -> Task:
        if task_id not in self.tasks:
            raise TaskNotFound(f"Task not found: {task_id}", task_id=task_id)
        return self.tasks[task_id]

    async def fetch_children(self, task_id: str) -> list[Task]:
        self.calls.append(("fetch_children", task_id))
        await self._enter("fetch_children", task_id)
        self._get(task_id)
        rows = collect_subtree(list(self.tasks.values()), task_id)
        return rows[:-1] if self.short_fetch else rows

    async def fetch_roots_page(self, offset: int, limit: int) -> RootsPage:
        self.calls.append(("fetch_roots_page", offset, limit))
        await self._enter("fetch_roots_page")
        roots = sorted((t for t in self.tasks.values() if t.parent_id is None), key=lambda t: t.position)
        return RootsPage(items=roots[offset : offset + limit], has_more=offset + limit < len(roots))

    async def update_task_position(
        self,
        task_id: str,
        position: float,
        parent_id: str | None | Unset = UNSET,
    ) -> Task:
        self.calls.append(("update_task_position", task_id, position, parent_id))
        await self._enter("update_task_position", task_id)
        update: dict = {"position": position}
        if parent_id is not UNSET:
            update["parent_id"] = parent_id
        self.tasks[task_id] = self._get(task_id).model_copy(update=update)
        return self.tasks[task_id]

    async def bulk_update_positions(self, updates: list[PositionUpdate]) -> list[Task]:
        self.calls.append(("bulk_update_positions", [(u.id, u.position) for u in updates]))
        await self._enter("bulk_update_positions")
        for update in updates:
            self.tasks[update.id] = self._get(update.id).model_copy(update={"position": update.position})
        return [self.tasks[update.id] for update in updates]

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Task:
        self.calls.append(("update_task_status", task_id, status))
        await self._enter("update_task_status", task_id)
        self.tasks[task_id] = self._get(task_id).model_copy(update={"status": status})
        return self.tasks[task_id]

    async def delete_task(self, task_id: str) -> None:
        self.calls.append(("delete_task", task_id))
        await self._enter("delete_task", task_id)
        for row in collect_subtree(list(self.tasks.values()), task_id):
            del self.tasks[row.id]

    async def clone_subtree(
        self,
        source_root_id: str,
        new_parent_id: str | None,
        new_origin: TaskOrigin,
        creator_id: str | None,
        overrides: CloneOverrides | None = None,
    ) -> CloneResult:
        self.calls.append(("clone_subtree", source_root_id, new_parent_id))
        await self._enter("clone_subtree", source_root_id)
        existing_root_id = self._get(new_parent_id).root_id if new_parent_id else None
        planned = prepare_deep_clone(
            list(self.tasks.values()),
            self.resources,
            source_root_id,
            new_parent_id,
            new_origin,
            creator_id,
            overrides=overrides,
            existing_root_id=existing_root_id,
        )
        if isinstance(planned, Err):
            raise GatewayError(planned.error, task_id=source_root_id)
        for task in planned.value.tasks:
            self.tasks[task.id] = task
        self.resources.extend(planned.value.resources)
        return CloneResult(
            new_root_id=planned.value.new_root_id,
            task_count=planned.value.task_count,
            resource_count=planned.value.resource_count,
        )

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def rows() -> list[Task]:
    return project_rows()


@pytest.fixture
def gateway(rows) -> FakeGateway:
    return FakeGateway(rows)


@pytest.fixture
def state(rows) -> ForestState:
    return ForestState(build_tree(rows, None))
