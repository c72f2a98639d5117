"""In-process task store backed by a JSON document.

``TaskStore`` is the reference implementation of ``TaskGateway``. It
keeps the flat task table and the resources in memory, enforces the
tree invariants the engine relies on (locks, origin, single root per
tree, depth), and writes the whole document through ``JsonStorage`` on
every change. A change is applied in memory only after the write
succeeded, which makes every operation, clones included, all-or-nothing.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any
from uuid import uuid4

from canopy.domain.shared import (
    CloneAtomicityViolation,
    Err,
    GatewayError,
    Ok,
    Result,
    RuleViolation,
    TaskNotFound,
)
from canopy.domain.task import (
    MAX_LEVEL,
    POSITION_STEP,
    CloneOverrides,
    CloneResult,
    PositionUpdate,
    Resource,
    RootsPage,
    Task,
    TaskOrigin,
    TaskStatus,
    collect_subtree,
    prepare_deep_clone,
)
from canopy.domain.types import UNSET, Unset
from canopy.infrastructure.storage.json_storage import JsonStorage

logger = logging.getLogger(__name__)


class TaskStore:
    """Flat task table with atomic JSON persistence.

    Example:
        store = TaskStore(Path("tasks.json"))
        project = await store.create_task("Launch")
        phase = await store.create_task("Design", parent_id=project.id)
        rows = await store.fetch_children(project.id)
    """

    def __init__(
        self,
        path: Path | None = None,
        storage: JsonStorage | None = None,
        step: float = POSITION_STEP,
    ) -> None:
        """Initialize an empty store.

        Args:
            path: JSON document to persist to; None keeps everything in memory
            storage: JsonStorage instance to use. Creates new one if not provided.
            step: Position spacing for appended tasks
        """
        self._path = path
        self._storage = storage or JsonStorage()
        self._step = step
        self._tasks: dict[str, Task] = {}
        self._resources: dict[str, Resource] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def load(
        cls,
        path: Path,
        storage: JsonStorage | None = None,
        step: float = POSITION_STEP,
    ) -> Result["TaskStore", str]:
        """Open a store from its JSON document.

        A missing file yields an empty store; it is created on first write.
        """
        store = cls(path, storage, step)
        if not path.exists():
            return Ok(store)

        result = store._storage.load_json(path)
        if isinstance(result, Err):
            return result

        try:
            tasks = [Task(**row) for row in result.value.get("tasks", [])]
            resources = [Resource(**row) for row in result.value.get("resources", [])]
        except Exception as e:
            return Err(f"Invalid task data in {path}: {e}")

        store._tasks = {task.id: task for task in tasks}
        store._resources = {resource.id: resource for resource in resources}
        return Ok(store)

    # =========================================================================
    # Reads
    # =========================================================================

    def all_tasks(self) -> list[Task]:
        return sorted(self._tasks.values(), key=lambda task: task.position)

    def all_resources(self) -> list[Resource]:
        return list(self._resources.values())

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def resources_for(self, task_id: str) -> list[Resource]:
        return [r for r in self._resources.values() if r.task_id == task_id]

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFound(f"Task not found: {task_id}", task_id=task_id)
        return task

    def _children_of(self, parent_id: str | None) -> list[Task]:
        return sorted(
            (task for task in self._tasks.values() if task.parent_id == parent_id),
            key=lambda task: task.position,
        )

    def _ancestors(self, task: Task) -> list[Task]:
        chain: list[Task] = []
        seen = {task.id}
        parent_id = task.parent_id
        while parent_id is not None and parent_id not in seen:
            parent = self._tasks.get(parent_id)
            if parent is None:
                break
            chain.append(parent)
            seen.add(parent_id)
            parent_id = parent.parent_id
        return chain

    def level(self, task_id: str) -> int:
        """Distance of a task from its project root."""
        return len(self._ancestors(self._require(task_id)))

    def _height(self, task_id: str) -> int:
        children = self._children_of(task_id)
        if not children:
            return 0
        return 1 + max(self._height(child.id) for child in children)

    def _check_unlocked(self, task: Task) -> None:
        for candidate in [task, *self._ancestors(task)]:
            if candidate.is_locked:
                raise RuleViolation(f"Task {candidate.id} is locked", task_id=task.id)

    def _append_position(self, parent_id: str | None) -> float:
        siblings = self._children_of(parent_id)
        return siblings[-1].position + self._step if siblings else float(self._step)

    # =========================================================================
    # Commit
    # =========================================================================

    def _document(self, tasks: dict[str, Task], resources: dict[str, Resource]) -> dict[str, Any]:
        return {
            "tasks": [task.to_record() for task in tasks.values()],
            "resources": [resource.model_dump(mode="json") for resource in resources.values()],
        }

    def _commit(
        self,
        tasks: dict[str, Task],
        resources: dict[str, Resource] | None = None,
        error: type[GatewayError] = GatewayError,
    ) -> None:
        """Persist a complete new table, then swap it in."""
        resources = self._resources if resources is None else resources
        if self._path is not None:
            result = self._storage.save_json(self._path, self._document(tasks, resources))
            if isinstance(result, Err):
                raise error(result.error)
        self._tasks = tasks
        self._resources = resources

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_task(
        self,
        title: str,
        parent_id: str | None = None,
        origin: TaskOrigin = TaskOrigin.INSTANCE,
        status: TaskStatus | None = None,
        is_locked: bool = False,
        position: float | None = None,
        **fields: Any,
    ) -> Task:
        """Append a new task under ``parent_id`` (a new root when None)."""
        async with self._lock:
            root_id = None
            if parent_id is not None:
                parent = self._require(parent_id)
                if parent.origin != origin:
                    raise RuleViolation("Child origin must match its parent", task_id=parent_id)
                if self.level(parent_id) + 1 > MAX_LEVEL:
                    raise RuleViolation(f"Tasks cannot be nested deeper than level {MAX_LEVEL}", task_id=parent_id)
                root_id = parent.root_id

            task = Task(
                id=str(uuid4()),
                parent_id=parent_id,
                root_id=root_id,
                origin=origin,
                title=title,
                status=status or (TaskStatus.PLANNING if parent_id is None else TaskStatus.TODO),
                is_locked=is_locked,
                position=position if position is not None else self._append_position(parent_id),
                **fields,
            )
            self._commit({**self._tasks, task.id: task})
            logger.debug(f"Created task {task.id} under {parent_id}")
            return task

    async def add_resource(self, task_id: str, label: str, url: str | None = None, kind: str = "link") -> Resource:
        async with self._lock:
            self._require(task_id)
            resource = Resource(id=str(uuid4()), task_id=task_id, kind=kind, label=label, url=url)
            self._commit(dict(self._tasks), {**self._resources, resource.id: resource})
            return resource

    # =========================================================================
    # Gateway operations
    # =========================================================================

    async def fetch_children(self, task_id: str) -> list[Task]:
        self._require(task_id)
        return collect_subtree(list(self._tasks.values()), task_id)

    async def fetch_roots_page(self, offset: int, limit: int) -> RootsPage:
        roots = self._children_of(None)
        items = roots[offset : offset + limit]
        return RootsPage(items=items, has_more=offset + limit < len(roots))

    async def update_task_position(
        self,
        task_id: str,
        position: float,
        parent_id: str | None | Unset = UNSET,
    ) -> Task:
        async with self._lock:
            task = self._require(task_id)
            self._check_unlocked(task)
            update: dict[str, Any] = {"position": position}

            if parent_id is not UNSET and parent_id != task.parent_id:
                self._check_reparent(task, parent_id)
                update["parent_id"] = parent_id

            moved = task.model_copy(update=update)
            self._commit({**self._tasks, task_id: moved})
            return moved

    def _check_reparent(self, task: Task, parent_id: str | None) -> None:
        if parent_id is None:
            raise RuleViolation("Cannot move a task out of its project", task_id=task.id)
        parent = self._require(parent_id)
        if parent.origin != task.origin:
            raise RuleViolation("Cannot move between templates and projects", task_id=task.id)
        if parent.root_id != task.root_id:
            raise RuleViolation("Cannot move a task to another project", task_id=task.id)
        if parent.id == task.id or any(a.id == task.id for a in self._ancestors(parent)):
            raise RuleViolation("Cannot move a task into its own subtree", task_id=task.id)
        self._check_unlocked(parent)
        if self.level(parent.id) + 1 + self._height(task.id) > MAX_LEVEL:
            raise RuleViolation(f"Move would nest tasks deeper than level {MAX_LEVEL}", task_id=task.id)

    async def bulk_update_positions(self, updates: list[PositionUpdate]) -> list[Task]:
        async with self._lock:
            tasks = dict(self._tasks)
            changed: list[Task] = []
            for update in updates:
                task = self._require(update.id)
                self._check_unlocked(task)
                tasks[update.id] = task.model_copy(update={"position": update.position})
                changed.append(tasks[update.id])
            self._commit(tasks)
            return changed

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Task:
        async with self._lock:
            task = self._require(task_id).model_copy(update={"status": status})
            self._commit({**self._tasks, task_id: task})
            return task

    async def delete_task(self, task_id: str) -> None:
        async with self._lock:
            self._require(task_id)
            doomed = {task.id for task in collect_subtree(list(self._tasks.values()), task_id)}
            tasks = {k: v for k, v in self._tasks.items() if k not in doomed}
            resources = {k: v for k, v in self._resources.items() if v.task_id not in doomed}
            self._commit(tasks, resources)
            logger.debug(f"Deleted {len(doomed)} tasks under {task_id}")

    async def clone_subtree(
        self,
        source_root_id: str,
        new_parent_id: str | None,
        new_origin: TaskOrigin,
        creator_id: str | None,
        overrides: CloneOverrides | None = None,
    ) -> CloneResult:
        """Deep-clone a subtree with its resources as one commit.

        When ``new_parent_id`` is given the clone joins that parent's
        project; otherwise it becomes a new root appended after the
        existing ones.

        Raises:
            TaskNotFound: Unknown source or destination
            RuleViolation: Destination origin differs or the copy would
                nest deeper than MAX_LEVEL
            CloneAtomicityViolation: The commit failed; nothing was stored
        """
        async with self._lock:
            self._require(source_root_id)
            existing_root_id = None
            if new_parent_id is not None:
                parent = self._require(new_parent_id)
                if parent.origin != new_origin:
                    raise RuleViolation("Clone origin must match the destination", task_id=new_parent_id)
                if self.level(new_parent_id) + 1 + self._height(source_root_id) > MAX_LEVEL:
                    raise RuleViolation(
                        f"Clone would nest tasks deeper than level {MAX_LEVEL}",
                        task_id=new_parent_id,
                    )
                existing_root_id = parent.root_id

            planned = prepare_deep_clone(
                list(self._tasks.values()),
                list(self._resources.values()),
                source_root_id,
                new_parent_id,
                new_origin,
                creator_id,
                overrides=overrides,
                existing_root_id=existing_root_id,
                root_position=self._append_position(new_parent_id),
            )
            if isinstance(planned, Err):
                raise TaskNotFound(planned.error, task_id=source_root_id)

            plan = planned.value
            tasks = {**self._tasks, **{task.id: task for task in plan.tasks}}
            resources = {**self._resources, **{r.id: r for r in plan.resources}}
            self._commit(tasks, resources, error=CloneAtomicityViolation)

            logger.info(f"Cloned {source_root_id} into {plan.new_root_id} ({plan.task_count} tasks)")
            return CloneResult(
                new_root_id=plan.new_root_id,
                task_count=plan.task_count,
                resource_count=plan.resource_count,
            )
