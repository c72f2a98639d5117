"""Deep-clone planning.

Produces the complete set of records for a clone of a subtree: fresh ids,
remapped parent and root references, forced origin, root overrides and
re-linked resources. Nothing is written here; a store commits the plan
as a single unit.

All functions are pure apart from drawing fresh uuids.
"""

from collections import defaultdict, deque
from uuid import uuid4

from pydantic import BaseModel, Field

from canopy.domain.shared import Err, Ok, Result

from .models import CloneOverrides, Resource, Task, TaskOrigin, TaskStatus


class ClonePlan(BaseModel):
    """Records to insert for one deep clone."""

    new_root_id: str
    id_map: dict[str, str]
    tasks: list[Task] = Field(default_factory=list)
    resources: list[Resource] = Field(default_factory=list)

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    @property
    def resource_count(self) -> int:
        return len(self.resources)


def collect_subtree(records: list[Task], root_id: str) -> list[Task]:
    """Select ``root_id`` and every record beneath it, parents first.

    Records not connected to ``root_id`` through ``parent_id`` links are
    ignored, so a flat dump of a whole table can be passed in.
    """
    by_id = {record.id: record for record in records}
    if root_id not in by_id:
        return []

    child_ids: dict[str, list[str]] = defaultdict(list)
    for record in records:
        if record.parent_id is not None and record.id != root_id:
            child_ids[record.parent_id].append(record.id)

    ordered: list[Task] = []
    pending = deque([root_id])
    seen: set[str] = set()
    while pending:
        task_id = pending.popleft()
        if task_id in seen:
            continue
        seen.add(task_id)
        ordered.append(by_id[task_id].record())
        pending.extend(child_ids.get(task_id, []))
    return ordered


def generate_id_map(tasks: list[Task]) -> dict[str, str]:
    """Map every source id to a fresh uuid."""
    return {task.id: str(uuid4()) for task in tasks}


def prepare_deep_clone(
    tasks: list[Task],
    resources: list[Resource],
    source_root_id: str,
    new_parent_id: str | None,
    new_origin: TaskOrigin,
    creator_id: str | None,
    overrides: CloneOverrides | None = None,
    existing_root_id: str | None = None,
    root_position: float | None = None,
) -> Result[ClonePlan, str]:
    """Plan an isomorphic copy of a subtree with new identities.

    The clone of the source root is attached to ``new_parent_id``, an
    external anchor, not to a clone of the source's own parent. Every
    clone gets ``root_id`` set to ``existing_root_id`` when cloning into
    an existing project, otherwise to the new root's id. ``origin`` is
    forced to ``new_origin``; statuses start over and locks are dropped.

    Args:
        tasks: Flat records containing the source subtree
        resources: Resources attached to any of those records
        source_root_id: Root of the subtree to copy
        new_parent_id: Parent for the cloned root, None for a new project
        new_origin: Origin stamped on every clone
        creator_id: Creator stamped on every clone
        overrides: Root-only field overrides; unset fields keep source values
        existing_root_id: Root id of the destination project, if any
        root_position: Position for the cloned root; defaults to the source's

    Returns:
        Ok(ClonePlan) or Err(str) when the source root is missing
    """
    subtree = collect_subtree(tasks, source_root_id)
    if not subtree:
        return Err(f"Source task not found: {source_root_id}")

    id_map = generate_id_map(subtree)
    new_root_id = id_map[source_root_id]
    resolved_root_id = existing_root_id or new_root_id

    clones: list[Task] = []
    for task in subtree:
        is_root = task.id == source_root_id
        update: dict[str, object] = {
            "id": id_map[task.id],
            "parent_id": new_parent_id if is_root else id_map[task.parent_id],
            "root_id": resolved_root_id,
            "origin": new_origin,
            "creator": creator_id,
            "status": TaskStatus.TODO,
            "is_locked": False,
            "is_expanded": False,
        }
        if is_root:
            if new_parent_id is None and new_origin == TaskOrigin.INSTANCE:
                update["status"] = TaskStatus.PLANNING
            if root_position is not None:
                update["position"] = root_position
            if overrides is not None:
                update.update(overrides.provided())
        clones.append(task.model_copy(update=update))

    cloned_resources = [
        resource.model_copy(update={"id": str(uuid4()), "task_id": id_map[resource.task_id]})
        for resource in resources
        if resource.task_id in id_map
    ]

    return Ok(
        ClonePlan(
            new_root_id=new_root_id,
            id_map=id_map,
            tasks=clones,
            resources=cloned_resources,
        )
    )
