import pytest

from canopy.domain.shared import CloneAtomicityViolation, Err, Ok, RuleViolation, TaskNotFound
from canopy.domain.task import CloneOverrides, PositionUpdate, TaskOrigin, TaskStatus
from canopy.infrastructure.storage import JsonStorage, TaskStore


class FailingStorage(JsonStorage):
    """Accepts ``allowed`` writes, then refuses every later one."""

    def __init__(self, allowed: int):
        self.allowed = allowed

    def save_json(self, path, data, indent=2):
        if self.allowed <= 0:
            return Err(f"Disk full writing {path}")
        self.allowed -= 1
        return super().save_json(path, data, indent)


async def seed(store: TaskStore) -> dict:
    project = await store.create_task("Project")
    a = await store.create_task("Phase A", parent_id=project.id)
    b = await store.create_task("Phase B", parent_id=project.id)
    a1 = await store.create_task("A1", parent_id=a.id)
    return {"p": project, "a": a, "b": b, "a1": a1}


@pytest.mark.asyncio
async def test_create_task_appends_and_links():
    store = TaskStore()
    tasks = await seed(store)

    assert tasks["p"].status == TaskStatus.PLANNING
    assert tasks["p"].root_id == tasks["p"].id
    assert tasks["a1"].root_id == tasks["p"].id
    assert (tasks["a"].position, tasks["b"].position) == (1000, 2000)
    assert store.level(tasks["a1"].id) == 2


@pytest.mark.asyncio
async def test_create_task_enforces_depth_and_origin():
    store = TaskStore()
    parent = (await store.create_task("L0")).id
    for level in range(1, 5):
        parent = (await store.create_task(f"L{level}", parent_id=parent)).id

    with pytest.raises(RuleViolation):
        await store.create_task("L5", parent_id=parent)
    with pytest.raises(RuleViolation):
        await store.create_task("T", parent_id=parent, origin=TaskOrigin.TEMPLATE)


@pytest.mark.asyncio
async def test_position_update_leaves_parent_unless_given():
    store = TaskStore()
    tasks = await seed(store)

    moved = await store.update_task_position(tasks["a1"].id, 500)
    assert moved.parent_id == tasks["a"].id

    moved = await store.update_task_position(tasks["a1"].id, 500, tasks["b"].id)
    assert moved.parent_id == tasks["b"].id


@pytest.mark.asyncio
async def test_store_rejects_rule_breaking_moves():
    store = TaskStore()
    tasks = await seed(store)

    with pytest.raises(RuleViolation):
        await store.update_task_position(tasks["a"].id, 1, tasks["a1"].id)
    with pytest.raises(RuleViolation):
        await store.update_task_position(tasks["a"].id, 1, None)
    with pytest.raises(TaskNotFound):
        await store.update_task_position("missing", 1)

    locked = await store.create_task("Locked", parent_id=tasks["p"].id, is_locked=True)
    with pytest.raises(RuleViolation):
        await store.update_task_position(locked.id, 1)
    with pytest.raises(RuleViolation):
        await store.bulk_update_positions([PositionUpdate(id=locked.id, position=1)])


@pytest.mark.asyncio
async def test_roots_are_paginated():
    store = TaskStore()
    for n in range(3):
        await store.create_task(f"P{n}")

    first = await store.fetch_roots_page(0, 2)
    second = await store.fetch_roots_page(2, 2)
    assert [t.title for t in first.items] == ["P0", "P1"]
    assert first.has_more
    assert [t.title for t in second.items] == ["P2"]
    assert not second.has_more


@pytest.mark.asyncio
async def test_delete_cascades_with_resources():
    store = TaskStore()
    tasks = await seed(store)
    await store.add_resource(tasks["a1"].id, "Spec", "https://example.com/spec")

    await store.delete_task(tasks["a"].id)

    assert store.get(tasks["a1"].id) is None
    assert store.all_resources() == []
    assert [t.id for t in await store.fetch_children(tasks["p"].id)] == [tasks["p"].id, tasks["b"].id]


@pytest.mark.asyncio
async def test_document_survives_reload(tmp_path):
    path = tmp_path / "tasks.json"
    store = TaskStore(path)
    tasks = await seed(store)
    await store.add_resource(tasks["a"].id, "Doc")

    reloaded = TaskStore.load(path)
    assert isinstance(reloaded, Ok)
    rows = await reloaded.value.fetch_children(tasks["p"].id)
    assert {row.id for row in rows} == {t.id for t in tasks.values()}
    assert len(reloaded.value.resources_for(tasks["a"].id)) == 1


def test_load_reports_corrupt_document(tmp_path):
    path = tmp_path / "tasks.json"
    path.write_text("{not json", encoding="utf-8")
    assert isinstance(TaskStore.load(path), Err)


@pytest.mark.asyncio
async def test_clone_commits_everything():
    store = TaskStore()
    template = await store.create_task("Template", origin=TaskOrigin.TEMPLATE)
    phase = await store.create_task("Phase", parent_id=template.id, origin=TaskOrigin.TEMPLATE)
    await store.add_resource(phase.id, "Checklist")

    result = await store.clone_subtree(
        template.id, None, TaskOrigin.INSTANCE, "u1", CloneOverrides(title="Launch")
    )

    rows = await store.fetch_children(result.new_root_id)
    assert result.task_count == len(rows) == 2
    assert result.resource_count == 1
    root = store.get(result.new_root_id)
    assert root.title == "Launch"
    assert root.origin == TaskOrigin.INSTANCE
    assert root.position == template.position + 1000


@pytest.mark.asyncio
async def test_clone_into_project_checks_destination():
    store = TaskStore()
    template = await store.create_task("Template", origin=TaskOrigin.TEMPLATE)
    await store.create_task("Step", parent_id=template.id, origin=TaskOrigin.TEMPLATE)
    project = await store.create_task("Project")

    result = await store.clone_subtree(template.id, project.id, TaskOrigin.INSTANCE, None)
    clone = store.get(result.new_root_id)
    assert clone.parent_id == project.id
    assert clone.root_id == project.id

    with pytest.raises(RuleViolation):
        await store.clone_subtree(template.id, project.id, TaskOrigin.TEMPLATE, None)


@pytest.mark.asyncio
async def test_failed_clone_leaves_no_trace(tmp_path):
    path = tmp_path / "tasks.json"
    store = TaskStore(path, storage=FailingStorage(allowed=3))
    template = await store.create_task("Template", origin=TaskOrigin.TEMPLATE)
    await store.create_task("A", parent_id=template.id, origin=TaskOrigin.TEMPLATE)
    await store.create_task("B", parent_id=template.id, origin=TaskOrigin.TEMPLATE)
    before = [t.id for t in store.all_tasks()]

    with pytest.raises(CloneAtomicityViolation):
        await store.clone_subtree(template.id, None, TaskOrigin.INSTANCE, None)

    assert [t.id for t in store.all_tasks()] == before
    reloaded = TaskStore.load(path).value
    assert len(reloaded.all_tasks()) == 3
