import pytest
from conftest import ids

from canopy.application import StatusService
from canopy.domain.shared import Err, GatewayError, MoveRejected, Ok
from canopy.domain.task import TaskDeleted, TaskStatus, TaskStatusChanged


@pytest.mark.asyncio
async def test_complete_cascades_to_loaded_descendants(gateway, state):
    result = await StatusService(gateway, state).change_status("a", TaskStatus.COMPLETE)

    assert isinstance(result, Ok)
    report = result.value
    assert sorted(report.updated) == ["a1", "a2", "a3"]
    assert report.failed == []
    for task_id in ("a", "a1", "a2", "a3"):
        assert state.find(task_id).status == TaskStatus.COMPLETE
    assert state.find("b").status == TaskStatus.TODO


@pytest.mark.asyncio
async def test_cascade_partial_failure_keeps_parent_committed(gateway, state):
    gateway.failures["update_task_status:a2"] = GatewayError("conflict")

    result = await StatusService(gateway, state).change_status("a", TaskStatus.COMPLETE)

    assert isinstance(result, Ok)
    report = result.value
    assert report.partial
    assert report.failed == ["a2"]
    assert state.find("a").status == TaskStatus.COMPLETE
    assert state.find("a1").status == TaskStatus.COMPLETE
    assert state.find("a2").status == TaskStatus.TODO

    event = state.events[-1]
    assert isinstance(event, TaskStatusChanged)
    assert event.cascade_failed == ["a2"]


@pytest.mark.asyncio
async def test_other_statuses_do_not_cascade(gateway, state):
    result = await StatusService(gateway, state).change_status("a", TaskStatus.BLOCKED)

    assert result.value.updated == []
    assert gateway.operations() == ["update_task_status"]
    assert state.find("a1").status == TaskStatus.TODO


@pytest.mark.asyncio
async def test_failed_status_change_is_reverted(gateway, state):
    gateway.failures["update_task_status:a"] = GatewayError("down")

    result = await StatusService(gateway, state).change_status("a", TaskStatus.COMPLETE)

    assert isinstance(result, Err)
    assert result.error.operation == "update_task_status"
    assert state.find("a").status == TaskStatus.TODO
    assert gateway.operations() == ["update_task_status"]


@pytest.mark.asyncio
async def test_unchanged_status_is_rejected(gateway, state):
    result = await StatusService(gateway, state).change_status("a", TaskStatus.TODO)

    assert isinstance(result, Err)
    assert isinstance(result.error, MoveRejected)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_delete_removes_local_descendants(gateway, state):
    state.set_expanded("a", True)

    result = await StatusService(gateway, state).delete_task("a")

    assert result == Ok(4)
    assert ids(state.find("p1").children) == ["b"]
    assert "a" not in state.expanded_ids
    assert isinstance(state.events[-1], TaskDeleted)


@pytest.mark.asyncio
async def test_failed_delete_leaves_forest_untouched(gateway, state):
    gateway.failures["delete_task"] = GatewayError("forbidden")
    before = state.roots

    result = await StatusService(gateway, state).delete_task("a")

    assert isinstance(result, Err)
    assert state.roots is before
