import asyncio

import pytest
from conftest import FakeGateway, ids, make_task

from canopy.application import DragPhase, ForestState, MoveCoordinator
from canopy.domain.shared import Err, GatewayError, MoveRejected, Ok, PersistenceFailure
from canopy.domain.task import DropTarget, MoveRolledBack, TaskMoved, TaskOrigin, TaskStatus, build_tree
from canopy.domain.types import UNSET
from canopy.infrastructure.storage import TaskStore


def target(parent_id, index=None, status=None):
    return DropTarget(parent_id=parent_id, origin=TaskOrigin.INSTANCE, index=index, status=status)


def siblings(state: ForestState, parent_id: str):
    return [(node.id, node.position) for node in state.find(parent_id).children]


@pytest.fixture
def board_rows():
    return [
        make_task("p1"),
        make_task("A", "p1", 1000),
        make_task("B", "p1", 2000),
        make_task("C", "p1", 3000),
        make_task("Q", "p1", 4000, is_locked=True),
    ]


@pytest.fixture
def board(board_rows):
    gateway = FakeGateway(board_rows)
    state = ForestState(build_tree(board_rows, None))
    return gateway, state, MoveCoordinator(gateway, state)


@pytest.mark.asyncio
async def test_move_is_applied_before_persistence_completes(board):
    gateway, state, coordinator = board
    gateway.gates["update_task_position"] = asyncio.Event()

    session = coordinator.begin_drag("C").value
    drop = asyncio.create_task(coordinator.drop(session, target("p1", index=1)))
    await asyncio.sleep(0)

    assert session.phase == DragPhase.COMMITTING
    assert siblings(state, "p1")[:3] == [("A", 1000), ("C", 1500), ("B", 2000)]

    gateway.gates["update_task_position"].set()
    result = await drop
    assert isinstance(result, Ok)
    assert session.phase == DragPhase.SETTLED
    assert gateway.calls == [("update_task_position", "C", 1500, UNSET)]
    assert isinstance(state.events[-1], TaskMoved)


@pytest.mark.asyncio
async def test_failed_persistence_rolls_back(board):
    gateway, state, coordinator = board
    gateway.failures["update_task_position"] = GatewayError("server unavailable")

    result = await coordinator.move("C", target("p1", index=1))

    assert isinstance(result, Err)
    failure = result.error
    assert isinstance(failure, PersistenceFailure)
    assert failure.task_id == "C"
    assert failure.operation == "update_task_position"
    assert siblings(state, "p1")[:3] == [("A", 1000), ("B", 2000), ("C", 3000)]
    assert isinstance(state.events[-1], MoveRolledBack)
    assert "C" not in state.in_flight


@pytest.mark.asyncio
async def test_second_drag_of_same_task_waits_for_commit(board):
    gateway, state, coordinator = board
    gateway.gates["update_task_position"] = asyncio.Event()

    first = asyncio.create_task(coordinator.move("C", target("p1", index=0)))
    await asyncio.sleep(0)

    again = coordinator.begin_drag("C")
    assert isinstance(again, Err)
    assert isinstance(again.error, MoveRejected)
    assert isinstance(coordinator.begin_drag("A"), Ok)

    gateway.gates["update_task_position"].set()
    assert isinstance(await first, Ok)
    assert isinstance(coordinator.begin_drag("C"), Ok)


@pytest.mark.asyncio
async def test_rejected_drop_makes_no_calls(board):
    gateway, state, coordinator = board
    before = state.roots

    session = coordinator.begin_drag("Q").value
    result = await coordinator.drop(session, target("p1", index=0))

    assert isinstance(result, Err)
    assert result.error.reason == "Task is locked"
    assert session.phase == DragPhase.IDLE
    assert gateway.calls == []
    assert state.roots is before


@pytest.mark.asyncio
async def test_reparent_sends_parent(board):
    gateway, state, coordinator = board
    result = await coordinator.move("C", target("A"))

    assert isinstance(result, Ok)
    assert gateway.calls == [("update_task_position", "C", 1000, "A")]
    assert ids(state.find("A").children) == ["C"]


@pytest.mark.asyncio
async def test_column_drop_only_updates_status(board):
    gateway, state, coordinator = board
    result = await coordinator.move("B", target("p1", status=TaskStatus.BLOCKED))

    assert isinstance(result, Ok)
    assert gateway.operations() == ["update_task_status"]
    assert state.find("B").status == TaskStatus.BLOCKED
    assert state.find("B").position == 2000


@pytest.mark.asyncio
async def test_failed_status_after_reorder_rolls_back_both(board):
    gateway, state, coordinator = board
    gateway.failures["update_task_status"] = GatewayError("nope")

    result = await coordinator.move("A", target("p1", index=2, status=TaskStatus.COMPLETE))

    assert isinstance(result, Err)
    assert result.error.operation == "update_task_status"
    node = state.find("A")
    assert (node.position, node.status) == (1000, TaskStatus.TODO)
    stored = gateway.tasks["A"]
    assert (stored.position, stored.status) == (1000, TaskStatus.TODO)
    assert gateway.operations() == ["update_task_position", "update_task_status", "update_task_position"]


@pytest.mark.asyncio
async def test_failed_undo_leaves_forest_matching_the_store(board, monkeypatch):
    gateway, state, coordinator = board
    gateway.failures["update_task_status"] = GatewayError("nope")
    original = gateway.update_task_position

    async def only_once(task_id, position, parent_id=UNSET):
        if gateway.operations().count("update_task_position"):
            raise GatewayError("still down")
        return await original(task_id, position, parent_id)

    monkeypatch.setattr(gateway, "update_task_position", only_once)

    result = await coordinator.move("A", target("p1", index=2, status=TaskStatus.COMPLETE))

    assert isinstance(result, Err)
    node, stored = state.find("A"), gateway.tasks["A"]
    assert (node.position, node.status) == (stored.position, stored.status) == (3500, TaskStatus.TODO)


def cluster_rows(*positions):
    names = ["x", "m", "y", "w"][: len(positions)]
    return [make_task("p1")] + [make_task(name, "p1", pos) for name, pos in zip(names, positions)]


@pytest.mark.asyncio
async def test_renumbering_goes_out_as_one_batch():
    rows = [make_task("p1"), make_task("x", "p1", 1.0), make_task("y", "p1", 1.0005), make_task("m", "p1", 9.0)]
    gateway = FakeGateway(rows)
    state = ForestState(build_tree(rows, None))

    result = await MoveCoordinator(gateway, state).move("m", target("p1", index=1))

    assert isinstance(result, Ok)
    assert gateway.operations() == ["bulk_update_positions"]
    assert gateway.calls[0][1] == [("x", 1000), ("y", 3000), ("m", 2000)]
    assert siblings(state, "p1") == [("x", 1000), ("m", 2000), ("y", 3000)]


@pytest.mark.asyncio
async def test_rollback_inside_tight_cluster_restores_order():
    rows = cluster_rows(1.0, 1.0002, 1.0004, 1.0006)
    gateway = FakeGateway(rows)
    gateway.failures["update_task_status"] = GatewayError("lost")
    state = ForestState(build_tree(rows, None))
    before = siblings(state, "p1")

    result = await MoveCoordinator(gateway, state).move("m", target("p1", index=2, status=TaskStatus.COMPLETE))

    assert isinstance(result, Err)
    assert siblings(state, "p1") == before
    stored = sorted((t.position, t.id) for t in gateway.tasks.values() if t.parent_id == "p1")
    assert [(task_id, position) for position, task_id in stored] == before
    assert gateway.operations() == [
        "bulk_update_positions",
        "update_task_status",
        "update_task_position",
        "bulk_update_positions",
    ]


@pytest.mark.asyncio
async def test_failed_reparent_restores_renumbered_destination():
    rows = [
        make_task("p1"),
        make_task("a", "p1", 1000),
        make_task("b", "p1", 2000),
        make_task("a1", "a", 1.0),
        make_task("a2", "a", 1.0005),
        make_task("m", "b", 1000),
    ]
    gateway = FakeGateway(rows)
    gateway.failures["update_task_position"] = GatewayError("lost")
    state = ForestState(build_tree(rows, None))

    result = await MoveCoordinator(gateway, state).move("m", target("a", index=1))

    assert isinstance(result, Err)
    assert result.error.operation == "update_task_position+parent"
    assert siblings(state, "a") == [("a1", 1.0), ("a2", 1.0005)]
    assert ids(state.find("b").children) == ["m"]
    assert (gateway.tasks["a1"].position, gateway.tasks["a2"].position) == (1.0, 1.0005)
    assert gateway.tasks["m"].parent_id == "b"


@pytest.mark.asyncio
async def test_locked_sibling_keeps_its_position_in_the_store():
    store = TaskStore()
    project = await store.create_task("Project")
    x = await store.create_task("x", parent_id=project.id, position=1.0)
    y = await store.create_task("y", parent_id=project.id, position=1.0005)
    q = await store.create_task("q", parent_id=project.id, position=2.0, is_locked=True)
    m = await store.create_task("m", parent_id=project.id, position=9.0)
    state = ForestState(build_tree(await store.fetch_children(project.id), None))

    result = await MoveCoordinator(store, state).move(m.id, target(project.id, index=1))

    assert isinstance(result, Ok)
    assert [store.get(t.id).position for t in (x, m, y, q)] == [0.5, 1.0, 1.5, 2.0]
    assert [node.id for node in state.find(project.id).children] == [x.id, m.id, y.id, q.id]


def test_cancelled_drag_changes_nothing(board):
    gateway, state, coordinator = board
    session = coordinator.begin_drag("A").value
    assert coordinator.cancel(session).phase == DragPhase.IDLE
    assert gateway.calls == []
