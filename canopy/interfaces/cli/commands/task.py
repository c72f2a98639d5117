"""Task tree CLI commands.

Commands for viewing the forest and for the engine's mutations: moving,
changing status, deleting and deep-cloning tasks.
"""

import asyncio
from typing import Optional

import typer

from canopy.application import CloneService, ForestState, MoveCoordinator, StatusService, TaskGateway
from canopy.domain.shared import Err, GatewayError
from canopy.domain.task import CloneOverrides, DropTarget, Task, TaskOrigin, TaskStatus, find_node
from canopy.global_config import EngineConfig
from canopy.interfaces.cli.common import (
    describe_failure,
    load_forest,
    open_store,
    print_error,
    print_forest,
    print_info,
    print_success,
    print_warning,
    remote_option,
    run_with_gateway,
)

app = typer.Typer(help="Task tree commands")


def _require_node(state: ForestState, task_id: str) -> Task:
    task = state.find(task_id)
    if task is None:
        print_error(f"Task not found: {task_id}")
        raise typer.Exit(1)
    return task


# =============================================================================
# Viewing
# =============================================================================


@app.command("tree")
def tree(
    root_id: Optional[str] = typer.Argument(None, help="Only show this subtree"),
    remote: bool = remote_option,
) -> None:
    """Show the task forest."""

    async def action(gateway: TaskGateway, config: EngineConfig) -> None:
        state = await load_forest(gateway, config)
        if root_id is None:
            print_forest(state.roots)
            return
        node = _require_node(state, root_id)
        print_forest([node], title=node.title or node.id)

    run_with_gateway(remote, action)


@app.command("add")
def add(
    title: str = typer.Argument(..., help="Task title"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Parent task id (omit for a new project)"),
    template: bool = typer.Option(False, "--template", help="Create a template instead of a project"),
    locked: bool = typer.Option(False, "--locked", help="Create the task locked"),
) -> None:
    """Add a task to the local store."""
    store = open_store()
    origin = TaskOrigin.TEMPLATE if template else TaskOrigin.INSTANCE
    if parent is not None:
        parent_task = store.get(parent)
        if parent_task is None:
            print_error(f"Task not found: {parent}")
            raise typer.Exit(1)
        origin = parent_task.origin

    try:
        task = asyncio.run(store.create_task(title, parent_id=parent, origin=origin, is_locked=locked))
    except GatewayError as exc:
        print_error(str(exc))
        raise typer.Exit(1)
    print_success(f"Added {task.title} ({task.id})")


# =============================================================================
# Mutations
# =============================================================================


@app.command("move")
def move(
    task_id: str = typer.Argument(..., help="Task to move"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="New parent id (default: keep)"),
    index: Optional[int] = typer.Option(None, "--index", "-i", help="Index among the destination siblings"),
    status: Optional[TaskStatus] = typer.Option(None, "--status", "-s", help="Board column to drop into"),
    remote: bool = remote_option,
) -> None:
    """Move a task, as a drag-and-drop would."""

    async def action(gateway: TaskGateway, config: EngineConfig) -> None:
        state = await load_forest(gateway, config)
        task = _require_node(state, task_id)
        target = DropTarget(
            parent_id=parent if parent is not None else task.parent_id,
            origin=task.origin,
            index=index,
            status=status,
        )
        coordinator = MoveCoordinator(gateway, state, step=config.position_step)
        result = await coordinator.move(task_id, target)
        if isinstance(result, Err):
            print_error(describe_failure(result.error))
            raise typer.Exit(1)

        plan = result.value.plan
        print_success(f"Moved {task.title or task_id} ({plan.kind.value}) to position {plan.position:g}")
        if plan.renumbered:
            print_info(f"Renumbered {len(plan.renumbered)} siblings")

    run_with_gateway(remote, action)


@app.command("status")
def status(
    task_id: str = typer.Argument(..., help="Task to update"),
    new_status: TaskStatus = typer.Argument(..., help="New status"),
    remote: bool = remote_option,
) -> None:
    """Change a task's status; complete cascades to descendants."""

    async def action(gateway: TaskGateway, config: EngineConfig) -> None:
        state = await load_forest(gateway, config)
        result = await StatusService(gateway, state).change_status(task_id, new_status)
        if isinstance(result, Err):
            print_error(describe_failure(result.error))
            raise typer.Exit(1)

        report = result.value
        print_success(f"{task_id} is now {report.status.value}")
        if report.updated:
            print_info(f"Completed {len(report.updated)} descendants")
        if report.failed:
            print_warning(f"{len(report.failed)} descendants could not be updated: {', '.join(report.failed)}")

    run_with_gateway(remote, action)


@app.command("delete")
def delete(
    task_id: str = typer.Argument(..., help="Task to delete with its descendants"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    remote: bool = remote_option,
) -> None:
    """Delete a task and everything beneath it."""
    if not yes:
        typer.confirm(f"Delete {task_id} and all of its descendants?", abort=True)

    async def action(gateway: TaskGateway, config: EngineConfig) -> None:
        state = await load_forest(gateway, config)
        _require_node(state, task_id)
        result = await StatusService(gateway, state).delete_task(task_id)
        if isinstance(result, Err):
            print_error(describe_failure(result.error))
            raise typer.Exit(1)
        print_success(f"Deleted {result.value} tasks")

    run_with_gateway(remote, action)


@app.command("clone")
def clone(
    source_id: str = typer.Argument(..., help="Root of the subtree to copy"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Destination parent (omit for a new project)"),
    template: bool = typer.Option(False, "--template", help="Create the copy as a template"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title for the copied root"),
    creator: Optional[str] = typer.Option(None, "--creator", help="Creator stamped on every copy"),
    remote: bool = remote_option,
) -> None:
    """Deep-clone a subtree, e.g. create a project from a template."""
    overrides = CloneOverrides(title=title) if title is not None else None
    origin = TaskOrigin.TEMPLATE if template else TaskOrigin.INSTANCE

    async def action(gateway: TaskGateway, config: EngineConfig) -> None:
        state = await load_forest(gateway, config)
        result = await CloneService(gateway, state).clone(source_id, parent, origin, creator, overrides)
        if isinstance(result, Err):
            print_error(describe_failure(result.error))
            raise typer.Exit(1)

        cloned = result.value
        print_success(
            f"Cloned {cloned.task_count} tasks and {cloned.resource_count} resources as {cloned.new_root_id}"
        )
        node = find_node(state.roots, cloned.new_root_id)
        if node is not None:
            print_forest([node], title="Clone")

    run_with_gateway(remote, action)
