"""Shared utilities for canopy CLI commands.

This module provides common utilities used across CLI commands:
- Gateway selection (local JSON store or remote API)
- Forest loading through the sync service
- Formatted output helpers (error, success, info)
- Rich tree rendering
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from canopy.application import ForestState, TaskGateway, TreeSync
from canopy.domain.shared import CloneFailure, Err, MoveRejected, PersistenceFailure
from canopy.domain.task import Task, TaskStatus
from canopy.global_config import EngineConfig, get_config, get_data_file
from canopy.infrastructure import RestTaskGateway, TaskStore

T = TypeVar("T")

# Reusable remote option for CLI commands
# Usage: def my_command(remote: bool = remote_option) -> None:
remote_option = typer.Option(
    False,
    "--remote",
    "-r",
    help="Use the API at the configured api_url instead of the local file",
)

STATUS_STYLES = {
    TaskStatus.TODO: "white",
    TaskStatus.IN_PROGRESS: "yellow",
    TaskStatus.BLOCKED: "red",
    TaskStatus.COMPLETE: "green",
    TaskStatus.PLANNING: "cyan",
    TaskStatus.ACTIVE: "blue",
}


def print_error(msg: str) -> None:
    """Print a formatted error message."""
    typer.echo(typer.style(f"Error: {msg}", fg=typer.colors.RED), err=True)


def print_success(msg: str) -> None:
    typer.echo(typer.style(msg, fg=typer.colors.GREEN))


def print_info(msg: str) -> None:
    typer.echo(typer.style(msg, fg=typer.colors.BLUE))


def print_warning(msg: str) -> None:
    typer.echo(typer.style(f"Warning: {msg}", fg=typer.colors.YELLOW), err=True)


def describe_failure(failure: MoveRejected | PersistenceFailure | CloneFailure) -> str:
    """One-line description of a failure value."""
    if isinstance(failure, MoveRejected):
        return failure.reason
    if isinstance(failure, PersistenceFailure):
        return f"{failure.operation} failed: {failure.message}"
    return failure.message


# =============================================================================
# Gateways
# =============================================================================


def open_store(config: EngineConfig | None = None) -> TaskStore:
    """Load the local task document.

    Raises:
        typer.Exit: If the document cannot be read.
    """
    config = config or get_config()
    result = TaskStore.load(get_data_file(config), step=config.position_step)
    if isinstance(result, Err):
        print_error(result.error)
        raise typer.Exit(1)
    return result.value


def run_with_gateway(
    remote: bool,
    action: Callable[[TaskGateway, EngineConfig], Awaitable[T]],
) -> T:
    """Run ``action`` against the local store or the remote API."""
    config = get_config()

    async def runner() -> T:
        if remote:
            async with RestTaskGateway(config.api_url) as gateway:
                return await action(gateway, config)
        return await action(open_store(config), config)

    return asyncio.run(runner())


async def load_forest(gateway: TaskGateway, config: EngineConfig) -> ForestState:
    """Load every root page and every subtree into a fresh forest.

    Raises:
        typer.Exit: If a fetch fails.
    """
    state = ForestState()
    sync = TreeSync(gateway, state, page_size=config.page_size, fetch_retries=config.fetch_retries)
    while sync.has_more:
        result = await sync.load_next_page()
        if isinstance(result, Err):
            print_error(describe_failure(result.error))
            raise typer.Exit(1)

    for root in list(state.roots):
        result = await sync.load_children(root.id)
        if isinstance(result, Err):
            print_error(describe_failure(result.error))
            raise typer.Exit(1)
    return state


# =============================================================================
# Rendering
# =============================================================================


def task_label(task: Task) -> Text:
    label = Text(task.title or "(untitled)", style="bold" if task.is_root else "")
    label.append(f" [{task.status.value}]", style=STATUS_STYLES.get(task.status, "white"))
    if task.origin.value == "template":
        label.append(" template", style="magenta")
    if task.is_locked:
        label.append(" locked", style="red")
    label.append(f"  {task.id}", style="dim")
    return label


def render_forest(roots: list[Task], title: str = "Tasks") -> Tree:
    """Build a rich tree of the forest."""
    tree = Tree(Text(title, style="bold"))

    def add(branch: Tree, nodes: list[Task]) -> None:
        for node in nodes:
            add(branch.add(task_label(node)), node.children)

    add(tree, roots)
    return tree


def print_forest(roots: list[Task], title: str = "Tasks") -> None:
    if not roots:
        print_info("No tasks yet.")
        return
    Console().print(render_forest(roots, title))
