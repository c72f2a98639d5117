"""CLI interface for canopy using Typer.

Usage:
    canopy tree                       # Show the forest
    canopy task add "Launch"          # Add a project
    canopy move <id> --index 0        # Reorder a task
    canopy status <id> complete       # Complete a task and its descendants
    canopy clone <template id>        # Create a project from a template
    canopy serve                      # Serve the store over HTTP

The CLI is structured as:
- app: Main Typer application
- commands/: Individual command groups (task, server)
- common.py: Shared utilities for CLI commands
- main.py: Entry point that runs the app
"""

import logging
from typing import Optional

import typer

from canopy import __version__
from canopy.domain.task import TaskStatus
from canopy.interfaces.cli.commands import server, task
from canopy.interfaces.cli.common import remote_option

# Create the main Typer application
app = typer.Typer(
    name="canopy",
    help="Task tree synchronization, drag/reparent and deep-clone engine",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"canopy version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log engine activity to stderr"),
) -> None:
    """canopy - keep a task forest in sync while it is dragged, re-statused and cloned."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# Register Command Groups
# =============================================================================

app.add_typer(task.app, name="task")
app.add_typer(server.app, name="server")


# =============================================================================
# Top-Level Shortcuts for Common Commands
# =============================================================================


@app.command("tree")
def tree(
    root_id: Optional[str] = typer.Argument(None, help="Only show this subtree"),
    remote: bool = remote_option,
) -> None:
    """Show the forest (shortcut for 'task tree')."""
    task.tree(root_id=root_id, remote=remote)


@app.command("move")
def move(
    task_id: str = typer.Argument(..., help="Task to move"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="New parent id (default: keep)"),
    index: Optional[int] = typer.Option(None, "--index", "-i", help="Index among the destination siblings"),
    status: Optional[TaskStatus] = typer.Option(None, "--status", "-s", help="Board column to drop into"),
    remote: bool = remote_option,
) -> None:
    """Move a task (shortcut for 'task move')."""
    task.move(task_id=task_id, parent=parent, index=index, status=status, remote=remote)


@app.command("status")
def status(
    task_id: str = typer.Argument(..., help="Task to update"),
    new_status: TaskStatus = typer.Argument(..., help="New status"),
    remote: bool = remote_option,
) -> None:
    """Change a task's status (shortcut for 'task status')."""
    task.status(task_id=task_id, new_status=new_status, remote=remote)


@app.command("delete")
def delete(
    task_id: str = typer.Argument(..., help="Task to delete with its descendants"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    remote: bool = remote_option,
) -> None:
    """Delete a task (shortcut for 'task delete')."""
    task.delete(task_id=task_id, yes=yes, remote=remote)


@app.command("clone")
def clone(
    source_id: str = typer.Argument(..., help="Root of the subtree to copy"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Destination parent (omit for a new project)"),
    template: bool = typer.Option(False, "--template", help="Create the copy as a template"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title for the copied root"),
    creator: Optional[str] = typer.Option(None, "--creator", help="Creator stamped on every copy"),
    remote: bool = remote_option,
) -> None:
    """Deep-clone a subtree (shortcut for 'task clone')."""
    task.clone(source_id=source_id, parent=parent, template=template, title=title, creator=creator, remote=remote)


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8765, "--port", help="Port to listen on"),
) -> None:
    """Serve the local store over HTTP (shortcut for 'server serve')."""
    server.serve(host=host, port=port)


__all__ = ["app"]
