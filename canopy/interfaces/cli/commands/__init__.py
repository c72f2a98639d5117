"""CLI command groups for canopy.

Command groups:
- task: Forest viewing and mutations (tree, add, move, status, delete, clone)
- server: HTTP API (serve)

Each command group is a Typer app that gets registered
with the main app using app.add_typer().
"""

from canopy.interfaces.cli.commands import server, task

__all__ = ["task", "server"]
