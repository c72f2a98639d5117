"""Entry point for the canopy CLI.

Usage:
    python -m canopy.interfaces.cli.main

Or via installed entry point:
    canopy <command>
"""

from canopy.interfaces.cli import app


def main() -> None:
    """Run the canopy CLI application."""
    app()


if __name__ == "__main__":
    main()
