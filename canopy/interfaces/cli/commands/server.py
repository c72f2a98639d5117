"""API server CLI command."""

import typer

from canopy.interfaces.cli.common import open_store, print_info

app = typer.Typer(help="API server commands")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8765, "--port", help="Port to listen on"),
) -> None:
    """Serve the local task store over HTTP."""
    import uvicorn

    from canopy.interfaces.api import create_app

    store = open_store()
    print_info(f"Serving {len(store.all_tasks())} tasks on http://{host}:{port}/api")
    uvicorn.run(create_app(store), host=host, port=port)
