"""ResourceForge CLI entry point."""

import os

import click


@click.group()
def cli():
    """ResourceForge - metadata-driven resource API CLI."""
    pass


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option(
    "--port",
    default=lambda: int(os.environ.get("RESOURCEFORGE_PORT", "8000")),
    type=int,
    help="Bind port (default: $RESOURCEFORGE_PORT or 8000).",
)
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str, port: int, reload: bool):
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "resourceforge.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level=os.environ.get("RESOURCEFORGE_LOG_LEVEL", "info").lower(),
    )


# Register subcommand groups
from resourceforge.cli.metadata_cmd import metadata  # noqa: E402

cli.add_command(metadata)
