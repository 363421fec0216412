"""holorag CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from holorag.cli.context import context_cmd
from holorag.cli.index import index_cmd
from holorag.cli.init import init_cmd
from holorag.cli.knowledge import knowledge_app
from holorag.cli.memory import memory_app
from holorag.cli.sql import sql_app
from holorag.cli.status import status_cmd
from holorag.log import configure_logging


def _version() -> str:
    try:
        return importlib.metadata.version("holorag")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"holorag {_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="holorag",
    help=(
        "holorag — retrieval context for a chat assistant.\n\n"
        "  holorag init      Create holorag.yaml and the corpus directory.\n"
        "  holorag index     Embed the document corpus.\n"
        "  holorag context   Show what every engine retrieves for a message."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging."),
    ] = False,
) -> None:
    """holorag — retrieval context for a chat assistant."""
    configure_logging(verbose)


app.command("init")(init_cmd)
app.command("status")(status_cmd)
app.command("index")(index_cmd)
app.command("context")(context_cmd)
app.add_typer(knowledge_app, name="knowledge")
app.add_typer(memory_app, name="memory")
app.add_typer(sql_app, name="sql")


if __name__ == "__main__":
    app()
