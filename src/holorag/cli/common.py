"""Helpers shared by the holorag CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from holorag.cli.errors import err_config
from holorag.config import ConfigError, load_config
from holorag.runtime import Runtime, build_runtime

console = Console()

ProjectDir = Annotated[
    Path | None,
    typer.Option("--project-dir", hidden=True, help="Override the project directory (for testing)."),
]


def load_runtime(project_dir: Path | None = None) -> Runtime:
    """Load config and build the engines, exiting with a readable error on bad config."""
    base = project_dir if project_dir is not None else Path.cwd()
    try:
        cfg = load_config(base)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    return build_runtime(cfg, base)
