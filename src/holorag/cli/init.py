"""holorag init — scaffold a project directory.

Creates:
  holorag.yaml             — project config (paths and retrieval settings)
  knowledge/               — corpus directory for .txt/.md files
  ~/.holorag/config.yaml   — global model config (created once, mode 0o600)

Existing files are left untouched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from holorag.cli.common import console
from holorag.config import ensure_global_config

_PROJECT_YAML = (
    "project:\n"
    "  data_dir: data\n"
    "  corpus_dir: knowledge\n"
    "\n"
    "# Uncomment to tune retrieval:\n"
    "# retrieval:\n"
    "#   top_k: 4\n"
    "#   min_similarity: 0.3\n"
    "# memory:\n"
    "#   max_entries: 200\n"
    "# sql:\n"
    "#   max_tables: 15\n"
)


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
) -> None:
    """Create holorag.yaml, the corpus directory and the global config."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    cfg_file = project_dir / "holorag.yaml"
    if cfg_file.exists():
        console.print(f"  [dim]–[/] {cfg_file.name} already exists, kept")
    else:
        cfg_file.write_text(_PROJECT_YAML, encoding="utf-8")
        console.print(f"  [green]✓[/] {cfg_file.name}")

    (project_dir / "knowledge").mkdir(exist_ok=True)
    console.print("  [green]✓[/] knowledge/")

    cfg_path = ensure_global_config()
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\nNext steps:")
    console.print("  1. Put .txt or .md files in knowledge/")
    console.print("  2. holorag index")
    console.print('  3. holorag context "<message>"')
