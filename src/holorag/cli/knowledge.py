"""holorag knowledge CLI commands.

Commands:
  holorag knowledge show                — print the stored knowledge text
  holorag knowledge set --file <path>   — replace it with the file's contents
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.text import Text

from holorag.cli.common import ProjectDir, console, load_runtime
from holorag.cli.errors import err_file_not_found

knowledge_app = typer.Typer(
    name="knowledge",
    help="Manage the freeform knowledge text (show, set).",
    add_completion=False,
)


@knowledge_app.command("show")
def knowledge_show_cmd(project_dir: ProjectDir = None) -> None:
    """Print the stored knowledge text."""
    rt = load_runtime(project_dir)
    content = rt.knowledge.get_content()
    if not content.strip():
        console.print(
            "[yellow]No knowledge text stored.[/]\n"
            "  Run:  holorag knowledge set --file <path>"
        )
        raise typer.Exit(0)
    console.print(Text(content))


@knowledge_app.command("set")
def knowledge_set_cmd(
    file: Annotated[
        Path,
        typer.Option("--file", "-f", help="Text or Markdown file with the new knowledge."),
    ],
    project_dir: ProjectDir = None,
) -> None:
    """Replace the knowledge text with the contents of --file."""
    if not file.is_file():
        console.print(err_file_not_found(str(file)))
        raise typer.Exit(1)

    rt = load_runtime(project_dir)
    status = rt.knowledge.set_content(file.read_text(encoding="utf-8", errors="replace"))
    rt.knowledge.flush()
    console.print(
        f"[green]✓[/] Knowledge updated: {status.content_length:,} chars, "
        f"{status.chunk_count} chunks"
    )
