"""holorag index — (re)build the vector index over the corpus directory."""

from __future__ import annotations

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from holorag.cli.common import ProjectDir, console, load_runtime
from holorag.cli.errors import err_backend_unavailable


def index_cmd(project_dir: ProjectDir = None) -> None:
    """Embed every .txt/.md file in the corpus directory and cache the result."""
    rt = load_runtime(project_dir)

    if not rt.backend.probe().ok:
        console.print(err_backend_unavailable(rt.backend.model, rt.backend.api_base))
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task(f"Indexing {rt.retriever.corpus_dir} …", total=None)

        def _on_batch(done: int, total: int) -> None:
            prog.update(task, description="Embedding…", completed=done, total=total)

        result = rt.retriever.index_documents(on_progress=_on_batch)

    if not result.success:
        console.print(f"[red]Error:[/] {result.message}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")
