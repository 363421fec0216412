"""holorag memory CLI commands.

Commands:
  holorag memory add USER ASSISTANT   — summarize and store one exchange
  holorag memory list                 — show stored memories
  holorag memory forget KEYWORD       — delete memories mentioning KEYWORD
  holorag memory clear                — delete every memory
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from holorag.cli.common import ProjectDir, console, load_runtime
from holorag.cli.errors import err_no_api_key
from holorag.rag.llm_client import provider_of, validate_api_key

memory_app = typer.Typer(
    name="memory",
    help="Manage episodic memories (add, list, forget, clear).",
    add_completion=False,
)


@memory_app.command("add")
def memory_add_cmd(
    user: Annotated[str, typer.Argument(help="User message.")],
    assistant: Annotated[str, typer.Argument(help="Assistant reply.")],
    project_dir: ProjectDir = None,
) -> None:
    """Summarize one exchange and store it as a memory."""
    rt = load_runtime(project_dir)
    try:
        validate_api_key(rt.config.generation.model)
    except EnvironmentError:
        console.print(err_no_api_key(provider_of(rt.config.generation.model)))
        raise typer.Exit(1)

    rt.backend.probe()
    rt.memory.store.load()
    entry = rt.memory.add_memory(user, assistant)
    rt.memory.store.flush()

    if entry is None:
        console.print("[yellow]Not remembered[/] (too short, trivial, or a duplicate).")
        raise typer.Exit(0)
    suffix = "" if entry.has_embedding else "  [dim](no embedding yet)[/]"
    console.print(f"[green]✓[/] Remembered: {escape(entry.summary)}{suffix}")


@memory_app.command("list")
def memory_list_cmd(project_dir: ProjectDir = None) -> None:
    """List stored memories, newest last."""
    rt = load_runtime(project_dir)
    rt.memory.store.load()
    entries = rt.memory.entries()

    if not entries:
        console.print("[yellow]No memories stored.[/]")
        raise typer.Exit(0)

    table = Table(title="Memories", show_header=True, header_style="bold")
    table.add_column("Date", style="dim")
    table.add_column("Summary")
    table.add_column("Hits", justify="right")
    table.add_column("Emb", width=3)
    for entry in entries:
        stamp = datetime.fromtimestamp(entry.timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(
            stamp,
            escape(entry.summary),
            str(entry.retrieval_count),
            "[green]✓[/]" if entry.has_embedding else "[yellow]✗[/]",
        )
    console.print(table)
    console.print(f"\n  {len(entries)}/{rt.memory.store.max_entries} memories")


@memory_app.command("forget")
def memory_forget_cmd(
    keyword: Annotated[str, typer.Argument(help="Case-insensitive text to match in summaries.")],
    project_dir: ProjectDir = None,
) -> None:
    """Delete every memory whose summary contains KEYWORD."""
    rt = load_runtime(project_dir)
    rt.memory.store.load()
    removed = rt.memory.forget_by_keyword(keyword)
    rt.memory.store.flush()
    if removed:
        console.print(f"[green]✓[/] Forgot {removed} memories matching '{keyword}'")
    else:
        console.print(f"[yellow]No memories match[/] '{keyword}'")


@memory_app.command("clear")
def memory_clear_cmd(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    project_dir: ProjectDir = None,
) -> None:
    """Delete every memory."""
    rt = load_runtime(project_dir)
    rt.memory.store.load()
    count = len(rt.memory.store)
    if not yes and not typer.confirm(f"Delete all {count} memories?"):
        raise typer.Exit(0)
    rt.memory.clear()
    console.print(f"[green]✓[/] Cleared {count} memories")
