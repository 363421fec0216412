"""holorag status command.

Shows one panel per engine: embedding backend, knowledge text, document
corpus, episodic memory and SQL connections. Nothing is indexed or connected
here; the vector panel reflects the on-disk cache only.
"""

from __future__ import annotations

from datetime import datetime

from rich.panel import Panel
from rich.table import Table

from holorag.cli.common import ProjectDir, console, load_runtime
from holorag.runtime import Runtime


def status_cmd(project_dir: ProjectDir = None) -> None:
    """Show the state of every retrieval engine."""
    rt = load_runtime(project_dir)

    probe = rt.backend.probe()
    rt.retriever.load_cache()
    rt.memory.store.load()
    rt.sql.load_settings()

    _show_backend_panel(rt, probe.available, probe.model_present)
    _show_knowledge_panel(rt)
    _show_documents_panel(rt)
    _show_memory_panel(rt)
    _show_sql_panel(rt)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _mark(ok: bool) -> str:
    return "[green]✓[/]" if ok else "[yellow]✗[/]"


def _show_backend_panel(rt: Runtime, available: bool, model_present: bool) -> None:
    lines = [
        f"Model:     [bold]{rt.backend.model}[/]",
        f"Endpoint:  {rt.backend.api_base or '(provider default)'}",
        f"Reachable: {_mark(available)}   Model present: {_mark(model_present)}",
        f"Summaries: {rt.config.generation.model}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Embedding Backend[/]", expand=False))


def _show_knowledge_panel(rt: Runtime) -> None:
    st = rt.knowledge.status()
    if not st.has_content:
        body = "[dim]No knowledge text.[/]\n  Run:  holorag knowledge set --file <path>"
    else:
        body = f"Length: [bold]{st.content_length:,}[/] chars  |  Chunks: [bold]{st.chunk_count}[/]"
    console.print(Panel(body, title="[bold]Knowledge[/]", expand=False))


def _show_documents_panel(rt: Runtime) -> None:
    st = rt.retriever.status()
    lines = [
        f"Corpus:  {rt.retriever.corpus_dir}",
        f"Files: [bold]{st.document_count}[/]  |  Chunks: [bold]{st.chunk_count:,}[/]  |  "
        f"Available: {_mark(st.available)}",
    ]
    for name in st.indexed_files:
        lines.append(f"  [dim]{name}[/]")
    if st.last_indexed:
        stamp = datetime.fromtimestamp(st.last_indexed / 1000).strftime("%Y-%m-%d %H:%M")
        lines.append(f"Last indexed: [dim]{stamp}[/]")
    else:
        lines.append("[dim]Not indexed yet.[/]  Run:  holorag index")
    console.print(Panel("\n".join(lines), title="[bold]Documents[/]", expand=False))


def _show_memory_panel(rt: Runtime) -> None:
    st = rt.memory.status()
    body = (
        f"Memories: [bold]{st['memory_count']}[/] / {rt.memory.store.max_entries}  |  "
        f"Available: {_mark(st['available'])}"
    )
    console.print(Panel(body, title="[bold]Memory[/]", expand=False))


def _show_sql_panel(rt: Runtime) -> None:
    st = rt.sql.status()
    header = f"Enabled: {_mark(st.enabled)}  |  Mode: [bold]{st.mode}[/]"
    if not st.connections:
        console.print(
            Panel(
                f"{header}\n[dim]No saved connections.[/]\n"
                "  Run:  holorag sql add --name <name> --database <db>",
                title="[bold]SQL[/]",
                expand=False,
            )
        )
        return

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Active", width=2)
    table.add_column("Id", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Target")
    for conn in st.connections:
        active = "*" if conn.id == st.active_connection_id else ""
        target = f"{conn.host}:{conn.port}/{conn.database}" if conn.host else conn.database
        table.add_row(active, conn.id, conn.name, target)

    console.print(header)
    console.print(Panel(table, title="[bold]SQL Connections[/]", expand=False))
