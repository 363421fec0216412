"""holorag context — show the context every engine would add for a message."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.panel import Panel
from rich.text import Text

from holorag.cli.common import ProjectDir, console, load_runtime
from holorag.cli.errors import warn_no_context


def context_cmd(
    query: Annotated[str, typer.Argument(help="User message to retrieve context for.")],
    project_dir: ProjectDir = None,
) -> None:
    """Retrieve knowledge, document, memory and schema context for QUERY."""
    rt = load_runtime(project_dir)

    # Same order as server startup, but synchronous.
    rt.retriever.initialize()
    rt.memory.store.load()
    rt.sql.load_settings()
    if rt.sql.enabled and rt.sql.active_connection_id:
        rt.sql.connect(rt.sql.active_connection_id)

    try:
        bundle = rt.gather_context(query)
    finally:
        rt.flush()

    if bundle.is_empty():
        console.print(warn_no_context(query))
        return

    for title, text in (
        ("Knowledge", bundle.knowledge),
        ("Documents", bundle.documents),
        ("Memories", bundle.memories),
        ("Schema", bundle.schema),
    ):
        if text:
            console.print(Panel(Text(text), title=f"[bold]{title}[/]", expand=False))
