"""holorag sql CLI commands.

Commands:
  holorag sql add --name <n> --database <db> [...]   — save, connect and read schema
  holorag sql remove <id>                              — forget a connection
  holorag sql use <id>                                 — select the active connection
  holorag sql refresh                                  — re-read the active schema
  holorag sql schema [QUERY]                           — show (filtered) schema text
  holorag sql query <SQL>                              — run a read-only query
  holorag sql enable | disable                         — toggle SQL context
  holorag sql mode query-only|execute                  — allow or forbid query execution
"""

from __future__ import annotations

import uuid
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from holorag.cli.common import ProjectDir, console, load_runtime
from holorag.cli.errors import (
    err_connection_not_found,
    err_execute_mode_disabled,
    err_no_active_connection,
)
from holorag.runtime import Runtime
from holorag.sql.models import EXECUTE, ConnectionConfig

sql_app = typer.Typer(
    name="sql",
    help="Manage SQL connections and schema context.",
    add_completion=False,
)


class Mode(str, Enum):
    query_only = "query-only"
    execute = "execute"


def _load(project_dir: Path | None) -> Runtime:
    rt = load_runtime(project_dir)
    rt.sql.load_settings()
    return rt


def _connect_active(rt: Runtime) -> str:
    active = rt.sql.active_connection_id
    if active is None:
        console.print(err_no_active_connection())
        raise typer.Exit(1)
    result = rt.sql.connect(active)
    if not result.success:
        console.print(f"[red]Error:[/] {result.message}")
        raise typer.Exit(1)
    return active


def _require_known(rt: Runtime, connection_id: str) -> None:
    known = [c.id for c in rt.sql.connections()]
    if connection_id not in known:
        console.print(err_connection_not_found(connection_id, known))
        raise typer.Exit(1)


@sql_app.command("add")
def sql_add_cmd(
    name: Annotated[str, typer.Option("--name", help="Display name.")],
    database: Annotated[str, typer.Option("--database", help="Database name (file path for sqlite).")],
    host: Annotated[str, typer.Option("--host")] = "localhost",
    port: Annotated[int, typer.Option("--port")] = 5432,
    user: Annotated[str, typer.Option("--user")] = "",
    password: Annotated[
        str,
        typer.Option("--password", prompt=True, hide_input=True, prompt_required=False),
    ] = "",
    driver: Annotated[
        str,
        typer.Option("--driver", help="SQLAlchemy dialect+driver, e.g. postgresql+psycopg or sqlite."),
    ] = "postgresql+psycopg",
    project_dir: ProjectDir = None,
) -> None:
    """Save a connection, test it and read its schema."""
    rt = _load(project_dir)
    file_based = driver.split("+")[0] == "sqlite"
    cfg = ConnectionConfig(
        id=f"conn_{uuid.uuid4().hex[:8]}",
        name=name,
        host="" if file_based else host,
        port=0 if file_based else port,
        database=database,
        user=user,
        password=password,
        driver=driver,
    )
    try:
        result = rt.sql.add_connection(cfg)
    finally:
        rt.sql.close()

    if not result.success:
        console.print(
            f"[red]Error:[/] Could not connect to '{name}': {result.message}\n"
            f"  The connection was saved as [bold]{cfg.id}[/]. Fix it or run:  holorag sql remove {cfg.id}"
        )
        raise typer.Exit(1)
    console.print(
        f"[green]✓[/] {result.message}  [dim]({cfg.id}, {rt.sql.table_count()} tables)[/]"
    )


@sql_app.command("remove")
def sql_remove_cmd(
    connection_id: Annotated[str, typer.Argument(help="Connection id (see holorag status).")],
    project_dir: ProjectDir = None,
) -> None:
    """Forget a saved connection."""
    rt = _load(project_dir)
    _require_known(rt, connection_id)
    rt.sql.remove_connection(connection_id)
    console.print(f"[green]✓[/] Removed {connection_id}")
    if rt.sql.active_connection_id:
        console.print(f"  Active connection is now {rt.sql.active_connection_id}")


@sql_app.command("use")
def sql_use_cmd(
    connection_id: Annotated[str, typer.Argument(help="Connection id to make active.")],
    project_dir: ProjectDir = None,
) -> None:
    """Select the active connection."""
    rt = _load(project_dir)
    _require_known(rt, connection_id)
    rt.sql.set_active_connection(connection_id)
    console.print(f"[green]✓[/] Active connection: {connection_id}")


@sql_app.command("refresh")
def sql_refresh_cmd(project_dir: ProjectDir = None) -> None:
    """Reconnect and re-read the active connection's schema."""
    rt = _load(project_dir)
    if rt.sql.active_connection_id is None:
        console.print(err_no_active_connection())
        raise typer.Exit(1)
    try:
        # Nothing is open yet, so this connects and reads the catalog once.
        result = rt.sql.refresh_schema()
    finally:
        rt.sql.close()
    if not result.success:
        console.print(f"[red]Error:[/] {result.message}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")


@sql_app.command("schema")
def sql_schema_cmd(
    query: Annotated[
        str | None,
        typer.Argument(help="Optional message used to pick relevant tables."),
    ] = None,
    project_dir: ProjectDir = None,
) -> None:
    """Print the compact schema text, filtered by QUERY on large schemas."""
    rt = _load(project_dir)
    try:
        _connect_active(rt)
        text = rt.sql.get_filtered_schema(query)
    finally:
        rt.sql.close()
    if text is None:
        console.print("[yellow]No schema loaded[/] for the active connection.")
        raise typer.Exit(1)
    console.print(Text(text))


@sql_app.command("query")
def sql_query_cmd(
    sql: Annotated[str, typer.Argument(help="SELECT/WITH statement to run.")],
    project_dir: ProjectDir = None,
) -> None:
    """Run a read-only query on the active connection (execute mode only)."""
    rt = _load(project_dir)
    if rt.sql.mode != EXECUTE:
        console.print(err_execute_mode_disabled())
        raise typer.Exit(1)
    try:
        _connect_active(rt)
        result = rt.sql.execute_query(sql)
    finally:
        rt.sql.close()

    if not result.ok:
        console.print(f"[red]Error:[/] {escape(result.error or '')}\n  Query: {escape(result.query)}")
        raise typer.Exit(1)

    rows = result.rows or []
    table = Table(show_header=True, header_style="bold")
    for column in (rows[0].keys() if rows else []):
        table.add_column(str(column))
    for row in rows:
        table.add_row(*(Text("" if v is None else str(v)) for v in row.values()))
    console.print(table)
    more = "  [dim](truncated)[/]" if result.truncated else ""
    console.print(f"\n  {result.row_count} rows{more}")


@sql_app.command("enable")
def sql_enable_cmd(project_dir: ProjectDir = None) -> None:
    """Include schema context in retrieved context."""
    rt = _load(project_dir)
    rt.sql.set_enabled(True)
    console.print("[green]✓[/] SQL context enabled")


@sql_app.command("disable")
def sql_disable_cmd(project_dir: ProjectDir = None) -> None:
    """Stop including schema context."""
    rt = _load(project_dir)
    rt.sql.set_enabled(False)
    console.print("[green]✓[/] SQL context disabled")


@sql_app.command("mode")
def sql_mode_cmd(
    mode: Annotated[Mode, typer.Argument(help="query-only or execute.")],
    project_dir: ProjectDir = None,
) -> None:
    """Allow (execute) or forbid (query-only) running queries."""
    rt = _load(project_dir)
    rt.sql.set_mode(mode.value)
    console.print(f"[green]✓[/] SQL mode: {mode.value}")
