"""Read a database's schema wholesale through SQLAlchemy's inspector.

Columns, table comments, primary keys and foreign keys are collected in one
pass. On PostgreSQL the statement timeout is raised for the duration of the
read (catalog queries on large ERP databases are slow) and reset afterwards.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import CompileError, SQLAlchemyError

from holorag.sql.models import ColumnInfo, ForeignKeyInfo, SchemaInfo, TableInfo

logger = logging.getLogger(__name__)

_SYSTEM_SCHEMAS = frozenset({"information_schema", "pg_catalog", "pg_toast"})


def read_schema(engine: Engine, timeout_ms: int = 60_000) -> SchemaInfo:
    """Return every user table with its columns and foreign keys.

    Tables are ordered by schema, then name.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If the catalog cannot be read.
    """
    with engine.connect() as conn:
        postgres = conn.dialect.name == "postgresql"
        if postgres:
            conn.execute(text(f"SET statement_timeout = {int(timeout_ms)}"))
        try:
            tables, foreign_keys = _read(conn)
        finally:
            if postgres:
                _reset_timeout(conn)

    logger.info("Schema read: %d tables, %d FKs", len(tables), len(foreign_keys))
    return SchemaInfo(
        tables=tables,
        foreign_keys=foreign_keys,
        last_refreshed_at=int(time.time() * 1000),
    )


def _reset_timeout(conn: Connection) -> None:
    # A failed read leaves the transaction aborted; RESET needs a new one.
    conn.rollback()
    try:
        conn.execute(text("RESET statement_timeout"))
    except SQLAlchemyError as exc:
        logger.warning("Could not reset statement_timeout: %s", exc)


def _read(conn: Connection) -> tuple[list[TableInfo], list[ForeignKeyInfo]]:
    inspector = inspect(conn)
    tables: list[TableInfo] = []
    foreign_keys: list[ForeignKeyInfo] = []

    schemas = sorted(
        s for s in inspector.get_schema_names()
        if s not in _SYSTEM_SCHEMAS and not s.startswith("pg_")
    )
    for schema in schemas:
        for name in sorted(inspector.get_table_names(schema=schema)):
            if name.startswith("pg_") or name.startswith("sqlite_"):
                continue
            pk = set(inspector.get_pk_constraint(name, schema=schema).get("constrained_columns") or [])
            columns = [
                ColumnInfo(
                    name=col["name"],
                    data_type=_type_name(col["type"], conn),
                    is_nullable=bool(col.get("nullable", True)),
                    default_expr=None if col.get("default") is None else str(col["default"]),
                    is_primary_key=col["name"] in pk,
                    description=col.get("comment") or None,
                )
                for col in inspector.get_columns(name, schema=schema)
            ]
            tables.append(
                TableInfo(
                    schema=schema,
                    name=name,
                    description=_table_comment(inspector, name, schema),
                    columns=columns,
                )
            )

            for fk in inspector.get_foreign_keys(name, schema=schema):
                for source_col, target_col in zip(
                    fk.get("constrained_columns") or [], fk.get("referred_columns") or []
                ):
                    foreign_keys.append(
                        ForeignKeyInfo(
                            constraint_name=fk.get("name"),
                            source_table=name,
                            source_column=source_col,
                            target_table=fk["referred_table"],
                            target_column=target_col,
                        )
                    )

    return tables, foreign_keys


def _table_comment(inspector: Any, name: str, schema: str) -> str | None:
    try:
        return inspector.get_table_comment(name, schema=schema).get("text") or None
    except NotImplementedError:
        # SQLite has no table comments
        return None


def _type_name(col_type: Any, conn: Connection) -> str:
    try:
        return str(col_type.compile(dialect=conn.dialect)).lower()
    except CompileError:
        return type(col_type).__name__.lower()
