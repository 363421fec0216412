"""Schema filter engine: saved connections, cached schemas, compact schema text.

Large schemas do not fit in a prompt, so get_filtered_schema() keeps only the
tables a message is likely about. Scoring per keyword:

  +15  keyword in table description
  +10  keyword in table name
   +5  per column whose description contains it
   +3  per column whose name contains it

Zero-score tables are dropped and the rest truncated to 15. Schemas with 15
tables or fewer are always shown whole.

Optional read-only query execution (``execute`` mode) rejects write
statements by their leading keyword and caps result size with a LIMIT.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from holorag.sql.introspect import read_schema
from holorag.sql.keywords import extract_keywords, normalize
from holorag.sql.models import (
    EXECUTE,
    QUERY_ONLY,
    SQL_MODES,
    ConnectionConfig,
    ConnectionStatus,
    QueryResult,
    SchemaInfo,
    SqlStatus,
    TableInfo,
)
from holorag.store.background import run_in_background
from holorag.store.files import FileStore
from holorag.store.models import EngineState, IndexResult

logger = logging.getLogger(__name__)

SETTINGS_KEY = "sql-connections.json"

FORBIDDEN_STATEMENTS: tuple[str, ...] = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "ALTER",
    "TRUNCATE",
    "CREATE",
    "GRANT",
    "REVOKE",
)

_SCORE_TABLE_DESCRIPTION = 15
_SCORE_TABLE_NAME = 10
_SCORE_COLUMN_DESCRIPTION = 5
_SCORE_COLUMN_NAME = 3


def score_table(table: TableInfo, keywords: list[str]) -> int:
    """Relevance of *table* for the extracted *keywords*."""
    name = table.name.lower()
    description = normalize(table.description or "")
    columns = [(c.name.lower(), normalize(c.description or "")) for c in table.columns]

    total = 0
    for kw in keywords:
        if kw in description:
            total += _SCORE_TABLE_DESCRIPTION
        if kw in name:
            total += _SCORE_TABLE_NAME
        for col_name, col_description in columns:
            if kw in col_name:
                total += _SCORE_COLUMN_NAME
            if kw in col_description:
                total += _SCORE_COLUMN_DESCRIPTION
    return total


def render_schema(database: str, tables: list[TableInfo], total: int) -> str:
    """Compact schema text: one header line, then one line per table."""
    lines = [f"DB:{database} ({len(tables)}/{total} tables)"]
    for table in tables:
        desc = f" -- {table.description}" if table.description else ""
        cols = []
        for col in table.columns:
            entry = f"{col.name} {col.data_type}"
            if col.is_primary_key:
                entry += " PK"
            if col.description:
                entry += f' "{col.description}"'
            cols.append(entry)
        lines.append(f"{table.name}{desc}: {', '.join(cols)}")
    return "\n".join(lines)


def prepare_query(sql: str, max_rows: int) -> tuple[str, str | None]:
    """Return ``(safe_sql, error)``. *error* is set for forbidden statements."""
    trimmed = sql.strip()
    upper = trimmed.upper()
    for keyword in FORBIDDEN_STATEMENTS:
        if upper.startswith(keyword):
            return trimmed, (
                f"Statement not allowed: {keyword}. Only SELECT/WITH queries are permitted."
            )

    if trimmed.endswith(";"):
        trimmed = trimmed[:-1].strip()
    if "LIMIT" not in trimmed.upper():
        trimmed = f"{trimmed} LIMIT {max_rows}"
    return trimmed, None


class SchemaFilterEngine:
    """Saved SQL connections and their cached schemas.

    Args:
        store: File store holding ``sql-connections.json``.
        max_tables: Tables shown before keyword filtering kicks in.
        max_rows: Row cap applied by execute_query().
        statement_timeout_ms: Per-statement timeout on PostgreSQL connections.
        schema_timeout_ms: Statement timeout while reading the catalog.
        connect_timeout: Connection timeout in seconds.
    """

    def __init__(
        self,
        store: FileStore,
        max_tables: int = 15,
        max_rows: int = 20,
        statement_timeout_ms: int = 10_000,
        schema_timeout_ms: int = 60_000,
        connect_timeout: int = 5,
    ) -> None:
        self._store = store
        self.max_tables = max_tables
        self.max_rows = max_rows
        self.statement_timeout_ms = statement_timeout_ms
        self.schema_timeout_ms = schema_timeout_ms
        self.connect_timeout = connect_timeout

        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._state = EngineState.UNINITIALIZED

        self._enabled = False
        self._mode = QUERY_ONLY
        self._active_id: str | None = None
        self._connections: dict[str, ConnectionConfig] = {}
        self._engines: dict[str, Engine] = {}
        self._schemas: dict[str, SchemaInfo] = {}
        self._errors: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def load_settings(self) -> None:
        """Load saved connections and flags. A corrupt file is logged and ignored."""
        try:
            data = self._store.read_json(SETTINGS_KEY)
        except (OSError, ValueError) as exc:
            logger.warning("SQL settings unreadable, starting empty: %s", exc)
            return
        if not isinstance(data, dict):
            logger.info("No SQL settings, starting empty")
            return

        connections: dict[str, ConnectionConfig] = {}
        for raw in data.get("connections") or []:
            try:
                cfg = ConnectionConfig.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed SQL connection: %s", exc)
                continue
            connections[cfg.id] = cfg

        mode = data.get("mode")
        with self._lock:
            self._enabled = bool(data.get("enabled", False))
            self._mode = mode if mode in SQL_MODES else QUERY_ONLY
            self._active_id = data.get("active_connection_id")
            self._connections = connections
        logger.info(
            "SQL settings loaded: %d connection(s), enabled=%s, mode=%s",
            len(connections),
            self._enabled,
            self._mode,
        )

    def _save_settings(self) -> None:
        with self._lock:
            payload = {
                "enabled": self._enabled,
                "mode": self._mode,
                "active_connection_id": self._active_id,
                "connections": [c.to_dict() for c in self._connections.values()],
            }
        try:
            self._store.write_json(SETTINGS_KEY, payload, indent=2)
        except OSError as exc:
            logger.error("Could not save SQL settings: %s", exc)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        with self._lock:
            return self._state

    def _set_state(self, state: EngineState) -> None:
        with self._lock:
            self._state = state

    def start(self) -> threading.Thread:
        """Load settings, then connect every saved connection in the background."""
        self.load_settings()
        return run_in_background(self.connect_all, name="sql-connect")

    def connect_all(self) -> None:
        with self._lock:
            ids = list(self._connections)
        if not ids:
            self._set_state(EngineState.UNAVAILABLE)
            return
        for connection_id in ids:
            self.connect(connection_id)

    def close(self) -> None:
        with self._lock:
            engines = list(self._engines.values())
            self._engines.clear()
        for engine in engines:
            engine.dispose()

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def _build_engine(self, cfg: ConnectionConfig) -> Engine:
        kwargs: dict[str, Any] = {"pool_pre_ping": True}
        if cfg.is_postgres:
            kwargs["pool_size"] = 3
            kwargs["max_overflow"] = 0
            kwargs["connect_args"] = {
                "connect_timeout": self.connect_timeout,
                "options": f"-c statement_timeout={self.statement_timeout_ms}",
            }
        return create_engine(cfg.to_url(), **kwargs)

    def connect(self, connection_id: str) -> IndexResult:
        """(Re)open the connection, test it with ``SELECT 1`` and read its schema."""
        with self._lock:
            cfg = self._connections.get(connection_id)
            old = self._engines.pop(connection_id, None)
        if cfg is None:
            return IndexResult(False, "Connection not found")
        if old is not None:
            old.dispose()

        self._set_state(EngineState.CONNECTING)
        try:
            engine = self._build_engine(cfg)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, ImportError) as exc:
            message = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
            with self._lock:
                self._errors[connection_id] = message
            logger.error("Could not connect to %s: %s", cfg.name, message)
            self._set_state(EngineState.UNAVAILABLE)
            return IndexResult(False, message)

        with self._lock:
            self._engines[connection_id] = engine
            self._errors.pop(connection_id, None)
        logger.info("Connected to %s (%s/%s)", cfg.name, cfg.host or cfg.driver, cfg.database)

        if not self._load_schema(connection_id, engine):
            self._set_state(EngineState.UNAVAILABLE)
            with self._lock:
                message = self._errors[connection_id]
            return IndexResult(False, f"Error: schema could not be read: {message}")
        self._set_state(EngineState.AVAILABLE)
        return IndexResult(True, f'Connected to "{cfg.name}"')

    def _load_schema(self, connection_id: str, engine: Engine) -> bool:
        try:
            schema = read_schema(engine, timeout_ms=self.schema_timeout_ms)
        except SQLAlchemyError as exc:
            message = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
            logger.error("Could not read schema: %s", message)
            with self._lock:
                self._errors[connection_id] = message
            return False
        with self._lock:
            self._schemas[connection_id] = schema
            self._errors.pop(connection_id, None)
        return True

    def add_connection(self, cfg: ConnectionConfig) -> IndexResult:
        """Save *cfg*, connect, and make it active if no connection is active yet."""
        with self._lock:
            self._connections[cfg.id] = cfg
        result = self.connect(cfg.id)

        if result.success:
            with self._lock:
                if self._active_id is None:
                    self._active_id = cfg.id
        self._save_settings()
        return result

    def remove_connection(self, connection_id: str) -> bool:
        """Forget a connection. The next saved connection (if any) becomes active."""
        with self._lock:
            if connection_id not in self._connections:
                return False
            engine = self._engines.pop(connection_id, None)
            del self._connections[connection_id]
            self._schemas.pop(connection_id, None)
            self._errors.pop(connection_id, None)
            if self._active_id == connection_id:
                self._active_id = next(iter(self._connections), None)
        if engine is not None:
            engine.dispose()
        self._save_settings()
        logger.info("Connection %s removed", connection_id)
        return True

    def test_connection(self, connection_id: str) -> IndexResult:
        with self._lock:
            engine = self._engines.get(connection_id)
        if engine is None:
            result = self.connect(connection_id)
            return IndexResult(result.success, "Connection OK" if result.success else result.message)
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            return IndexResult(False, str(exc))
        return IndexResult(True, "Connection OK")

    def refresh_schema(self, connection_id: str | None = None) -> IndexResult:
        """Re-read the schema of *connection_id* (default: the active one)."""
        if not self._refresh_lock.acquire(blocking=False):
            return IndexResult(False, "Already refreshing")
        try:
            target = connection_id or self.active_connection_id
            if target is None:
                return IndexResult(False, "No active connection")

            with self._lock:
                engine = self._engines.get(target)
            if engine is None:
                # connect() reads the schema itself
                result = self.connect(target)
                if not result.success:
                    return result
                with self._lock:
                    count = len(self._schemas[target].tables)
                return IndexResult(True, f"Schema refreshed: {count} tables")

            self._set_state(EngineState.REFRESHING)
            if not self._load_schema(target, engine):
                self._set_state(EngineState.UNAVAILABLE)
                return IndexResult(False, "Error: schema could not be read")
            self._set_state(EngineState.AVAILABLE)
            with self._lock:
                count = len(self._schemas[target].tables)
            return IndexResult(True, f"Schema refreshed: {count} tables")
        finally:
            self._refresh_lock.release()

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    @property
    def mode(self) -> str:
        with self._lock:
            return self._mode

    @property
    def active_connection_id(self) -> str | None:
        with self._lock:
            return self._active_id

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = enabled
        self._save_settings()
        logger.info("SQL context %s", "enabled" if enabled else "disabled")

    def set_mode(self, mode: str) -> None:
        if mode not in SQL_MODES:
            raise ValueError(f"Unknown SQL mode '{mode}' (expected one of {', '.join(SQL_MODES)})")
        with self._lock:
            self._mode = mode
        self._save_settings()
        logger.info("SQL mode: %s", mode)

    def set_active_connection(self, connection_id: str | None) -> bool:
        """Select the active connection. Returns False for an unknown id."""
        with self._lock:
            if connection_id is not None and connection_id not in self._connections:
                return False
            self._active_id = connection_id
        self._save_settings()
        logger.info("Active connection: %s", connection_id)
        return True

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def connections(self) -> list[ConnectionConfig]:
        with self._lock:
            return list(self._connections.values())

    def has_active_schema(self) -> bool:
        return self.table_count() > 0

    def table_count(self) -> int:
        schema = self._active_schema()
        return len(schema.tables) if schema else 0

    def is_available(self) -> bool:
        return self.enabled and self.has_active_schema()

    def status(self) -> SqlStatus:
        with self._lock:
            connections = [
                ConnectionStatus(
                    id=cid,
                    name=cfg.name,
                    host=cfg.host,
                    port=cfg.port,
                    database=cfg.database,
                    user=cfg.user,
                    connected=cid in self._engines and cid not in self._errors,
                    error=self._errors.get(cid),
                )
                for cid, cfg in self._connections.items()
            ]
            enabled, mode, active = self._enabled, self._mode, self._active_id
        return SqlStatus(
            enabled=enabled,
            mode=mode,
            connections=connections,
            active_connection_id=active,
            schema_loaded=self.has_active_schema(),
        )

    # ------------------------------------------------------------------
    # Schema text
    # ------------------------------------------------------------------

    def _active_schema(self) -> SchemaInfo | None:
        with self._lock:
            if self._active_id is None:
                return None
            return self._schemas.get(self._active_id)

    def get_schema_as_text(self) -> str | None:
        """Whole schema (first 15 tables on large databases)."""
        return self.get_filtered_schema(None)

    def get_filtered_schema(self, query: str | None) -> str | None:
        """Compact schema text restricted to tables relevant to *query*, or None."""
        try:
            with self._lock:
                active = self._active_id
                cfg = self._connections.get(active) if active else None
                schema = self._schemas.get(active) if active else None
            if schema is None or not schema.tables:
                return None

            tables = schema.tables
            if len(tables) > self.max_tables:
                tables = self._select_tables(tables, query)
            database = cfg.database if cfg and cfg.database else "db"
            return render_schema(database, tables, len(schema.tables))
        except Exception:
            logger.exception("Schema filtering failed")
            return None

    def _select_tables(self, tables: list[TableInfo], query: str | None) -> list[TableInfo]:
        if not query:
            return tables[: self.max_tables]

        keywords = extract_keywords(query)
        logger.debug("SQL keywords: %s", keywords)
        scored = [(score_table(t, keywords), t) for t in tables]
        # sort() is stable, so equal scores keep catalog order.
        ranked = sorted((pair for pair in scored if pair[0] > 0), key=lambda p: p[0], reverse=True)
        selected = [t for _, t in ranked[: self.max_tables]]
        if not selected:
            selected = tables[: self.max_tables]
        logger.debug("SQL filter: %d/%d tables", len(selected), len(tables))
        return selected

    # ------------------------------------------------------------------
    # Query execution
    # ------------------------------------------------------------------

    def execute_query(self, sql: str) -> QueryResult:
        """Run a read-only query on the active connection. Errors are returned, not raised."""
        if self.mode != EXECUTE:
            return QueryResult(query=sql, error="Execute mode is not enabled")
        with self._lock:
            active = self._active_id
            engine = self._engines.get(active) if active else None
        if active is None:
            return QueryResult(query=sql, error="No active connection")
        if engine is None:
            return QueryResult(query=sql, error="Connection is not open")

        safe_sql, error = prepare_query(sql, self.max_rows)
        if error:
            return QueryResult(query=sql, error=error)

        try:
            with engine.connect() as conn:
                result = conn.exec_driver_sql(safe_sql)
                rows = [dict(row) for row in result.mappings()]
        except SQLAlchemyError as exc:
            message = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
            return QueryResult(query=safe_sql, error=message)

        return QueryResult(
            query=safe_sql,
            rows=rows,
            row_count=len(rows),
            truncated=len(rows) >= self.max_rows,
        )
