"""Domain models for the SQL schema layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy.engine import URL

QUERY_ONLY = "query-only"
EXECUTE = "execute"
SQL_MODES = (QUERY_ONLY, EXECUTE)


@dataclass
class ColumnInfo:
    name: str
    data_type: str
    is_nullable: bool = True
    default_expr: str | None = None
    is_primary_key: bool = False
    description: str | None = None


@dataclass
class TableInfo:
    schema: str | None
    name: str
    description: str | None = None
    columns: list[ColumnInfo] = field(default_factory=list)


@dataclass
class ForeignKeyInfo:
    constraint_name: str | None
    source_table: str
    source_column: str
    target_table: str
    target_column: str


@dataclass
class SchemaInfo:
    tables: list[TableInfo]
    foreign_keys: list[ForeignKeyInfo]
    last_refreshed_at: int


@dataclass
class ConnectionConfig:
    """One saved database connection.

    ``driver`` is a SQLAlchemy dialect+driver string; ``sqlite`` connections
    use ``database`` as the file path and ignore host, port and credentials.
    """

    id: str
    name: str
    host: str = "localhost"
    port: int = 5432
    database: str = ""
    user: str = ""
    password: str = ""
    driver: str = "postgresql+psycopg"

    @property
    def is_postgres(self) -> bool:
        return self.driver.split("+")[0] == "postgresql"

    def to_url(self) -> URL:
        if self.driver.split("+")[0] == "sqlite":
            return URL.create(self.driver, database=self.database or None)
        return URL.create(
            self.driver,
            username=self.user or None,
            password=self.password or None,
            host=self.host or None,
            port=self.port or None,
            database=self.database or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConnectionConfig:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            host=str(data.get("host") or ""),
            port=int(data.get("port") or 0),
            database=str(data.get("database") or ""),
            user=str(data.get("user") or ""),
            password=str(data.get("password") or ""),
            driver=str(data.get("driver") or "postgresql+psycopg"),
        )


@dataclass
class ConnectionStatus:
    id: str
    name: str
    host: str
    port: int
    database: str
    user: str
    connected: bool
    error: str | None = None


@dataclass
class SqlStatus:
    enabled: bool
    mode: str
    connections: list[ConnectionStatus]
    active_connection_id: str | None
    schema_loaded: bool


@dataclass
class QueryResult:
    """Outcome of execute_query(). Exactly one of ``rows`` / ``error`` is set."""

    query: str
    rows: list[dict[str, Any]] | None = None
    row_count: int | None = None
    truncated: bool | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
