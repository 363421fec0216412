"""holorag SQL layer — saved connections, schema introspection and filtering."""

from holorag.sql.engine import SchemaFilterEngine
from holorag.sql.keywords import extract_keywords
from holorag.sql.models import (
    ColumnInfo,
    ConnectionConfig,
    ForeignKeyInfo,
    QueryResult,
    SchemaInfo,
    TableInfo,
)

__all__ = [
    "ColumnInfo",
    "ConnectionConfig",
    "ForeignKeyInfo",
    "QueryResult",
    "SchemaFilterEngine",
    "SchemaInfo",
    "TableInfo",
    "extract_keywords",
]
