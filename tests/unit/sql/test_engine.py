"""Tests for SchemaFilterEngine against a real SQLite database."""

from __future__ import annotations

import sqlite3
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from holorag.sql.engine import (
    SETTINGS_KEY,
    SchemaFilterEngine,
    prepare_query,
    render_schema,
    score_table,
)
from holorag.sql.introspect import read_schema
from holorag.sql.models import EXECUTE, QUERY_ONLY, ColumnInfo, ConnectionConfig, TableInfo
from holorag.store.models import EngineState


def _cfg(path, conn_id="conn_erp", name="erp") -> ConnectionConfig:
    return ConnectionConfig(id=conn_id, name=name, host="", port=0, database=str(path), driver="sqlite")


@pytest.fixture
def sql(store):
    engine = SchemaFilterEngine(store)
    yield engine
    engine.close()


@pytest.fixture
def connected(sql, erp_db):
    result = sql.add_connection(_cfg(erp_db))
    assert result.success
    return sql


# ------------------------------------------------------------------
# Pure helpers
# ------------------------------------------------------------------


def test_score_table_weights():
    table = TableInfo(
        schema="public",
        name="fact_cab",
        description="Cabecera de facturas",
        columns=[
            ColumnInfo("fact_nro", "integer", description="Numero de factura"),
            ColumnInfo("cliente", "text"),
        ],
    )
    # description 15 + name 10 + column name 3 + column description 5
    assert score_table(table, ["fact"]) == 33
    assert score_table(table, ["deposito"]) == 0


def test_render_schema_format():
    table = TableInfo(
        schema="public",
        name="clientes",
        description="Maestro de clientes",
        columns=[
            ColumnInfo("id", "integer", is_primary_key=True),
            ColumnInfo("cuit", "varchar(13)", description="CUIT"),
        ],
    )
    text = render_schema("erp", [table], 40)
    assert text == 'DB:erp (1/40 tables)\nclientes -- Maestro de clientes: id integer PK, cuit varchar(13) "CUIT"'


@pytest.mark.parametrize(
    "sql_text,expected",
    [
        ("SELECT * FROM t", "SELECT * FROM t LIMIT 20"),
        ("select * from t;", "select * from t LIMIT 20"),
        ("SELECT * FROM t LIMIT 5", "SELECT * FROM t LIMIT 5"),
    ],
)
def test_prepare_query_adds_limit(sql_text, expected):
    assert prepare_query(sql_text, 20) == (expected, None)


@pytest.mark.parametrize("statement", ["DELETE FROM t", "  drop table t", "Update t set x = 1"])
def test_prepare_query_rejects_writes(statement):
    _, error = prepare_query(statement, 20)
    assert error is not None
    assert "not allowed" in error


# ------------------------------------------------------------------
# Connections
# ------------------------------------------------------------------


def test_first_connection_becomes_active(connected):
    assert connected.active_connection_id == "conn_erp"
    assert connected.table_count() == 4
    assert connected.state == EngineState.AVAILABLE
    st = connected.status()
    assert st.schema_loaded
    assert st.connections[0].connected


def test_failed_connection_is_saved_but_not_active(sql, tmp_path):
    result = sql.add_connection(_cfg(tmp_path / "missing" / "x.db"))

    assert not result.success
    assert sql.active_connection_id is None
    assert sql.state == EngineState.UNAVAILABLE
    st = sql.status()
    assert len(st.connections) == 1
    assert st.connections[0].error


def test_connect_unknown_id(sql):
    assert not sql.connect("conn_nope").success


def test_unreadable_schema_leaves_connection_unavailable(sql, erp_db):
    error = OperationalError("SELECT name FROM sqlite_master", {}, Exception("catalog locked"))
    with patch("holorag.sql.engine.read_schema", side_effect=error):
        result = sql.add_connection(_cfg(erp_db))

    assert not result.success
    assert "catalog locked" in result.message
    assert sql.state == EngineState.UNAVAILABLE
    assert sql.active_connection_id is None
    assert not sql.has_active_schema()
    [conn] = sql.status().connections
    assert not conn.connected
    assert conn.error == "catalog locked"


def test_refresh_after_unreadable_schema_recovers(sql, erp_db):
    with patch("holorag.sql.engine.read_schema", side_effect=OperationalError("q", {}, Exception("boom"))):
        sql.add_connection(_cfg(erp_db))

    result = sql.refresh_schema("conn_erp")

    assert result.success
    assert sql.state == EngineState.AVAILABLE
    assert sql.status().connections[0].error is None


def test_remove_promotes_next_connection(connected, erp_db):
    connected.add_connection(_cfg(erp_db, conn_id="conn_copy", name="copy"))
    assert connected.active_connection_id == "conn_erp"

    assert connected.remove_connection("conn_erp") is True
    assert connected.active_connection_id == "conn_copy"
    assert connected.remove_connection("conn_erp") is False


def test_settings_persist(connected, store):
    connected.set_enabled(True)
    connected.set_mode(EXECUTE)

    fresh = SchemaFilterEngine(store)
    fresh.load_settings()

    assert fresh.enabled
    assert fresh.mode == EXECUTE
    assert fresh.active_connection_id == "conn_erp"
    assert [c.name for c in fresh.connections()] == ["erp"]


def test_corrupt_settings_start_empty(store):
    store.write_text(SETTINGS_KEY, "{oops")
    engine = SchemaFilterEngine(store)
    engine.load_settings()
    assert engine.connections() == []
    assert engine.mode == QUERY_ONLY


def test_set_mode_rejects_unknown(sql):
    with pytest.raises(ValueError, match="Unknown SQL mode"):
        sql.set_mode("write")


def test_set_active_unknown_id(connected):
    assert connected.set_active_connection("conn_nope") is False
    assert connected.active_connection_id == "conn_erp"


def test_test_connection(connected):
    assert connected.test_connection("conn_erp").message == "Connection OK"


def test_start_connects_saved_connections(connected, store):
    fresh = SchemaFilterEngine(store)
    try:
        fresh.start().join(timeout=10)
        assert fresh.has_active_schema()
    finally:
        fresh.close()


# ------------------------------------------------------------------
# Schema refresh
# ------------------------------------------------------------------


def test_refresh_picks_up_new_tables(connected, erp_db):
    conn = sqlite3.connect(erp_db)
    conn.execute("CREATE TABLE pedidos (id INTEGER PRIMARY KEY)")
    conn.commit()
    conn.close()

    result = connected.refresh_schema()

    assert result.success
    assert result.message == "Schema refreshed: 5 tables"
    assert connected.table_count() == 5


def test_refresh_without_active_connection(sql):
    assert sql.refresh_schema().message == "No active connection"


def test_refresh_of_unopened_connection_reads_catalog_once(sql, erp_db, store):
    sql.add_connection(_cfg(erp_db))
    sql.close()
    fresh = SchemaFilterEngine(store)
    fresh.load_settings()
    try:
        with patch("holorag.sql.engine.read_schema", wraps=read_schema) as reader:
            result = fresh.refresh_schema()
    finally:
        fresh.close()

    assert result.message == "Schema refreshed: 4 tables"
    assert reader.call_count == 1


def test_concurrent_refresh_is_rejected(connected):
    connected._refresh_lock.acquire()
    try:
        result = connected.refresh_schema()
    finally:
        connected._refresh_lock.release()
    assert result.message == "Already refreshing"


# ------------------------------------------------------------------
# Filtering
# ------------------------------------------------------------------


def test_small_schema_is_shown_whole(connected):
    text = connected.get_filtered_schema("facturas del vendedor")
    assert text is not None
    lines = text.splitlines()
    assert lines[0].endswith("(4/4 tables)")
    assert lines[1] == "clientes: id integer PK, nombre text, ciudad text"


def test_large_schema_is_filtered(store, erp_db):
    engine = SchemaFilterEngine(store, max_tables=2)
    try:
        engine.add_connection(_cfg(erp_db))
        text = engine.get_filtered_schema("¿Cuántas facturas tiene cada vendedor?")
    finally:
        engine.close()

    lines = text.splitlines()
    assert lines[0].endswith("(2/4 tables)")
    assert [line.split(":")[0] for line in lines[1:]] == ["facturas", "vendedores"]


def test_large_schema_without_matches_falls_back(store, erp_db):
    engine = SchemaFilterEngine(store, max_tables=2)
    try:
        engine.add_connection(_cfg(erp_db))
        text = engine.get_filtered_schema("hola mundo")
        whole = engine.get_schema_as_text()
    finally:
        engine.close()

    assert [line.split(":")[0] for line in text.splitlines()[1:]] == ["clientes", "depositos"]
    assert whole == text


def test_no_schema_returns_none(sql):
    assert sql.get_filtered_schema("facturas") is None


def test_is_available_needs_enabled(connected):
    assert not connected.is_available()
    connected.set_enabled(True)
    assert connected.is_available()


# ------------------------------------------------------------------
# Query execution
# ------------------------------------------------------------------


def test_query_only_mode_refuses(connected):
    result = connected.execute_query("SELECT * FROM clientes")
    assert not result.ok
    assert result.error == "Execute mode is not enabled"


def test_execute_select(connected):
    connected.set_mode(EXECUTE)
    result = connected.execute_query("SELECT nombre FROM clientes ORDER BY id")

    assert result.ok
    assert result.query.endswith("LIMIT 20")
    assert result.rows == [{"nombre": "Ana"}, {"nombre": "Beto"}, {"nombre": "Caro"}]
    assert result.row_count == 3
    assert result.truncated is False


def test_execute_truncates_at_max_rows(store, erp_db):
    engine = SchemaFilterEngine(store, max_rows=2)
    try:
        engine.add_connection(_cfg(erp_db))
        engine.set_mode(EXECUTE)
        result = engine.execute_query("SELECT * FROM clientes")
    finally:
        engine.close()

    assert result.row_count == 2
    assert result.truncated is True


def test_execute_rejects_write(connected):
    connected.set_mode(EXECUTE)
    result = connected.execute_query("DELETE FROM clientes")
    assert "not allowed" in result.error


def test_execute_reports_sql_error(connected):
    connected.set_mode(EXECUTE)
    result = connected.execute_query("SELECT * FROM no_such_table")
    assert not result.ok
    assert "no_such_table" in result.error


def test_sixteen_tables_no_keywords_gives_first_fifteen(store, tmp_path):
    path = tmp_path / "wide.db"
    conn = sqlite3.connect(path)
    for i in range(16):
        conn.execute(f"CREATE TABLE tabla_{i:02d} (id INTEGER PRIMARY KEY)")
    conn.commit()
    conn.close()

    engine = SchemaFilterEngine(store)
    try:
        engine.add_connection(_cfg(path, name="wide"))
        text = engine.get_filtered_schema("hola mundo")
    finally:
        engine.close()

    lines = text.splitlines()
    assert lines[0].endswith("(15/16 tables)")
    assert [line.split(":")[0] for line in lines[1:]] == [f"tabla_{i:02d}" for i in range(15)]
