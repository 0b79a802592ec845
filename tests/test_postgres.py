"""Tests for the PostgreSQL data source (core.postgres).

Unit tests drive PgDataSource against a mocked psycopg connection;
integration tests need the profile named in tests/integration_config.py.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import psycopg
import psycopg.errors
import pytest

from sql_notebook.core.config import ResolvedConfig, load_config, resolve_config
from sql_notebook.core.exceptions import NetworkError, QueryError, TimeoutError
from sql_notebook.core.postgres import PgCursor, PgDataSource
from sql_notebook.core.session import QuerySession
from tests.integration_config import TEST_PROFILE


def _desc(name, type_code):
    return SimpleNamespace(name=name, type_code=type_code)


@pytest.fixture
def mock_conn():
    conn = MagicMock()
    conn.closed = False
    cursor = conn.cursor.return_value
    cursor.__enter__.return_value = cursor
    cursor.description = None
    cursor.rowcount = -1
    cursor.statusmessage = "SELECT 0"
    return conn


@pytest.fixture
def pg_source(mock_conn):
    config = ResolvedConfig(host="db.example.com", dbname="app", default_timeout=2.5)
    with patch("psycopg.connect", return_value=mock_conn) as connect:
        source = PgDataSource(config)
        source.connect_mock = connect
        yield source


# -- Connection --


@pytest.mark.unit
def test_open_connects_with_autocommit(pg_source):
    pg_source.open()
    kwargs = pg_source.connect_mock.call_args.kwargs
    assert kwargs["host"] == "db.example.com"
    assert kwargs["dbname"] == "app"
    assert kwargs["autocommit"] is True


@pytest.mark.unit
def test_connection_reused(pg_source):
    pg_source.open()
    pg_source.execute("SELECT 1")
    assert pg_source.connect_mock.call_count == 1


@pytest.mark.unit
def test_connection_failure_raises_network_error():
    config = ResolvedConfig(host="nowhere", port=6543)
    with patch("psycopg.connect", side_effect=psycopg.OperationalError("refused")):
        with pytest.raises(NetworkError, match="nowhere:6543"):
            PgDataSource(config).open()


@pytest.mark.unit
def test_close_releases_connection(pg_source, mock_conn):
    pg_source.open()
    pg_source.close()
    mock_conn.close.assert_called_once()
    pg_source.close()
    mock_conn.close.assert_called_once()


# -- execute --


@pytest.mark.unit
def test_execute_sets_statement_timeout(pg_source, mock_conn):
    pg_source.execute("SELECT 1")
    calls = mock_conn.cursor.return_value.execute.call_args_list
    assert calls[0].args[0] == "SET statement_timeout = 2500"
    assert calls[1].args[0] == "SELECT 1"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("sql", "sent"),
    [
        ("SELECT * FROM big;", "SELECT * FROM big"),
        ("  (select 1) union (select 2)", "  (select 1) union (select 2)"),
        ("VALUES (1), (2);\n", "VALUES (1), (2)"),
        ("TABLE big", "TABLE big"),
    ],
)
def test_plain_query_uses_server_side_cursor(pg_source, mock_conn, sql, sent):
    pg_source.execute(sql)
    kwargs = mock_conn.cursor.call_args.kwargs
    assert kwargs["name"].startswith("notebook_")
    assert kwargs["withhold"] is True
    assert mock_conn.cursor.return_value.execute.call_args.args[0] == sent


@pytest.mark.unit
def test_server_side_cursor_names_are_unique(pg_source, mock_conn):
    pg_source.execute("SELECT 1")
    first = mock_conn.cursor.call_args.kwargs["name"]
    pg_source.execute("SELECT 2")
    assert mock_conn.cursor.call_args.kwargs["name"] != first


@pytest.mark.unit
@pytest.mark.parametrize(
    "sql",
    [
        "DELETE FROM t;",
        "WITH gone AS (DELETE FROM t RETURNING id) SELECT * FROM gone",
        "-- comment first\nSELECT 1",
    ],
)
def test_other_statements_use_client_cursor(pg_source, mock_conn, sql):
    pg_source.execute(sql)
    assert mock_conn.cursor.call_args.kwargs == {}
    assert mock_conn.cursor.return_value.execute.call_args.args[0] == sql


@pytest.mark.unit
def test_execute_maps_column_types(pg_source, mock_conn):
    mock_conn.cursor.return_value.description = [
        _desc("id", 23),
        _desc("payload", 3802),
        _desc("mystery", 999999),
    ]
    cursor = pg_source.execute("SELECT id, payload, mystery FROM t")
    assert [(c.name, c.type_name) for c in cursor.columns] == [
        ("id", "int4"),
        ("payload", "jsonb"),
        ("mystery", "unknown"),
    ]
    assert cursor.affected_rows == 0


@pytest.mark.unit
def test_execute_without_result_set_reports_rowcount(pg_source, mock_conn):
    mock_conn.cursor.return_value.rowcount = 7
    cursor = pg_source.execute("DELETE FROM t")
    assert cursor.columns == []
    assert cursor.affected_rows == 7
    assert cursor.fetch(10) == []


@pytest.mark.unit
def test_negative_rowcount_reported_as_zero(pg_source, mock_conn):
    mock_conn.cursor.return_value.rowcount = -1
    assert pg_source.execute("CREATE TABLE t (x int)").affected_rows == 0


@pytest.mark.unit
@pytest.mark.parametrize(
    ("error", "expected", "match"),
    [
        (psycopg.errors.QueryCanceled("canceled"), TimeoutError, "timed out after 2.5s"),
        (psycopg.OperationalError("server closed"), NetworkError, "Database error"),
        (psycopg.errors.SyntaxError("near SELEC"), QueryError, "SQL error"),
    ],
)
def test_execute_maps_driver_errors(pg_source, mock_conn, error, expected, match):
    cursor = mock_conn.cursor.return_value
    cursor.execute.side_effect = [None, error]
    with pytest.raises(expected, match=match):
        pg_source.execute("SELEC 1")
    cursor.close.assert_called_once()


# -- PgCursor --


@pytest.mark.unit
def test_cursor_fetch_uses_fetchmany():
    raw = MagicMock()
    raw.description = [_desc("n", 20)]
    raw.fetchmany.return_value = [(1,), (2,)]
    cursor = PgCursor(raw, "SELECT n", 1.0)
    assert cursor.fetch(2) == [(1,), (2,)]
    raw.fetchmany.assert_called_once_with(2)


@pytest.mark.unit
def test_cursor_fetch_error_is_mapped():
    raw = MagicMock()
    raw.description = [_desc("n", 20)]
    raw.fetchmany.side_effect = psycopg.OperationalError("connection lost")
    with pytest.raises(NetworkError, match="connection lost"):
        PgCursor(raw, "SELECT n", 1.0).fetch(5)


@pytest.mark.unit
def test_cursor_close():
    raw = MagicMock()
    raw.description = None
    raw.rowcount = 0
    PgCursor(raw, "VACUUM", 1.0).close()
    raw.close.assert_called_once()


# -- catalog --


@pytest.mark.unit
def test_tables_queries_base_tables(pg_source, mock_conn):
    mock_conn.cursor.return_value.fetchall.return_value = [
        ("app", "public", "users"),
        ("app", "audit", "events"),
    ]
    tables = pg_source.tables()
    assert [(t.schema_name, t.table) for t in tables] == [
        ("public", "users"),
        ("audit", "events"),
    ]
    sql, params = mock_conn.cursor.return_value.execute.call_args.args
    assert "information_schema.tables" in sql
    assert params == ("BASE TABLE",)


@pytest.mark.unit
def test_views_queries_views(pg_source, mock_conn):
    mock_conn.cursor.return_value.fetchall.return_value = []
    assert pg_source.views() == []
    _, params = mock_conn.cursor.return_value.execute.call_args.args
    assert params == ("VIEW",)


@pytest.mark.unit
def test_columns_filters_only_given_parts(pg_source, mock_conn):
    mock_conn.cursor.return_value.fetchall.return_value = [
        ("app", "public", "users", "id", "integer"),
    ]
    cols = pg_source.columns(schema="public", table="users")
    assert cols[0].column == "id"
    assert cols[0].datatype == "integer"
    sql, params = mock_conn.cursor.return_value.execute.call_args.args
    assert "table_schema = %s" in sql
    assert "table_name = %s" in sql
    assert "table_catalog = %s" not in sql
    assert params == ("public", "users")


@pytest.mark.unit
def test_catalog_error_is_mapped(pg_source, mock_conn):
    mock_conn.cursor.return_value.execute.side_effect = psycopg.errors.InsufficientPrivilege(
        "permission denied"
    )
    with pytest.raises(QueryError, match="permission denied"):
        pg_source.tables()


# -- Integration --


@pytest.fixture
def live_source():
    config = resolve_config(load_config(), profile_name=TEST_PROFILE)
    with PgDataSource(config) as s:
        yield s


@pytest.mark.integration
def test_live_select_pages(live_source):
    session = QuerySession(live_source)
    session.execute("SELECT v FROM generate_series(1, 5) AS v").unwrap()
    assert [c.type_name for c in session.metadata().unwrap()] == ["int4"]
    assert session.page(3).unwrap() == [{"v": "1"}, {"v": "2"}, {"v": "3"}]
    assert session.page(3).unwrap() == [{"v": "4"}, {"v": "5"}]
    assert session.page(3).unwrap() == []
    session.finish().unwrap()


@pytest.mark.integration
def test_live_temp_table_round_trip(live_source):
    session = QuerySession(live_source)
    session.execute("CREATE TEMP TABLE _nb_test (id int, label text)").unwrap()
    session.finish().unwrap()
    session.execute("INSERT INTO _nb_test VALUES (1, 'a'), (2, NULL)").unwrap()
    assert session.count().unwrap() == 2
    session.finish().unwrap()
    session.execute("SELECT label FROM _nb_test ORDER BY id").unwrap()
    assert session.page(10).unwrap() == [{"label": "a"}, {"label": None}]
    session.finish().unwrap()


@pytest.mark.integration
def test_live_syntax_error(live_source):
    with pytest.raises(QueryError, match="SQL error"):
        live_source.execute("SELECTT 1")


@pytest.mark.integration
def test_live_timeout():
    config = resolve_config(load_config(), profile_name=TEST_PROFILE)
    short = config.model_copy(update={"default_timeout": 0.1})
    with PgDataSource(short) as s, pytest.raises(TimeoutError, match="timed out"):
        s.execute("SELECT pg_sleep(5)")


@pytest.mark.integration
def test_live_catalog_lists_information_schema(live_source):
    cols = live_source.columns(catalog=None, schema="public", table=None)
    assert all(c.schema_name == "public" for c in cols)
