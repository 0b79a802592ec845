"""PostgreSQL data source for SQL Notebook.

Wraps a psycopg v3 synchronous connection in autocommit mode. Plain queries
(SELECT, VALUES, TABLE) run on a named server-side cursor declared WITH HOLD,
so each page is pulled from the server through fetchmany() and only one page
is held in this process. Other statements, including WITH queries that may
modify data, run on an ordinary client-side cursor, whose whole result is
transferred on execute. Driver exceptions are mapped onto the NotebookError
hierarchy.
"""

from __future__ import annotations

import itertools
import time
from typing import TYPE_CHECKING, Any

import psycopg
import psycopg.errors
import sentry_sdk
import structlog

from sql_notebook.core.exceptions import NetworkError, QueryError, TimeoutError
from sql_notebook.core.models import ColumnDescriptor, ColumnMetadata, TableMetadata

if TYPE_CHECKING:
    from sql_notebook.core.config import ResolvedConfig

# Mapping from psycopg type OIDs to human-readable names.
# Covers the most common PostgreSQL types; unknown OIDs fall back to "unknown".
_TYPE_NAMES: dict[int, str] = {
    16: "bool",
    17: "bytea",
    20: "int8",
    21: "int2",
    23: "int4",
    25: "text",
    26: "oid",
    114: "json",
    142: "xml",
    700: "float4",
    701: "float8",
    790: "money",
    1042: "bpchar",
    1043: "varchar",
    1082: "date",
    1083: "time",
    1114: "timestamp",
    1184: "timestamptz",
    1186: "interval",
    1700: "numeric",
    2950: "uuid",
    3802: "jsonb",
}

_TABLES_SQL = """
SELECT table_catalog, table_schema, table_name
FROM information_schema.tables
WHERE table_type = %s
  AND table_schema NOT IN ('pg_catalog', 'information_schema')
ORDER BY table_schema, table_name
"""

_COLUMNS_SQL = """
SELECT table_catalog, table_schema, table_name, column_name, data_type
FROM information_schema.columns
WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
"""

_STREAMED_KEYWORDS = frozenset({"select", "values", "table"})

_cursor_ids = itertools.count(1)


def _normalize(sql: str) -> str:
    return " ".join(sql.split())


def _is_plain_query(sql: str) -> bool:
    words = sql.lstrip(" \t\r\n(").split(None, 1)
    return bool(words) and words[0].lower() in _STREAMED_KEYWORDS


def _map_error(e: psycopg.Error, sql: str, timeout: float) -> Exception:
    log = structlog.get_logger()
    if isinstance(e, psycopg.errors.QueryCanceled):
        log.error("query timeout", sql=sql)
        return TimeoutError(f"Query timed out after {timeout}s: {e}")
    if isinstance(e, psycopg.OperationalError):
        log.error("database error", sql=sql, error=str(e))
        return NetworkError(f"Database error: {e}")
    log.error("query error", sql=sql, error=str(e))
    return QueryError(f"SQL error: {e}")


class PgCursor:
    """Forward-only view over one executed statement."""

    def __init__(
        self,
        cursor: psycopg.Cursor[Any] | psycopg.ServerCursor[Any],
        sql: str,
        timeout: float,
    ) -> None:
        self._cursor = cursor
        self._sql = sql
        self._timeout = timeout
        self.columns: list[ColumnDescriptor] = [
            ColumnDescriptor(
                name=desc.name,
                type_name=_TYPE_NAMES.get(desc.type_code, "unknown"),
            )
            for desc in cursor.description or []
        ]
        self.affected_rows = 0 if self.columns else max(cursor.rowcount, 0)

    def fetch(self, size: int) -> list[tuple[Any, ...]]:
        if not self.columns:
            return []
        with sentry_sdk.start_span(op="db.fetch", description=self._sql[:100]) as span:
            try:
                rows = self._cursor.fetchmany(size)
            except psycopg.Error as e:
                span.set_status("internal_error")
                raise _map_error(e, self._sql, self._timeout) from e
            span.set_data("row_count", len(rows))
        return rows

    def close(self) -> None:
        self._cursor.close()


class PgDataSource:
    """Synchronous PostgreSQL data source using psycopg v3."""

    def __init__(self, config: ResolvedConfig) -> None:
        self.config = config
        self._connection: psycopg.Connection[Any] | None = None

    def __enter__(self) -> PgDataSource:
        self.open()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def open(self) -> None:
        self._connect()

    def _connect(self) -> psycopg.Connection[Any]:
        if self._connection is not None and not self._connection.closed:
            return self._connection

        try:
            self._connection = psycopg.connect(
                host=self.config.host,
                port=self.config.port,
                dbname=self.config.dbname,
                user=self.config.user,
                password=self.config.password,
                sslmode=self.config.sslmode,
                connect_timeout=self.config.connect_timeout,
                application_name=self.config.application_name,
                autocommit=True,
            )
        except psycopg.OperationalError as e:
            msg = (
                f"Connection failed to {self.config.host}:{self.config.port} "
                f"database '{self.config.dbname}': {e}"
            )
            raise NetworkError(msg) from e

        return self._connection

    def execute(self, sql: str) -> PgCursor:
        """Run one statement and return a cursor positioned before its rows."""
        log = structlog.get_logger()
        conn = self._connect()
        timeout_ms = int(self.config.default_timeout * 1000)
        sql_normalized = _normalize(sql)
        log.debug("executing query", sql=sql_normalized)

        with sentry_sdk.start_span(
            op="db.query", description=sql_normalized[:100]
        ) as span:
            start_time = time.monotonic()
            cur: psycopg.Cursor[Any] | psycopg.ServerCursor[Any] | None = None
            try:
                with conn.cursor() as setup:
                    setup.execute(f"SET statement_timeout = {timeout_ms}")
                if _is_plain_query(sql):
                    cur = conn.cursor(
                        name=f"notebook_{next(_cursor_ids)}", withhold=True
                    )
                    cur.execute(sql.rstrip().rstrip(";"))
                else:
                    cur = conn.cursor()
                    cur.execute(sql)
            except psycopg.Error as e:
                if cur is not None:
                    cur.close()
                span.set_status("internal_error")
                raise _map_error(
                    e, sql_normalized, self.config.default_timeout
                ) from e

            duration_ms = (time.monotonic() - start_time) * 1000
            span.set_data("duration_ms", duration_ms)
            log.debug(
                "query started",
                duration_ms=f"{duration_ms:.1f}",
                status=cur.statusmessage or "",
            )
            return PgCursor(cur, sql_normalized, self.config.default_timeout)

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        conn = self._connect()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchall()
        except psycopg.Error as e:
            raise _map_error(e, _normalize(sql), self.config.default_timeout) from e

    def tables(self) -> list[TableMetadata]:
        return [
            TableMetadata(catalog=catalog, schema_name=schema, table=table)
            for catalog, schema, table in self._query(_TABLES_SQL, ("BASE TABLE",))
        ]

    def views(self) -> list[TableMetadata]:
        return [
            TableMetadata(catalog=catalog, schema_name=schema, table=table)
            for catalog, schema, table in self._query(_TABLES_SQL, ("VIEW",))
        ]

    def columns(
        self,
        catalog: str | None = None,
        schema: str | None = None,
        table: str | None = None,
    ) -> list[ColumnMetadata]:
        sql = _COLUMNS_SQL
        params: list[str] = []
        for column_name, value in (
            ("table_catalog", catalog),
            ("table_schema", schema),
            ("table_name", table),
        ):
            if value:
                sql += f"  AND {column_name} = %s\n"
                params.append(value)
        sql += "ORDER BY table_schema, table_name, ordinal_position"

        return [
            ColumnMetadata(
                catalog=row[0],
                schema_name=row[1],
                table=row[2],
                column=row[3],
                datatype=row[4],
            )
            for row in self._query(sql, tuple(params))
        ]

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
