"""SQLite data source for SQL Notebook.

Uses the standard library driver in autocommit mode. SQLite values are
dynamically typed and cursor.description carries no types, so result
columns report DYNAMIC. Catalog introspection returns declared types.
"""

from __future__ import annotations

import sqlite3
from typing import Any

import sentry_sdk
import structlog

from sql_notebook.core.exceptions import NetworkError, QueryError
from sql_notebook.core.models import ColumnDescriptor, ColumnMetadata, TableMetadata

DYNAMIC_TYPE = "DYNAMIC"
MAIN_CATALOG = "main"


class SqliteCursor:
    """Forward-only view over one executed statement."""

    def __init__(self, cursor: sqlite3.Cursor) -> None:
        self._cursor = cursor
        self.columns: list[ColumnDescriptor] = [
            ColumnDescriptor(name=desc[0], type_name=DYNAMIC_TYPE)
            for desc in cursor.description or []
        ]
        self.affected_rows = 0 if self.columns else max(cursor.rowcount, 0)

    def fetch(self, size: int) -> list[tuple[Any, ...]]:
        if not self.columns:
            return []
        try:
            return self._cursor.fetchmany(size)
        except sqlite3.Error as e:
            raise QueryError(f"SQL error: {e}") from e

    def close(self) -> None:
        self._cursor.close()


class SqliteDataSource:
    """Data source over a SQLite database file, or ``:memory:``."""

    def __init__(self, path: str = ":memory:", timeout: float = 30.0) -> None:
        self.path = path
        self.timeout = timeout
        self._connection: sqlite3.Connection | None = None

    def __enter__(self) -> SqliteDataSource:
        self.open()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def open(self) -> None:
        self._connect()

    def _connect(self) -> sqlite3.Connection:
        if self._connection is not None:
            return self._connection
        try:
            self._connection = sqlite3.connect(
                self.path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise NetworkError(f"Cannot open SQLite database '{self.path}': {e}") from e
        return self._connection

    def execute(self, sql: str) -> SqliteCursor:
        log = structlog.get_logger()
        conn = self._connect()
        sql_normalized = " ".join(sql.split())
        log.debug("executing query", sql=sql_normalized)

        with sentry_sdk.start_span(op="db.query", description=sql_normalized[:100]):
            cur = conn.cursor()
            try:
                cur.execute(sql)
            except sqlite3.Error as e:
                cur.close()
                log.error("query error", sql=sql_normalized, error=str(e))
                raise QueryError(f"SQL error: {e}") from e
        return SqliteCursor(cur)

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise QueryError(f"SQL error: {e}") from e

    def _objects(self, kind: str) -> list[TableMetadata]:
        rows = self._query(
            "SELECT name FROM sqlite_master "
            "WHERE type = ? AND name NOT LIKE 'sqlite_%' ORDER BY name",
            (kind,),
        )
        return [TableMetadata(catalog=MAIN_CATALOG, table=name) for (name,) in rows]

    def tables(self) -> list[TableMetadata]:
        return self._objects("table")

    def views(self) -> list[TableMetadata]:
        return self._objects("view")

    def columns(
        self,
        catalog: str | None = None,
        schema: str | None = None,
        table: str | None = None,
    ) -> list[ColumnMetadata]:
        if catalog and catalog != MAIN_CATALOG:
            return []
        if table:
            names = [table]
        else:
            names = [entry.table for entry in self.tables() + self.views()]

        result: list[ColumnMetadata] = []
        for name in names:
            for _cid, column, datatype, *_rest in self._query(
                "SELECT * FROM pragma_table_info(?)", (name,)
            ):
                result.append(
                    ColumnMetadata(
                        catalog=MAIN_CATALOG,
                        table=name,
                        column=column,
                        datatype=datatype or DYNAMIC_TYPE,
                    )
                )
        return result

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
