"""Shared test fixtures for SQL Notebook."""

from __future__ import annotations

import json
from typing import Any

import pytest
from typer.testing import CliRunner

from sql_notebook.cli.main import app
from sql_notebook.core.models import ColumnDescriptor, ColumnMetadata, TableMetadata


class FakeCursor:
    """In-memory cursor that records how it was used."""

    def __init__(
        self,
        columns: list[ColumnDescriptor],
        rows: list[tuple[Any, ...]],
        affected_rows: int = 0,
        fail_after: int | None = None,
    ) -> None:
        self.columns = columns
        self.affected_rows = affected_rows
        self._rows = list(rows)
        self._position = 0
        self._fail_after = fail_after
        self.fetch_calls: list[int] = []
        self.closed = False

    def fetch(self, size: int) -> list[tuple[Any, ...]]:
        self.fetch_calls.append(size)
        if self._fail_after is not None and self._position >= self._fail_after:
            raise RuntimeError("connection reset by peer")
        batch = self._rows[self._position : self._position + size]
        self._position += len(batch)
        return batch

    def close(self) -> None:
        self.closed = True


class FakeDataSource:
    """Data source that answers statements from a prepared script."""

    def __init__(self) -> None:
        self.results: dict[str, FakeCursor | Exception] = {}
        self.cursors: list[FakeCursor] = []
        self.executed: list[str] = []
        self.opened = False
        self.closed = False

    def add_result(
        self,
        sql: str,
        columns: list[tuple[str, str]] | None = None,
        rows: list[tuple[Any, ...]] | None = None,
        affected_rows: int = 0,
        fail_after: int | None = None,
    ) -> None:
        self.results[sql] = FakeCursor(
            [ColumnDescriptor(name=n, type_name=t) for n, t in columns or []],
            rows or [],
            affected_rows=affected_rows,
            fail_after=fail_after,
        )

    def add_error(self, sql: str, error: Exception) -> None:
        self.results[sql] = error

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def execute(self, sql: str) -> FakeCursor:
        self.executed.append(sql)
        result = self.results[sql]
        if isinstance(result, Exception):
            raise result
        self.cursors.append(result)
        return result

    def tables(self) -> list[TableMetadata]:
        return [TableMetadata(catalog="main", table="users")]

    def views(self) -> list[TableMetadata]:
        return [TableMetadata(catalog="main", table="active_users")]

    def columns(
        self,
        catalog: str | None = None,
        schema: str | None = None,
        table: str | None = None,
    ) -> list[ColumnMetadata]:
        entries = [
            ColumnMetadata(catalog="main", table="users", column="id", datatype="INTEGER"),
            ColumnMetadata(catalog="main", table="users", column="name", datatype="TEXT"),
        ]
        return [e for e in entries if table is None or e.table == table]


USERS_SQL = "SELECT id, name FROM users;"
UPDATE_SQL = "UPDATE users SET name = 'x';"


def json_pages(output: str) -> list[Any]:
    """Pull compact JSON pages out of shell output, skipping prompt prefixes."""
    pages = []
    for line in output.splitlines():
        start = line.find("[")
        if start != -1 and line.endswith("]"):
            pages.append(json.loads(line[start:]))
    return pages


@pytest.fixture
def fake_source():
    source = FakeDataSource()
    source.add_result(
        USERS_SQL,
        columns=[("id", "int4"), ("name", "text")],
        rows=[(1, "alice"), (2, "bob"), (3, None)],
    )
    source.add_result(UPDATE_SQL, affected_rows=3)
    return source


@pytest.fixture
def runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_runner(runner):
    """Invoke the CLI app with the given arguments."""

    def invoke(*args: str, **kwargs):
        return runner.invoke(app, list(args), **kwargs)

    return invoke


@pytest.fixture(autouse=True)
def _isolate_environment(request, monkeypatch, tmp_path):
    """Keep the user's config file and PG* variables out of unit tests."""
    if request.node.get_closest_marker("integration"):
        return
    for var in ("PGHOST", "PGPORT", "PGDATABASE", "PGUSER", "PGPASSWORD"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.delenv("SQL_NOTEBOOK_PROFILE", raising=False)
    monkeypatch.delenv("SQL_NOTEBOOK_SENTRY_DSN", raising=False)
    monkeypatch.setattr(
        "sql_notebook.core.config.DEFAULT_CONFIG_PATH", tmp_path / "missing.toml"
    )
