"""Data source and cursor protocols.

A DataSource owns one database connection. Executing a statement yields a
Cursor: a forward-only read position that knows its column descriptors and,
for statements without a result set, the number of affected rows.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sql_notebook.core.exceptions import ConfigError

if TYPE_CHECKING:
    from sql_notebook.core.config import ResolvedConfig
    from sql_notebook.core.models import (
        ColumnDescriptor,
        ColumnMetadata,
        TableMetadata,
    )


@runtime_checkable
class Cursor(Protocol):
    columns: list[ColumnDescriptor]
    affected_rows: int

    def fetch(self, size: int) -> list[tuple[Any, ...]]:
        """Return up to ``size`` rows not yet returned; [] once exhausted."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class DataSource(Protocol):
    def open(self) -> None: ...

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        ...

    def execute(self, sql: str) -> Cursor: ...

    def tables(self) -> list[TableMetadata]: ...

    def views(self) -> list[TableMetadata]: ...

    def columns(
        self,
        catalog: str | None = None,
        schema: str | None = None,
        table: str | None = None,
    ) -> list[ColumnMetadata]: ...


def create_data_source(config: ResolvedConfig) -> DataSource:
    """Build the data source selected by the resolved configuration."""
    if config.driver == "postgres":
        from sql_notebook.core.postgres import PgDataSource

        return PgDataSource(config)
    if config.driver == "sqlite":
        from sql_notebook.core.sqlite import SqliteDataSource

        return SqliteDataSource(config.path, timeout=config.default_timeout)

    msg = f"Unknown driver: '{config.driver}'. Expected 'postgres' or 'sqlite'"
    raise ConfigError(msg)
