"""Query session state machine.

A QuerySession owns one data source connection and at most one open cursor.
It moves between IDLE and QUERY_OPEN as statements are executed and
finished, and ends in TERMINATED after quit() or close().

Calls made in the wrong state are expected, recoverable conditions, so they
come back as SessionResult error variants instead of being raised; the
session state is left untouched. Failures of the data source itself are
raised as NotebookError subclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import sentry_sdk
import structlog

from sql_notebook.core.exceptions import SequencingError, SessionErrorKind

if TYPE_CHECKING:
    from sql_notebook.core.datasource import Cursor, DataSource
    from sql_notebook.core.models import (
        ColumnDescriptor,
        ColumnMetadata,
        Row,
        TableMetadata,
    )

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100


class SessionState(StrEnum):
    IDLE = "idle"
    QUERY_OPEN = "query_open"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class SessionResult(Generic[T]):
    """Outcome of one session operation: a value or a sequencing error."""

    value: T | None = None
    error: SessionErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> SessionResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, kind: SessionErrorKind, message: str) -> SessionResult[T]:
        return cls(error=kind, message=message)

    def unwrap(self) -> T:
        """Return the value, raising SequencingError for an error variant."""
        if self.error is not None:
            raise SequencingError(self.error, self.message)
        return self.value  # type: ignore[return-value]


@dataclass
class _OpenQuery:
    cursor: Cursor
    columns: list[ColumnDescriptor]
    affected_rows: int | None
    exhausted: bool = False


def render_value(value: Any) -> str | None:
    """Render one cell for the wire. NULL stays None, bytes become hex."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    return str(value)


class QuerySession:
    """One client's view of a data source: one statement at a time."""

    def __init__(
        self, source: DataSource, max_page_size: int = DEFAULT_PAGE_SIZE
    ) -> None:
        if max_page_size <= 0:
            msg = f"max_page_size must be positive, got {max_page_size}"
            raise ValueError(msg)
        self._source = source
        self.max_page_size = max_page_size
        self._query: _OpenQuery | None = None
        self._terminated = False

    def __enter__(self) -> QuerySession:
        self._source.open()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def state(self) -> SessionState:
        if self._terminated:
            return SessionState.TERMINATED
        if self._query is not None:
            return SessionState.QUERY_OPEN
        return SessionState.IDLE

    def _reject(self, kind: SessionErrorKind, message: str) -> SessionResult[Any]:
        structlog.get_logger().warning(
            "session call rejected", kind=str(kind), state=str(self.state)
        )
        return SessionResult.failure(kind, message)

    def _require_query(self) -> SessionResult[Any] | None:
        if self._terminated:
            return self._reject(
                SessionErrorKind.SESSION_TERMINATED, "Session has already quit"
            )
        if self._query is None:
            return self._reject(
                SessionErrorKind.NO_ACTIVE_QUERY,
                "Cannot call this function without a current query",
            )
        return None

    def _require_live(self) -> SessionResult[Any] | None:
        if self._terminated:
            return self._reject(
                SessionErrorKind.SESSION_TERMINATED, "Session has already quit"
            )
        return None

    def _release(self) -> None:
        query, self._query = self._query, None
        if query is not None:
            query.cursor.close()

    def execute(self, sql: str) -> SessionResult[bool]:
        """Run a statement and open its cursor. Valid only when idle."""
        if (rejected := self._require_live()) is not None:
            return rejected
        if self._query is not None:
            return self._reject(
                SessionErrorKind.SESSION_BUSY,
                "Please finish your existing query before running another one",
            )

        cursor = self._source.execute(sql)
        columns = list(cursor.columns)
        affected_rows = None if columns else cursor.affected_rows
        self._query = _OpenQuery(
            cursor=cursor, columns=columns, affected_rows=affected_rows
        )
        structlog.get_logger().debug(
            "query opened", columns=len(columns), affected_rows=affected_rows
        )
        return SessionResult.success(True)

    def metadata(self) -> SessionResult[list[ColumnDescriptor]]:
        """Column descriptors captured at execute time; [] for no result set."""
        if (rejected := self._require_query()) is not None:
            return rejected
        assert self._query is not None
        return SessionResult.success(list(self._query.columns))

    def count(self) -> SessionResult[int]:
        """Affected-row count of a statement that produced no result set."""
        if (rejected := self._require_query()) is not None:
            return rejected
        assert self._query is not None
        if self._query.affected_rows is None:
            return self._reject(
                SessionErrorKind.RESULT_SET_HAS_NO_COUNT,
                "Cannot get result count from query that returns data",
            )
        return SessionResult.success(self._query.affected_rows)

    def page(self, max_size: int) -> SessionResult[list[Row]]:
        """Return the next rows of the open cursor, at most ``max_size``.

        The size is further capped at max_page_size. An empty page means the
        cursor is exhausted, and every later call returns an empty page too.
        A statement without a result set has no pages: use count() instead.

        If the data source fails mid-fetch the cursor is closed and the
        session returns to IDLE before the error propagates.
        """
        if (rejected := self._require_query()) is not None:
            return rejected
        assert self._query is not None
        if max_size <= 0:
            return self._reject(
                SessionErrorKind.INVALID_PAGE_SIZE,
                f"Page size must be positive, got {max_size}",
            )
        query = self._query
        if not query.columns:
            return self._reject(
                SessionErrorKind.NO_ACTIVE_QUERY,
                "Current statement produced no result set; use count instead",
            )
        if query.exhausted:
            return SessionResult.success([])

        size = min(max_size, self.max_page_size)
        with sentry_sdk.start_span(op="session.page") as span:
            try:
                raw_rows = query.cursor.fetch(size)
            except Exception:
                structlog.get_logger().warning(
                    "page fetch failed, closing cursor", exc_info=True
                )
                self._release()
                raise
            span.set_data("row_count", len(raw_rows))

        if len(raw_rows) < size:
            query.exhausted = True

        names = [column.name for column in query.columns]
        return SessionResult.success(
            [
                {name: render_value(value) for name, value in zip(names, row)}
                for row in raw_rows
            ]
        )

    def finish(self) -> SessionResult[bool]:
        """Close the open cursor and return to IDLE."""
        if (rejected := self._require_query()) is not None:
            return rejected
        self._release()
        structlog.get_logger().debug("query finished")
        return SessionResult.success(True)

    def quit(self) -> SessionResult[bool]:
        """End the session and release the connection. Valid only when idle."""
        if (rejected := self._require_live()) is not None:
            return rejected
        if self._query is not None:
            return self._reject(
                SessionErrorKind.QUERY_STILL_OPEN,
                "Cannot quit before finishing current query",
            )
        self._terminated = True
        self._source.close()
        structlog.get_logger().info("session terminated")
        return SessionResult.success(True)

    def tables(self) -> SessionResult[list[TableMetadata]]:
        if (rejected := self._require_live()) is not None:
            return rejected
        return SessionResult.success(self._source.tables())

    def views(self) -> SessionResult[list[TableMetadata]]:
        if (rejected := self._require_live()) is not None:
            return rejected
        return SessionResult.success(self._source.views())

    def columns(
        self,
        catalog: str | None = None,
        schema: str | None = None,
        table: str | None = None,
    ) -> SessionResult[list[ColumnMetadata]]:
        if (rejected := self._require_live()) is not None:
            return rejected
        return SessionResult.success(self._source.columns(catalog, schema, table))

    def close(self) -> None:
        """Tear the session down: close any open cursor, then the connection."""
        self._terminated = True
        try:
            self._release()
        finally:
            self._source.close()
