"""Exception hierarchy for SQL Notebook.

All exceptions carry an exit_code for CLI return value mapping.
Session sequencing errors are normally returned as SessionResult values;
SequencingError is what SessionResult.unwrap() raises for callers that
want an exception instead.
"""

from __future__ import annotations

from enum import StrEnum

from sql_notebook.core.exit_codes import ExitCode


class SessionErrorKind(StrEnum):
    """Caller-induced query session failures."""

    SESSION_BUSY = "SessionBusy"
    NO_ACTIVE_QUERY = "NoActiveQuery"
    QUERY_STILL_OPEN = "QueryStillOpen"
    INVALID_PAGE_SIZE = "InvalidPageSize"
    RESULT_SET_HAS_NO_COUNT = "ResultSetHasNoCount"
    SESSION_TERMINATED = "SessionTerminated"


class NotebookError(Exception):
    """Base exception for all SQL Notebook errors."""

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NetworkError(NotebookError):
    """Connection failures, unreachable host."""

    exit_code: int = ExitCode.NETWORK_ERROR


class TimeoutError(NetworkError):
    """Query timeout, connection timeout."""

    exit_code: int = ExitCode.TIMEOUT


class InputError(NotebookError):
    """Unreadable input, invalid parameters."""

    exit_code: int = ExitCode.INPUT_ERROR


class ConfigError(NotebookError):
    """Malformed config, missing profile."""

    exit_code: int = ExitCode.CONFIG_ERROR


class QueryError(NotebookError):
    """The data source rejected or failed to run a statement."""


class SequencingError(NotebookError):
    """A session operation was called in the wrong state."""

    exit_code: int = ExitCode.USAGE_ERROR

    def __init__(self, kind: SessionErrorKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class RemoteError(NotebookError):
    """The notebook server answered a call with a fault."""

    def __init__(
        self, message: str, kind: str | None = None, stacktrace: str = ""
    ) -> None:
        self.kind = kind
        self.stacktrace = stacktrace
        super().__init__(message)
