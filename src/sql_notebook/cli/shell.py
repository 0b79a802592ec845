"""Interactive SQL shell.

Reads statements line by line, using SqlLexer to decide when a statement
is complete, and drives a session through a ``call(method, *params)``
function. The same shell runs against an in-process RpcDispatcher or a
RemoteSession, since both speak the same method vocabulary.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any, TextIO

import typer

from sql_notebook.cli.output import write_output
from sql_notebook.core.exceptions import (
    InputError,
    NotebookError,
    RemoteError,
    SequencingError,
    SessionErrorKind,
)
from sql_notebook.core.lexer import LexerState, SqlLexer, split_dotted_name
from sql_notebook.core.models import ColumnDescriptor, ResultPage

if TYPE_CHECKING:
    from collections.abc import Callable

    from sql_notebook.formatters.base import Formatter

PROMPT = "sql> "
CONTINUATION_PROMPT = ">>> "
MORE_PROMPT = "Press Enter to continue, or q to quit "
PARSE_ERROR_MESSAGE = "[ERROR] Could not parse SQL statement"

QUIT_COMMAND = ".quit"

_TABLE_FIELDS = ("catalog", "schema", "table")
_COLUMN_FIELDS = ("catalog", "schema", "table", "column", "datatype")


def _text_page(fields: tuple[str, ...], entries: list[dict[str, Any]]) -> ResultPage:
    return ResultPage(
        columns=[ColumnDescriptor(name=name, type_name="text") for name in fields],
        rows=[{name: entry.get(name) for name in fields} for entry in entries],
    )


class NotebookShell:
    def __init__(
        self,
        call: Callable[..., Any],
        formatter: Formatter,
        page_size: int = 100,
        stdin: TextIO | None = None,
    ) -> None:
        self.call = call
        self.formatter = formatter
        self.page_size = page_size
        self._stdin = stdin

    def prompt(self, text: str) -> str | None:
        """Show a prompt and read one line; None at end of input."""
        typer.echo(text, nl=False)
        line = (self._stdin or sys.stdin).readline()
        if not line:
            return None
        return line

    def read_statement(self) -> str | None:
        """Read lines until they form a complete statement.

        Malformed input is reported and discarded, and reading starts over.
        Returns None at end of input.
        """
        while True:
            lexer = SqlLexer()
            lines: list[str] = []
            while not lexer.is_terminal:
                text = CONTINUATION_PROMPT if "".join(lines).strip() else PROMPT
                line = self.prompt(text)
                if line is None:
                    return None
                line = line.rstrip("\r\n") + "\n"
                lines.append(line)
                lexer.feed(line)

            if lexer.state is LexerState.COMPLETE:
                return "".join(lines).strip()
            typer.echo(PARSE_ERROR_MESSAGE)

    def run(self) -> None:
        """Process statements until ``.quit;`` or end of input, then quit."""
        while True:
            statement = self.read_statement()
            if statement is None:
                typer.echo()
                break
            if statement.rstrip(";").strip() == QUIT_COMMAND:
                break
            try:
                self.run_statement(statement)
            except NotebookError as e:
                typer.echo(f"Error: {e.message}", err=True)

        self.call("quit")

    def run_statement(self, statement: str) -> None:
        if statement.startswith("."):
            self.run_command(statement)
        else:
            self.run_query(statement)

    def run_command(self, statement: str) -> None:
        """Handle a dot command: .tables, .views or .columns [name]."""
        body = statement.rstrip().rstrip(";").strip()
        name, _, argument = body.partition(" ")
        argument = argument.strip()

        if name == ".tables":
            write_output(self.formatter, _text_page(_TABLE_FIELDS, self.call("tables")))
        elif name == ".views":
            write_output(self.formatter, _text_page(_TABLE_FIELDS, self.call("views")))
        elif name == ".columns":
            parts: list[str | None] = []
            if argument:
                parts.extend(split_dotted_name(argument))
            if len(parts) > 3:
                msg = f"Expected at most catalog.schema.table, got '{argument}'"
                raise InputError(msg)
            filters = [None] * (3 - len(parts)) + parts
            write_output(
                self.formatter,
                _text_page(_COLUMN_FIELDS, self.call("columns", *filters)),
            )
        else:
            raise InputError(f"Unknown command: {name}")

    def run_query(self, sql: str) -> None:
        """Execute one statement and page through its results.

        Pages are requested until one comes back empty; the server may cap
        pages below ``page_size``, so a short page does not mean the end.
        The next page is fetched before prompting, so the user is only asked
        to continue when there are rows left to show.
        """
        self.call("execute", sql)
        try:
            columns = [ColumnDescriptor.model_validate(c) for c in self.call("metadata")]
            if not columns:
                typer.echo(f"{self.call('count')} rows affected")
                return

            rows = self.call("page", self.page_size)
            write_output(self.formatter, ResultPage(columns=columns, rows=rows))
            while rows:
                rows = self.call("page", self.page_size)
                if not rows:
                    break
                answer = self.prompt(MORE_PROMPT)
                if answer is None or answer.strip() == "q":
                    break
                write_output(self.formatter, ResultPage(columns=columns, rows=rows))
        finally:
            self._finish()

    def _finish(self) -> None:
        # A failed page fetch has already closed the query on the session side.
        try:
            self.call("finish")
        except (SequencingError, RemoteError) as e:
            if e.kind != SessionErrorKind.NO_ACTIVE_QUERY:
                raise
