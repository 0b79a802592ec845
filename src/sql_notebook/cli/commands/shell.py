"""Interactive shell command, local or against a remote server."""

from __future__ import annotations

from typing import Annotated

import typer

from sql_notebook.cli.commands._shared import get_resolved_config
from sql_notebook.cli.output import OutputFormat, get_formatter
from sql_notebook.cli.shell import NotebookShell
from sql_notebook.core.datasource import create_data_source
from sql_notebook.core.remote import RemoteSession
from sql_notebook.core.rpc import RpcDispatcher
from sql_notebook.core.session import QuerySession


def shell_command(
    ctx: typer.Context,
    url: Annotated[
        str | None,
        typer.Option("--url", help="Notebook server URL, e.g. http://localhost:1995/"),
    ] = None,
    page_size: Annotated[
        int | None,
        typer.Option("--page-size", help="Rows per page"),
    ] = None,
    format: Annotated[
        OutputFormat | None,
        typer.Option("--format", "-f", help="Output format: table|json"),
    ] = None,
    width: Annotated[
        int,
        typer.Option("--width", help="Column width for table format"),
    ] = 40,
    compact: Annotated[
        bool,
        typer.Option("--compact", help="Compact JSON output (no indentation)"),
    ] = False,
) -> None:
    """Enter SQL statements interactively and page through their results.

    Without --url the shell opens the configured data source itself.
    """
    resolved, _ = get_resolved_config(ctx, page_size=page_size)
    formatter = get_formatter(
        format.value if format else None, compact=compact, width=width
    )

    if url:
        with RemoteSession(url, timeout=resolved.default_timeout) as remote:
            NotebookShell(remote.call, formatter, resolved.page_size).run()
        return

    source = create_data_source(resolved)
    with QuerySession(source, max_page_size=resolved.page_size) as session:
        dispatcher = RpcDispatcher(session, page_size=resolved.page_size)
        NotebookShell(dispatcher.invoke, formatter, resolved.page_size).run()
