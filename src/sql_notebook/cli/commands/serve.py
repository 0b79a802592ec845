"""Run a notebook server for remote shells."""

from __future__ import annotations

from typing import Annotated

import typer

from sql_notebook.cli.commands._shared import get_resolved_config
from sql_notebook.core.datasource import create_data_source
from sql_notebook.core.exceptions import NetworkError
from sql_notebook.core.logging import setup_logging
from sql_notebook.core.rpc import RpcDispatcher
from sql_notebook.core.server import NotebookHTTPServer, serve
from sql_notebook.core.session import QuerySession


def serve_command(
    ctx: typer.Context,
    listen_host: Annotated[
        str | None,
        typer.Option("--listen-host", "-l", help="Address to listen on"),
    ] = None,
    listen_port: Annotated[
        int | None,
        typer.Option("--listen-port", "-L", help="Port to listen on"),
    ] = None,
    page_size: Annotated[
        int | None,
        typer.Option("--page-size", help="Maximum rows per page"),
    ] = None,
    log_json: Annotated[
        bool,
        typer.Option("--log-json", help="Write logs as JSON lines"),
    ] = False,
) -> None:
    """Serve one query session over JSON-RPC until a client calls quit."""
    if log_json:
        setup_logging(ctx.obj.get("verbose", False), json_output=True)

    resolved, _ = get_resolved_config(
        ctx, listen_host=listen_host, listen_port=listen_port, page_size=page_size
    )
    source = create_data_source(resolved)

    with QuerySession(source, max_page_size=resolved.page_size) as session:
        dispatcher = RpcDispatcher(session, page_size=resolved.page_size)
        address = (resolved.server_host, resolved.server_port)
        try:
            server = NotebookHTTPServer(address, dispatcher)
        except OSError as e:
            msg = f"Cannot listen on {address[0]}:{address[1]}: {e}"
            raise NetworkError(msg) from e

        typer.echo(f"Awaiting requests on {server.url}")
        serve(server)
