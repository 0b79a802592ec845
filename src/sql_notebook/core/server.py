"""HTTP transport for the JSON-RPC dispatcher.

Requests are served one at a time on the calling thread, which is also the
thread that owns the session. Only ``POST /`` with a JSON body is accepted.
The loop ends after a successful ``quit`` call; the session is closed on
every exit path.
"""

from __future__ import annotations

from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import TYPE_CHECKING, Any

import structlog

from sql_notebook.core.rpc import INVALID_REQUEST, PARSE_ERROR, encode, error_response

if TYPE_CHECKING:
    from sql_notebook.core.rpc import RpcDispatcher

JSON_CONTENT_TYPES = frozenset({"application/json", "application/json-rpc"})

METHOD_NOT_ALLOWED = -32000
PATH_NOT_FOUND = -32001


class RpcRequestHandler(BaseHTTPRequestHandler):
    server: NotebookHTTPServer

    def _send(self, status: int, body: bytes | None) -> None:
        self.send_response(status)
        if body is None:
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _reject_method(self) -> None:
        self._send(
            405,
            encode(
                error_response(
                    None, METHOD_NOT_ALLOWED, "Only the POST method is allowed"
                )
            ),
        )

    do_GET = do_PUT = do_DELETE = do_PATCH = _reject_method

    def do_POST(self) -> None:
        if self.path != "/":
            self._send(
                404,
                encode(
                    error_response(None, PATH_NOT_FOUND, "Only the path / is allowed")
                ),
            )
            return

        content_type = self.headers.get("Content-Type", "")
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = -1
        if length < 0:
            # The body cannot be delimited, so the connection cannot be reused.
            self.close_connection = True
            self._send(
                400,
                encode(
                    error_response(None, INVALID_REQUEST, "Invalid Content-Length")
                ),
            )
            return
        body = self.rfile.read(length)

        if content_type.split(";")[0].strip().lower() not in JSON_CONTENT_TYPES:
            self._send(200, encode(error_response(None, PARSE_ERROR, "Parse error")))
            return

        response = self.server.dispatcher.handle(body)
        if response is None:
            self._send(204, None)
        else:
            self._send(200, response)

    def log_message(self, format: str, *args: Any) -> None:
        structlog.get_logger().debug(
            "http request", client=self.client_address[0], line=format % args
        )


class NotebookHTTPServer(HTTPServer):
    def __init__(self, address: tuple[str, int], dispatcher: RpcDispatcher) -> None:
        self.dispatcher = dispatcher
        super().__init__(address, RpcRequestHandler)

    @property
    def url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}/"


def serve(server: NotebookHTTPServer) -> None:
    """Handle requests until the dispatcher has quit, then tear down."""
    log = structlog.get_logger()
    log.info("awaiting requests", url=server.url)
    try:
        while not server.dispatcher.finished:
            server.handle_request()
    finally:
        server.server_close()
        server.dispatcher.session.close()
        log.info("server stopped")
