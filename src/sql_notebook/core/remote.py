"""JSON-RPC client for a remote notebook server."""

from __future__ import annotations

import itertools
from typing import Any

import requests
import structlog

from sql_notebook.core.exceptions import NetworkError, RemoteError, TimeoutError
from sql_notebook.core.models import ColumnDescriptor, ColumnMetadata, Row, TableMetadata

_JSON_CONTENT_TYPES = ("application/json", "application/json-rpc")


class RemoteSession:
    """Calls a notebook server over HTTP. Faults are raised as RemoteError."""

    def __init__(self, url: str, timeout: float = 30.0) -> None:
        self.url = url
        self.timeout = timeout
        self._ids = itertools.count(1)
        self._http = requests.Session()

    def __enter__(self) -> RemoteSession:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def call(self, method: str, *params: Any) -> Any:
        """Send one request and return its ``result`` member."""
        request_id = next(self._ids)
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": list(params),
            "id": request_id,
        }
        structlog.get_logger().debug("remote call", method=method, id=request_id)

        try:
            response = self._http.post(
                self.url,
                json=payload,
                headers={"Accept": "application/json, application/json-rpc"},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise TimeoutError(f"Request to {self.url} timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Cannot reach {self.url}: {e}") from e

        content_type = response.headers.get("Content-Type", "")
        if content_type.split(";")[0].strip() not in _JSON_CONTENT_TYPES:
            raise RemoteError("Response received from server was not JSON")

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteError(f"Malformed response from server: {e}") from e

        if "error" in body:
            error = body["error"]
            data = error.get("data") or {}
            raise RemoteError(
                error.get("message", "Unknown error"),
                kind=data.get("kind"),
                stacktrace=data.get("stacktrace", ""),
            )
        return body.get("result")

    def tables(self) -> list[TableMetadata]:
        return [TableMetadata.model_validate(t) for t in self.call("tables")]

    def views(self) -> list[TableMetadata]:
        return [TableMetadata.model_validate(t) for t in self.call("views")]

    def columns(
        self,
        catalog: str | None = None,
        schema: str | None = None,
        table: str | None = None,
    ) -> list[ColumnMetadata]:
        return [
            ColumnMetadata.model_validate(c)
            for c in self.call("columns", catalog, schema, table)
        ]

    def execute(self, sql: str) -> None:
        self.call("execute", sql)

    def metadata(self) -> list[ColumnDescriptor]:
        return [ColumnDescriptor.model_validate(c) for c in self.call("metadata")]

    def count(self) -> int:
        return self.call("count")

    def page(self, max_size: int | None = None) -> list[Row]:
        if max_size is None:
            return self.call("page")
        return self.call("page", max_size)

    def finish(self) -> None:
        self.call("finish")

    def quit(self) -> None:
        self.call("quit")
