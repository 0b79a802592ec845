"""JSON-RPC 2.0 front end for a QuerySession.

RpcDispatcher turns request bytes into response bytes and knows nothing
about the transport carrying them. Sequencing errors become faults with
code -32000 and their kind in ``data.kind``. Data source failures become
-32603 faults that carry the traceback in ``data.stacktrace``.
"""

from __future__ import annotations

import inspect
import json
import traceback
from typing import TYPE_CHECKING, Any

import sentry_sdk
import structlog

from sql_notebook.core.exceptions import NotebookError, SequencingError
from sql_notebook.core.session import DEFAULT_PAGE_SIZE

if TYPE_CHECKING:
    from collections.abc import Callable

    from sql_notebook.core.session import QuerySession

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SEQUENCING_ERROR = -32000


class ProtocolError(NotebookError):
    """A request that could not be dispatched at all."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        super().__init__(message)


def error_response(
    request_id: Any, code: int, message: str, data: dict[str, Any] | None = None
) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "error": error, "id": request_id}


def encode(response: Any) -> bytes:
    return json.dumps(response).encode("utf-8")


class RpcDispatcher:
    """Routes JSON-RPC calls to a single QuerySession."""

    def __init__(
        self, session: QuerySession, page_size: int = DEFAULT_PAGE_SIZE
    ) -> None:
        self.session = session
        self.page_size = page_size
        self.finished = False
        self._methods: dict[str, Callable[..., Any]] = {
            "execute": self._execute,
            "metadata": self._metadata,
            "count": self._count,
            "page": self._page,
            "finish": self._finish,
            "quit": self._quit,
            "tables": self._tables,
            "views": self._views,
            "columns": self._columns,
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    def invoke(self, method: str, *args: Any, **kwargs: Any) -> Any:
        """Call a method and return its JSON-ready result.

        Raises ProtocolError for unknown methods or bad params,
        SequencingError for calls in the wrong session state, and whatever
        the data source raises.
        """
        handler = self._methods.get(method)
        if handler is None:
            raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: '{method}'")
        try:
            inspect.signature(handler).bind(*args, **kwargs)
        except TypeError as e:
            raise ProtocolError(
                INVALID_PARAMS, f"Invalid params for '{method}': {e}"
            ) from e
        return handler(*args, **kwargs)

    def _execute(self, sql: str) -> bool:
        if not isinstance(sql, str):
            raise ProtocolError(INVALID_PARAMS, "Parameter 'sql' must be a string")
        return self.session.execute(sql).unwrap()

    def _metadata(self) -> list[dict[str, Any]]:
        return [column.model_dump() for column in self.session.metadata().unwrap()]

    def _count(self) -> int:
        return self.session.count().unwrap()

    def _page(self, max_size: int | None = None) -> list[dict[str, str | None]]:
        if max_size is None:
            max_size = self.page_size
        if isinstance(max_size, bool) or not isinstance(max_size, int):
            raise ProtocolError(
                INVALID_PARAMS, "Parameter 'max_size' must be an integer"
            )
        return self.session.page(max_size).unwrap()

    def _finish(self) -> bool:
        return self.session.finish().unwrap()

    def _quit(self) -> bool:
        result = self.session.quit().unwrap()
        self.finished = True
        return result

    def _tables(self) -> list[dict[str, Any]]:
        return [t.model_dump(by_alias=True) for t in self.session.tables().unwrap()]

    def _views(self) -> list[dict[str, Any]]:
        return [t.model_dump(by_alias=True) for t in self.session.views().unwrap()]

    def _columns(
        self,
        catalog: str | None = None,
        schema: str | None = None,
        table: str | None = None,
    ) -> list[dict[str, Any]]:
        return [
            c.model_dump(by_alias=True)
            for c in self.session.columns(catalog, schema, table).unwrap()
        ]

    def handle(self, payload: bytes) -> bytes | None:
        """Process one request body; None when no response is due."""
        try:
            request = json.loads(payload)
        except (ValueError, UnicodeDecodeError):
            return encode(error_response(None, PARSE_ERROR, "Parse error"))

        if isinstance(request, list):
            if not request:
                return encode(
                    error_response(None, INVALID_REQUEST, "Invalid Request")
                )
            responses = [
                response
                for response in (self._handle_one(item) for item in request)
                if response is not None
            ]
            return encode(responses) if responses else None

        response = self._handle_one(request)
        return encode(response) if response is not None else None

    def _handle_one(self, request: Any) -> dict[str, Any] | None:
        log = structlog.get_logger()
        if (
            not isinstance(request, dict)
            or request.get("jsonrpc") != JSONRPC_VERSION
            or not isinstance(request.get("method"), str)
        ):
            request_id = request.get("id") if isinstance(request, dict) else None
            return error_response(request_id, INVALID_REQUEST, "Invalid Request")

        method = request["method"]
        request_id = request.get("id")
        is_notification = "id" not in request
        params = request.get("params", [])

        log.debug("processing request", method=method, id=request_id)
        try:
            if isinstance(params, list):
                result = self.invoke(method, *params)
            elif isinstance(params, dict):
                result = self.invoke(method, **params)
            else:
                raise ProtocolError(
                    INVALID_PARAMS, "Params must be an array or an object"
                )
        except ProtocolError as e:
            response = error_response(request_id, e.code, e.message)
        except SequencingError as e:
            response = error_response(
                request_id,
                SEQUENCING_ERROR,
                e.message,
                {"kind": str(e.kind), "stacktrace": ""},
            )
        except Exception as e:
            sentry_sdk.capture_exception(e)
            message = e.message if isinstance(e, NotebookError) else str(e)
            log.error("request failed", method=method, error=message)
            response = error_response(
                request_id,
                INTERNAL_ERROR,
                message,
                {"kind": type(e).__name__, "stacktrace": traceback.format_exc()},
            )
        else:
            response = {"jsonrpc": JSONRPC_VERSION, "result": result, "id": request_id}

        if is_notification:
            return None
        log.debug("delivering result", method=method, id=request_id)
        return response
