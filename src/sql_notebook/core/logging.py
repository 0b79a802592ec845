"""Logging configuration using structlog.

Logs go to stderr to keep stdout clean for result pages and shell prompts.
The server can switch to one-JSON-object-per-line output for log shipping.
"""

import logging
import sys
from typing import Any

import structlog

_LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class _LazyStderrFactory:
    """Resolve sys.stderr when a logger is created, not at configure() time.

    CliRunner swaps and closes stderr between invocations, so a handle
    captured once by PrintLoggerFactory goes stale.
    """

    def __call__(self, *args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=sys.stderr)


def setup_logging(verbose: bool = False, json_output: bool = False) -> None:
    """Configure structlog for SQL Notebook.

    Args:
        verbose: DEBUG level when set, INFO otherwise.
        json_output: Render each event as a JSON line instead of console text.
    """
    level = _LOG_LEVELS["debug" if verbose else "info"]

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=_LazyStderrFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger, bound with ``logger=name`` when given.

    Call inside functions, after setup_logging(), never at import time.
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger
