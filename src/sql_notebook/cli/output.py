"""Output format selection and TTY auto-detection."""

from __future__ import annotations

import sys
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sql_notebook.core.models import ResultPage
    from sql_notebook.formatters.base import Formatter


class OutputFormat(StrEnum):
    TABLE = "table"
    JSON = "json"


def detect_tty() -> bool:
    return sys.stdout.isatty()


def resolve_format(format_flag: str | None) -> str:
    """Determine the output format.

    Explicit --format overrides TTY detection.
    Default: table for TTY, json for pipes.
    """
    if format_flag is not None:
        return format_flag
    return "table" if detect_tty() else "json"


def get_formatter(
    format_flag: str | None = None,
    *,
    compact: bool = False,
    width: int = 40,
) -> Formatter:
    """Build and return the appropriate formatter instance."""
    # Import here to trigger registry population from formatter modules.
    import sql_notebook.formatters.json  # noqa: F401
    import sql_notebook.formatters.table  # noqa: F401
    from sql_notebook.formatters.base import registry

    fmt_name = resolve_format(format_flag)

    kwargs: dict[str, object] = {}
    if fmt_name == "table":
        kwargs["width"] = width
    elif fmt_name == "json":
        kwargs["compact"] = compact

    return registry.get(fmt_name, **kwargs)


def write_output(formatter: Formatter, page: ResultPage) -> None:
    """Write one formatted page to stdout."""
    for line in formatter.format(page):
        sys.stdout.write(line + "\n")
    sys.stdout.flush()
