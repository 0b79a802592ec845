"""Rich table formatter for result pages."""

from __future__ import annotations

import shutil
from io import StringIO
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sql_notebook.formatters.base import registry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sql_notebook.core.models import ResultPage

_NO_ROWS = "No rows"
_NULL = "NULL"


def _truncate(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    return value[: width - 1] + "…"


class TableFormatter:
    """Column name over ``[type]`` headings, one table per page."""

    def __init__(self, width: int = 40) -> None:
        self.width = width

    def format(self, page: ResultPage) -> Iterator[str]:
        if not page.rows:
            yield _NO_ROWS
            return

        table = Table(show_edge=True, pad_edge=True)
        for col in page.columns:
            table.add_column(escape(f"{col.name}\n[{col.type_name}]"), no_wrap=True)

        for row in page.rows:
            cells = (row.get(col.name) for col in page.columns)
            table.add_row(
                *(
                    escape(_truncate(value, self.width)) if value is not None else _NULL
                    for value in cells
                )
            )

        buf = StringIO()
        term_width = shutil.get_terminal_size((120, 24)).columns
        console = Console(
            file=buf, force_terminal=True, width=term_width, highlight=False
        )
        console.print(table)
        yield buf.getvalue().rstrip("\n")


registry.register("table", TableFormatter)
