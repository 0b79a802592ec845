"""JSON formatter for result pages: one array of row objects per page."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from sql_notebook.formatters.base import registry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sql_notebook.core.models import ResultPage


class JSONFormatter:
    def __init__(self, compact: bool = False) -> None:
        self.compact = compact

    def format(self, page: ResultPage) -> Iterator[str]:
        if self.compact:
            yield json.dumps(page.rows)
        else:
            yield json.dumps(page.rows, indent=2)


registry.register("json", JSONFormatter)
