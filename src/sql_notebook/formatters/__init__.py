"""Output formatters for SQL Notebook."""

from sql_notebook.formatters.base import Formatter, FormatterRegistry, registry
from sql_notebook.formatters.json import JSONFormatter
from sql_notebook.formatters.table import TableFormatter

__all__ = [
    "Formatter",
    "FormatterRegistry",
    "JSONFormatter",
    "TableFormatter",
    "registry",
]
