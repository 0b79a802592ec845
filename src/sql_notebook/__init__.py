"""SQL Notebook - paged interactive SQL sessions over JSON-RPC."""

from sql_notebook.__about__ import __version__

__all__ = ["__version__"]
