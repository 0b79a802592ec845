"""Tests for TableFormatter."""

import pytest

from sql_notebook.core.models import ColumnDescriptor, ResultPage
from sql_notebook.formatters.base import Formatter
from sql_notebook.formatters.table import TableFormatter


def _make_page(rows=None, columns=None):
    if columns is None:
        columns = [
            ColumnDescriptor(name="id", type_name="int4"),
            ColumnDescriptor(name="name", type_name="text"),
        ]
    if rows is None:
        rows = [{"id": "1", "name": "alice"}, {"id": "2", "name": "bob"}]
    return ResultPage(columns=columns, rows=rows)


@pytest.mark.unit
def test_table_formatter_implements_protocol():
    assert isinstance(TableFormatter(), Formatter)


@pytest.mark.unit
def test_table_formatter_headers_show_name_and_type():
    output = "\n".join(TableFormatter().format(_make_page()))
    assert "id" in output
    assert "[int4]" in output
    assert "[text]" in output


@pytest.mark.unit
def test_table_formatter_outputs_row_values():
    output = "\n".join(TableFormatter().format(_make_page()))
    assert "alice" in output
    assert "bob" in output


@pytest.mark.unit
def test_table_formatter_empty_page_shows_no_rows():
    assert list(TableFormatter().format(_make_page(rows=[]))) == ["No rows"]


@pytest.mark.unit
def test_table_formatter_null_cells():
    page = _make_page(rows=[{"id": "1", "name": None}])
    output = "\n".join(TableFormatter().format(page))
    assert "NULL" in output


@pytest.mark.unit
def test_table_formatter_truncates_wide_values():
    long_val = "x" * 60
    page = _make_page(rows=[{"id": "1", "name": long_val}])
    output = "\n".join(TableFormatter(width=20).format(page))
    assert long_val not in output
    assert "x" * 19 + "…" in output


@pytest.mark.unit
def test_table_formatter_keeps_markup_like_values_literal():
    page = _make_page(rows=[{"id": "1", "name": "[bold]loud[/bold]"}])
    output = "\n".join(TableFormatter().format(page))
    assert "[bold]loud[/bold]" in output
