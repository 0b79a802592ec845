"""Tests for JSONFormatter."""

import json

import pytest

from sql_notebook.core.models import ColumnDescriptor, ResultPage
from sql_notebook.formatters.base import Formatter
from sql_notebook.formatters.json import JSONFormatter


def _make_page(rows=None):
    if rows is None:
        rows = [{"id": "1", "name": "alice"}, {"id": "2", "name": None}]
    return ResultPage(
        columns=[
            ColumnDescriptor(name="id", type_name="int4"),
            ColumnDescriptor(name="name", type_name="text"),
        ],
        rows=rows,
    )


@pytest.mark.unit
def test_json_formatter_implements_protocol():
    assert isinstance(JSONFormatter(), Formatter)


@pytest.mark.unit
def test_json_formatter_outputs_row_objects():
    output = "\n".join(JSONFormatter().format(_make_page()))
    assert json.loads(output) == [
        {"id": "1", "name": "alice"},
        {"id": "2", "name": None},
    ]


@pytest.mark.unit
def test_json_formatter_indents_by_default():
    lines = list(JSONFormatter().format(_make_page()))
    assert "\n  {" in lines[0]


@pytest.mark.unit
def test_json_formatter_compact_is_one_line():
    lines = list(JSONFormatter(compact=True).format(_make_page()))
    assert len(lines) == 1
    assert "\n" not in lines[0]


@pytest.mark.unit
def test_json_formatter_empty_page():
    assert list(JSONFormatter(compact=True).format(_make_page(rows=[]))) == ["[]"]
