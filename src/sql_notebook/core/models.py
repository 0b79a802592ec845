"""Wire models for SQL Notebook.

Pydantic models for column descriptors, catalog entries and result pages.
Everything here serializes to plain JSON for the RPC layer.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

Row = dict[str, str | None]


class ColumnDescriptor(BaseModel):
    """Name and reported type of one result column."""

    model_config = ConfigDict(frozen=True)

    name: str
    type_name: str


class TableMetadata(BaseModel):
    """A table or view known to the data source."""

    model_config = ConfigDict(populate_by_name=True)

    catalog: str = ""
    schema_name: str = Field(default="", alias="schema")
    table: str


class ColumnMetadata(BaseModel):
    """A column of a table or view known to the data source."""

    model_config = ConfigDict(populate_by_name=True)

    catalog: str = ""
    schema_name: str = Field(default="", alias="schema")
    table: str
    column: str
    datatype: str


class ResultPage(BaseModel):
    """One page of rendered rows together with the query's columns."""

    columns: list[ColumnDescriptor]
    rows: list[Row]
