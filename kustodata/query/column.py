"""Column descriptions of a result table."""

from __future__ import annotations

from dataclasses import dataclass

from kustodata.coltypes import ColumnType


@dataclass(frozen=True)
class Column:
    """A column of a table: its position, name and Kusto type."""

    index: int
    name: str
    type: ColumnType