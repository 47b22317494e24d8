"""Tables of v2 datasets and the known secondary tables that accompany results."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Sequence

from kustodata.errors import KustoError, Op
from kustodata.query.column import Column
from kustodata.query.row import RowResult
from kustodata.query.table import BaseDataset, BaseTable, Table, to_structs
from kustodata.query.v2.frames import DataTable

QUERY_PROPERTIES_KIND = "QueryProperties"
QUERY_COMPLETION_INFORMATION_KIND = "QueryCompletionInformation"


def new_base_table(
    dataset: BaseDataset | None, table_id: int, name: str, kind: str, columns: Sequence[Column]
) -> BaseTable:
    """Build a table description whose id is the table number as text."""
    return BaseTable(dataset, table_id, str(table_id), name, kind, list(columns))


def new_table(dataset: BaseDataset | None, data_table: DataTable) -> Table:
    """Build an in-memory table from a DataTable frame."""
    header = data_table.header
    return Table(
        dataset,
        header.table_id,
        str(header.table_id),
        header.table_name,
        header.table_kind,
        list(header.columns),
        rows=list(data_table.rows),
    )


@dataclass(frozen=True)
class IterativeWrapper:
    """Presents an in-memory table as a streamed one."""

    table: Table

    @property
    def id(self) -> str:
        return self.table.id

    @property
    def index(self) -> int:
        return self.table.index

    @property
    def name(self) -> str:
        return self.table.name

    @property
    def kind(self) -> str:
        return self.table.kind

    @property
    def columns(self) -> list[Column]:
        return self.table.columns

    @property
    def op(self) -> Op:
        return self.table.op

    def column_by_name(self, name: str) -> Column | None:
        """Return the column with the given name, or None."""
        return self.table.column_by_name(name)

    def is_primary_result(self) -> bool:
        """Whether the table is one of the dataset's primary results."""
        return self.table.is_primary_result()

    def rows(self) -> Iterator[RowResult]:
        """Yield every row as a successful result."""
        for row in self.table.rows:
            yield RowResult.success(row)

    def to_table(self) -> Table:
        """Return the wrapped table."""
        return self.table


@dataclass
class QueryProperties:
    """A row of the QueryProperties table, sent before the first result."""

    table_id: int = field(default=0, metadata={"kusto": "TableId"})
    key: str = field(default="", metadata={"kusto": "Key"})
    value: dict[str, Any] | None = field(default=None, metadata={"kusto": "Value"})


@dataclass
class QueryCompletionInformation:
    """A row of the QueryCompletionInformation table, sent after the last result."""

    timestamp: datetime | None = field(default=None, metadata={"kusto": "Timestamp"})
    client_request_id: str = field(default="", metadata={"kusto": "ClientRequestId"})
    activity_id: uuid.UUID | None = field(default=None, metadata={"kusto": "ActivityId"})
    sub_activity_id: uuid.UUID | None = field(default=None, metadata={"kusto": "SubActivityId"})
    parent_activity_id: uuid.UUID | None = field(default=None, metadata={"kusto": "ParentActivityId"})
    level: int = field(default=0, metadata={"kusto": "Level"})
    level_name: str = field(default="", metadata={"kusto": "LevelName"})
    status_code: int = field(default=0, metadata={"kusto": "StatusCode"})
    status_code_name: str = field(default="", metadata={"kusto": "StatusCodeName"})
    event_type: int = field(default=0, metadata={"kusto": "EventType"})
    event_type_name: str = field(default="", metadata={"kusto": "EventTypeName"})
    payload: str = field(default="", metadata={"kusto": "Payload"})


def _check_kind(table: Any, expected: str) -> None:
    if table.kind != expected:
        raise KustoError(
            Op.QUERY,
            KustoError.Kind.WRONG_TABLE_KIND,
            f"expected {expected} table, got {table.kind}",
        )


def as_query_properties(table: Any) -> list[QueryProperties]:
    """Decode a QueryProperties table into its rows."""
    _check_kind(table, QUERY_PROPERTIES_KIND)
    return to_structs(QueryProperties, table)


def as_query_completion_information(table: Any) -> list[QueryCompletionInformation]:
    """Decode a QueryCompletionInformation table into its rows."""
    _check_kind(table, QUERY_COMPLETION_INFORMATION_KIND)
    return to_structs(QueryCompletionInformation, table)