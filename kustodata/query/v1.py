"""Decoding of v1 query responses into datasets of tables."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, Any, Mapping

from kustodata.coltypes import normalize_column, parse_value
from kustodata.errors import KustoError, Op
from kustodata.query.column import Column
from kustodata.query.row import Row
from kustodata.query.table import BaseDataset, Dataset, Table, to_structs

PRIMARY_RESULT_KIND = "QueryResult"


@dataclass(frozen=True)
class RawColumn:
    """A column as described in a v1 response."""

    column_name: str = ""
    data_type: str = ""
    column_type: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawColumn":
        """Build a column from its JSON form."""
        return cls(
            column_name=str(data.get("ColumnName") or ""),
            data_type=str(data.get("DataType") or ""),
            column_type=str(data.get("ColumnType") or ""),
        )


@dataclass(frozen=True)
class RawRow:
    """A row of a v1 table: either its cells or the errors reported in its place."""

    row: list[Any] | None = None
    errors: list[str] | None = None

    @classmethod
    def from_json(cls, data: Any) -> "RawRow":
        """Build a row from a JSON array of cells or an object holding Exceptions."""
        if isinstance(data, list):
            return cls(row=data)
        if isinstance(data, dict):
            errors = data.get("Exceptions")
            return cls(errors=None if errors is None else [str(e) for e in errors])
        raise KustoError(Op.UNKNOWN, KustoError.Kind.INTERNAL, f"invalid row: {data!r}")


@dataclass(frozen=True)
class RawTable:
    """A table as it appears in a v1 response."""

    table_name: str = ""
    columns: list[RawColumn] = field(default_factory=list)
    rows: list[RawRow] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawTable":
        """Build a table from its JSON form."""
        return cls(
            table_name=str(data.get("TableName") or ""),
            columns=[RawColumn.from_dict(c) for c in data.get("Columns") or ()],
            rows=[RawRow.from_json(r) for r in data.get("Rows") or ()],
        )


@dataclass(frozen=True)
class V1Response:
    """A whole v1 response: its tables and any exceptions reported."""

    tables: list[RawTable] = field(default_factory=list)
    exceptions: list[str] | None = None


@dataclass
class TableIndexRow:
    """An entry of the table of contents that ends a v1 response."""

    ordinal: int = field(default=0, metadata={"kusto": "Ordinal"})
    kind: str = field(default="", metadata={"kusto": "Kind"})
    name: str = field(default="", metadata={"kusto": "Name"})
    id: str = field(default="", metadata={"kusto": "Id"})
    pretty_name: str = field(default="", metadata={"kusto": "PrettyName"})


@dataclass
class QueryStatus:
    """A row of the QueryStatus table."""

    timestamp: datetime | None = field(default=None, metadata={"kusto": "Timestamp"})
    severity: int = field(default=0, metadata={"kusto": "Severity"})
    severity_name: str = field(default="", metadata={"kusto": "SeverityName"})
    status_code: int = field(default=0, metadata={"kusto": "StatusCode"})
    status_description: str = field(default="", metadata={"kusto": "StatusDescription"})
    count: int = field(default=0, metadata={"kusto": "Count"})
    request_id: uuid.UUID | None = field(default=None, metadata={"kusto": "RequestId"})
    activity_id: uuid.UUID | None = field(default=None, metadata={"kusto": "ActivityId"})
    sub_activity_id: uuid.UUID | None = field(default=None, metadata={"kusto": "SubActivityId"})
    client_activity_id: str = field(default="", metadata={"kusto": "ClientActivityId"})


@dataclass
class QueryProperties:
    """A row of the QueryProperties table."""

    value: str = field(default="", metadata={"kusto": "Value"})


_PRIMARY_INDEX_ROW = TableIndexRow(
    ordinal=0,
    kind="QueryResult",
    name=PRIMARY_RESULT_KIND,
    id="00000000-0000-0000-0000-000000000000",
    pretty_name="",
)


@dataclass
class V1Dataset(Dataset):
    """A v1 dataset: result tables plus its index, status and properties tables."""

    index: list[TableIndexRow] = field(default_factory=list)
    status: list[QueryStatus] = field(default_factory=list)
    info: list[QueryProperties] = field(default_factory=list)


def decode_v1(stream: IO[Any]) -> V1Response:
    """Read a v1 response; a body that is not a JSON object is raised as an error."""
    data = stream.read()
    text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else str(data)
    if not text:
        raise KustoError(Op.UNKNOWN, KustoError.Kind.INTERNAL, "No data")
    if text[0] != "{":
        raise KustoError(Op.UNKNOWN, KustoError.Kind.INTERNAL, f"Got error: {text}")
    try:
        decoded = json.loads(text)
    except ValueError as exc:
        raise KustoError(Op.UNKNOWN, KustoError.Kind.INTERNAL, f"invalid response: {exc}") from exc
    exceptions = decoded.get("Exceptions")
    return V1Response(
        tables=[RawTable.from_dict(t) for t in decoded.get("Tables") or ()],
        exceptions=None if exceptions is None else [str(e) for e in exceptions],
    )


def new_table(
    dataset: BaseDataset, raw_table: RawTable, index: TableIndexRow | None
) -> Table:
    """Build a table from its raw form, typing every cell by its column."""
    if index is not None:
        table_id, kind, name, ordinal = index.id, index.kind, index.name, index.ordinal
    else:
        table_id, kind, name, ordinal = "", "", raw_table.table_name, 0
    op = dataset.op

    columns: list[Column] = []
    for i, raw_column in enumerate(raw_table.columns):
        column_type = raw_column.column_type or raw_column.data_type.lower()
        normal = normalize_column(column_type)
        if normal is None:
            raise KustoError(
                op,
                KustoError.Kind.CLIENT_ARGS,
                f'column[{i}] is of type "{column_type}", which is not valid',
            )
        columns.append(Column(i, raw_column.column_name, normal))

    table = Table(dataset, ordinal, table_id, name, kind, columns)
    for i, raw_row in enumerate(raw_table.rows):
        if raw_row.errors:
            raise KustoError(op, KustoError.Kind.INTERNAL, f"row {i} has an error: {raw_row.errors[0]}")
        if raw_row.row is None:
            continue
        if len(raw_row.row) > len(columns):
            raise KustoError(
                op,
                KustoError.Kind.INTERNAL,
                f"row {i} has {len(raw_row.row)} values for {len(columns)} columns",
            )
        values = []
        for column, cell in zip(columns, raw_row.row):
            try:
                values.append(parse_value(column.type, cell))
            except ValueError as exc:
                raise KustoError(
                    op,
                    KustoError.Kind.INTERNAL,
                    f"unable to unmarshal column {column.name} into a {column.type.value} value: {exc}",
                ) from exc
        table.rows.append(Row(table.columns, table.column_by_name, i, values))
    return table


def new_dataset(response: V1Response, op: Op) -> V1Dataset:
    """Build a dataset from a decoded response; reported exceptions are raised."""
    dataset = V1Dataset(op, PRIMARY_RESULT_KIND)
    if not response.tables:
        raise KustoError(op, KustoError.Kind.INTERNAL, "kusto query failed: no tables returned")

    if len(response.tables) == 1:
        if response.exceptions is not None:
            raise KustoError(op, KustoError.Kind.INTERNAL, f"exceptions: {response.exceptions}")
        dataset.tables.append(new_table(dataset, response.tables[0], _PRIMARY_INDEX_ROW))
        return dataset

    index_table = new_table(dataset, response.tables[-1], None)
    dataset.index = to_structs(TableIndexRow, index_table)

    for raw_table, entry in zip(response.tables, dataset.index):
        if entry.kind == "QueryStatus":
            dataset.status = to_structs(QueryStatus, new_table(dataset, raw_table, entry))
        elif entry.kind == "QueryProperties":
            dataset.info = to_structs(QueryProperties, new_table(dataset, raw_table, entry))
        elif entry.kind == "QueryResult":
            dataset.tables.append(new_table(dataset, raw_table, entry))

    if response.exceptions is not None:
        raise KustoError(op, KustoError.Kind.INTERNAL, f"exceptions: {response.exceptions}")
    return dataset


def dataset_from_reader(stream: IO[Any], op: Op) -> V1Dataset:
    """Read a v1 response from a stream, close it, and build its dataset."""
    try:
        response = decode_v1(stream)
    finally:
        stream.close()
    return new_dataset(response, op)