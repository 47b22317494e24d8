"""Decoding of the JSON text of individual v2 frames."""

from __future__ import annotations

import json
from typing import Any, Iterator, Mapping, Sequence

from kustodata.coltypes import parse_value
from kustodata.errors import KustoError, Op
from kustodata.query.column import Column
from kustodata.query.row import Row
from kustodata.query.v2.frames import (
    DataSetCompletion,
    DataTable,
    FrameColumn,
    FrameType,
    TableCompletion,
    TableFragment,
    TableHeader,
)

_HEADER_VERSION = "v2.0"
_ERROR_REPORTING_END_OF_TABLE = "EndOfTable"


class _JsonFloat(float):
    """A JSON number that keeps its original text, so decimals lose no precision."""

    def __new__(cls, text: str) -> "_JsonFloat":
        number = super().__new__(cls, text)
        number.text = text
        return number

    def __str__(self) -> str:
        return self.text


def _internal(message: str) -> KustoError:
    return KustoError(Op.UNKNOWN, KustoError.Kind.INTERNAL, message)


def _token_text(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return "{"
    if isinstance(value, list):
        return "["
    return str(value)


def _mismatch(expected: Any, actual: Any) -> KustoError:
    return _internal(f"Expected {_token_text(expected)}, got {_token_text(actual)}")


def _load(text: str | bytes) -> dict[str, Any]:
    try:
        data = json.loads(text, parse_float=_JsonFloat)
    except ValueError as exc:
        raise _internal(f"invalid frame: {exc}") from exc
    if not isinstance(data, dict):
        raise _mismatch("{", data)
    return data


class _Properties:
    """Walks the properties of a frame object in the order they were sent."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._items: Iterator[tuple[str, Any]] = iter(data.items())

    def _next(self, name: str) -> Any:
        try:
            key, value = next(self._items)
        except StopIteration:
            raise _internal(f"Expected {name}, got }}") from None
        if key != name:
            raise _mismatch(name, key)
        return value

    def expect(self, name: str, expected: Any) -> None:
        actual = self._next(name)
        if type(actual) is not type(expected) or actual != expected:
            raise _mismatch(expected, actual)

    def string(self, name: str) -> str:
        value = self._next(name)
        if not isinstance(value, str):
            raise _internal(f"Expected string, got {_token_text(value)}")
        return value

    def integer(self, name: str) -> int:
        value = self._next(name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise _internal(f"Expected int, got {_token_text(value)}")
        return value

    def value(self, name: str) -> Any:
        return self._next(name)

    def skip_to(self, name: str) -> Any:
        for key, value in self._items:
            if key == name:
                return value
        raise _internal(f"missing {name} property")


def validate_dataset_header(text: str | bytes) -> dict[str, Any]:
    """Check that a DataSetHeader frame describes a fragmented, non-progressive v2 dataset."""
    data = _load(text)
    props = _Properties(data)
    props.expect("FrameType", FrameType.DATASET_HEADER.value)
    props.expect("IsProgressive", False)
    props.expect("Version", _HEADER_VERSION)
    props.expect("IsFragmented", True)
    props.expect("ErrorReportingPlacement", _ERROR_REPORTING_END_OF_TABLE)
    return data


def decode_columns(raw_columns: Any) -> list[Column]:
    """Build columns from their JSON form, normalizing and validating their types."""
    if not isinstance(raw_columns, list):
        raise _mismatch("[", raw_columns)
    columns: list[Column] = []
    for i, raw in enumerate(raw_columns):
        if not isinstance(raw, dict):
            raise _mismatch("{", raw)
        columns.append(FrameColumn.from_json(i, raw))
    return columns


def _decode_row(raw_row: Any, columns: Sequence[Column]) -> list[Any]:
    if not isinstance(raw_row, list):
        raise _mismatch("[", raw_row)
    if len(raw_row) > len(columns):
        raise _internal(f"row has {len(raw_row)} values for {len(columns)} columns")
    values = []
    for column, cell in zip(columns, raw_row):
        try:
            values.append(parse_value(column.type, cell))
        except ValueError as exc:
            raise _internal(
                f"unable to unmarshal column {column.name} into a {column.type.value} value: {exc}"
            ) from exc
    return values


def decode_rows(raw_rows: Any, columns: Sequence[Column], start_index: int) -> list[Row]:
    """Build rows from their JSON arrays, numbering them from start_index."""
    if not isinstance(raw_rows, list):
        raise _mismatch("[", raw_rows)
    columns = list(columns)
    by_name = {c.name: c for c in columns}
    return [
        Row(columns, by_name.get, i, _decode_row(raw, columns))
        for i, raw in enumerate(raw_rows, start=start_index)
    ]


def _decode_header(props: _Properties, frame_type: FrameType) -> TableHeader:
    props.expect("FrameType", frame_type.value)
    table_id = props.integer("TableId")
    table_kind = props.string("TableKind")
    table_name = props.string("TableName")
    columns = decode_columns(props.value("Columns"))
    return TableHeader(table_id=table_id, table_kind=table_kind, table_name=table_name, columns=columns)


def decode_table_header(text: str | bytes) -> TableHeader:
    """Decode a TableHeader frame."""
    return _decode_header(_Properties(_load(text)), FrameType.TABLE_HEADER)


def decode_data_table(text: str | bytes) -> DataTable:
    """Decode a DataTable frame: a header followed by all of its rows."""
    props = _Properties(_load(text))
    header = _decode_header(props, FrameType.DATA_TABLE)
    rows = decode_rows(props.skip_to("Rows"), header.columns, 0)
    return DataTable(header=header, rows=rows)


def decode_table_fragment(
    text: str | bytes, columns: Sequence[Column], previous_index: int
) -> TableFragment:
    """Decode a TableFragment frame, numbering its rows after previous_index rows."""
    props = _Properties(_load(text))
    rows = decode_rows(props.skip_to("Rows"), columns, previous_index)
    return TableFragment(columns=list(columns), rows=rows, previous_index=previous_index)


def decode_table_completion(text: str | bytes) -> TableCompletion:
    """Decode a TableCompletion frame."""
    return TableCompletion.from_dict(_load(text))


def decode_dataset_completion(text: str | bytes) -> DataSetCompletion:
    """Decode a DataSetCompletion frame."""
    return DataSetCompletion.from_dict(_load(text))