"""Rows of result tables, typed access to their cells, and decoding into dataclasses."""

from __future__ import annotations

import csv
import dataclasses
import functools
import io
import json
import types
import typing
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence, TypeVar, Union

from kustodata.coltypes import ColumnType, format_timespan
from kustodata.errors import KustoError, Op
from kustodata.query.column import Column

T = TypeVar("T")

_NAMED_TYPES: dict[str, Any] = {
    "int": int,
    "str": str,
    "float": float,
    "bool": bool,
    "bytes": bytes,
    "dict": dict,
    "list": list,
    "object": object,
    "None": type(None),
    "Any": Any,
    "Decimal": Decimal,
    "datetime": datetime,
    "timedelta": timedelta,
    "UUID": uuid.UUID,
    "Dict": dict,
    "List": list,
}


def _conversion_error(source: str, target: str) -> KustoError:
    return KustoError(Op.TABLE_ACCESS, KustoError.Kind.OTHER, f"cannot convert {source} to {target}")


def _column_not_found(name: str) -> KustoError:
    return KustoError(Op.TABLE_ACCESS, KustoError.Kind.OTHER, f"column {name} not found")


def _resolve(annotation: Any) -> Any:
    """Turn a field annotation, possibly written as text, into a usable type hint."""
    if not isinstance(annotation, str):
        return annotation
    text = annotation.strip()
    for prefix in ("Optional[", "typing.Optional["):
        if text.startswith(prefix) and text.endswith("]"):
            inner = _resolve(text[len(prefix):-1])
            return None if inner is None else Optional[inner]
    parts = [part.strip() for part in text.split("|")]
    if len(parts) > 1:
        resolved = [_resolve(part) for part in parts]
        if any(r is None for r in resolved):
            return None
        return Union[tuple(resolved)]
    base = text.split("[", 1)[0]
    found = _NAMED_TYPES.get(base)
    if found is None:
        found = _NAMED_TYPES.get(base.rsplit(".", 1)[-1])
    return found


@functools.lru_cache(maxsize=None)
def _field_map(cls: type) -> tuple[dict[str, str], dict[str, Any], tuple[str, ...]]:
    """Map column names to field names, and collect field hints and required fields."""
    column_to_field: dict[str, str] = {}
    field_hints: dict[str, Any] = {}
    required: list[str] = []
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        field_hints[f.name] = _resolve(f.type)
        if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            required.append(f.name)
        tag = str(f.metadata.get("kusto", "")).strip()
        if tag == "-":
            continue
        column_to_field[tag or f.name] = f.name
    return column_to_field, field_hints, tuple(required)


def _convert(value: Any, hint: Any) -> Any:
    """Fit a cell value to a field's type hint, raising ValueError when it cannot."""
    if value is None or hint is None or hint is Any:
        return value
    origin = typing.get_origin(hint)
    if origin is Union or origin is types.UnionType:
        options = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        for option in options:
            try:
                return _convert(value, option)
            except ValueError:
                continue
        raise ValueError(f"cannot store {type(value).__name__} in {hint}")
    target = origin or hint
    if not isinstance(target, type):
        return value
    if isinstance(value, bytes) and target is not bytes:
        if target is str:
            return value.decode("utf-8")
        decoded = json.loads(value)
        if isinstance(decoded, target):
            return decoded
        raise ValueError(f"cannot store dynamic value in {target.__name__}")
    if isinstance(value, bool) and target is not bool and target is not object:
        raise ValueError(f"cannot store bool in {target.__name__}")
    if isinstance(value, target):
        return value
    if isinstance(value, int) and target is float:
        return float(value)
    if isinstance(value, int) and target is Decimal:
        return Decimal(value)
    raise ValueError(f"cannot store {type(value).__name__} in {target.__name__}")


def decode_to_struct(columns: Sequence[Column], values: Sequence[Any], cls: type[T]) -> T:
    """Build an instance of the dataclass cls from a row's columns and values.

    A field tagged with metadata {"kusto": "name"} takes column "name"; a tag of "-"
    skips the field; other fields take the column of the same name. Required fields
    with no matching column are set to None.
    """
    column_to_field, hints, required = _field_map(cls)
    kwargs: dict[str, Any] = {}
    for column, cell in zip(columns, values):
        field_name = column_to_field.get(column.name)
        if field_name is None:
            continue
        try:
            kwargs[field_name] = _convert(cell, hints.get(field_name))
        except (ValueError, TypeError) as exc:
            raise KustoError(
                Op.TABLE_ACCESS,
                KustoError.Kind.WRONG_COLUMN_TYPE,
                f"column {column.name} could not store in struct.{field_name}: {exc}",
            ) from exc
    for name in required:
        kwargs.setdefault(name, None)
    return cls(**kwargs)


def _value_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, timedelta):
        return format_timespan(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
            return value.replace(tzinfo=None).isoformat() + "Z"
        return value.isoformat()
    return str(value)


class Row:
    """A row of a table: its position, the table's columns and its cell values."""

    def __init__(
        self,
        columns: Sequence[Column] | None,
        column_by_name: Callable[[str], Column | None] | None,
        index: int,
        values: Sequence[Any],
    ) -> None:
        self.columns: list[Column] = list(columns or ())
        if column_by_name is None:
            lookup = {c.name: c for c in self.columns}
            column_by_name = lookup.get
        self._column_by_name = column_by_name
        self.index = index
        self.values: list[Any] = list(values)

    def __repr__(self) -> str:
        return f"Row(index={self.index}, values={self.values!r})"

    def value(self, i: int) -> Any:
        """Return the value at position i."""
        if i < 0 or i >= len(self.values):
            raise KustoError(Op.TABLE_ACCESS, KustoError.Kind.CLIENT_ARGS, f"index {i} out of range")
        return self.values[i]

    def value_by_column(self, column: Column) -> Any:
        """Return the value in the given column."""
        return self.value(column.index)

    def value_by_name(self, name: str) -> Any:
        """Return the value in the column with the given name."""
        column = self._column_by_name(name)
        if column is None:
            raise _column_not_found(name)
        return self.value(column.index)

    def to_struct(self, cls: type[T]) -> T:
        """Decode the row into a new instance of the dataclass cls."""
        if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
            raise KustoError(
                Op.TABLE_ACCESS,
                KustoError.Kind.CLIENT_ARGS,
                f"type {cls!r} is not a dataclass",
            )
        if len(self.columns) != len(self.values):
            raise KustoError(
                Op.TABLE_ACCESS,
                KustoError.Kind.CLIENT_ARGS,
                f"row does not have the correct number of values({len(self.values)}) "
                f"for the number of columns({len(self.columns)})",
            )
        return decode_to_struct(self.columns, self.values, cls)

    def __str__(self) -> str:
        buffer = io.StringIO()
        csv.writer(buffer, lineterminator="\n").writerow(_value_text(v) for v in self.values)
        return buffer.getvalue()

    def _by_index(self, column_type: ColumnType, i: int) -> Any:
        value = self.value(i)
        actual = self.columns[i].type if i < len(self.columns) else None
        if actual != column_type:
            source = actual.value if isinstance(actual, ColumnType) else str(actual or "")
            raise _conversion_error(source, column_type.value)
        return value

    def _by_name(self, column_type: ColumnType, name: str) -> Any:
        column = self._column_by_name(name)
        if column is None:
            raise _column_not_found(name)
        return self._by_index(column_type, column.index)

    def bool_by_index(self, i: int) -> bool | None:
        """Return the bool value at position i."""
        return self._by_index(ColumnType.BOOL, i)

    def int_by_index(self, i: int) -> int | None:
        """Return the int value at position i."""
        return self._by_index(ColumnType.INT, i)

    def long_by_index(self, i: int) -> int | None:
        """Return the long value at position i."""
        return self._by_index(ColumnType.LONG, i)

    def real_by_index(self, i: int) -> float | None:
        """Return the real value at position i."""
        return self._by_index(ColumnType.REAL, i)

    def decimal_by_index(self, i: int) -> Decimal | None:
        """Return the decimal value at position i."""
        return self._by_index(ColumnType.DECIMAL, i)

    def string_by_index(self, i: int) -> str:
        """Return the string value at position i."""
        return self._by_index(ColumnType.STRING, i)

    def dynamic_by_index(self, i: int) -> bytes | None:
        """Return the dynamic value at position i as JSON bytes."""
        return self._by_index(ColumnType.DYNAMIC, i)

    def datetime_by_index(self, i: int) -> datetime | None:
        """Return the datetime value at position i."""
        return self._by_index(ColumnType.DATETIME, i)

    def timespan_by_index(self, i: int) -> timedelta | None:
        """Return the timespan value at position i."""
        return self._by_index(ColumnType.TIMESPAN, i)

    def guid_by_index(self, i: int) -> uuid.UUID | None:
        """Return the guid value at position i."""
        return self._by_index(ColumnType.GUID, i)

    def bool_by_name(self, name: str) -> bool | None:
        """Return the bool value in the named column."""
        return self._by_name(ColumnType.BOOL, name)

    def int_by_name(self, name: str) -> int | None:
        """Return the int value in the named column."""
        return self._by_name(ColumnType.INT, name)

    def long_by_name(self, name: str) -> int | None:
        """Return the long value in the named column."""
        return self._by_name(ColumnType.LONG, name)

    def real_by_name(self, name: str) -> float | None:
        """Return the real value in the named column."""
        return self._by_name(ColumnType.REAL, name)

    def decimal_by_name(self, name: str) -> Decimal | None:
        """Return the decimal value in the named column."""
        return self._by_name(ColumnType.DECIMAL, name)

    def string_by_name(self, name: str) -> str:
        """Return the string value in the named column."""
        return self._by_name(ColumnType.STRING, name)

    def dynamic_by_name(self, name: str) -> bytes | None:
        """Return the dynamic value in the named column as JSON bytes."""
        return self._by_name(ColumnType.DYNAMIC, name)

    def datetime_by_name(self, name: str) -> datetime | None:
        """Return the datetime value in the named column."""
        return self._by_name(ColumnType.DATETIME, name)

    def timespan_by_name(self, name: str) -> timedelta | None:
        """Return the timespan value in the named column."""
        return self._by_name(ColumnType.TIMESPAN, name)

    def guid_by_name(self, name: str) -> uuid.UUID | None:
        """Return the guid value in the named column."""
        return self._by_name(ColumnType.GUID, name)


@dataclass(frozen=True)
class RowResult:
    """A streamed row, or the error met while streaming it."""

    row: Row | None = None
    error: BaseException | None = None

    @classmethod
    def success(cls, row: Row) -> "RowResult":
        """A result holding a row."""
        return cls(row=row)

    @classmethod
    def failure(cls, error: BaseException) -> "RowResult":
        """A result holding an error."""
        return cls(error=error)