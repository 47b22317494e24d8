"""Frame definitions of the v2 protocol and a reader that splits a response into frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any, Iterator, Mapping

from kustodata.coltypes import normalize_column
from kustodata.errors import KustoError, OneApiError, Op, one_api_error_from_dict
from kustodata.query.column import Column
from kustodata.query.row import Row


class FrameType(str, Enum):
    """The kind of a v2 frame."""

    DATASET_HEADER = "DataSetHeader"
    DATA_TABLE = "DataTable"
    TABLE_HEADER = "TableHeader"
    TABLE_FRAGMENT = "TableFragment"
    TABLE_COMPLETION = "TableCompletion"
    DATASET_COMPLETION = "DataSetCompletion"


@dataclass(frozen=True)
class FrameColumn(Column):
    """A column described in a v2 frame."""

    @classmethod
    def from_json(cls, index: int, data: Mapping[str, Any]) -> "FrameColumn":
        """Build a column from its JSON form, normalizing type aliases."""
        raw_type = str(data.get("ColumnType") or "")
        normal = normalize_column(raw_type)
        if normal is None:
            raise KustoError(
                Op.TABLE_ACCESS,
                KustoError.Kind.CLIENT_ARGS,
                f"column[{index}] is of type {raw_type}, which is not valid",
            )
        return cls(index, str(data.get("ColumnName") or ""), normal)


@dataclass
class TableHeader:
    """The frame that opens a streamed table."""

    table_id: int = 0
    table_kind: str = ""
    table_name: str = ""
    columns: list[Column] = field(default_factory=list)


@dataclass
class TableFragment:
    """A frame holding some rows of a streamed table."""

    columns: list[Column] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)
    previous_index: int = 0


@dataclass
class TableCompletion:
    """The frame that closes a streamed table."""

    table_id: int = 0
    row_count: int = 0
    one_api_errors: list[OneApiError] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TableCompletion":
        """Build the frame from its JSON form."""
        errors = data.get("OneApiErrors")
        return cls(
            table_id=int(data.get("TableId") or 0),
            row_count=int(data.get("RowCount") or 0),
            one_api_errors=None if errors is None else [one_api_error_from_dict(e) for e in errors],
        )


@dataclass
class DataSetCompletion:
    """The frame that ends a dataset."""

    has_errors: bool = False
    cancelled: bool = False
    one_api_errors: list[OneApiError] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DataSetCompletion":
        """Build the frame from its JSON form."""
        return cls(
            has_errors=bool(data.get("HasErrors", False)),
            cancelled=bool(data.get("Cancelled", False)),
            one_api_errors=[one_api_error_from_dict(e) for e in data.get("OneApiErrors") or ()],
        )


@dataclass
class DataTable:
    """A whole table sent in a single frame."""

    header: TableHeader = field(default_factory=TableHeader)
    rows: list[Row] = field(default_factory=list)


def _internal(message: str) -> KustoError:
    return KustoError(Op.UNKNOWN, KustoError.Kind.INTERNAL, message)


def peek_frame_type(line: str | bytes) -> FrameType | str:
    """Read the frame type from the first property of a frame without parsing it."""
    text = line.decode("utf-8") if isinstance(line, (bytes, bytearray)) else line
    colon = text.find(":")
    if colon == -1:
        raise _internal("Missing colon in frame")
    first_quote = text.find('"', colon + 1)
    if first_quote == -1:
        raise _internal("Missing quote in frame")
    second_quote = text.find('"', first_quote + 1)
    if second_quote == -1:
        raise _internal("Missing quote in frame")
    value = text[first_quote + 1:second_quote]
    try:
        return FrameType(value)
    except ValueError:
        return value


def _as_bytes(data: Any) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


class FrameReader:
    """Splits a fragmented v2 response, one frame per line, into frame texts."""

    def __init__(self, stream: IO[Any]) -> None:
        self._stream = stream
        first = _as_bytes(stream.read(1))
        if not first:
            raise _internal("No data")
        if first != b"[":
            rest = _as_bytes(stream.read())
            raise _internal(f"Got error: {(first + rest).decode('utf-8', errors='replace')}")
        self._pending = first

    def _readline(self) -> bytes:
        line = self._pending + _as_bytes(self._stream.readline())
        self._pending = b""
        return line

    def advance(self) -> str | None:
        """Return the next frame's JSON text, or None at the end of the response."""
        line = self._readline()
        if not line.endswith(b"\n") or line.startswith(b"]"):
            return None
        line = line[:-1]
        if line.endswith(b"\r"):
            line = line[:-1]
        if len(line) < 2:
            raise _internal("Got EOF while reading frame")
        if line[:1] not in (b"[", b","):
            raise _internal(f"Expected comma or start array, got '{chr(line[0])}'")
        return line[1:].decode("utf-8")

    def __iter__(self) -> Iterator[str]:
        while (frame := self.advance()) is not None:
            yield frame

    def close(self) -> None:
        """Close the underlying stream."""
        self._stream.close()