"""Tables and datasets of query results, and decoding them into dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Sequence, TypeVar

from kustodata.errors import KustoError, Op
from kustodata.query.column import Column
from kustodata.query.row import Row

T = TypeVar("T")


@dataclass
class BaseDataset:
    """What every dataset carries: the operation and the kind of its primary tables."""

    op: Op
    primary_result_kind: str


@dataclass
class Dataset(BaseDataset):
    """A complete set of result tables."""

    tables: list["Table"] = field(default_factory=list)


@dataclass
class BaseTable:
    """Identity and columns of a result table."""

    dataset: BaseDataset | None
    index: int
    id: str
    name: str
    kind: str
    columns: list[Column]
    _columns_by_name: dict[str, Column] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.columns = list(self.columns)
        self._columns_by_name = {c.name: c for c in self.columns}

    def column_by_name(self, name: str) -> Column | None:
        """Return the column with the given name, or None."""
        return self._columns_by_name.get(name)

    def is_primary_result(self) -> bool:
        """Whether the table is one of the dataset's primary results."""
        return self.dataset is not None and self.kind == self.dataset.primary_result_kind

    @property
    def op(self) -> Op:
        """The operation of the owning dataset."""
        return Op.UNKNOWN if self.dataset is None else self.dataset.op


@dataclass
class Table(BaseTable):
    """A table whose rows are all in memory."""

    rows: list[Row] = field(default_factory=list)


@dataclass(frozen=True)
class TableResult:
    """A streamed table, or the error met while streaming it."""

    table: Any = None
    error: BaseException | None = None

    @classmethod
    def success(cls, table: Any) -> "TableResult":
        """A result holding a table."""
        return cls(table=table)

    @classmethod
    def failure(cls, error: BaseException) -> "TableResult":
        """A result holding an error."""
        return cls(error=error)


def _rows_of(data: Any) -> list[Row]:
    if isinstance(data, Table):
        return list(data.rows)
    if isinstance(data, Row):
        return [data]
    if isinstance(data, Dataset):
        if not data.tables:
            raise KustoError(Op.UNKNOWN, KustoError.Kind.INTERNAL, "dataset does not contain any tables")
        first = data.tables[0]
        if not first.is_primary_result():
            raise KustoError(Op.UNKNOWN, KustoError.Kind.INTERNAL, "dataset contains no primary results")
        return list(first.rows)
    if isinstance(data, (list, tuple)) and all(isinstance(r, Row) for r in data):
        return list(data)
    to_table = getattr(data, "to_table", None)
    if callable(to_table):
        return list(to_table().rows)
    raise KustoError(
        Op.UNKNOWN,
        KustoError.Kind.INTERNAL,
        "invalid data type - expected Dataset, Table, iterative table, Row or list of Rows",
    )


def to_structs(cls: type[T], data: Any) -> list[T]:
    """Decode a table, a dataset's first primary table, a row or rows into dataclasses."""
    return [row.to_struct(cls) for row in _rows_of(data)]


def to_structs_iterative(
    cls: type[T], table: Any
) -> Iterator[tuple[T | None, BaseException | None]]:
    """Decode a streamed table row by row, yielding (instance, None) or (None, error)."""
    for result in table.rows():
        if result.error is not None:
            yield None, result.error
            continue
        try:
            yield result.row.to_struct(cls), None
        except KustoError as exc:
            yield None, exc


def _column_names(columns: Sequence[Column]) -> list[str]:
    return [c.name for c in columns]