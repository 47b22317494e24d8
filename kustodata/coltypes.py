"""Kusto column types and conversion of raw JSON cells into Python values."""

from __future__ import annotations

import json
import re
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable


class ColumnType(str, Enum):
    """The value type stored in a column."""

    BOOL = "bool"
    DATETIME = "datetime"
    DYNAMIC = "dynamic"
    GUID = "guid"
    INT = "int"
    LONG = "long"
    REAL = "real"
    STRING = "string"
    TIMESPAN = "timespan"
    DECIMAL = "decimal"


_MAPPED_NAMES: dict[str, ColumnType] = {
    "bool": ColumnType.BOOL,
    "boolean": ColumnType.BOOL,
    "datetime": ColumnType.DATETIME,
    "date": ColumnType.DATETIME,
    "dynamic": ColumnType.DYNAMIC,
    "guid": ColumnType.GUID,
    "uuid": ColumnType.GUID,
    "uniqueid": ColumnType.GUID,
    "int": ColumnType.INT,
    "int32": ColumnType.INT,
    "long": ColumnType.LONG,
    "int64": ColumnType.LONG,
    "real": ColumnType.REAL,
    "double": ColumnType.REAL,
    "string": ColumnType.STRING,
    "timespan": ColumnType.TIMESPAN,
    "time": ColumnType.TIMESPAN,
    "decimal": ColumnType.DECIMAL,
}


def normalize_column(name: str) -> ColumnType | None:
    """Return the canonical type for a type name or alias, or None if unknown."""
    return _MAPPED_NAMES.get(name)


_TIMESPAN_RE = re.compile(r"^(-)?(?:(\d+)\.)?(\d+):(\d+):(\d+)(?:\.(\d+))?$")
_DATETIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})?$"
)
_TICKS_PER_SECOND = 10_000_000


def parse_timespan(text: str) -> timedelta:
    """Parse a timespan of the form [-][d.]hh:mm:ss[.fffffff]."""
    match = _TIMESPAN_RE.match(text.strip())
    if match is None:
        raise ValueError(f"invalid timespan {text!r}")
    sign, days, hours, minutes, seconds, fraction = match.groups()
    whole = ((int(days or 0) * 24 + int(hours)) * 60 + int(minutes)) * 60 + int(seconds)
    ticks = whole * _TICKS_PER_SECOND + int((fraction or "")[:7].ljust(7, "0"))
    delta = timedelta(microseconds=ticks // 10)
    return -delta if sign else delta


def format_timespan(delta: timedelta) -> str:
    """Format a timedelta as [-][d.]hh:mm:ss.fffffff."""
    total = (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds
    sign = "-" if total < 0 else ""
    total = abs(total)
    seconds, micros = divmod(total, 1_000_000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    day_part = f"{days}." if days else ""
    return f"{sign}{day_part}{hours:02d}:{minutes:02d}:{seconds:02d}.{micros * 10:07d}"


def _parse_datetime(text: str) -> datetime:
    match = _DATETIME_RE.match(text.strip())
    if match is None:
        raise ValueError(f"invalid datetime {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    tz = timezone.utc
    if zone and zone != "Z":
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(-offset if zone[0] == "-" else offset)
    moment = datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second),
        int((fraction or "")[:6].ljust(6, "0")), tzinfo=tz,
    )
    return moment.astimezone(timezone.utc)


def _parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw != 0
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        try:
            return int(lowered) != 0
        except ValueError:
            pass
    raise ValueError(f"cannot convert {raw!r} to bool")


def _integer_parser(bits: int) -> Callable[[Any], int]:
    low, high = -(2 ** (bits - 1)), 2 ** (bits - 1) - 1

    def parse(raw: Any) -> int:
        if isinstance(raw, bool):
            raise ValueError(f"cannot convert {raw!r} to a {bits}-bit integer")
        if isinstance(raw, float):
            if not raw.is_integer():
                raise ValueError(f"cannot convert {raw!r} to a {bits}-bit integer")
            value = int(raw)
        elif isinstance(raw, (int, str)):
            value = int(raw)
        else:
            raise ValueError(f"cannot convert {raw!r} to a {bits}-bit integer")
        if not low <= value <= high:
            raise ValueError(f"value {value} out of range for a {bits}-bit integer")
        return value

    return parse


def _parse_real(raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        raise ValueError(f"cannot convert {raw!r} to real")
    return float(raw)


def _parse_decimal(raw: Any) -> Decimal:
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        raise ValueError(f"cannot convert {raw!r} to decimal")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"cannot convert {raw!r} to decimal") from exc


def _parse_string(raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValueError(f"cannot convert {raw!r} to string")
    return raw


def _parse_dynamic(raw: Any) -> bytes:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    if isinstance(raw, str):
        return raw.encode("utf-8")
    return json.dumps(raw, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _parse_datetime_value(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, str):
        return _parse_datetime(raw)
    raise ValueError(f"cannot convert {raw!r} to datetime")


def _parse_timespan_value(raw: Any) -> timedelta:
    if isinstance(raw, timedelta):
        return raw
    if isinstance(raw, str):
        return parse_timespan(raw)
    raise ValueError(f"cannot convert {raw!r} to timespan")


def _parse_guid(raw: Any) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    if isinstance(raw, str):
        return uuid.UUID(raw)
    raise ValueError(f"cannot convert {raw!r} to guid")


_PARSERS: dict[ColumnType, Callable[[Any], Any]] = {
    ColumnType.BOOL: _parse_bool,
    ColumnType.INT: _integer_parser(32),
    ColumnType.LONG: _integer_parser(64),
    ColumnType.REAL: _parse_real,
    ColumnType.DECIMAL: _parse_decimal,
    ColumnType.STRING: _parse_string,
    ColumnType.DYNAMIC: _parse_dynamic,
    ColumnType.DATETIME: _parse_datetime_value,
    ColumnType.TIMESPAN: _parse_timespan_value,
    ColumnType.GUID: _parse_guid,
}


def parse_value(column_type: ColumnType | str, raw: Any) -> Any:
    """Convert a raw JSON cell into the Python value for the column type.

    A null cell gives None, except for strings, which give "".
    """
    kind = ColumnType(column_type)
    if raw is None:
        return "" if kind is ColumnType.STRING else None
    return _PARSERS[kind](raw)