"""Type-directed conversion of result rows into the value model.

Each result column is decoded by the function registered for its
PostgreSQL type OID in ``DECODERS``. Columns whose type has no entry are
rejected rather than guessed at.
"""

from __future__ import annotations

import datetime
import logging
import re
from typing import Callable, Dict, Iterator, List, Sequence, Tuple

from db.exceptions import DecodingError, UnsupportedColumnTypeError
from db.interfaces import ColumnProtocol, CursorProtocol
from models.value import (
    BinaryValue,
    BoolValue,
    DurationValue,
    FloatValue,
    IntValue,
    NullValue,
    RecordValue,
    StringValue,
    TimestampValue,
    Value,
    from_json,
    from_json_text,
)

logger = logging.getLogger(__name__)

NANOS_PER_MICRO = 1_000
NANOS_PER_HOUR = 3_600 * 1_000_000_000

_OCTAL_ESCAPE = re.compile(r"\\[0-7]{3}")

Decoder = Callable[[object], Value]


class Oid:
    """PostgreSQL type OIDs referenced by the decoder table."""

    BOOL = 16
    BYTEA = 17
    CHAR = 18
    NAME = 19
    INT8 = 20
    INT2 = 21
    INT4 = 23
    TEXT = 25
    OID = 26
    JSON = 114
    FLOAT4 = 700
    FLOAT8 = 701
    UNKNOWN = 705
    BPCHAR = 1042
    VARCHAR = 1043
    DATE = 1082
    TIME = 1083
    TIMESTAMP = 1114
    TIMESTAMPTZ = 1184
    INTERVAL = 1186
    TIMETZ = 1266
    NUMERIC = 1700
    UUID = 2950
    JSONB = 3802


# Names used in error messages; unlisted OIDs are reported by number.
TYPE_NAMES: Dict[int, str] = {
    Oid.BOOL: "bool",
    Oid.BYTEA: "bytea",
    Oid.CHAR: "char",
    Oid.NAME: "name",
    Oid.INT8: "int8",
    Oid.INT2: "int2",
    Oid.INT4: "int4",
    Oid.TEXT: "text",
    Oid.OID: "oid",
    Oid.JSON: "json",
    Oid.FLOAT4: "float4",
    Oid.FLOAT8: "float8",
    Oid.UNKNOWN: "unknown",
    Oid.BPCHAR: "bpchar",
    Oid.VARCHAR: "varchar",
    Oid.DATE: "date",
    Oid.TIME: "time",
    Oid.TIMESTAMP: "timestamp",
    Oid.TIMESTAMPTZ: "timestamptz",
    Oid.INTERVAL: "interval",
    Oid.TIMETZ: "timetz",
    Oid.NUMERIC: "numeric",
    Oid.UUID: "uuid",
    Oid.JSONB: "jsonb",
}


def type_name(oid: int) -> str:
    """Return a readable name for a type OID."""
    return TYPE_NAMES.get(oid, f"oid {oid}")


def _decode_text(value: object) -> Value:
    return StringValue(value=str(value))


def _decode_bool(value: object) -> Value:
    if isinstance(value, str):
        return BoolValue(value=value.lower() in ("t", "true"))
    return BoolValue(value=bool(value))


def _decode_char(value: object) -> Value:
    # "char" is a single signed byte; the server prints bytes above 127 as \ooo.
    if isinstance(value, int):
        return IntValue(value=value)
    if isinstance(value, str) and _OCTAL_ESCAPE.fullmatch(value):
        byte = int(value[1:], 8)
        return IntValue(value=byte - 256 if byte > 127 else byte)
    data = value.encode("utf-8") if isinstance(value, str) else bytes(value)  # type: ignore[arg-type]
    byte = data[0] if data else 0
    return IntValue(value=byte - 256 if byte > 127 else byte)


def _decode_int(value: object) -> Value:
    return IntValue(value=int(value))  # type: ignore[call-overload]


def _decode_float(value: object) -> Value:
    return FloatValue(value=float(value))  # type: ignore[arg-type]


def _decode_json(value: object) -> Value:
    if isinstance(value, (str, bytes)):
        return from_json_text(value)
    return from_json(value)


def _decode_timestamptz(value: object) -> Value:
    if not isinstance(value, datetime.datetime):
        raise TypeError(f"expected datetime, got {type(value).__name__}")
    return TimestampValue(value=value)


def _decode_timestamp(value: object) -> Value:
    if not isinstance(value, datetime.datetime):
        raise TypeError(f"expected datetime, got {type(value).__name__}")
    return RecordValue(
        fields={
            "year": IntValue(value=value.year),
            "month": IntValue(value=value.month),
            "day": IntValue(value=value.day),
            "hour": IntValue(value=value.hour),
            "minute": IntValue(value=value.minute),
            "second": IntValue(value=value.second),
            "nanosecond": IntValue(value=value.microsecond * NANOS_PER_MICRO),
        }
    )


def _decode_time(value: object) -> Value:
    if not isinstance(value, datetime.time):
        raise TypeError(f"expected time, got {type(value).__name__}")
    return RecordValue(
        fields={
            "hour": DurationValue(nanoseconds=value.hour * NANOS_PER_HOUR),
            "minute": IntValue(value=value.minute),
            "second": IntValue(value=value.second),
            "nanosecond": IntValue(value=value.microsecond * NANOS_PER_MICRO),
        }
    )


def _decode_bytea(value: object) -> Value:
    return BinaryValue(value=bytes(value))  # type: ignore[call-overload]


DECODERS: Dict[int, Decoder] = {
    Oid.TEXT: _decode_text,
    Oid.VARCHAR: _decode_text,
    Oid.BPCHAR: _decode_text,
    Oid.NAME: _decode_text,
    Oid.UNKNOWN: _decode_text,
    Oid.BOOL: _decode_bool,
    Oid.CHAR: _decode_char,
    Oid.INT2: _decode_int,
    Oid.INT4: _decode_int,
    Oid.INT8: _decode_int,
    Oid.FLOAT4: _decode_float,
    Oid.FLOAT8: _decode_float,
    Oid.JSON: _decode_json,
    Oid.JSONB: _decode_json,
    Oid.TIMESTAMPTZ: _decode_timestamptz,
    Oid.TIMESTAMP: _decode_timestamp,
    Oid.TIME: _decode_time,
    Oid.OID: _decode_int,
    Oid.BYTEA: _decode_bytea,
}


def resolve_decoders(columns: Sequence[ColumnProtocol]) -> List[Tuple[str, int, Decoder]]:
    """Look up a decoder for every column.

    Raises:
        UnsupportedColumnTypeError: For the first column whose type has no decoder.
    """
    resolved = []
    for column in columns:
        decoder = DECODERS.get(column.type_code)
        if decoder is None:
            raise UnsupportedColumnTypeError(column.name, type_name(column.type_code))
        resolved.append((column.name, column.type_code, decoder))
    return resolved


def _decode_with(resolved: Sequence[Tuple[str, int, Decoder]], row: Sequence[object]) -> RecordValue:
    fields: Dict[str, Value] = {}
    for (name, oid, decoder), value in zip(resolved, row):
        if value is None:
            fields[name] = NullValue()
            continue
        try:
            fields[name] = decoder(value)
        except (TypeError, ValueError) as e:
            raise DecodingError(f"Failed to decode column '{name}' of type '{type_name(oid)}': {e}") from e
    return RecordValue(fields=fields)


def decode_row(row: Sequence[object], columns: Sequence[ColumnProtocol]) -> RecordValue:
    """Decode one result row into a record with one field per column, in column order."""
    return _decode_with(resolve_decoders(columns), row)


def decode_rows(cursor: CursorProtocol) -> Iterator[RecordValue]:
    """Lazily decode every remaining row of an executed cursor."""
    columns = cursor.description or ()
    resolved = resolve_decoders(columns)
    logger.debug("Decoding rows for columns %s", [name for name, _, _ in resolved])
    for row in cursor:
        yield _decode_with(resolved, row)
