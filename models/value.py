"""Generic value model.

Every decoded result is expressed as a tree of the nodes defined here.
Nodes are immutable pydantic models tagged by a ``kind`` field, so a tree
can be validated or dumped as a whole.
"""

from __future__ import annotations

import datetime
import json
import math
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# JSON integers outside this range are not representable as integer nodes.
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class _Node(BaseModel):
    model_config = ConfigDict(strict=True, frozen=True)


class NullValue(_Node):
    kind: Literal["null"] = "null"


class BoolValue(_Node):
    kind: Literal["bool"] = "bool"
    value: bool


class IntValue(_Node):
    kind: Literal["int"] = "int"
    value: int


class FloatValue(_Node):
    kind: Literal["float"] = "float"
    value: float


class StringValue(_Node):
    kind: Literal["string"] = "string"
    value: str


class BinaryValue(_Node):
    kind: Literal["binary"] = "binary"
    value: bytes


class TimestampValue(_Node):
    """An absolute instant together with its UTC offset."""

    kind: Literal["timestamp"] = "timestamp"
    value: datetime.datetime

    @field_validator("value")
    @classmethod
    def validate_aware(cls, v: datetime.datetime) -> datetime.datetime:
        """Reject naive datetimes; a timestamp node always carries an offset."""
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("timestamp values must be timezone-aware")
        return v


class DurationValue(_Node):
    """A signed span of time in nanoseconds."""

    kind: Literal["duration"] = "duration"
    nanoseconds: int


class ListValue(_Node):
    kind: Literal["list"] = "list"
    items: List[Value] = Field(default_factory=list)


class RecordValue(_Node):
    """Named fields in insertion order."""

    kind: Literal["record"] = "record"
    fields: Dict[str, Value] = Field(default_factory=dict)


Value = Annotated[
    Union[
        NullValue,
        BoolValue,
        IntValue,
        FloatValue,
        StringValue,
        BinaryValue,
        TimestampValue,
        DurationValue,
        ListValue,
        RecordValue,
    ],
    Field(discriminator="kind"),
]

ListValue.model_rebuild()
RecordValue.model_rebuild()


def from_json(obj: Any) -> Value:
    """Convert an already-parsed JSON document into a value tree.

    Objects become records in key order, arrays become lists. Integers
    outside the signed 64-bit range fall back to floats, and numbers that
    are not finite as floats fall back to strings.
    """
    if obj is None:
        return NullValue()
    if isinstance(obj, bool):
        return BoolValue(value=obj)
    if isinstance(obj, int):
        if INT64_MIN <= obj <= INT64_MAX:
            return IntValue(value=obj)
        return _number_from_text(str(obj))
    if isinstance(obj, float):
        if math.isfinite(obj):
            return FloatValue(value=obj)
        return StringValue(value=repr(obj))
    if isinstance(obj, str):
        return StringValue(value=obj)
    if isinstance(obj, _RawNumber):
        return _number_from_text(obj.text)
    if isinstance(obj, list):
        return ListValue(items=[from_json(item) for item in obj])
    if isinstance(obj, dict):
        return RecordValue(fields={str(k): from_json(v) for k, v in obj.items()})
    raise TypeError(f"Cannot convert {type(obj).__name__} to a value")


def from_json_text(text: Union[str, bytes]) -> Value:
    """Parse a JSON document and convert it into a value tree.

    Numbers are kept as their source text until conversion so that very
    large or very precise values are never silently rounded by the parser.

    Raises:
        ValueError: If ``text`` is not valid JSON.
    """
    obj = json.loads(text, parse_int=_parse_int, parse_float=_RawNumber, parse_constant=_RawNumber)
    return from_json(obj)


def to_plain(value: Value) -> Any:
    """Render a value tree as JSON-compatible Python objects."""
    if isinstance(value, NullValue):
        return None
    if isinstance(value, FloatValue) and not math.isfinite(value.value):
        # Spelled the way PostgreSQL prints them; JSON has no literal for these.
        if math.isnan(value.value):
            return "NaN"
        return "Infinity" if value.value > 0 else "-Infinity"
    if isinstance(value, (BoolValue, IntValue, FloatValue, StringValue)):
        return value.value
    if isinstance(value, BinaryValue):
        return value.value.hex()
    if isinstance(value, TimestampValue):
        return value.value.isoformat()
    if isinstance(value, DurationValue):
        return value.nanoseconds
    if isinstance(value, ListValue):
        return [to_plain(item) for item in value.items]
    if isinstance(value, RecordValue):
        return {name: to_plain(field) for name, field in value.fields.items()}
    raise TypeError(f"Unknown value node {type(value).__name__}")


class _RawNumber:
    """JSON number text held back for conversion by ``from_json``."""

    __slots__ = ("text",)

    def __init__(self, text: str) -> None:
        self.text = text


def _parse_int(text: str) -> Any:
    number = int(text)
    if INT64_MIN <= number <= INT64_MAX:
        return number
    return _RawNumber(text)


def _number_from_text(text: str) -> Value:
    try:
        number = float(text)
    except (OverflowError, ValueError):
        return StringValue(value=text)
    if math.isfinite(number):
        return FloatValue(value=number)
    return StringValue(value=text)
