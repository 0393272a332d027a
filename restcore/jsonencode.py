"""Encode dataclasses, sequences, dicts and scalar values as compact JSON."""

from __future__ import annotations

import dataclasses
import enum
import functools
import json
import logging
import math
import types
import typing
from collections import deque
from decimal import Decimal
from typing import Any, Optional, TextIO, Union

from restcore.errors import ParseError, RestcError
from restcore.jsonprops import SerializeProperties, is_empty_field
from restcore.writers import DataWriter

log = logging.getLogger(__name__)

_MAX_PLAIN_DIGITS = 21
_MIN_PLAIN_EXPONENT = -6

_SIMPLE_NAMES = {
    "int": int, "str": str, "float": float, "bool": bool, "bytes": bytes,
    "Any": Any, "typing.Any": Any, "object": object, "None": type(None),
}
_GENERIC_NAMES = {
    "list": list, "List": list, "typing.List": list,
    "dict": dict, "Dict": dict, "typing.Dict": dict,
    "deque": deque, "Deque": deque, "collections.deque": deque,
    "typing.Deque": deque,
}
_OPTIONAL_NAMES = {"Optional", "typing.Optional"}
_UNION_NAMES = {"Union", "typing.Union"}


def _split_top(text: str, sep: str) -> list[str]:
    parts, depth, start = [], 0, 0
    for pos, ch in enumerate(text):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(text[start:pos])
            start = pos + 1
    parts.append(text[start:])
    return [part.strip() for part in parts]


def _resolve_annotation(text: str) -> Any:
    """Resolve a textual annotation made of builtin and typing names."""
    text = text.strip().strip("'\"")
    alternatives = _split_top(text, "|")
    if len(alternatives) > 1:
        return Union[tuple(_resolve_annotation(a) for a in alternatives)]
    if text in _SIMPLE_NAMES:
        return _SIMPLE_NAMES[text]
    if text in _GENERIC_NAMES:
        return _GENERIC_NAMES[text]
    if text.endswith("]") and "[" in text:
        name, _, rest = text.partition("[")
        name = name.strip()
        args = tuple(_resolve_annotation(a) for a in _split_top(rest[:-1], ","))
        if name in _OPTIONAL_NAMES and len(args) == 1:
            return Optional[args[0]]
        if name in _UNION_NAMES:
            return Union[args]
        if name in _GENERIC_NAMES:
            origin = _GENERIC_NAMES[name]
            return origin[args] if len(args) > 1 else origin[args[0]]
    raise KeyError(text)


def _unwrap_optional(tp: Any) -> tuple[bool, Any]:
    """Return (is_optional, inner type) for Optional[X] / X | None."""
    origin = typing.get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = typing.get_args(tp)
        rest = [a for a in args if a is not type(None)]
        if len(rest) < len(args):
            inner = rest[0] if len(rest) == 1 else Union[tuple(rest)]
            return True, inner
    return False, tp


@functools.lru_cache(maxsize=None)
def _field_types(cls: type) -> tuple[tuple[str, Any], ...]:
    result = []
    for f in dataclasses.fields(cls):
        field_type = f.type
        if isinstance(field_type, str):
            try:
                field_type = _resolve_annotation(field_type)
            except KeyError:
                field_type = Any
        result.append((f.name, field_type))
    return tuple(result)


def _item_type(tp: Any, index: int) -> Any:
    args = typing.get_args(tp)
    return args[index] if len(args) > index else Any


def _format_exponent(exponent: int) -> str:
    return f"e{exponent}"


def _format_double(value: float) -> str:
    """Format a double the shortest way that round-trips, always marking it as real."""
    if not math.isfinite(value):
        raise ParseError(f"Cannot represent {value!r} in JSON")
    if value == 0:
        return "-0.0" if math.copysign(1.0, value) < 0 else "0.0"

    sign, digit_tuple, exponent = Decimal(repr(value)).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    length = len(digits)
    point = length + exponent
    prefix = "-" if sign else ""

    if exponent >= 0 and point <= _MAX_PLAIN_DIGITS:
        text = digits + "0" * exponent + ".0"
    elif 0 < point <= _MAX_PLAIN_DIGITS:
        text = digits[:point] + "." + digits[point:]
    elif _MIN_PLAIN_EXPONENT < point <= 0:
        text = "0." + "0" * -point + digits
    elif length == 1:
        text = digits + _format_exponent(point - 1)
    else:
        text = digits[0] + "." + digits[1:] + _format_exponent(point - 1)
    return prefix + text


def _format_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _has_own_str(value: Any) -> bool:
    return type(value).__str__ is not object.__str__


def _emit(value: Any, tp: Any, props: SerializeProperties, out: list[str]) -> None:
    _, tp = _unwrap_optional(tp)

    if value is None:
        out.append("null")
    elif isinstance(value, bool):
        out.append("true" if value else "false")
    elif isinstance(value, int) and not isinstance(value, enum.Enum):
        out.append(_format_double(float(value)) if tp is float else str(value))
    elif isinstance(value, float):
        out.append(_format_double(value))
    elif isinstance(value, str):
        out.append(_format_string(value))
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        _emit_dataclass(value, props, out)
    elif isinstance(value, (list, tuple, deque)):
        item_type = _item_type(tp, 0) if not isinstance(value, tuple) else Any
        out.append("[")
        for pos, item in enumerate(value):
            if pos:
                out.append(",")
            _emit(item, item_type, props, out)
        out.append("]")
    elif isinstance(value, dict):
        _emit_mapping(value, _item_type(tp, 1), props, out)
    elif isinstance(value, (bytes, bytearray)) or not _has_own_str(value):
        raise ParseError(
            f"do_serialize: Unexpected type: {type(value).__name__}")
    else:
        out.append(_format_string(str(value)))


def _emit_dataclass(obj: Any, props: SerializeProperties, out: list[str]) -> None:
    out.append("{")
    first = True
    for name, field_type in _field_types(type(obj)):
        value = getattr(obj, name)
        if props.ignore_empty_fields:
            optional, _ = _unwrap_optional(field_type)
            empty = value is None if optional else is_empty_field(value)
            if empty:
                continue
        if props.is_excluded(name):
            continue
        if not first:
            out.append(",")
        first = False
        out.append(_format_string(props.map_name_to_json(name)))
        out.append(":")
        _emit(value, field_type, props, out)
    out.append("}")


def _emit_mapping(mapping: dict, value_type: Any, props: SerializeProperties,
                  out: list[str]) -> None:
    out.append("{")
    for pos, (key, value) in enumerate(mapping.items()):
        if not isinstance(key, str):
            raise ParseError(
                f"do_serialize: Map keys must be strings, not {type(key).__name__}")
        if pos:
            out.append(",")
        out.append(_format_string(key))
        out.append(":")
        _emit(value, value_type, props, out)
    out.append("}")


def _encode(value: Any, props: SerializeProperties) -> str:
    out: list[str] = []
    _emit(value, Any, props, out)
    return "".join(out)


class JsonSerializer:
    """Serializes one object to compact JSON text."""

    def __init__(self, obj: Any, properties: Optional[SerializeProperties] = None) -> None:
        self.obj = obj
        self.properties = properties if properties is not None else SerializeProperties()

    def serialize(self) -> str:
        """Return the JSON text for the object."""
        return _encode(self.obj, self.properties)


def to_json(obj: Any, properties: Optional[SerializeProperties] = None) -> str:
    """Return obj serialized as compact JSON text."""
    return JsonSerializer(obj, properties).serialize()


def dump_json(obj: Any, stream: TextIO,
              properties: Optional[SerializeProperties] = None) -> None:
    """Write obj as compact JSON text to a text stream."""
    stream.write(to_json(obj, properties))


class _InserterState(enum.Enum):
    PRE = "pre"
    ITERATING = "iterating"
    DONE = "done"


class JsonInserter:
    """Serializes one object, or a JSON list of objects, to a DataWriter.

    Without is_list, only one object may be added.
    """

    def __init__(self, writer: DataWriter, is_list: bool = False,
                 properties: Optional[SerializeProperties] = None) -> None:
        self._writer = writer
        self._is_list = is_list
        self.properties = properties if properties is not None else SerializeProperties()
        self._state = _InserterState.PRE

    def add(self, value: Any) -> None:
        """Serialize one value to the writer."""
        if self._state is _InserterState.DONE:
            raise RestcError("Object is DONE. Cannot Add more data.")
        if self._state is _InserterState.ITERATING and not self._is_list:
            raise RestcError("Only one object can be added when not writing a list.")

        if self._state is _InserterState.PRE:
            prefix = "[" if self._is_list else ""
            self._state = _InserterState.ITERATING
        else:
            prefix = ","
        text = prefix + _encode(value, self.properties)
        self._writer.write(text.encode("utf-8"))

    def done(self) -> None:
        """Mark the serialization as complete, closing the list if one was opened."""
        if self._state is _InserterState.ITERATING and self._is_list:
            self._writer.write(b"]")
        self._state = _InserterState.DONE

    def __enter__(self) -> "JsonInserter":
        return self

    def __exit__(self, *args: Any) -> None:
        self.done()