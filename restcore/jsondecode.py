"""Decode JSON into dataclasses, lists, deques, dicts and scalar values."""

from __future__ import annotations

import dataclasses
import functools
import json
import logging
import types
import typing
from collections import deque
from typing import Any, Optional, Union

from restcore.errors import ConstraintError, ParseError, UnknownPropertyError
from restcore.jsonprops import SerializeProperties, assign_value

log = logging.getLogger(__name__)

# Approximate in-memory sizes used for the memory budget.
_STRING_SIZE = 32
_POINTER_SIZE = 8
_SIZE_T = 8
_NULL_SIZE = 8
_ARRAY_OVERHEAD = _SIZE_T * 3
_MAP_OVERHEAD = _SIZE_T * 6

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


class _JsonObject(list):
    """Key/value pairs of a JSON object, in document order."""


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


def _reject_constant(name: str) -> Any:
    raise ParseError(f"Invalid JSON value: {name}")


def _value_size(value: Any) -> int:
    """Approximate memory taken by a decoded scalar."""
    if value is None:
        return _NULL_SIZE
    if isinstance(value, bool):
        return 1
    if isinstance(value, int):
        return 4 if -(2 ** 31) <= value < 2 ** 32 else 8
    if isinstance(value, float):
        return 8
    if isinstance(value, str):
        length = len(value.encode("utf-8"))
        size = _STRING_SIZE
        if length > _STRING_SIZE + _POINTER_SIZE:
            size += length - _POINTER_SIZE
        return size
    return 8


def _is_structured(value: Any) -> bool:
    return isinstance(value, list)


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", repr(tp))


def _unwrap_optional(tp: Any) -> tuple[bool, Any]:
    origin = typing.get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = typing.get_args(tp)
        rest = [a for a in args if a is not type(None)]
        if len(rest) < len(args):
            inner = rest[0] if len(rest) == 1 else Union[tuple(rest)]
            return True, inner
    return False, tp


def _sequence_kind(tp: Any) -> Optional[type]:
    origin = typing.get_origin(tp) or tp
    if origin is list or origin is deque:
        return origin
    return None


def _is_mapping(tp: Any) -> bool:
    return (typing.get_origin(tp) or tp) is dict


def _item_type(tp: Any, index: int) -> Any:
    args = typing.get_args(tp)
    return args[index] if len(args) > index else Any


def _plain(value: Any) -> Any:
    if isinstance(value, _JsonObject):
        return {key: _plain(item) for key, item in value}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


@functools.lru_cache(maxsize=None)
def _field_types(cls: type) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        field_type = f.type
        if isinstance(field_type, str):
            try:
                field_type = _resolve_annotation(field_type)
            except KeyError as ex:
                raise ParseError(
                    f"Cannot resolve field types of {cls.__name__}: {ex}") from None
        result[f.name] = field_type
    return result


def _construct(cls: type, values: dict[str, Any]) -> Any:
    init_names = {f.name for f in dataclasses.fields(cls) if f.init}
    try:
        obj = cls(**{k: v for k, v in values.items() if k in init_names})
    except TypeError as ex:
        raise ParseError(f"Cannot construct {cls.__name__}: {ex}") from None
    for name, value in values.items():
        if name not in init_names:
            setattr(obj, name, value)
    return obj


class JsonDeserializer:
    """Decodes JSON documents into instances of a target type.

    Supported targets are dataclasses, list[T], deque[T], dict[str, T],
    Optional[T], Any and the scalar types handled by assign_value. When an
    existing instance is given, its fields are updated in place: nested
    dataclasses are decoded into, lists are extended and dicts updated.
    Optional fields always receive fresh values. The memory budget from the
    properties is renewed for every parse; a budget of zero disables it.
    """

    def __init__(self, target_type: Any,
                 properties: Optional[SerializeProperties] = None) -> None:
        self.target_type = target_type
        self.properties = properties if properties is not None else SerializeProperties()
        self._remaining: Optional[int] = None

    def parse(self, source: Any, instance: Any = None) -> Any:
        """Decode source (text, bytes or a readable file) and return the result."""
        document = self._load(source)
        self._remaining = self.properties.max_memory_consumption or None
        try:
            return self._decode(self.target_type, document, instance)
        finally:
            self._remaining = None

    @staticmethod
    def _load(source: Any) -> Any:
        text = source.read() if hasattr(source, "read") else source
        if isinstance(text, bytearray):
            text = bytes(text)
        try:
            return json.loads(text, object_pairs_hook=_JsonObject,
                              parse_constant=_reject_constant)
        except ValueError as ex:
            raise ParseError(f"Invalid JSON: {ex}") from None

    def _charge(self, size: int) -> None:
        if self._remaining is None:
            return
        self._remaining -= size
        if self._remaining <= 0:
            raise ConstraintError("Exceed memory usage constraint")

    def _native_name(self, key: str) -> str:
        mapping = self.properties.name_mapping
        return key if mapping is None else mapping.to_native_name(key)

    def _decode(self, tp: Any, value: Any, existing: Any) -> Any:
        if tp is Any or tp is object:
            return _plain(value)
        optional, inner = _unwrap_optional(tp)
        if optional:
            if value is None:
                return None
            return self._decode(inner, value, None)
        if isinstance(value, _JsonObject):
            return self._decode_object(tp, value, existing)
        if isinstance(value, list):
            return self._decode_array(tp, value, existing)
        return assign_value(tp, value)

    def _decode_object(self, tp: Any, pairs: _JsonObject, existing: Any) -> Any:
        if isinstance(tp, type) and dataclasses.is_dataclass(tp):
            return self._decode_dataclass(tp, pairs, existing)
        if _is_mapping(tp):
            return self._decode_mapping(tp, pairs, existing)
        raise ParseError(f"Unexpected type {_type_name(tp)} for a JSON object")

    def _decode_dataclass(self, cls: type, pairs: _JsonObject, existing: Any) -> Any:
        hints = _field_types(cls)
        target = existing if isinstance(existing, cls) else None
        values: dict[str, Any] = {}
        for key, value in pairs:
            name = self._native_name(key)
            if name not in hints:
                if not self.properties.ignore_unknown_properties:
                    raise UnknownPropertyError(name)
                log.debug("Skipping unknown property %r of %s", name, cls.__name__)
                continue
            if name in values:
                current = values[name]
            elif target is not None:
                current = getattr(target, name, None)
            else:
                current = None
            if not _is_structured(value):
                self._charge(_value_size(value))
            values[name] = self._decode(hints[name], value, current)

        if target is None:
            return _construct(cls, values)
        for name, value in values.items():
            setattr(target, name, value)
        return target

    def _decode_mapping(self, tp: Any, pairs: _JsonObject, existing: Any) -> dict:
        value_type = _item_type(tp, 1)
        result = existing if isinstance(existing, dict) else {}
        for key, value in pairs:
            name = self._native_name(key)
            if not _is_structured(value):
                self._charge(_value_size(value) + _STRING_SIZE
                             + len(name.encode("utf-8")) + _MAP_OVERHEAD)
            result[name] = self._decode(value_type, value, result.get(name))
        return result

    def _decode_array(self, tp: Any, items: list, existing: Any) -> Any:
        kind = _sequence_kind(tp)
        if kind is None:
            raise ParseError(f"Unexpected type {_type_name(tp)} for a JSON array")
        item_type = _item_type(tp, 0)
        result = existing if isinstance(existing, kind) else kind()
        for value in items:
            if not _is_structured(value):
                self._charge(_value_size(value) + _ARRAY_OVERHEAD)
            result.append(self._decode(item_type, value, None))
        return result


def from_json(target_type: Any, source: Any,
              properties: Optional[SerializeProperties] = None,
              instance: Any = None) -> Any:
    """Decode JSON from text, bytes or a readable file into target_type."""
    return JsonDeserializer(target_type, properties).parse(source, instance)