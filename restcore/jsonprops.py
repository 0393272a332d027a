"""Serialization options, JSON name mapping and value conversion rules."""

from __future__ import annotations

import types
import typing
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from restcore.errors import ConstraintError, ParseError

DEFAULT_MAX_MEMORY_CONSUMPTION = 1024 * 1024
MAX_MEMORY_LIMIT = 0xFFFFFFFF

_DIGITS = frozenset("0123456789")
_C_SPACE = " \t\n\v\f\r"


@dataclass
class JsonFieldMapping:
    """Pairs of (native name, JSON name) for fields whose names differ."""

    entries: list[tuple[str, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.entries = [(native, json) for native, json in self.entries]

    def to_json_name(self, name: str) -> str:
        """Return the JSON name for a native name, or the name itself."""
        for native, json in self.entries:
            if native == name:
                return json
        return name

    def to_native_name(self, name: str) -> str:
        """Return the native name for a JSON name, or the name itself."""
        for native, json in self.entries:
            if json == name:
                return native
        return name


class SerializeProperties:
    """Options that steer JSON serialization and deserialization."""

    def __init__(self, ignore_empty_fields: bool = True,
                 ignore_unknown_properties: bool = True,
                 max_memory_consumption: int = DEFAULT_MAX_MEMORY_CONSUMPTION,
                 excluded_names: Optional[Iterable[str]] = None,
                 name_mapping: Optional[JsonFieldMapping] = None) -> None:
        self.ignore_empty_fields = ignore_empty_fields
        self.ignore_unknown_properties = ignore_unknown_properties
        self.max_memory_consumption = max_memory_consumption
        self.excluded_names = (
            None if excluded_names is None else frozenset(excluded_names))
        self.name_mapping = name_mapping

    @property
    def max_memory_consumption(self) -> int:
        """Approximate byte budget for deserialized data."""
        return self._max_memory_consumption

    @max_memory_consumption.setter
    def max_memory_consumption(self, value: int) -> None:
        if value < 0 or value > MAX_MEMORY_LIMIT:
            raise ConstraintError("Memory contraint value is out of limit")
        self._max_memory_consumption = int(value)

    def is_excluded(self, name: str) -> bool:
        return self.excluded_names is not None and name in self.excluded_names

    def map_name_to_json(self, name: str) -> str:
        if self.name_mapping is None:
            return name
        return self.name_mapping.to_json_name(name)

    def __repr__(self) -> str:
        return (f"SerializeProperties(ignore_empty_fields={self.ignore_empty_fields!r}, "
                f"ignore_unknown_properties={self.ignore_unknown_properties!r}, "
                f"max_memory_consumption={self.max_memory_consumption!r}, "
                f"excluded_names={self.excluded_names!r}, "
                f"name_mapping={self.name_mapping!r})")


def _optional_inner(target_type: Any) -> tuple[bool, Any]:
    """Return (is_optional, inner type) for Optional[X] / X | None."""
    origin = typing.get_origin(target_type)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(target_type) if a is not type(None)]
        if len(args) < len(typing.get_args(target_type)):
            inner = args[0] if len(args) == 1 else typing.Union[tuple(args)]
            return True, inner
    return False, target_type


def _atoi(text: str) -> int:
    """Leading-integer parse with C atoi semantics: 0 when nothing parses."""
    s = text.lstrip(_C_SPACE)
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    digits = ""
    for ch in s:
        if ch not in _DIGITS:
            break
        digits += ch
    return sign * int(digits) if digits else 0


def _number_to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        return f"{value:f}"
    return str(value)


def _string_to_bool(value: str) -> bool:
    if value in ("true", "yes") or _atoi(value) > 0:
        return True
    if (not value or value in ("false", "no")
            or (value[0] == "0" and _atoi(value) == 0)):
        return False
    raise ParseError("assign_value: Invalid data conversion from string to bool")


def _string_to_int(value: str) -> int:
    body = value[1:] if value.startswith("-") else value
    if not body or not set(body) <= _DIGITS:
        raise ParseError("assign_value: Invalid data conversion from string to int*_t")
    return int(value)


def _default_for(target_type: Any) -> Any:
    constructor = typing.get_origin(target_type) or target_type
    if callable(constructor):
        try:
            return constructor()
        except TypeError:
            return None
    return None


def assign_value(target_type: Any, value: Any) -> Any:
    """Convert a decoded JSON value to target_type and return it.

    None resets optional targets to None and other targets to their default.
    Numbers convert freely between bool, int and float; numbers become their
    decimal text for str targets; strings are parsed for bool and int targets.
    Raises ParseError when no conversion applies.
    """
    if target_type is Any or target_type is object:
        return value

    optional, inner = _optional_inner(target_type)
    if value is None:
        return None if optional else _default_for(target_type)
    target_type = inner

    if target_type is bool:
        if isinstance(value, (bool, int, float)):
            return bool(value)
        if isinstance(value, str):
            return _string_to_bool(value)
        raise ParseError("assign_value: Invalid data conversion to bool")

    if target_type is int:
        if isinstance(value, (bool, int, float)):
            return int(value)
        if isinstance(value, str):
            return _string_to_int(value)
        raise ParseError("assign_value: Invalid data conversion")

    if target_type is float:
        if isinstance(value, (bool, int, float)):
            return float(value)
        raise ParseError("assign_value: Invalid data conversion")

    if target_type is str:
        if isinstance(value, str):
            return value
        if isinstance(value, (bool, int, float)):
            return _number_to_string(value)
        raise ParseError("assign_value: Invalid data conversion")

    check_type = typing.get_origin(target_type) or target_type
    if isinstance(check_type, type) and isinstance(value, check_type):
        return value
    raise ParseError("assign_value: Invalid data conversion")


def is_empty_field(value: Any) -> bool:
    """Return True for None, numeric zero and empty strings or containers."""
    if value is None:
        return True
    if isinstance(value, (bool, int, float)):
        return value == 0
    if isinstance(value, (str, bytes, list, tuple, dict, deque, set, frozenset)):
        return len(value) == 0
    return False