from typing import Optional

import pytest

from restcore.errors import ConstraintError, ParseError
from restcore.jsonprops import (
    JsonFieldMapping,
    SerializeProperties,
    assign_value,
    is_empty_field,
)


def test_mapping_translates_both_ways():
    mapping = JsonFieldMapping([("max_something", "maxSomething"), ("url", "link")])
    assert mapping.to_json_name("max_something") == "maxSomething"
    assert mapping.to_native_name("maxSomething") == "max_something"
    assert mapping.to_json_name("url") == "link"
    assert mapping.to_native_name("link") == "url"


def test_mapping_returns_unknown_names_unchanged():
    mapping = JsonFieldMapping([("name", "title")])
    assert mapping.to_json_name("body") == "body"
    assert mapping.to_native_name("body") == "body"


def test_mapping_round_trip():
    mapping = JsonFieldMapping([("a", "x"), ("b", "y")])
    for native in ("a", "b", "c"):
        assert mapping.to_native_name(mapping.to_json_name(native)) == native


def test_mapping_first_match_wins():
    mapping = JsonFieldMapping([("id", "first"), ("id", "second")])
    assert mapping.to_json_name("id") == "first"


def test_properties_defaults():
    props = SerializeProperties()
    assert props.ignore_empty_fields is True
    assert props.ignore_unknown_properties is True
    assert props.max_memory_consumption == 1024 * 1024
    assert props.excluded_names is None
    assert props.name_mapping is None


def test_properties_memory_limit_accepts_valid_value():
    props = SerializeProperties()
    props.max_memory_consumption = 4000
    assert props.max_memory_consumption == 4000


@pytest.mark.parametrize("bad", [-1, 0xFFFFFFFF + 1])
def test_properties_memory_limit_rejects_out_of_range(bad):
    props = SerializeProperties()
    with pytest.raises(ConstraintError):
        props.max_memory_consumption = bad
    with pytest.raises(ConstraintError):
        SerializeProperties(max_memory_consumption=bad)


def test_is_excluded():
    assert SerializeProperties().is_excluded("name") is False
    props = SerializeProperties(excluded_names={"name"})
    assert props.is_excluded("name") is True
    assert props.is_excluded("url") is False


def test_map_name_to_json():
    assert SerializeProperties().map_name_to_json("name") == "name"
    props = SerializeProperties(name_mapping=JsonFieldMapping([("name", "title")]))
    assert props.map_name_to_json("name") == "title"
    assert props.map_name_to_json("id") == "id"


@pytest.mark.parametrize("text,expected", [
    ("true", True), ("false", False), ("yes", True), ("no", False),
    ("", False), ("1", True), ("0", False),
])
def test_bool_from_string(text, expected):
    assert assign_value(bool, text) is expected


@pytest.mark.parametrize("number,expected", [(10, True), (0, False)])
def test_bool_from_int(number, expected):
    assert assign_value(bool, number) is expected


@pytest.mark.parametrize("text", ["maybe", "-1"])
def test_bool_from_bad_string_raises(text):
    with pytest.raises(ParseError):
        assign_value(bool, text)


@pytest.mark.parametrize("text,expected", [
    ("1", 1),
    ("-123", -123),
    ("55", 55),
    ("123456789", 123456789),
    ("-9876543212345", -9876543212345),
    ("123451234512345", 123451234512345),
])
def test_int_from_string(text, expected):
    assert assign_value(int, text) == expected


@pytest.mark.parametrize("text", ["", "-", "12a", "1-2", " 5"])
def test_int_from_bad_string_raises(text):
    with pytest.raises(ParseError):
        assign_value(int, text)


def test_numeric_conversions():
    assert assign_value(float, 100) == 100.0
    assert assign_value(int, True) == 1
    assert assign_value(int, 99) == 99
    assert assign_value(str, "John Doe") == "John Doe"


def test_string_from_number_uses_decimal_text():
    assert assign_value(str, 123) == "123"
    assert assign_value(str, 123.45) == "123.450000"


def test_none_resets_values():
    assert assign_value(Optional[int], None) is None
    assert assign_value(int | None, None) is None
    assert assign_value(int, None) == 0
    assert assign_value(str, None) == ""
    assert assign_value(list[int], None) == []


def test_optional_target_uses_inner_type():
    assert assign_value(Optional[bool], True) is True
    assert assign_value(Optional[int], "5") == 5


def test_invalid_conversions_raise():
    with pytest.raises(ParseError):
        assign_value(float, "1.5")
    with pytest.raises(ParseError):
        assign_value(bool, [1])
    with pytest.raises(ParseError):
        assign_value(list, "abc")


def test_matching_instance_passes_through():
    values = [1, 2, 3]
    assert assign_value(list[int], values) is values


@pytest.mark.parametrize("value", [None, 0, 0.0, False, "", [], {}, ()])
def test_empty_fields(value):
    assert is_empty_field(value) is True


@pytest.mark.parametrize("value", [1, -1.5, True, "x", [0], {"k": "v"}, object()])
def test_non_empty_fields(value):
    assert is_empty_field(value) is False