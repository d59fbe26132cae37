import pytest

from moonlib.values import (
    LuaError,
    TagMethod,
    call_order_tm,
    get_tag_method,
    obj_type_name,
    try_binary_tm,
    type_name,
)


class _Table:
    lua_type = "table"

    def __init__(self, metatable=None):
        self.metatable = metatable


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, "nil"),
        (True, "boolean"),
        (1, "number"),
        (1.5, "number"),
        (b"x", "string"),
        ("x", "string"),
        (len, "function"),
        ({}, "table"),
        (_Table(), "table"),
    ],
)
def test_type_name(value, expected):
    assert type_name(value) == expected


def test_tag_method_order_and_lookup():
    events = list(TagMethod)
    assert events[0].value == "__index"
    assert events[-1].value == "__name"
    assert TagMethod("__add") is TagMethod.ADD


def test_obj_type_name_uses_name_metafield():
    assert obj_type_name(_Table({"__name": "Point"})) == "Point"
    assert obj_type_name(_Table({"__name": 3})) == "table"
    assert obj_type_name(_Table()) == "table"


def test_get_tag_method():
    def handler(a, b):
        return a

    t = _Table({"__add": handler})
    assert get_tag_method(t, TagMethod.ADD) is handler
    assert get_tag_method(t, "__sub") is None
    assert get_tag_method(5, TagMethod.ADD) is None


def test_try_binary_tm_uses_second_operand():
    calls = []

    def handler(a, b):
        calls.append((a, b))
        return "sum"

    t = _Table({"__add": handler})
    assert try_binary_tm(1, t, TagMethod.ADD) == "sum"
    assert calls == [(1, t)]


def test_try_binary_tm_arithmetic_error_names_culprit():
    with pytest.raises(LuaError, match="perform arithmetic on a nil value"):
        try_binary_tm(1, None, TagMethod.ADD)


def test_try_binary_tm_concat_error():
    with pytest.raises(LuaError, match="concatenate a table value"):
        try_binary_tm(b"a", _Table(), TagMethod.CONCAT)


def test_try_binary_tm_bitwise_errors():
    with pytest.raises(LuaError, match="no integer representation"):
        try_binary_tm(1.5, 2, TagMethod.BAND)
    with pytest.raises(LuaError, match="perform bitwise operation on a boolean value"):
        try_binary_tm(True, 2, TagMethod.BOR)


def test_call_order_tm():
    assert call_order_tm(1, 2, TagMethod.LT) is None
    t = _Table({"__lt": lambda a, b: 0, "__le": lambda a, b: None})
    assert call_order_tm(t, t, TagMethod.LT) is True
    assert call_order_tm(t, 1, TagMethod.LE) is False


def test_non_callable_handler_raises():
    t = _Table({"__add": 5})
    with pytest.raises(LuaError, match="attempt to call a number value"):
        try_binary_tm(t, 1, TagMethod.ADD)