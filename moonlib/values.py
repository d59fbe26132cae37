"""Value kinds, type names and metamethod dispatch for the runtime model.

Values are plain Python objects: ``None`` is nil, ``bool`` is boolean,
``int``/``float`` are numbers, ``bytes``/``str`` are strings and callables
are functions.  Any other object may declare its kind through a
``lua_type`` attribute and carry a ``metatable`` attribute, a mapping
(anything with ``get``) from event names to handlers.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum
from types import GeneratorType
from typing import Any

_INT_BITS = 64
_INT_MIN = -(1 << (_INT_BITS - 1))
_INT_LIMIT = 1 << (_INT_BITS - 1)

_DECIMAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_HEXADECIMAL = re.compile(
    r"([+-]?)0[xX]([0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP]([+-]?\d+))?"
)
_SPACES = " \t\n\v\f\r"


class LuaError(Exception):
    """Error raised by library operations, carrying a runtime-style message."""


class TagMethod(Enum):
    """Metamethod events, in their canonical order."""

    INDEX = "__index"
    NEWINDEX = "__newindex"
    GC = "__gc"
    MODE = "__mode"
    LEN = "__len"
    EQ = "__eq"
    ADD = "__add"
    SUB = "__sub"
    MUL = "__mul"
    MOD = "__mod"
    POW = "__pow"
    DIV = "__div"
    IDIV = "__idiv"
    BAND = "__band"
    BOR = "__bor"
    BXOR = "__bxor"
    SHL = "__shl"
    SHR = "__shr"
    UNM = "__unm"
    BNOT = "__bnot"
    LT = "__lt"
    LE = "__le"
    CONCAT = "__concat"
    CALL = "__call"
    PAIRS = "__pairs"
    TOSTRING = "__tostring"
    NAME = "__name"


_BITWISE = frozenset(
    {
        TagMethod.BAND,
        TagMethod.BOR,
        TagMethod.BXOR,
        TagMethod.SHL,
        TagMethod.SHR,
        TagMethod.BNOT,
    }
)


def _wrap64(n: int) -> int:
    n &= (1 << _INT_BITS) - 1
    return n - (1 << _INT_BITS) if n >= _INT_LIMIT else n


def _str2number(text: str | bytes | bytearray) -> int | float | None:
    """Convert a numeral to a number, or return None if it is not one."""
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("ascii")
        except UnicodeDecodeError:
            return None
    s = text.strip(_SPACES)
    if _DECIMAL.fullmatch(s):
        if any(c in s for c in ".eE"):
            return float(s)
        value = int(s)
        return value if _INT_MIN <= value < _INT_LIMIT else float(s)
    m = _HEXADECIMAL.fullmatch(s)
    if m:
        sign, digits, exponent = m.groups()
        if "." in digits or exponent is not None:
            return float.fromhex(s)
        value = _wrap64(int(digits, 16))
        return _wrap64(-value) if sign == "-" else value
    return None


def _tonumber(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (str, bytes, bytearray)):
        return _str2number(value)
    return None


def _tointeger(value: Any) -> int | None:
    """Convert a value to an integer without loss, or return None."""
    num = _tonumber(value)
    if isinstance(num, int):
        return num
    if isinstance(num, float) and num.is_integer() and _INT_MIN <= num < _INT_LIMIT:
        return int(num)
    return None


def _truthy(value: Any) -> bool:
    return value is not None and value is not False


def type_name(value: Any) -> str:
    """Return the basic type name of a value."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (str, bytes, bytearray)):
        return "string"
    declared = getattr(value, "lua_type", None)
    if isinstance(declared, str):
        return declared
    if isinstance(value, (Mapping, list)):
        return "table"
    if isinstance(value, GeneratorType):
        return "thread"
    if callable(value):
        return "function"
    return "userdata"


def _metatable(value: Any) -> Any:
    if type_name(value) in ("table", "userdata"):
        return getattr(value, "metatable", None)
    return None


def _metafield(mt: Any, name: str) -> Any:
    if mt is None:
        return None
    return mt.get(name)


def obj_type_name(value: Any) -> str:
    """Return the type name of a value, honouring a ``__name`` metafield."""
    name = _metafield(_metatable(value), TagMethod.NAME.value)
    if isinstance(name, (bytes, bytearray)):
        return bytes(name).decode("utf-8", "replace")
    if isinstance(name, str):
        return name
    return type_name(value)


def get_tag_method(value: Any, event: TagMethod | str) -> Any:
    """Return the handler for ``event`` in the value's metatable, or None."""
    return _metafield(_metatable(value), TagMethod(event).value)


def _call_handler(handler: Any, a: Any, b: Any) -> Any:
    if not callable(handler):
        raise LuaError(f"attempt to call a {obj_type_name(handler)} value")
    return handler(a, b)


def _find_binary_tm(a: Any, b: Any, event: TagMethod) -> Any:
    handler = get_tag_method(a, event)
    if handler is None:
        handler = get_tag_method(b, event)
    return handler


def _op_error(a: Any, b: Any, action: str) -> LuaError:
    culprit = a if _tonumber(a) is None else b
    return LuaError(f"attempt to {action} a {obj_type_name(culprit)} value")


def try_binary_tm(a: Any, b: Any, event: TagMethod | str) -> Any:
    """Apply the binary metamethod for ``event``, raising LuaError if none exists."""
    event = TagMethod(event)
    handler = _find_binary_tm(a, b, event)
    if handler is not None:
        return _call_handler(handler, a, b)
    if event is TagMethod.CONCAT:
        culprit = b if _tonumber(a) is not None or isinstance(a, (str, bytes)) else a
        raise LuaError(f"attempt to concatenate a {obj_type_name(culprit)} value")
    if event in _BITWISE:
        if _tonumber(a) is not None and _tonumber(b) is not None:
            raise LuaError("number has no integer representation")
        raise _op_error(a, b, "perform bitwise operation on")
    raise _op_error(a, b, "perform arithmetic on")


def call_order_tm(a: Any, b: Any, event: TagMethod | str) -> bool | None:
    """Apply an order metamethod; return None when neither operand has one."""
    event = TagMethod(event)
    handler = _find_binary_tm(a, b, event)
    if handler is None:
        return None
    return _truthy(_call_handler(handler, a, b))