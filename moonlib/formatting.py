"""Formatted output: printf-style ``format``, hexadecimal floats and literals.

Results are byte strings. Each conversion takes one argument: integer
conversions (``d i o u x X c``), float conversions (``a A e E f g G``),
``s`` for any value and ``q`` for a value written as a source literal.
"""

from __future__ import annotations

import math
from typing import Any

from moonlib.strfuncs import _check_integer, _check_string
from moonlib.values import (
    LuaError,
    TagMethod,
    _INT_MIN,
    _tonumber,
    get_tag_method,
    obj_type_name,
    type_name,
)

_FLAGS = "-+ #0"
_HEX = "0123456789abcdef"
_MASK64 = (1 << 64) - 1
_PERCENT = ord("%")
_DIGITS = frozenset(b"0123456789")
_CNTRL = frozenset(range(32)) | {127}


def hexfloat(x: Any) -> str:
    """Format a number as a hexadecimal float, the way ``%a`` does."""
    x = float(x)
    if math.isnan(x) or math.isinf(x):
        return "%.14g" % x
    if x == 0:
        return ("-" if math.copysign(1.0, x) < 0 else "") + "0x0p+0"
    m, e = math.frexp(x)
    parts = []
    if m < 0:
        parts.append("-")
        m = -m
    parts.append("0x")
    m *= 2
    d = math.floor(m)
    parts.append(_HEX[d])
    m -= d
    e -= 1
    if m > 0:
        parts.append(".")
        while m > 0:
            m *= 16
            d = math.floor(m)
            parts.append(_HEX[d])
            m -= d
    parts.append("p%+d" % e)
    return "".join(parts)


def _quoted(data: bytes) -> bytes:
    out = bytearray(b'"')
    for k, c in enumerate(data):
        if c in b'"\\\n':
            out.append(ord("\\"))
            out.append(c)
        elif c in _CNTRL:
            nxt = data[k + 1] if k + 1 < len(data) else 0
            out += (b"\\%03d" if nxt in _DIGITS else b"\\%d") % c
        else:
            out.append(c)
    out.append(ord('"'))
    return bytes(out)


def _literal(value: Any, arg: int) -> bytes:
    if value is None:
        return b"nil"
    if isinstance(value, bool):
        return b"true" if value else b"false"
    if isinstance(value, float):
        return hexfloat(value).encode("ascii")
    if isinstance(value, int):
        if value == _INT_MIN:
            return b"0x%x" % (value & _MASK64)
        return str(value).encode("ascii")
    if type_name(value) == "string":
        return _quoted(_check_string(value, arg, "format"))
    raise LuaError(f"bad argument #{arg} to 'format' (value has no literal form)")


def quote(value: Any) -> bytes:
    """Return ``value`` written as a literal that reads back to the same value."""
    return _literal(value, 1)


def _tostring(value: Any) -> bytes:
    handler = get_tag_method(value, TagMethod.TOSTRING)
    if handler is not None:
        result = handler(value)
        if type_name(result) not in ("string", "number"):
            raise LuaError("'__tostring' must return a string")
        return _check_string(result, 1, "tostring")
    if value is None:
        return b"nil"
    if isinstance(value, bool):
        return b"true" if value else b"false"
    if type_name(value) in ("string", "number"):
        return _check_string(value, 1, "tostring")
    return f"{obj_type_name(value)}: 0x{id(value):08x}".encode("utf-8")


def _check_number(value: Any, arg: int) -> float:
    num = None if isinstance(value, bool) else _tonumber(value)
    if num is None:
        raise LuaError(
            f"bad argument #{arg} to 'format' (number expected, got {type_name(value)})"
        )
    return float(num)


def _scan(data: bytes, i: int) -> tuple[str, str, str | None, int]:
    """Read flags, width and precision; return them and the next index."""
    n = len(data)
    start = i
    while i < n and chr(data[i]) in _FLAGS:
        i += 1
    flags = data[start:i].decode("ascii")
    if len(flags) >= len(_FLAGS) + 1:
        raise LuaError("invalid format (repeated flags)")
    start = i
    while i < n and i - start < 2 and data[i] in _DIGITS:
        i += 1
    width = data[start:i].decode("ascii")
    precision = None
    if i < n and data[i] == ord("."):
        i += 1
        start = i
        while i < n and i - start < 2 and data[i] in _DIGITS:
            i += 1
        precision = data[start:i].decode("ascii") or "0"
    if i < n and data[i] in _DIGITS:
        raise LuaError("invalid format (width or precision too long)")
    return flags, width, precision, i


def _format_item(
    flags: str, width: str, precision: str | None, conv: str, value: Any, arg: int
) -> bytes:
    modifiers = flags + width + ("" if precision is None else "." + precision)
    spec = "%" + modifiers
    if conv == "c":
        code = _check_integer(value, arg, "format") & 0xFF
        return ((spec + "s") % chr(code)).encode("latin-1")
    if conv in ("d", "i"):
        return ((spec + "d") % _check_integer(value, arg, "format")).encode("ascii")
    if conv in ("o", "u", "x", "X"):
        v = _check_integer(value, arg, "format") & _MASK64
        if conv == "u":
            return ((spec + "d") % v).encode("ascii")
        if "#" in flags and (conv != "o" or v == 0):
            if v == 0:
                spec = "%" + flags.replace("#", "") + width
                spec += "" if precision is None else "." + precision
        elif "#" in flags:
            digits = len(format(v, "o"))
            p = int(precision) if precision is not None else 1
            spec = "%" + flags.replace("#", "") + width + "." + str(max(p, digits + 1))
        return ((spec + conv) % v).encode("ascii")
    if conv in ("a", "A"):
        number = _check_number(value, arg)
        if modifiers:
            raise LuaError("modifiers for format '%a'/'%A' not implemented")
        text = hexfloat(number)
        return (text.upper() if conv == "A" else text).encode("ascii")
    if conv in ("e", "E", "f", "g", "G"):
        return ((spec + conv) % _check_number(value, arg)).encode("ascii")
    if conv == "q":
        return _literal(value, arg)
    if conv == "s":
        text = _tostring(value)
        if not modifiers:
            return text
        if 0 in text:
            raise LuaError(f"bad argument #{arg} to 'format' (string contains zeros)")
        if precision is None and len(text) >= 100:
            return text
        return ((spec + "s") % text.decode("latin-1")).encode("latin-1")
    raise LuaError(f"invalid option '%{conv}' to 'format'")


def format(fmt: Any, *args: Any) -> bytes:
    """Build a string from ``fmt`` and ``args``, printf style."""
    data = _check_string(fmt, 1, "format")
    out = bytearray()
    used = 0
    i = 0
    n = len(data)
    while i < n:
        c = data[i]
        if c != _PERCENT:
            out.append(c)
            i += 1
            continue
        i += 1
        if i < n and data[i] == _PERCENT:
            out.append(_PERCENT)
            i += 1
            continue
        arg = used + 2
        if used >= len(args):
            raise LuaError(f"bad argument #{arg} to 'format' (no value)")
        value = args[used]
        used += 1
        flags, width, precision, i = _scan(data, i)
        conv = chr(data[i]) if i < n else ""
        i += 1
        out += _format_item(flags, width, precision, conv, value, arg)
    return bytes(out)