"""Basic byte-string operations: slicing, case, repetition and byte codes.

Strings are byte strings.  ``str`` arguments are encoded as UTF-8 and
numbers are converted to their textual form, so results are always
``bytes``.
"""

from __future__ import annotations

from typing import Any

from moonlib.values import LuaError, _str2number, _tointeger, type_name

_MAXSIZE = 2**31 - 1


def _arg_error(arg: int, fname: str, message: str) -> LuaError:
    return LuaError(f"bad argument #{arg} to '{fname}' ({message})")


def _number_to_bytes(n: int | float) -> bytes:
    if isinstance(n, int):
        return str(n).encode("ascii")
    text = "%.14g" % n
    if text.lstrip("-").isdigit():
        text += ".0"
    return text.encode("ascii")


def _check_string(value: Any, arg: int, fname: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _number_to_bytes(value)
    raise _arg_error(arg, fname, f"string expected, got {type_name(value)}")


def _opt_string(value: Any, arg: int, fname: str, default: bytes) -> bytes:
    return default if value is None else _check_string(value, arg, fname)


def _check_integer(value: Any, arg: int, fname: str) -> int:
    if isinstance(value, bool) or not isinstance(
        value, (int, float, str, bytes, bytearray)
    ):
        raise _arg_error(arg, fname, f"number expected, got {type_name(value)}")
    if isinstance(value, (str, bytes, bytearray)) and _str2number(value) is None:
        raise _arg_error(arg, fname, "number expected, got string")
    result = _tointeger(value)
    if result is None:
        raise _arg_error(arg, fname, "number has no integer representation")
    return result


def _opt_integer(value: Any, arg: int, fname: str, default: int) -> int:
    return default if value is None else _check_integer(value, arg, fname)


def posrelat(pos: int, length: int) -> int:
    """Translate a relative position; negative counts back from the end."""
    if pos >= 0:
        return pos
    if -pos > length:
        return 0
    return length + pos + 1


def length(s: Any) -> int:
    """Return the length of a string in bytes."""
    return len(_check_string(s, 1, "len"))


def sub(s: Any, i: Any, j: Any = None) -> bytes:
    """Return the substring from ``i`` to ``j`` inclusive (1-based)."""
    data = _check_string(s, 1, "sub")
    size = len(data)
    start = posrelat(_check_integer(i, 2, "sub"), size)
    end = posrelat(_opt_integer(j, 3, "sub", -1), size)
    start = max(start, 1)
    end = min(end, size)
    return data[start - 1 : end] if start <= end else b""


def reverse(s: Any) -> bytes:
    """Return the string with its bytes in reverse order."""
    return _check_string(s, 1, "reverse")[::-1]


def lower(s: Any) -> bytes:
    """Return the string with ASCII letters lowered."""
    return _check_string(s, 1, "lower").lower()


def upper(s: Any) -> bytes:
    """Return the string with ASCII letters raised."""
    return _check_string(s, 1, "upper").upper()


def rep(s: Any, n: Any, sep: Any = None) -> bytes:
    """Return ``n`` copies of ``s`` joined by ``sep``."""
    data = _check_string(s, 1, "rep")
    count = _check_integer(n, 2, "rep")
    separator = _opt_string(sep, 3, "rep", b"")
    if count <= 0:
        return b""
    if len(data) + len(separator) > _MAXSIZE // count:
        raise LuaError("resulting string too large")
    return separator.join([data] * count)


def byte(s: Any, i: Any = None, j: Any = None) -> tuple[int, ...]:
    """Return the byte values of ``s[i..j]``; ``j`` defaults to ``i``."""
    data = _check_string(s, 1, "byte")
    size = len(data)
    posi = posrelat(_opt_integer(i, 2, "byte", 1), size)
    pose = posrelat(_opt_integer(j, 3, "byte", posi), size)
    posi = max(posi, 1)
    pose = min(pose, size)
    if posi > pose:
        return ()
    if pose - posi >= _MAXSIZE:
        raise LuaError("string slice too long")
    return tuple(data[posi - 1 : pose])


def char(*args: Any) -> bytes:
    """Build a string from byte values in the range 0..255."""
    out = bytearray()
    for arg, value in enumerate(args, start=1):
        code = _check_integer(value, arg, "char")
        if not 0 <= code <= 255:
            raise _arg_error(arg, "char", "value out of range")
        out.append(code)
    return bytes(out)