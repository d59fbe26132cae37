"""UTF-8 helpers over byte strings: encode, decode, count and iterate.

Positions are 1-based byte positions; negative positions count back
from the end of the string.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from moonlib.strfuncs import _check_integer, _check_string, _opt_integer, posrelat
from moonlib.values import LuaError

MAXUNICODE = 0x10FFFF
CHARPATTERN = b"[\x00-\x7F\xC2-\xF4][\x80-\xBF]*"

_LIMITS = (0xFF, 0x7F, 0x7FF, 0xFFFF)


def _iscont(data: bytes, k: int) -> bool:
    return k < len(data) and data[k] & 0xC0 == 0x80


def _decode(data: bytes, pos: int) -> tuple[int, int] | None:
    """Decode the sequence at ``pos``; return (code, next position) or None."""
    c = data[pos]
    if c < 0x80:
        return c, pos + 1
    res = 0
    count = 0
    while c & 0x40:
        count += 1
        k = pos + count
        cc = data[k] if k < len(data) else 0
        if cc & 0xC0 != 0x80:
            return None
        res = (res << 6) | (cc & 0x3F)
        c <<= 1
    res |= (c & 0x7F) << (count * 5)
    if count > 3 or res > MAXUNICODE or res <= _LIMITS[count]:
        return None
    return res, pos + count + 1


def _arg_error(arg: int, fname: str, message: str) -> LuaError:
    return LuaError(f"bad argument #{arg} to '{fname}' ({message})")


def char(*args: Any) -> bytes:
    """Encode each code point and concatenate the results."""
    out = bytearray()
    for arg, value in enumerate(args, start=1):
        code = _check_integer(value, arg, "char")
        if not 0 <= code <= MAXUNICODE:
            raise _arg_error(arg, "char", "value out of range")
        out += chr(code).encode("utf-8", "surrogatepass")
    return bytes(out)


def codepoint(s: Any, i: Any = None, j: Any = None) -> tuple[int, ...]:
    """Return the code points of all characters starting in ``[i, j]``."""
    data = _check_string(s, 1, "codepoint")
    size = len(data)
    posi = posrelat(_opt_integer(i, 2, "codepoint", 1), size)
    pose = posrelat(_opt_integer(j, 3, "codepoint", posi), size)
    if posi < 1:
        raise _arg_error(2, "codepoint", "out of range")
    if pose > size:
        raise _arg_error(3, "codepoint", "out of range")
    result = []
    pos = posi - 1
    while pos < pose:
        decoded = _decode(data, pos)
        if decoded is None:
            raise LuaError("invalid UTF-8 code")
        code, pos = decoded
        result.append(code)
    return tuple(result)


def length(s: Any, i: Any = None, j: Any = None) -> int | tuple[None, int]:
    """Count characters starting in ``[i, j]``.

    On an invalid sequence, return ``(None, position)`` of the bad byte.
    """
    data = _check_string(s, 1, "len")
    size = len(data)
    posi = posrelat(_opt_integer(i, 2, "len", 1), size)
    posj = posrelat(_opt_integer(j, 3, "len", -1), size)
    if not (1 <= posi and posi - 1 <= size):
        raise _arg_error(2, "len", "initial position out of string")
    posi -= 1
    posj -= 1
    if posj >= size:
        raise _arg_error(3, "len", "final position out of string")
    count = 0
    while posi <= posj:
        decoded = _decode(data, posi)
        if decoded is None:
            return None, posi + 1
        posi = decoded[1]
        count += 1
    return count


def offset(s: Any, n: Any, i: Any = None) -> int | None:
    """Return the byte position where the ``n``-th character from ``i`` starts.

    ``n == 0`` finds the start of the character containing byte ``i``.
    Return None when there is no such character.
    """
    data = _check_string(s, 1, "offset")
    size = len(data)
    count = _check_integer(n, 2, "offset")
    default = 1 if count >= 0 else size + 1
    posi = posrelat(_opt_integer(i, 3, "offset", default), size)
    if not (1 <= posi and posi - 1 <= size):
        raise _arg_error(3, "offset", "position out of range")
    posi -= 1
    if count == 0:
        while posi > 0 and _iscont(data, posi):
            posi -= 1
    else:
        if _iscont(data, posi):
            raise LuaError("initial position is a continuation byte")
        if count < 0:
            while count < 0 and posi > 0:
                posi -= 1
                while posi > 0 and _iscont(data, posi):
                    posi -= 1
                count += 1
        else:
            count -= 1
            while count > 0 and posi < size:
                posi += 1
                while _iscont(data, posi):
                    posi += 1
                count -= 1
    return posi + 1 if count == 0 else None


def _iter_codes(data: bytes) -> Iterator[tuple[int, int]]:
    size = len(data)
    pos = -1
    while True:
        if pos < 0:
            pos = 0
        elif pos < size:
            pos += 1
            while _iscont(data, pos):
                pos += 1
        if pos >= size:
            return
        decoded = _decode(data, pos)
        if decoded is None or _iscont(data, decoded[1]):
            raise LuaError("invalid UTF-8 code")
        yield pos + 1, decoded[0]


def codes(s: Any) -> Iterator[tuple[int, int]]:
    """Iterate over ``(position, code point)`` for each character."""
    return _iter_codes(_check_string(s, 1, "codes"))