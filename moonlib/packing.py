"""Binary packing of values into byte strings and back.

Format strings follow the classic scripting-language pack syntax:
``< > = !n`` set byte order and maximum alignment; ``b B h H l L j J T``
are fixed-size integers, ``in``/``In`` integers of ``n`` bytes, ``f d n``
floats, ``cn`` fixed-size strings, ``sn`` length-prefixed strings, ``z``
zero-terminated strings, ``x`` one padding byte and ``Xop`` aligns to the
option ``op``.  Spaces are ignored.  Native sizes are those of a 64-bit
platform.
"""

from __future__ import annotations

import math
import struct
import sys
from enum import Enum, auto
from typing import Any

from moonlib.strfuncs import _check_integer, _check_string, _opt_integer, posrelat
from moonlib.values import LuaError, _tonumber, type_name

_MAXINTSIZE = 16
_SZINT = 8
_MAXALIGN = 8
_MAXSIZE = 2**31 - 1
_MASK64 = (1 << 64) - 1
_PADBYTE = 0
_NATIVE_LITTLE = sys.byteorder == "little"


class _Kind(Enum):
    INT = auto()
    UINT = auto()
    FLOAT = auto()
    CHAR = auto()
    STRING = auto()
    ZSTR = auto()
    PADDING = auto()
    PADDALIGN = auto()
    NOP = auto()


_FIXED = {
    ord("b"): (_Kind.INT, 1),
    ord("B"): (_Kind.UINT, 1),
    ord("h"): (_Kind.INT, 2),
    ord("H"): (_Kind.UINT, 2),
    ord("l"): (_Kind.INT, 8),
    ord("L"): (_Kind.UINT, 8),
    ord("j"): (_Kind.INT, _SZINT),
    ord("J"): (_Kind.UINT, _SZINT),
    ord("T"): (_Kind.UINT, 8),
    ord("f"): (_Kind.FLOAT, 4),
    ord("d"): (_Kind.FLOAT, 8),
    ord("n"): (_Kind.FLOAT, 8),
}

_DIGITS = frozenset(b"0123456789")


def _arg_error(fname: str, arg: int, message: str) -> LuaError:
    return LuaError(f"bad argument #{arg} to '{fname}' ({message})")


class _Format:
    """Cursor over a format string, tracking byte order and alignment."""

    def __init__(self, fmt: Any, fname: str) -> None:
        data = _check_string(fmt, 1, fname)
        self.fmt = data.split(b"\0", 1)[0]
        self.pos = 0
        self.fname = fname
        self.little = _NATIVE_LITTLE
        self.maxalign = 1

    def more(self) -> bool:
        return self.pos < len(self.fmt)

    def _digit_here(self) -> bool:
        return self.more() and self.fmt[self.pos] in _DIGITS

    def _getnum(self, default: int) -> int:
        if not self._digit_here():
            return default
        a = 0
        while True:
            a = a * 10 + (self.fmt[self.pos] - ord("0"))
            self.pos += 1
            if not (self._digit_here() and a <= (_MAXSIZE - 9) // 10):
                return a

    def _getnumlimit(self, default: int) -> int:
        size = self._getnum(default)
        if size > _MAXINTSIZE or size <= 0:
            raise LuaError(
                f"integral size ({size}) out of limits [1,{_MAXINTSIZE}]"
            )
        return size

    def _option(self) -> tuple[_Kind, int]:
        opt = self.fmt[self.pos]
        self.pos += 1
        if opt in _FIXED:
            return _FIXED[opt]
        if opt == ord("i"):
            return _Kind.INT, self._getnumlimit(4)
        if opt == ord("I"):
            return _Kind.UINT, self._getnumlimit(4)
        if opt == ord("s"):
            return _Kind.STRING, self._getnumlimit(8)
        if opt == ord("c"):
            size = self._getnum(-1)
            if size == -1:
                raise LuaError("missing size for format option 'c'")
            return _Kind.CHAR, size
        if opt == ord("z"):
            return _Kind.ZSTR, 0
        if opt == ord("x"):
            return _Kind.PADDING, 1
        if opt == ord("X"):
            return _Kind.PADDALIGN, 0
        if opt == ord(" "):
            pass
        elif opt == ord("<"):
            self.little = True
        elif opt == ord(">"):
            self.little = False
        elif opt == ord("="):
            self.little = _NATIVE_LITTLE
        elif opt == ord("!"):
            self.maxalign = self._getnumlimit(_MAXALIGN)
        else:
            raise LuaError(f"invalid format option '{chr(opt)}'")
        return _Kind.NOP, 0

    def details(self, total: int) -> tuple[_Kind, int, int]:
        """Read the next option; return its kind, size and padding needed."""
        kind, size = self._option()
        align = size
        if kind is _Kind.PADDALIGN:
            if not self.more():
                raise _arg_error(self.fname, 1, "invalid next option for option 'X'")
            next_kind, align = self._option()
            if next_kind is _Kind.CHAR or align == 0:
                raise _arg_error(self.fname, 1, "invalid next option for option 'X'")
        if align <= 1 or kind is _Kind.CHAR:
            return kind, size, 0
        align = min(align, self.maxalign)
        if align & (align - 1):
            raise _arg_error(self.fname, 1, "format asks for alignment not power of 2")
        return kind, size, (align - (total & (align - 1))) & (align - 1)


def _int_bytes(n: int, size: int, little: bool, neg: bool) -> bytes:
    value = n & _MASK64
    if neg and size > _SZINT:
        value = n
    value &= (1 << (8 * size)) - 1
    return value.to_bytes(size, "little" if little else "big")


def _float_code(size: int, little: bool) -> str:
    return ("<" if little else ">") + ("f" if size == 4 else "d")


def _float_bytes(x: float, size: int, little: bool) -> bytes:
    code = _float_code(size, little)
    try:
        return struct.pack(code, x)
    except OverflowError:
        return struct.pack(code, math.copysign(math.inf, x))


def _check_number(value: Any, arg: int, fname: str) -> float:
    num = None if isinstance(value, bool) else _tonumber(value)
    if num is None:
        raise _arg_error(fname, arg, f"number expected, got {type_name(value)}")
    return float(num)


def pack(fmt: Any, *args: Any) -> bytes:
    """Serialise ``args`` into a byte string according to ``fmt``."""
    spec = _Format(fmt, "pack")
    out = bytearray()
    total = 0
    used = 0

    def take(expected: str) -> tuple[Any, int]:
        nonlocal used
        arg = used + 2
        if used >= len(args):
            raise _arg_error("pack", arg, f"{expected} expected, got no value")
        used += 1
        return args[used - 1], arg

    while spec.more():
        kind, size, ntoalign = spec.details(total)
        total += ntoalign + size
        out += bytes([_PADBYTE]) * ntoalign
        if kind is _Kind.INT:
            value, arg = take("number")
            n = _check_integer(value, arg, "pack")
            if size < _SZINT:
                lim = 1 << (size * 8 - 1)
                if not -lim <= n < lim:
                    raise _arg_error("pack", arg, "integer overflow")
            out += _int_bytes(n, size, spec.little, n < 0)
        elif kind is _Kind.UINT:
            value, arg = take("number")
            n = _check_integer(value, arg, "pack")
            if size < _SZINT and (n & _MASK64) >= (1 << (size * 8)):
                raise _arg_error("pack", arg, "unsigned overflow")
            out += _int_bytes(n, size, spec.little, False)
        elif kind is _Kind.FLOAT:
            value, arg = take("number")
            out += _float_bytes(_check_number(value, arg, "pack"), size, spec.little)
        elif kind is _Kind.CHAR:
            value, arg = take("string")
            data = _check_string(value, arg, "pack")
            if len(data) > size:
                raise _arg_error("pack", arg, "string longer than given size")
            out += data + bytes([_PADBYTE]) * (size - len(data))
        elif kind is _Kind.STRING:
            value, arg = take("string")
            data = _check_string(value, arg, "pack")
            if size < 8 and len(data) >= (1 << (size * 8)):
                raise _arg_error(
                    "pack", arg, "string length does not fit in given size"
                )
            out += _int_bytes(len(data), size, spec.little, False)
            out += data
            total += len(data)
        elif kind is _Kind.ZSTR:
            value, arg = take("string")
            data = _check_string(value, arg, "pack")
            if 0 in data:
                raise _arg_error("pack", arg, "string contains zeros")
            out += data + b"\0"
            total += len(data) + 1
        elif kind is _Kind.PADDING:
            out.append(_PADBYTE)
    return bytes(out)


def packsize(fmt: Any) -> int:
    """Return the size of a string produced by ``pack`` with ``fmt``.

    Variable-length options (``s`` and ``z``) are rejected.
    """
    spec = _Format(fmt, "packsize")
    total = 0
    while spec.more():
        kind, size, ntoalign = spec.details(total)
        size += ntoalign
        if total > _MAXSIZE - size:
            raise _arg_error("packsize", 1, "format result too large")
        total += size
        if kind in (_Kind.STRING, _Kind.ZSTR):
            raise _arg_error("packsize", 1, "variable-length format")
    return total


def _unpack_int(chunk: bytes, little: bool, size: int, signed: bool) -> int:
    ordered = chunk if little else chunk[::-1]
    limit = min(size, _SZINT)
    res = int.from_bytes(ordered[:limit], "little")
    if size < _SZINT:
        if signed:
            mask = 1 << (size * 8 - 1)
            res = (res ^ mask) - mask
    elif size > _SZINT:
        negative = signed and res >= (1 << 63)
        fill = 0xFF if negative else 0
        if any(b != fill for b in ordered[limit:]):
            raise LuaError(f"{size}-byte integer does not fit into Lua Integer")
    res &= _MASK64
    return res - (1 << 64) if res >= (1 << 63) else res


def unpack(fmt: Any, data: Any, pos: Any = None) -> tuple:
    """Read values from ``data`` starting at 1-based ``pos``.

    Return the values followed by the position after the last byte read.
    """
    spec = _Format(fmt, "unpack")
    buf = _check_string(data, 2, "unpack")
    ld = len(buf)
    cur = posrelat(_opt_integer(pos, 3, "unpack", 1), ld) - 1
    if not 0 <= cur <= ld:
        raise _arg_error("unpack", 3, "initial position out of string")
    results: list[Any] = []
    while spec.more():
        kind, size, ntoalign = spec.details(cur)
        if cur + ntoalign + size > ld:
            raise _arg_error("unpack", 2, "data string too short")
        cur += ntoalign
        if kind in (_Kind.INT, _Kind.UINT):
            results.append(
                _unpack_int(buf[cur : cur + size], spec.little, size, kind is _Kind.INT)
            )
        elif kind is _Kind.FLOAT:
            results.append(
                struct.unpack(_float_code(size, spec.little), buf[cur : cur + size])[0]
            )
        elif kind is _Kind.CHAR:
            results.append(buf[cur : cur + size])
        elif kind is _Kind.STRING:
            n = _unpack_int(buf[cur : cur + size], spec.little, size, False)
            if n < 0 or cur + n + size > ld:
                raise _arg_error("unpack", 2, "data string too short")
            results.append(buf[cur + size : cur + size + n])
            cur += n
        elif kind is _Kind.ZSTR:
            end = buf.find(b"\0", cur)
            if end < 0:
                end = ld
            results.append(buf[cur:end])
            cur = end + 1
        cur += size
    return (*results, cur + 1)