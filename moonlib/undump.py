"""Loader for precompiled chunks in the 5.3 binary format.

The chunk is read with native byte order and the standard sizes
(4-byte int and instruction, 8-byte size_t, integer and float).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Union

from moonlib.values import LuaError

SIGNATURE = b"\x1bLua"
LUAC_DATA = b"\x19\x93\r\n\x1a\n"
LUAC_INT = 0x5678
LUAC_NUM = 370.5
LUAC_VERSION = 5 * 16 + 3
LUAC_FORMAT = 0

_TNIL = 0
_TBOOLEAN = 1
_TNUMFLT = 3
_TNUMINT = 3 | (1 << 4)
_TSHRSTR = 4
_TLNGSTR = 4 | (1 << 4)

_SIZES = (
    ("int", 4),
    ("size_t", 8),
    ("Instruction", 4),
    ("lua_Integer", 8),
    ("lua_Number", 8),
)

Constant = Union[None, bool, int, float, bytes]


@dataclass
class Upvalue:
    """Description of an upvalue of a function prototype."""

    instack: bool
    index: int
    name: bytes | None = None


@dataclass
class LocalVar:
    """Debug information about a local variable."""

    name: bytes | None
    start_pc: int
    end_pc: int


@dataclass
class Prototype:
    """A loaded function prototype."""

    source: bytes | None = None
    line_defined: int = 0
    last_line_defined: int = 0
    num_params: int = 0
    is_vararg: bool = False
    max_stack_size: int = 0
    code: list[int] = field(default_factory=list)
    constants: list[Constant] = field(default_factory=list)
    upvalues: list[Upvalue] = field(default_factory=list)
    protos: list[Prototype] = field(default_factory=list)
    line_info: list[int] = field(default_factory=list)
    local_vars: list[LocalVar] = field(default_factory=list)


class _Loader:
    def __init__(self, data: bytes, name: str) -> None:
        self._data = bytes(data)
        self._pos = 0
        self._name = name

    def error(self, why: str) -> LuaError:
        return LuaError(f"{self._name}: {why} precompiled chunk")

    def block(self, size: int) -> bytes:
        if size < 0 or self._pos + size > len(self._data):
            raise self.error("truncated")
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def byte(self) -> int:
        return self.block(1)[0]

    def _unpack(self, fmt: str, size: int):
        return struct.unpack("=" + fmt, self.block(size))[0]

    def int_(self) -> int:
        return self._unpack("i", 4)

    def count(self) -> int:
        n = self.int_()
        if n < 0:
            raise self.error("corrupted")
        return n

    def size_t(self) -> int:
        return self._unpack("Q", 8)

    def integer(self) -> int:
        return self._unpack("q", 8)

    def number(self) -> float:
        return self._unpack("d", 8)

    def string(self) -> bytes | None:
        size = self.byte()
        if size == 0xFF:
            size = self.size_t()
        if size == 0:
            return None
        return self.block(size - 1)

    def literal(self, expected: bytes, why: str) -> None:
        if self.block(len(expected)) != expected:
            raise self.error(why)

    def header(self) -> None:
        self.literal(SIGNATURE, "not a")
        if self.byte() != LUAC_VERSION:
            raise self.error("version mismatch in")
        if self.byte() != LUAC_FORMAT:
            raise self.error("format mismatch in")
        self.literal(LUAC_DATA, "corrupted")
        for tname, size in _SIZES:
            if self.byte() != size:
                raise self.error(f"{tname} size mismatch in")
        if self.integer() != LUAC_INT:
            raise self.error("endianness mismatch in")
        if self.number() != LUAC_NUM:
            raise self.error("float format mismatch in")

    def constants(self) -> list[Constant]:
        result: list[Constant] = []
        for _ in range(self.count()):
            tag = self.byte()
            if tag == _TNIL:
                result.append(None)
            elif tag == _TBOOLEAN:
                result.append(bool(self.byte()))
            elif tag == _TNUMFLT:
                result.append(self.number())
            elif tag == _TNUMINT:
                result.append(self.integer())
            elif tag in (_TSHRSTR, _TLNGSTR):
                result.append(self.string())
            else:
                raise self.error("corrupted")
        return result

    def function(self, parent_source: bytes | None) -> Prototype:
        f = Prototype()
        source = self.string()
        f.source = parent_source if source is None else source
        f.line_defined = self.int_()
        f.last_line_defined = self.int_()
        f.num_params = self.byte()
        f.is_vararg = bool(self.byte())
        f.max_stack_size = self.byte()
        n = self.count()
        f.code = list(struct.unpack(f"={n}I", self.block(4 * n)))
        f.constants = self.constants()
        f.upvalues = [
            Upvalue(bool(self.byte()), self.byte()) for _ in range(self.count())
        ]
        f.protos = [self.function(f.source) for _ in range(self.count())]
        n = self.count()
        f.line_info = list(struct.unpack(f"={n}i", self.block(4 * n)))
        f.local_vars = [
            LocalVar(self.string(), self.int_(), self.int_())
            for _ in range(self.count())
        ]
        n = self.count()
        if n > len(f.upvalues):
            raise self.error("corrupted")
        for upvalue in f.upvalues[:n]:
            upvalue.name = self.string()
        return f


def _display_name(name: str) -> str:
    if name[:1] in ("@", "="):
        return name[1:]
    if name[:1] == SIGNATURE[:1].decode("latin-1"):
        return "binary string"
    return name


def undump(data: bytes, name: str = "=?") -> Prototype:
    """Load a precompiled chunk and return its main function prototype."""
    loader = _Loader(data, _display_name(name))
    loader.header()
    loader.byte()  # number of upvalues of the main closure
    return loader.function(None)