import struct

import pytest

from moonlib.undump import LocalVar, Prototype, Upvalue, undump
from moonlib.values import LuaError

DATA = b"\x19\x93\r\n\x1a\n"


def _header(version=0x53, fmt=0, data=DATA, sizes=(4, 8, 4, 8, 8), check_int=0x5678, check_num=370.5):
    return (
        b"\x1bLua"
        + bytes([version, fmt])
        + data
        + bytes(sizes)
        + struct.pack("=q", check_int)
        + struct.pack("=d", check_num)
    )


def _s(value):
    if value is None:
        return b"\x00"
    size = len(value) + 1
    if size < 0xFF:
        return bytes([size]) + value
    return b"\xff" + struct.pack("=Q", size) + value


def _const(value):
    if value is None:
        return b"\x00"
    if isinstance(value, bool):
        return b"\x01" + bytes([int(value)])
    if isinstance(value, int):
        return bytes([19]) + struct.pack("=q", value)
    if isinstance(value, float):
        return bytes([3]) + struct.pack("=d", value)
    return bytes([4 if len(value) <= 40 else 20]) + _s(value)


def _ints(values):
    return struct.pack("=i", len(values)) + b"".join(struct.pack("=i", v) for v in values)


def _function(
    source=b"@test.lua",
    line=0,
    last=0,
    params=0,
    vararg=1,
    stack=2,
    code=(),
    constants=(),
    upvalues=(),
    protos=(),
    lineinfo=(),
    locvars=(),
    upnames=(),
):
    out = _s(source) + struct.pack("=ii", line, last) + bytes([params, vararg, stack])
    out += struct.pack("=i", len(code)) + b"".join(struct.pack("=I", c) for c in code)
    out += struct.pack("=i", len(constants)) + b"".join(_const(k) for k in constants)
    out += struct.pack("=i", len(upvalues)) + b"".join(bytes([a, b]) for a, b in upvalues)
    out += struct.pack("=i", len(protos)) + b"".join(protos)
    out += _ints(list(lineinfo))
    out += struct.pack("=i", len(locvars))
    for name, start, end in locvars:
        out += _s(name) + struct.pack("=ii", start, end)
    out += struct.pack("=i", len(upnames)) + b"".join(_s(n) for n in upnames)
    return out


def _chunk(body, nup=1):
    return _header() + bytes([nup]) + body


def test_main_function_fields_round_trip():
    body = _function(line=0, last=0, params=2, vararg=1, stack=5, code=(7, 0x80000026), lineinfo=(1, 1))
    proto = undump(_chunk(body), "@test.lua")
    assert proto.source == b"@test.lua"
    assert proto.num_params == 2
    assert proto.is_vararg is True
    assert proto.max_stack_size == 5
    assert proto.code == [7, 0x80000026]
    assert proto.line_info == [1, 1]


def test_constants_of_every_kind():
    values = [None, True, False, 42, -7, 2.5, b"hi", b"x" * 300]
    proto = undump(_chunk(_function(constants=values)))
    assert proto.constants == values
    assert isinstance(proto.constants[3], int)
    assert isinstance(proto.constants[5], float)


def test_nested_prototype_inherits_source():
    child = _function(source=None, line=3, last=5)
    proto = undump(_chunk(_function(source=b"=chunk", protos=(child,))))
    assert len(proto.protos) == 1
    assert proto.protos[0].source == b"=chunk"
    assert proto.protos[0].line_defined == 3
    assert proto.protos[0].last_line_defined == 5


def test_upvalues_and_locals():
    body = _function(
        upvalues=((1, 0), (0, 3)),
        locvars=((b"x", 1, 4),),
        upnames=(b"_ENV", b"y"),
    )
    proto = undump(_chunk(body, nup=2))
    assert proto.upvalues == [Upvalue(True, 0, b"_ENV"), Upvalue(False, 3, b"y")]
    assert proto.local_vars == [LocalVar(b"x", 1, 4)]


def test_missing_upvalue_names_stay_none():
    proto = undump(_chunk(_function(upvalues=((1, 0),))))
    assert proto.upvalues[0].name is None


def test_result_is_prototype():
    proto = undump(_chunk(_function()))
    assert isinstance(proto, Prototype)
    assert proto.protos == [] and proto.constants == []


@pytest.mark.parametrize(
    "header, why",
    [
        (b"\x1bLux" + _header()[4:], "not a"),
        (_header(version=0x52), "version mismatch in"),
        (_header(fmt=1), "format mismatch in"),
        (_header(data=b"\x19\x93\r\n\x1a\r"), "corrupted"),
        (_header(sizes=(8, 8, 4, 8, 8)), "int size mismatch in"),
        (_header(sizes=(4, 4, 4, 8, 8)), "size_t size mismatch in"),
        (_header(sizes=(4, 8, 4, 8, 4)), "lua_Number size mismatch in"),
        (_header(check_int=0x7856), "endianness mismatch in"),
        (_header(check_num=1.0), "float format mismatch in"),
    ],
)
def test_header_errors(header, why):
    with pytest.raises(LuaError) as info:
        undump(header + b"\x01" + _function(), "=stdin")
    assert str(info.value) == f"stdin: {why} precompiled chunk"


def test_truncated_chunk():
    chunk = _chunk(_function(code=(1, 2, 3)))
    with pytest.raises(LuaError) as info:
        undump(chunk[:-5], "@file.lua")
    assert str(info.value) == "file.lua: truncated precompiled chunk"


def test_binary_name_is_reported_generically():
    with pytest.raises(LuaError) as info:
        undump(b"\x1bLua", "\x1bLua")
    assert str(info.value) == "binary string: truncated precompiled chunk"


def test_plain_name_is_kept():
    with pytest.raises(LuaError) as info:
        undump(b"", "chunkname")
    assert str(info.value).startswith("chunkname: ")