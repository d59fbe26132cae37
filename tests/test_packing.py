import math

import pytest

from moonlib.packing import pack, packsize, unpack
from moonlib.values import LuaError


def test_little_endian_int_bytes():
    assert pack("<i4", 1) == b"\x01\x00\x00\x00"


def test_big_endian_is_reverse_of_little():
    little = pack("<i8", 0x0102030405060708)
    big = pack(">i8", 0x0102030405060708)
    assert big == little[::-1]


def test_zero_terminated_string_bytes():
    assert pack("z", "abc") == b"abc\x00"


def test_padding_option_inserts_zero_byte():
    assert pack("bxb", 1, 2) == b"\x01\x00\x02"


@pytest.mark.parametrize(
    "fmt,value",
    [
        ("<b", -128),
        ("<B", 255),
        ("<h", -32768),
        (">H", 65535),
        ("<i3", -5),
        (">I3", 70000),
        ("<j", -(2**63)),
        ("<J", 2**63 - 1),
        ("<l", 123456789),
        ("<i16", -2),
        (">i16", 2**62),
    ],
)
def test_integer_round_trip(fmt, value):
    data = pack(fmt, value)
    assert unpack(fmt, data) == (value, len(data) + 1)


def test_sixteen_byte_negative_is_sign_extended():
    assert pack("<i16", -1) == b"\xff" * 16


def test_unsigned_64_wraps_to_negative():
    assert unpack("<J", b"\xff" * 8)[0] == -1


@pytest.mark.parametrize("fmt,value", [("<d", 1.5), (">f", 0.25), ("<n", -3.75)])
def test_float_round_trip(fmt, value):
    data = pack(fmt, value)
    assert unpack(fmt, data)[0] == value


def test_float_overflow_becomes_infinity():
    value = unpack("<f", pack("<f", 1e300))[0]
    assert math.isinf(value) and value > 0


def test_strings_round_trip():
    data = pack("s1zc5", "hello", "world", "ab")
    assert unpack("s1zc5", data) == (b"hello", b"world", b"ab\x00\x00\x00", len(data) + 1)


def test_length_prefixed_string_layout():
    assert pack("s1", "hi") == b"\x02hi"


def test_packsize_matches_pack_length_with_alignment():
    fmt = "!4 b i4 h d"
    data = pack(fmt, 1, 2, 3, 4.0)
    assert len(data) == packsize(fmt)
    assert unpack(fmt, data)[:4] == (1, 2, 3, 4.0)


def test_alignment_option_x_aligns_total():
    size = packsize("!8 b Xi8")
    assert size % 8 == 0
    assert size >= 1


def test_unpack_from_position():
    data = pack("<i2i2", 1, 2)
    assert unpack("<i2", data, 3) == (2, len(data) + 1)
    assert unpack("<i2", data, -2) == (2, len(data) + 1)


def test_unpack_zstring_then_byte():
    data = b"hi\x00\x07"
    assert unpack("zB", data) == (b"hi", 7, len(data) + 1)


def test_integral_size_out_of_limits():
    with pytest.raises(LuaError, match="out of limits"):
        pack("i17", 1)


def test_integer_overflow():
    with pytest.raises(LuaError, match="integer overflow"):
        pack("b", 200)


def test_unsigned_overflow():
    with pytest.raises(LuaError, match="unsigned overflow"):
        pack("B", -1)


def test_packsize_rejects_variable_length():
    with pytest.raises(LuaError, match="variable-length format"):
        packsize("s")


def test_data_string_too_short():
    with pytest.raises(LuaError, match="data string too short"):
        unpack("i4", b"\x00")


def test_missing_size_for_c():
    with pytest.raises(LuaError, match="missing size"):
        pack("c", "x")


def test_invalid_option():
    with pytest.raises(LuaError, match="invalid format option 'y'"):
        pack("y")


def test_invalid_next_option_for_x():
    with pytest.raises(LuaError, match="invalid next option"):
        packsize("Xc1")


def test_alignment_not_power_of_two():
    with pytest.raises(LuaError, match="not power of 2"):
        pack("!3 i4", 1)


def test_string_longer_than_size():
    with pytest.raises(LuaError, match="string longer than given size"):
        pack("c2", "abc")


def test_zstring_with_zeros():
    with pytest.raises(LuaError, match="contains zeros"):
        pack("z", "a\0b")


def test_wide_integer_does_not_fit():
    with pytest.raises(LuaError, match="does not fit"):
        unpack("<i16", b"\x00" * 8 + b"\x01" + b"\x00" * 7)


def test_initial_position_out_of_string():
    with pytest.raises(LuaError, match="initial position out of string"):
        unpack("i2", b"ab", 4)


def test_missing_argument():
    with pytest.raises(LuaError, match="no value"):
        pack("i4")