import string

import pytest

from moonlib.patterns import find, gmatch, gsub, match
from moonlib.values import LuaError


def test_plain_find_positions_slice_to_needle():
    subject = b"hello world"
    start, end = find(subject, b"o w")
    assert subject[start - 1 : end] == b"o w"
    assert start == subject.index(b"o w") + 1


def test_plain_flag_treats_specials_literally():
    subject = b"a.b+c"
    start, end = find(subject, b".b+", 1, True)
    assert subject[start - 1 : end] == b".b+"


def test_find_not_found_returns_none():
    assert find(b"abc", b"x") is None
    assert find(b"abc", b"%d") is None


def test_find_init_after_end_returns_none():
    assert find(b"abc", b"", 10) is None


def test_find_with_captures():
    subject = b"key=value"
    result = find(subject, b"(%w+)=(%w+)")
    assert result[0] == 1
    assert result[1] == len(subject)
    assert result[2:] == (b"key", b"value")


def test_find_negative_init_counts_from_end():
    subject = b"abcabc"
    result = find(subject, b"a", -3)
    assert result[0] == len(subject) - 2


def test_position_captures_bracket_match():
    subject = b"xyz"
    p1, p2 = match(subject, b"()y()")
    assert p2 == p1 + 1
    assert subject[p1 - 1 : p2 - 1] == b"y"


def test_anchor():
    assert match(b"xabc", b"^abc") is None
    assert match(b"abcx", b"^abc") == (b"abc",)


def test_dollar_anchor():
    assert match(b"abc", b"c$") == (b"c",)
    assert match(b"abc", b"b$") is None


def test_balanced_match():
    assert match(b"f(a(b)c) tail", b"%b()") == (b"(a(b)c)",)


def test_frontier():
    words = list(gmatch(b"THE (quick) fox", b"%f[%a]%a+"))
    assert words == [(b"THE",), (b"quick",), (b"fox",)]


def test_back_reference():
    assert match(b'say "hi" now', b"([\"'])(.-)%1") == (b'"', b"hi")


def test_lazy_and_greedy():
    assert match(b"<a><b>", b"<(.-)>") == (b"a",)
    assert match(b"<a><b>", b"<(.*)>") == (b"a><b",)


@pytest.mark.parametrize(
    "cls, predicate",
    [
        (b"%d", lambda b: b.isdigit()),
        (b"%a", lambda b: b.isalpha()),
        (b"%s", lambda b: b.isspace()),
        (b"%u", lambda b: b.isupper()),
        (b"%l", lambda b: b.islower()),
        (b"%w", lambda b: b.isalnum()),
        (b"%p", lambda b: b in string.punctuation.encode()),
        (b"%D", lambda b: not b.isdigit()),
    ],
)
def test_character_classes_agree_with_ascii(cls, predicate):
    for c in range(256):
        one = bytes([c])
        assert (match(one, cls) is not None) == predicate(one), c


def test_bracket_range_and_negation():
    assert match(b"xyz5", b"[a-z]+") == (b"xyz",)
    result, count = gsub(b"a1b2c3", b"[^%d]", b"")
    assert result == b"123"
    assert count == len(b"abc")


def test_gmatch_words():
    assert list(gmatch(b"one two  three", b"%a+")) == [(b"one",), (b"two",), (b"three",)]


def test_gmatch_captures():
    pairs = list(gmatch(b"a=1, b=2", b"(%w+)=(%w+)"))
    assert pairs == [(b"a", b"1"), (b"b", b"2")]


def test_gmatch_empty_matches_at_every_position():
    subject = b"abc"
    found = list(gmatch(subject, b"x*"))
    assert all(item == (b"",) for item in found)
    assert len(found) == len(subject) + 1


def test_gsub_documented_examples():
    assert gsub(b"hello world", b"(%w+)", b"%1 %1") == (b"hello hello world world", 2)
    assert gsub(b"hello world", b"%w+", b"%0 %0", 1) == (b"hello hello world", 1)
    assert gsub(b"hello world from Lua", b"(%w+)%s*(%w+)", b"%2 %1") == (
        b"world hello Lua from",
        2,
    )


def test_gsub_identity_with_whole_match():
    subject = b"some text, 42 here"
    assert gsub(subject, b"%w+", b"%0")[0] == subject


def test_gsub_function():
    assert gsub(b"a b", b"%a", lambda c: c.upper()) == (b"A B", 2)


def test_gsub_function_returning_false_keeps_original():
    subject = b"keep these words"
    assert gsub(subject, b"%a+", lambda w: False) == (subject, 3)


def test_gsub_table():
    result = gsub(b"$name is $unknown", b"%$(%w+)", {b"name": b"moon"})
    assert result == (b"moon is $unknown", 2)


def test_gsub_max_replacements():
    result, count = gsub(b"aaaa", b"a", b"b", 2)
    assert result == b"bbaa"
    assert count == 2


def test_gsub_anchored():
    assert gsub(b"aaa", b"^a", b"b") == (b"baa", 1)


def test_gsub_escaped_percent():
    assert gsub(b"x", b"x", b"%%") == (b"%", 1)


def test_str_input_is_encoded():
    assert find("hello", "l") == find(b"hello", b"l")


def test_invalid_replacement_string():
    with pytest.raises(LuaError, match="invalid use of '%'"):
        gsub(b"abc", b"b", b"%x")


def test_invalid_replacement_type():
    with pytest.raises(LuaError, match="string/function/table expected"):
        gsub(b"abc", b"b", True)


def test_invalid_replacement_value():
    with pytest.raises(LuaError, match="invalid replacement value"):
        gsub(b"abc", b"b", lambda c: {1: 2})


def test_pattern_too_complex():
    with pytest.raises(LuaError, match="pattern too complex"):
        match(b"a" * 300, b"a?" * 300)


def test_too_many_captures():
    with pytest.raises(LuaError, match="too many captures"):
        match(b"", b"()" * 33)