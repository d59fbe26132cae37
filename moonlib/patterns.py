"""Pattern matching over byte strings: find, match, gmatch and gsub.

Patterns use the classic scripting-language syntax (``%a``, ``[...]``,
``*``, ``+``, ``-``, ``?``, ``%b``, ``%f``, captures and back-references).
Captures come back as ``bytes``, except position captures, which are
1-based integers.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from moonlib.strfuncs import _check_string, _opt_integer, posrelat
from moonlib.values import LuaError, _truthy, type_name

MAXCAPTURES = 32
MAXCCALLS = 200

_CAP_UNFINISHED = -1
_CAP_POSITION = -2

_ESC = ord("%")
_SPECIALS = frozenset(b"^$*+?.([%-")

_DIGIT = frozenset(range(ord("0"), ord("9") + 1))
_UPPER = frozenset(range(ord("A"), ord("Z") + 1))
_LOWER = frozenset(range(ord("a"), ord("z") + 1))
_ALPHA = _UPPER | _LOWER
_ALNUM = _ALPHA | _DIGIT
_SPACE = frozenset(b" \t\n\v\f\r")
_CNTRL = frozenset(range(32)) | {127}
_GRAPH = frozenset(range(33, 127))
_PUNCT = _GRAPH - _ALNUM
_XDIGIT = _DIGIT | frozenset(b"abcdefABCDEF")

_CLASSES = {
    ord("a"): _ALPHA,
    ord("c"): _CNTRL,
    ord("d"): _DIGIT,
    ord("g"): _GRAPH,
    ord("l"): _LOWER,
    ord("p"): _PUNCT,
    ord("s"): _SPACE,
    ord("u"): _UPPER,
    ord("w"): _ALNUM,
    ord("x"): _XDIGIT,
    ord("z"): frozenset({0}),
}


def _match_class(c: int, cl: int) -> bool:
    key = cl + 32 if cl in _UPPER else cl
    members = _CLASSES.get(key)
    if members is None:
        return cl == c
    res = c in members
    return res if cl in _LOWER else not res


class _MatchState:
    """State of one matching attempt of a pattern against a subject."""

    def __init__(self, src: bytes, pat: bytes) -> None:
        self.src = src
        self.pat = pat
        self.depth = MAXCCALLS
        self.capture: list[list[int]] = []

    def reset(self) -> None:
        self.capture = []

    def _p(self, i: int) -> int:
        return self.pat[i] if i < len(self.pat) else 0

    def _s(self, i: int) -> int:
        return self.src[i] if i < len(self.src) else 0

    def check_capture(self, l: int) -> int:
        l -= ord("1")
        if l < 0 or l >= len(self.capture) or self.capture[l][1] == _CAP_UNFINISHED:
            raise LuaError(f"invalid capture index %{l + 1}")
        return l

    def capture_to_close(self) -> int:
        for level in range(len(self.capture) - 1, -1, -1):
            if self.capture[level][1] == _CAP_UNFINISHED:
                return level
        raise LuaError("invalid pattern capture")

    def classend(self, p: int) -> int:
        pat = self.pat
        c = pat[p]
        p += 1
        if c == _ESC:
            if p >= len(pat):
                raise LuaError("malformed pattern (ends with '%')")
            return p + 1
        if c == ord("["):
            if self._p(p) == ord("^"):
                p += 1
            while True:
                if p >= len(pat):
                    raise LuaError("malformed pattern (missing ']')")
                c = pat[p]
                p += 1
                if c == _ESC and p < len(pat):
                    p += 1
                if self._p(p) == ord("]"):
                    break
            return p + 1
        return p

    def bracket(self, c: int, p: int, ec: int) -> bool:
        pat = self.pat
        sig = True
        if pat[p + 1] == ord("^"):
            sig = False
            p += 1
        p += 1
        while p < ec:
            if pat[p] == _ESC:
                p += 1
                if _match_class(c, pat[p]):
                    return sig
            elif self._p(p + 1) == ord("-") and p + 2 < ec:
                p += 2
                if pat[p - 2] <= c <= pat[p]:
                    return sig
            elif pat[p] == c:
                return sig
            p += 1
        return not sig

    def single(self, s: int, p: int, ep: int) -> bool:
        if s >= len(self.src):
            return False
        c = self.src[s]
        pc = self.pat[p]
        if pc == ord("."):
            return True
        if pc == _ESC:
            return _match_class(c, self.pat[p + 1])
        if pc == ord("["):
            return self.bracket(c, p, ep - 1)
        return pc == c

    def balance(self, s: int, p: int) -> int | None:
        if p >= len(self.pat) - 1:
            raise LuaError("malformed pattern (missing arguments to '%b')")
        if self._s(s) != self.pat[p]:
            return None
        opening, closing = self.pat[p], self.pat[p + 1]
        cont = 1
        s += 1
        while s < len(self.src):
            c = self.src[s]
            if c == closing:
                cont -= 1
                if cont == 0:
                    return s + 1
            elif c == opening:
                cont += 1
            s += 1
        return None

    def max_expand(self, s: int, p: int, ep: int) -> int | None:
        i = 0
        while self.single(s + i, p, ep):
            i += 1
        while i >= 0:
            res = self.match(s + i, ep + 1)
            if res is not None:
                return res
            i -= 1
        return None

    def min_expand(self, s: int, p: int, ep: int) -> int | None:
        while True:
            res = self.match(s, ep + 1)
            if res is not None:
                return res
            if self.single(s, p, ep):
                s += 1
            else:
                return None

    def start_capture(self, s: int, p: int, what: int) -> int | None:
        if len(self.capture) >= MAXCAPTURES:
            raise LuaError("too many captures")
        self.capture.append([s, what])
        res = self.match(s, p)
        if res is None:
            self.capture.pop()
        return res

    def end_capture(self, s: int, p: int) -> int | None:
        l = self.capture_to_close()
        self.capture[l][1] = s - self.capture[l][0]
        res = self.match(s, p)
        if res is None:
            self.capture[l][1] = _CAP_UNFINISHED
        return res

    def match_capture(self, s: int, l: int) -> int | None:
        l = self.check_capture(l)
        init, size = self.capture[l]
        if size == _CAP_POSITION:
            return None
        if len(self.src) - s >= size and self.src[init : init + size] == self.src[s : s + size]:
            return s + size
        return None

    def match(self, s: int, p: int) -> int | None:
        if self.depth == 0:
            raise LuaError("pattern too complex")
        self.depth -= 1
        pend = len(self.pat)
        while p != pend:
            pc = self.pat[p]
            nxt = self._p(p + 1)
            if pc == ord("("):
                if nxt == ord(")"):
                    s = self.start_capture(s, p + 2, _CAP_POSITION)
                else:
                    s = self.start_capture(s, p + 1, _CAP_UNFINISHED)
                break
            if pc == ord(")"):
                s = self.end_capture(s, p + 1)
                break
            if pc == ord("$") and p + 1 == pend:
                s = s if s == len(self.src) else None
                break
            if pc == _ESC and nxt == ord("b"):
                s = self.balance(s, p + 2)
                if s is not None:
                    p += 4
                    continue
                break
            if pc == _ESC and nxt == ord("f"):
                p += 2
                if self._p(p) != ord("["):
                    raise LuaError("missing '[' after '%f' in pattern")
                ep = self.classend(p)
                previous = 0 if s == 0 else self.src[s - 1]
                if not self.bracket(previous, p, ep - 1) and self.bracket(
                    self._s(s), p, ep - 1
                ):
                    p = ep
                    continue
                s = None
                break
            if pc == _ESC and nxt in _DIGIT:
                s = self.match_capture(s, nxt)
                if s is not None:
                    p += 2
                    continue
                break
            ep = self.classend(p)
            suffix = self._p(ep)
            if not self.single(s, p, ep):
                if suffix in (ord("*"), ord("?"), ord("-")):
                    p = ep + 1
                    continue
                s = None
                break
            if suffix == ord("?"):
                res = self.match(s + 1, ep + 1)
                if res is not None:
                    s = res
                    break
                p = ep + 1
                continue
            if suffix == ord("+"):
                s = self.max_expand(s + 1, p, ep)
                break
            if suffix == ord("*"):
                s = self.max_expand(s, p, ep)
                break
            if suffix == ord("-"):
                s = self.min_expand(s, p, ep)
                break
            s += 1
            p = ep
        self.depth += 1
        return s

    def one_capture(self, i: int, s: int, e: int) -> bytes | int:
        if i >= len(self.capture):
            if i == 0:
                return self.src[s:e]
            raise LuaError(f"invalid capture index %{i + 1}")
        init, size = self.capture[i]
        if size == _CAP_UNFINISHED:
            raise LuaError("unfinished capture")
        if size == _CAP_POSITION:
            return init + 1
        return self.src[init : init + size]

    def captures(self, s: int, e: int, whole: bool) -> tuple[bytes | int, ...]:
        count = 1 if not self.capture and whole else len(self.capture)
        return tuple(self.one_capture(i, s, e) for i in range(count))


def _has_specials(pat: bytes) -> bool:
    return any(c in _SPECIALS for c in pat)


def _find_aux(s: Any, pattern: Any, init: Any, plain: Any, find: bool) -> tuple | None:
    fname = "find" if find else "match"
    src = _check_string(s, 1, fname)
    pat = _check_string(pattern, 2, fname)
    size = len(src)
    start = posrelat(_opt_integer(init, 3, fname, 1), size)
    if start < 1:
        start = 1
    elif start > size + 1:
        return None
    if find and (_truthy(plain) or not _has_specials(pat)):
        idx = src.find(pat, start - 1)
        if idx < 0:
            return None
        return (idx + 1, idx + len(pat))
    anchor = pat[:1] == b"^"
    if anchor:
        pat = pat[1:]
    ms = _MatchState(src, pat)
    s1 = start - 1
    while True:
        ms.reset()
        res = ms.match(s1, 0)
        if res is not None:
            if find:
                return (s1 + 1, res, *ms.captures(s1, res, False))
            return ms.captures(s1, res, True)
        if anchor or s1 >= size:
            return None
        s1 += 1


def find(s: Any, pattern: Any, init: Any = None, plain: Any = False) -> tuple | None:
    """Return ``(start, end, *captures)`` of the first match, or None."""
    return _find_aux(s, pattern, init, plain, True)


def match(s: Any, pattern: Any, init: Any = None) -> tuple | None:
    """Return the captures of the first match (the whole match if none), or None."""
    return _find_aux(s, pattern, init, None, False)


def _gmatch_iter(src: bytes, pat: bytes) -> Iterator[tuple]:
    ms = _MatchState(src, pat)
    start = 0
    last: int | None = None
    while True:
        for pos in range(start, len(src) + 1):
            ms.reset()
            e = ms.match(pos, 0)
            if e is not None and e != last:
                start = last = e
                yield ms.captures(pos, e, True)
                break
        else:
            return


def gmatch(s: Any, pattern: Any) -> Iterator[tuple]:
    """Iterate over successive matches, yielding the captures of each."""
    src = _check_string(s, 1, "gmatch")
    pat = _check_string(pattern, 2, "gmatch")
    return _gmatch_iter(src, pat)


def _to_bytes(value: bytes | int) -> bytes:
    return value if isinstance(value, bytes) else str(value).encode("ascii")


def _substitute(ms: _MatchState, news: bytes, s: int, e: int) -> bytes:
    out = bytearray()
    i = 0
    while i < len(news):
        c = news[i]
        if c != _ESC:
            out.append(c)
            i += 1
            continue
        i += 1
        d = news[i] if i < len(news) else 0
        if d not in _DIGIT:
            if d != _ESC:
                raise LuaError("invalid use of '%' in replacement string")
            out.append(d)
        elif d == ord("0"):
            out += ms.src[s:e]
        else:
            out += _to_bytes(ms.one_capture(d - ord("1"), s, e))
        i += 1
    return bytes(out)


def _table_get(table: Any, key: Any) -> Any:
    if isinstance(table, list):
        if isinstance(key, int) and 1 <= key <= len(table):
            return table[key - 1]
        return None
    return table.get(key)


def _replacement(ms: _MatchState, repl: Any, kind: str, s: int, e: int) -> bytes:
    if kind in ("string", "number"):
        return _substitute(ms, _check_string(repl, 3, "gsub"), s, e)
    if kind == "function":
        value = repl(*ms.captures(s, e, True))
    else:
        value = _table_get(repl, ms.one_capture(0, s, e))
    if not _truthy(value):
        return ms.src[s:e]
    if type_name(value) not in ("string", "number"):
        raise LuaError(f"invalid replacement value (a {type_name(value)})")
    return _check_string(value, 3, "gsub")


def gsub(s: Any, pattern: Any, repl: Any, max_n: Any = None) -> tuple[bytes, int]:
    """Replace matches of ``pattern``; return the new string and the count.

    ``repl`` may be a string (with ``%0``-``%9`` references), a number,
    a callable receiving the captures, or a table keyed by the first capture.
    """
    src = _check_string(s, 1, "gsub")
    pat = _check_string(pattern, 2, "gsub")
    kind = type_name(repl)
    limit = _opt_integer(max_n, 4, "gsub", len(src) + 1)
    if kind not in ("string", "number", "function", "table") or (
        kind == "table" and not isinstance(repl, (Mapping, list)) and not hasattr(repl, "get")
    ):
        raise LuaError("bad argument #3 to 'gsub' (string/function/table expected)")
    anchor = pat[:1] == b"^"
    if anchor:
        pat = pat[1:]
    ms = _MatchState(src, pat)
    out = bytearray()
    pos = 0
    last: int | None = None
    count = 0
    while count < limit:
        ms.reset()
        e = ms.match(pos, 0)
        if e is not None and e != last:
            count += 1
            out += _replacement(ms, repl, kind, pos, e)
            pos = last = e
        elif pos < len(src):
            out.append(src[pos])
            pos += 1
        else:
            break
        if anchor:
            break
    out += src[pos:]
    return bytes(out), count