"""Table manipulation: insert, remove, move, concat, pack, unpack and sort.

Operations work on ``LuaTable`` instances and on any value whose metatable
supplies the needed ``__index``, ``__newindex`` and ``__len`` handlers.
Element access honours those metamethods, as the library functions do.
"""

from __future__ import annotations

import random
from typing import Any, Callable

from moonlib.strfuncs import _check_integer, _check_string, _opt_integer
from moonlib.table import LuaTable
from moonlib.values import (
    LuaError,
    TagMethod,
    _INT_LIMIT,
    _tointeger,
    _truthy,
    call_order_tm,
    get_tag_method,
    obj_type_name,
    type_name,
)

_READ = 1
_WRITE = 2
_LENGTH = 4

_MAXINTEGER = _INT_LIMIT - 1
_INT_MAX = 2**31 - 1
_MAXSTACK = 1_000_000
_RANLIMIT = 100


def _arg_error(fname: str, arg: int, message: str) -> LuaError:
    return LuaError(f"bad argument #{arg} to '{fname}' ({message})")


def _checktab(value: Any, arg: int, what: int, fname: str) -> None:
    """Require a table, or a value with the metamethods for ``what``."""
    if isinstance(value, LuaTable):
        return
    needed = []
    if what & _READ:
        needed.append(TagMethod.INDEX)
    if what & _WRITE:
        needed.append(TagMethod.NEWINDEX)
    if what & _LENGTH:
        needed.append(TagMethod.LEN)
    if getattr(value, "metatable", None) is not None and all(
        get_tag_method(value, event) is not None for event in needed
    ):
        return
    raise _arg_error(fname, arg, f"table expected, got {obj_type_name(value)}")


def _get(t: Any, key: Any) -> Any:
    """Read ``t[key]``, following ``__index`` where the raw value is absent."""
    while True:
        if isinstance(t, LuaTable):
            value = t.get(key)
            if value is not None:
                return value
            handler = get_tag_method(t, TagMethod.INDEX)
            if handler is None:
                return None
        else:
            handler = get_tag_method(t, TagMethod.INDEX)
            if handler is None:
                raise LuaError(f"attempt to index a {obj_type_name(t)} value")
        if callable(handler) and not isinstance(handler, LuaTable):
            return handler(t, key)
        t = handler


def _set(t: Any, key: Any, value: Any) -> None:
    """Write ``t[key] = value``, following ``__newindex`` for absent keys."""
    while True:
        if isinstance(t, LuaTable):
            handler = None
            if t.get(key) is None:
                handler = get_tag_method(t, TagMethod.NEWINDEX)
            if handler is None:
                t.set(key, value)
                return
        else:
            handler = get_tag_method(t, TagMethod.NEWINDEX)
            if handler is None:
                raise LuaError(f"attempt to index a {obj_type_name(t)} value")
        if callable(handler) and not isinstance(handler, LuaTable):
            handler(t, key, value)
            return
        t = handler


def _len(t: Any) -> int:
    """Return the length of ``t`` as an integer, using ``__len`` if present."""
    handler = get_tag_method(t, TagMethod.LEN)
    if handler is not None:
        result = _tointeger(handler(t))
        if result is None:
            raise LuaError("object length is not an integer")
        return result
    if isinstance(t, LuaTable):
        return t.length()
    if type_name(t) == "string":
        return len(_check_string(t, 1, "len"))
    raise LuaError(f"attempt to get length of a {obj_type_name(t)} value")


def _aux_getn(t: Any, what: int, fname: str) -> int:
    _checktab(t, 1, what | _LENGTH, fname)
    return _len(t)


def insert(t: Any, *args: Any) -> None:
    """Insert a value at the end, or at a position, shifting elements up.

    Called as ``insert(t, value)`` or ``insert(t, pos, value)``.
    """
    e = _aux_getn(t, _READ | _WRITE, "insert") + 1
    if len(args) == 1:
        pos = e
        value = args[0]
    elif len(args) == 2:
        pos = _check_integer(args[0], 2, "insert")
        value = args[1]
        if not 1 <= pos <= e:
            raise _arg_error("insert", 2, "position out of bounds")
        for i in range(e, pos, -1):
            _set(t, i, _get(t, i - 1))
    else:
        raise LuaError("wrong number of arguments to 'insert'")
    _set(t, pos, value)


def remove(t: Any, pos: Any = None) -> Any:
    """Remove and return the element at ``pos`` (default: the last one)."""
    size = _aux_getn(t, _READ | _WRITE, "remove")
    position = _opt_integer(pos, 2, "remove", size)
    if position != size and not 1 <= position <= size + 1:
        raise _arg_error("remove", 1, "position out of bounds")
    result = _get(t, position)
    while position < size:
        _set(t, position, _get(t, position + 1))
        position += 1
    _set(t, position, None)
    return result


def move(a1: Any, f: Any, e: Any, t: Any, a2: Any = None) -> Any:
    """Copy ``a1[f..e]`` into ``a2[t..]`` (``a2`` defaults to ``a1``).

    Return the destination table.
    """
    first = _check_integer(f, 2, "move")
    last = _check_integer(e, 3, "move")
    target = _check_integer(t, 4, "move")
    dest = a1 if a2 is None else a2
    _checktab(a1, 1, _READ, "move")
    _checktab(dest, 1 if a2 is None else 5, _WRITE, "move")
    if last >= first:
        if not (first > 0 or last < _MAXINTEGER + first):
            raise _arg_error("move", 3, "too many elements to move")
        n = last - first + 1
        if target > _MAXINTEGER - n + 1:
            raise _arg_error("move", 4, "destination wrap around")
        if target > last or target <= first or dest is not a1:
            order = range(n)
        else:
            order = range(n - 1, -1, -1)
        for i in order:
            _set(dest, target + i, _get(a1, first + i))
    return dest


def _field(t: Any, i: int) -> bytes:
    value = _get(t, i)
    if type_name(value) not in ("string", "number") or isinstance(value, bool):
        raise LuaError(
            f"invalid value (at index {i}) in table for 'concat'"
            if False
            else f"invalid value ({obj_type_name(value)}) at index {i} in table for 'concat'"
        )
    return _check_string(value, 1, "concat")


def concat(t: Any, sep: Any = None, i: Any = None, j: Any = None) -> bytes:
    """Join the strings or numbers ``t[i..j]`` with ``sep`` between them."""
    last = _aux_getn(t, _READ, "concat")
    separator = b"" if sep is None else _check_string(sep, 2, "concat")
    first = _opt_integer(i, 3, "concat", 1)
    last = _opt_integer(j, 4, "concat", last)
    if first > last:
        return b""
    return separator.join(_field(t, k) for k in range(first, last + 1))


def pack(*args: Any) -> LuaTable:
    """Return a table holding the arguments at ``1..n`` and their count in ``n``."""
    result = LuaTable(len(args), 1)
    for i, value in enumerate(args, start=1):
        result.set(i, value)
    result.set("n", len(args))
    return result


def unpack(t: Any, i: Any = None, j: Any = None) -> tuple:
    """Return the elements ``t[i..j]`` (default ``1..#t``) as a tuple."""
    first = _opt_integer(i, 2, "unpack", 1)
    last = _len(t) if j is None else _check_integer(j, 3, "unpack")
    if first > last:
        return ()
    n = last - first
    if n >= _INT_MAX or n + 1 > _MAXSTACK:
        raise LuaError("too many results to unpack")
    return tuple(_get(t, k) for k in range(first, last + 1))


def _as_bytes(value: Any) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _less_than(a: Any, b: Any) -> bool:
    if _is_number(a) and _is_number(b):
        return a < b
    if type_name(a) == "string" and type_name(b) == "string":
        return _as_bytes(a) < _as_bytes(b)
    result = call_order_tm(a, b, TagMethod.LT)
    if result is None:
        t1, t2 = obj_type_name(a), obj_type_name(b)
        if t1 == t2:
            raise LuaError(f"attempt to compare two {t1} values")
        raise LuaError(f"attempt to compare {t1} with {t2}")
    return result


class _Sorter:
    """Quicksort over ``t[1..n]`` using element reads and writes."""

    def __init__(self, t: Any, comp: Callable[[Any, Any], Any] | None) -> None:
        self.t = t
        self.comp = comp

    def lt(self, a: Any, b: Any) -> bool:
        if self.comp is None:
            return _less_than(a, b)
        return _truthy(self.comp(a, b))

    def get(self, i: int) -> Any:
        return _get(self.t, i)

    def set(self, i: int, value: Any) -> None:
        _set(self.t, i, value)

    def partition(self, lo: int, up: int, pivot: Any) -> int:
        i = lo
        j = up - 1
        while True:
            i += 1
            ai = self.get(i)
            while self.lt(ai, pivot):
                if i == up - 1:
                    raise LuaError("invalid order function for sorting")
                i += 1
                ai = self.get(i)
            j -= 1
            aj = self.get(j)
            while self.lt(pivot, aj):
                if j < i:
                    raise LuaError("invalid order function for sorting")
                j -= 1
                aj = self.get(j)
            if j < i:
                self.set(up - 1, ai)
                self.set(i, pivot)
                return i
            self.set(i, aj)
            self.set(j, ai)

    @staticmethod
    def choose_pivot(lo: int, up: int, rnd: int) -> int:
        r4 = (up - lo) // 4
        return rnd % (r4 * 2) + (lo + r4)

    def sort(self, lo: int, up: int, rnd: int) -> None:
        while lo < up:
            a_lo = self.get(lo)
            a_up = self.get(up)
            if self.lt(a_up, a_lo):
                self.set(lo, a_up)
                self.set(up, a_lo)
            if up - lo == 1:
                return
            if up - lo < _RANLIMIT or rnd == 0:
                p = (lo + up) // 2
            else:
                p = self.choose_pivot(lo, up, rnd)
            a_p = self.get(p)
            a_lo = self.get(lo)
            if self.lt(a_p, a_lo):
                self.set(p, a_lo)
                self.set(lo, a_p)
            else:
                a_up = self.get(up)
                if self.lt(a_up, a_p):
                    self.set(p, a_up)
                    self.set(up, a_p)
            if up - lo == 2:
                return
            pivot = self.get(p)
            self.set(p, self.get(up - 1))
            self.set(up - 1, pivot)
            p = self.partition(lo, up, pivot)
            if p - lo < up - p:
                self.sort(lo, p - 1, rnd)
                n = p - lo
                lo = p + 1
            else:
                self.sort(p + 1, up, rnd)
                n = up - p
                up = p - 1
            if up > lo and (up - lo) // 128 > n:
                rnd = random.getrandbits(32)


def sort(t: Any, comp: Any = None) -> None:
    """Sort ``t[1..#t]`` in place, using ``<`` or the ``comp(a, b)`` predicate."""
    n = _aux_getn(t, _READ | _WRITE, "sort")
    if n > 1:
        if n >= _INT_MAX:
            raise _arg_error("sort", 1, "array too big")
        if comp is not None and (
            not callable(comp) or type_name(comp) != "function"
        ):
            raise _arg_error(
                "sort", 2, f"function expected, got {obj_type_name(comp)}"
            )
        _Sorter(t, comp).sort(1, n, 0)