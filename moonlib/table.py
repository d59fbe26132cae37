"""Hybrid array/hash tables with the classic sizing and boundary rules.

Positive integer keys may live in an array part whose size is the largest
power of two ``n`` such that more than half of the slots ``1..n`` are in
use.  Other keys live in a hash part with a power-of-two capacity.  When
the hash part is full, the table is rehashed and both parts are resized.
Traversal visits the array part first, then the hash part.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from moonlib.values import LuaError, _INT_LIMIT, _INT_MIN

MAXABITS = 31
MAXASIZE = 1 << MAXABITS
MAXHBITS = MAXABITS - 1
_MAXINTEGER = _INT_LIMIT - 1


def _ceillog2(x: int) -> int:
    return (x - 1).bit_length()


def _is_array_key(key: Any) -> bool:
    return isinstance(key, int) and not isinstance(key, bool) and 0 < key <= MAXASIZE


def _int_hkey(k: int) -> tuple:
    return ("i", k)


def _canonical(key: Any, strict: bool) -> tuple[Any, Any] | None:
    """Return ``(stored key, lookup key)``, or None for a key that cannot exist."""
    if key is None:
        if strict:
            raise LuaError("table index is nil")
        return None
    if isinstance(key, bool):
        return key, ("b", key)
    if isinstance(key, int):
        return key, _int_hkey(key)
    if isinstance(key, float):
        if math.isnan(key):
            if strict:
                raise LuaError("table index is NaN")
            return None
        if key.is_integer() and _INT_MIN <= key < _INT_LIMIT:
            k = int(key)
            return k, _int_hkey(k)
        return key, ("f", key)
    if isinstance(key, str):
        return key, ("s", key.encode("utf-8"))
    if isinstance(key, (bytes, bytearray)):
        return key, ("s", bytes(key))
    try:
        hash(key)
    except TypeError:
        return key, ("id", id(key))
    return key, ("o", key)


def _node_capacity(size: int) -> int:
    if size <= 0:
        return 0
    lsize = _ceillog2(size)
    if lsize > MAXHBITS:
        raise LuaError("table overflow")
    return 1 << lsize


def _compute_sizes(nums: list[int], count: int) -> tuple[int, int]:
    """Return the optimal array size and the number of keys that go there."""
    a = 0
    na = 0
    optimal = 0
    twotoi = 1
    for n in nums:
        if count <= twotoi // 2:
            break
        if n > 0:
            a += n
            if a > twotoi // 2:
                optimal = twotoi
                na = a
        twotoi *= 2
    return optimal, na


@dataclass
class _Node:
    key: Any
    hkey: Any
    value: Any


class LuaTable:
    """A table with an array part and a hash part."""

    lua_type = "table"

    def __init__(self, array_size: int = 0, hash_size: int = 0) -> None:
        self.metatable: Any = None
        self._array: list[Any] = [None] * array_size
        self._nodes: list[_Node] = []
        self._index: dict[Any, int] = {}
        self._capacity = _node_capacity(hash_size)

    def __repr__(self) -> str:
        return (
            f"LuaTable(array={len(self._array)}, "
            f"hash={self._capacity}, used={len(self._nodes)})"
        )

    def _getint(self, k: int) -> Any:
        if 1 <= k <= len(self._array):
            return self._array[k - 1]
        pos = self._index.get(_int_hkey(k))
        return None if pos is None else self._nodes[pos].value

    def get(self, key: Any) -> Any:
        """Return the value stored under ``key``, or None."""
        canon = _canonical(key, strict=False)
        if canon is None:
            return None
        stored, hkey = canon
        if _is_array_key(stored) and stored <= len(self._array):
            return self._array[stored - 1]
        pos = self._index.get(hkey)
        return None if pos is None else self._nodes[pos].value

    def set(self, key: Any, value: Any) -> None:
        """Store ``value`` under ``key``; storing None removes the entry."""
        stored, hkey = _canonical(key, strict=True)
        self._store(stored, hkey, value)

    def _store(self, stored: Any, hkey: Any, value: Any) -> None:
        if _is_array_key(stored) and stored <= len(self._array):
            self._array[stored - 1] = value
            return
        pos = self._index.get(hkey)
        if pos is not None:
            self._nodes[pos].value = value
            return
        if value is None:
            return
        if len(self._nodes) >= self._capacity:
            self._rehash(stored)
            self._store(stored, hkey, value)
            return
        self._index[hkey] = len(self._nodes)
        self._nodes.append(_Node(stored, hkey, value))

    def _rehash(self, extra: Any) -> None:
        nums = [0] * (MAXABITS + 1)
        na = 0
        for i, value in enumerate(self._array, start=1):
            if value is not None:
                nums[_ceillog2(i)] += 1
                na += 1
        total = na
        for node in self._nodes:
            if node.value is not None:
                total += 1
                if _is_array_key(node.key):
                    nums[_ceillog2(node.key)] += 1
                    na += 1
        if _is_array_key(extra):
            nums[_ceillog2(extra)] += 1
            na += 1
        total += 1
        asize, na = _compute_sizes(nums, na)
        self.resize(asize, total - na)

    def resize(self, array_size: int, hash_size: int) -> None:
        """Resize both parts, moving entries where they now belong."""
        if array_size < 0 or hash_size < 0:
            raise LuaError("invalid table size")
        capacity = _node_capacity(hash_size)
        old_array = self._array
        old_nodes = self._nodes
        if array_size > len(old_array):
            self._array = old_array + [None] * (array_size - len(old_array))
        self._nodes = []
        self._index = {}
        self._capacity = capacity
        if array_size < len(old_array):
            self._array = old_array[:array_size]
            for i, value in enumerate(old_array[array_size:], start=array_size + 1):
                if value is not None:
                    self._store(i, _int_hkey(i), value)
        for node in reversed(old_nodes):
            if node.value is not None:
                self._store(node.key, node.hkey, node.value)

    def _unbound_search(self, j: int) -> int:
        i = j
        j += 1
        while self._getint(j) is not None:
            i = j
            if j > _MAXINTEGER // 2:
                i = 1
                while self._getint(i) is not None:
                    i += 1
                return i - 1
            j *= 2
        while j - i > 1:
            m = (i + j) // 2
            if self._getint(m) is None:
                j = m
            else:
                i = m
        return i

    def length(self) -> int:
        """Return a border: an index ``n`` with ``t[n]`` set and ``t[n+1]`` nil."""
        j = len(self._array)
        if j > 0 and self._array[j - 1] is None:
            i = 0
            while j - i > 1:
                m = (i + j) // 2
                if self._array[m - 1] is None:
                    j = m
                else:
                    i = m
            return i
        if self._capacity == 0:
            return j
        return self._unbound_search(j)

    def next(self, key: Any) -> tuple[Any, Any] | None:
        """Return the entry after ``key`` in traversal order, or None at the end.

        A ``key`` of None starts the traversal.
        """
        size = len(self._array)
        if key is None:
            i = 0
        else:
            canon = _canonical(key, strict=False)
            if canon is None:
                raise LuaError("invalid key to 'next'")
            stored, hkey = canon
            if _is_array_key(stored) and stored <= size:
                i = stored
            else:
                pos = self._index.get(hkey)
                if pos is None:
                    raise LuaError("invalid key to 'next'")
                i = pos + 1 + size
        for idx in range(i, size):
            if self._array[idx] is not None:
                return idx + 1, self._array[idx]
        for node in self._nodes[max(i - size, 0) :]:
            if node.value is not None:
                return node.key, node.value
        return None

    def items(self) -> Iterator[tuple[Any, Any]]:
        """Iterate over ``(key, value)`` pairs in traversal order."""
        key = None
        while True:
            entry = self.next(key)
            if entry is None:
                return
            yield entry
            key = entry[0]