# moonlib

Pure-Python routines for a small scripting-language runtime model:
byte-string functions, patterns, printf-style formatting, binary
`pack`/`unpack`, UTF-8 helpers, hybrid array/hash tables with a table
library, and a reader for precompiled chunks in the 5.3 binary format.

Strings are handled as `bytes` (`str` arguments are encoded as UTF-8 and
numbers are converted to text). Positions are 1-based and negative
positions count back from the end. Errors are raised as
`moonlib.values.LuaError`.

## Installation

```
pip install moonlib
```

## Modules

- `moonlib.values`: `LuaError`, the `TagMethod` enum of metamethod events,
  `type_name`, `obj_type_name`, `get_tag_method`, `try_binary_tm` and
  `call_order_tm`. Values are plain Python objects; other objects may carry
  a `lua_type` attribute and a `metatable` mapping of event names to handlers.
- `moonlib.strfuncs`: `posrelat`, `length`, `sub`, `reverse`, `lower`,
  `upper`, `rep`, `byte`, `char`.
- `moonlib.patterns`: `find`, `match`, `gmatch`, `gsub`.
- `moonlib.formatting`: `format`, `hexfloat`, `quote`.
- `moonlib.packing`: `pack`, `packsize`, `unpack`.
- `moonlib.utf8lib`: `char`, `codepoint`, `length`, `offset`, `codes`,
  and the `CHARPATTERN` constant.
- `moonlib.table`: `LuaTable` with `get`, `set`, `length`, `next`,
  `resize` and `items`.
- `moonlib.tablelib`: `insert`, `remove`, `move`, `concat`, `pack`,
  `unpack`, `sort`.
- `moonlib.undump`: `undump`, returning a `Prototype` with its `Upvalue`
  and `LocalVar` records.

## Examples

String functions:

```python
from moonlib import strfuncs

strfuncs.sub(b"hello world", 1, 5)     # b"hello"
strfuncs.rep(b"ab", 3, b"-")           # b"ab-ab-ab"
strfuncs.byte(b"ABC", 1, -1)           # (65, 66, 67)
```

Patterns:

```python
from moonlib import patterns

patterns.find(b"hello world", b"o w")                   # (5, 7)
patterns.match(b"key = value", b"(%w+)%s*=%s*(%w+)")    # (b"key", b"value")
list(patterns.gmatch(b"one two three", b"%a+"))         # [(b"one",), (b"two",), (b"three",)]
patterns.gsub(b"hello world", b"o", b"0")               # (b"hell0 w0rld", 2)
```

`gsub` also accepts a callable (called with the captures) or a table keyed
by the first capture as the replacement, and an optional maximum count.

Formatting and binary packing:

```python
from moonlib import formatting, packing

formatting.format(b"%5.2f|%q", 3.14159, b"a\nb")   # b' 3.14|"a\\\nb"'
formatting.hexfloat(1.0)                           # "0x1p+0"

data = packing.pack(b"<i4 z", 42, b"hi")           # b"*\x00\x00\x00hi\x00"
packing.unpack(b"<i4 z", data)                     # (42, b"hi", 8)
packing.packsize(b"i4 d")                          # 12
```

`unpack` returns the values followed by the position after the last byte
read. `packsize` rejects the variable-length options `s` and `z`.

UTF-8:

```python
from moonlib import utf8lib

utf8lib.char(72, 228, 8364)              # "Hä€".encode()
utf8lib.length("häh".encode())           # 3
list(utf8lib.codes("aé".encode()))       # [(1, 97), (2, 233)]
```

On an invalid sequence `length` returns `(None, position)` of the bad byte.

Tables and the table library:

```python
from moonlib.table import LuaTable
from moonlib import tablelib

t = tablelib.pack(3, 1, 2)
tablelib.sort(t)
tablelib.concat(t, b", ")   # b"1, 2, 3"
t.length()                  # 3
t.get("n")                  # 3

u = LuaTable()
u.set("x", 1)
list(u.items())             # [("x", 1)]
```

The table library honours `__index`, `__newindex` and `__len` handlers
found in a value's `metatable`.

Reading a precompiled chunk:

```python
from moonlib.undump import undump

with open("chunk.out", "rb") as fh:
    proto = undump(fh.read(), "=chunk.out")

proto.code, proto.constants, proto.protos
```

The chunk must use native byte order and the standard sizes (4-byte int
and instruction, 8-byte size_t, integer and float).

## What it does not do

There is no interpreter, compiler or command-line tool here: the package
cannot parse or run source code, cannot produce precompiled chunks, and
`undump` only decodes a chunk into `Prototype` records without executing
it. There is no function for dumping a function to a string.

## Running the tests

```
pip install -e ".[test]"
pytest
```