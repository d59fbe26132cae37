"""Byte-string, pattern, format, pack, UTF-8, table and precompiled-chunk routines."""

__version__ = "0.1.0"
__all__ = [
    "values",
    "strfuncs",
    "patterns",
    "undump",
    "formatting",
    "utf8lib",
    "packing",
    "table",
    "tablelib",
]