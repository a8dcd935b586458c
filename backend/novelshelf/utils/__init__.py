"""Utility modules for the novelshelf backend."""

from .text import (
    collapse_blank_lines,
    collapse_whitespace,
    decode_entities,
    safe_truncate,
    strip_tags,
)

__all__ = [
    "collapse_blank_lines",
    "collapse_whitespace",
    "decode_entities",
    "safe_truncate",
    "strip_tags",
]
