"""Shared helpers for backends."""

from __future__ import annotations


def escape_string(value: str) -> str:
    """Escape a string for use in a string literal (without quotes)."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
        .replace("\f", "\\f")
        .replace("\v", "\\v")
        .replace("\x00", "\\x00")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def string_literal(value: str) -> str:
    return '"' + escape_string(value) + '"'


def number_literal(value: int | float) -> str:
    """Numeric source text; negatives are parenthesized so they nest safely."""
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e16:
            text = str(int(value))
        else:
            text = repr(value)
    else:
        text = str(value)
    if value < 0:
        return "(" + text + ")"
    return text
