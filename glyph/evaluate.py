"""Compile-time values of literal expressions.

Integer families use exact Python ints; fractional families use floats.
Anything not computable from literals alone evaluates to UNKNOWN.
"""

from __future__ import annotations

import math

from .ast import (
    ArrayExpression,
    BinaryExpression,
    BooleanLiteral,
    CodepointLiteral,
    Expr,
    GlyphLiteral,
    NullLiteral,
    NumericLiteral,
    StringLiteral,
    UnaryExpression,
)
from .types import UNKNOWN, is_integral, is_number_value

# Exponents past this are left to run time rather than built as huge ints.
MAX_FOLD_EXPONENT = 1024

ARITHMETIC_OPS: frozenset[str] = frozenset({"+", "-", "*", "/", "%", "**"})
ORDER_OPS: frozenset[str] = frozenset({"<", "<=", ">", ">="})
EQUALITY_OPS: frozenset[str] = frozenset({"==", "!="})
LOGICAL_OPS: frozenset[str] = frozenset({"&&", "||"})


def static_value(expr: Expr) -> object:
    """The value of expr if it is built from literals only, else UNKNOWN.

    Array literals evaluate to a list whose elements may themselves be
    UNKNOWN; conversion checks then fall back to type rules per element.
    """
    match expr:
        case NumericLiteral() | BooleanLiteral() | StringLiteral() | GlyphLiteral():
            return expr.value
        case CodepointLiteral():
            return expr.value
        case NullLiteral():
            return None
        case ArrayExpression(elements=elements):
            return [static_value(e) for e in elements]
        case UnaryExpression(op=op, operand=operand):
            return unary_value(op, static_value(operand))
        case BinaryExpression(op=op, left=left, right=right):
            return binary_value(
                op, static_value(left), static_value(right), is_integral(expr.typ)
            )
        case _:
            return UNKNOWN


def unary_value(op: str, value: object) -> object:
    if op == "-" and is_number_value(value):
        assert isinstance(value, (int, float))
        return -value
    if op == "!" and isinstance(value, bool):
        return not value
    return UNKNOWN


def binary_value(op: str, left: object, right: object, integral: bool) -> object:
    """Apply op to two known values. integral selects exact integer semantics."""
    if left is UNKNOWN or right is UNKNOWN:
        return UNKNOWN
    if op in LOGICAL_OPS:
        if not isinstance(left, bool) or not isinstance(right, bool):
            return UNKNOWN
        if op == "&&":
            return left and right
        return left or right
    if op in EQUALITY_OPS:
        if isinstance(left, list) or isinstance(right, list):
            return UNKNOWN
        if is_number_value(left) != is_number_value(right):
            return UNKNOWN
        if op == "==":
            return left == right
        return left != right
    if op == "+" and isinstance(left, str) and isinstance(right, str):
        return left + right
    if not is_number_value(left) or not is_number_value(right):
        return UNKNOWN
    assert isinstance(left, (int, float)) and isinstance(right, (int, float))
    if op in ORDER_OPS:
        match op:
            case "<":
                return left < right
            case "<=":
                return left <= right
            case ">":
                return left > right
            case _:
                return left >= right
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        return _divide(left, right, integral)
    if op == "%":
        return _remainder(left, right)
    if op == "**":
        return _power(left, right)
    return UNKNOWN


def _divide(left: int | float, right: int | float, integral: bool) -> object:
    if right == 0:
        return UNKNOWN
    if integral and isinstance(left, int) and isinstance(right, int):
        if left % right == 0:
            return left // right
    return left / right


def _remainder(left: int | float, right: int | float) -> object:
    """Remainder takes the sign of the dividend, as in the generated JavaScript."""
    if right == 0:
        return UNKNOWN
    if isinstance(left, int) and isinstance(right, int):
        r = abs(left) % abs(right)
        if left < 0:
            return -r
        return r
    return math.fmod(left, right)


def _power(base: int | float, exponent: int | float) -> object:
    if abs(exponent) > MAX_FOLD_EXPONENT and abs(base) > 1:
        return UNKNOWN
    if base == 0 and exponent < 0:
        return UNKNOWN
    try:
        result = base**exponent
    except OverflowError:
        return UNKNOWN
    if isinstance(result, complex):
        return UNKNOWN
    return result
