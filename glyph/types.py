"""Glyph type descriptors and the conversion oracle.

A type is a primitive tag, a sized numeric, or a composite built from
array-of, pointer-to, optional-of, or function-of. Descriptors are frozen
and compare structurally, so two independently built `[int32]` types are
equal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


# ============================================================
# DESCRIPTORS
# ============================================================


@dataclass(frozen=True)
class Type:
    """Base for all type descriptors."""


@dataclass(frozen=True)
class Primitive(Type):
    """bool, string, glyph, codepoint, void, any."""

    kind: str


@dataclass(frozen=True)
class Numeric(Type):
    """Sized numeric: family is one of NUMERIC_FAMILIES, bits one of BIT_WIDTHS."""

    family: str
    bits: int


@dataclass(frozen=True)
class ArrayType(Type):
    """[T]."""

    element: Type


@dataclass(frozen=True)
class PointerType(Type):
    """*T."""

    target: Type


@dataclass(frozen=True)
class OptionalType(Type):
    """T? -- a static annotation only, never a runtime tag."""

    inner: Type


@dataclass(frozen=True)
class FunctionType(Type):
    """conjure(P1, P2 -> R)."""

    params: tuple[Type, ...]
    ret: Type


BOOL: Type = Primitive("bool")
STRING: Type = Primitive("string")
GLYPH: Type = Primitive("glyph")
CODEPOINT: Type = Primitive("codepoint")
VOID: Type = Primitive("void")
ANY: Type = Primitive("any")

INT32: Type = Numeric("int", 32)
INT64: Type = Numeric("int", 64)
INT128: Type = Numeric("int", 128)
FLOAT32: Type = Numeric("float", 32)

PRIMITIVES: dict[str, Type] = {
    "bool": BOOL,
    "string": STRING,
    "glyph": GLYPH,
    "codepoint": CODEPOINT,
    "void": VOID,
    "any": ANY,
}

NUMERIC_FAMILIES: tuple[str, ...] = (
    "int", "uint",
    "float", "ufloat",
    "decim", "udecim",
    "slash", "uslash",
    "slog", "uslog",
)

BIT_WIDTHS: tuple[int, ...] = (8, 16, 32, 64, 128)

_NUMERIC_NAME = re.compile(r"^(u?(?:int|float|decim|slash|slog))(8|16|32|64|128)$")


class _Unknown:
    """Marker for 'no compile-time value known'; distinct from a literal null."""

    def __repr__(self) -> str:
        return "UNKNOWN"


UNKNOWN: object = _Unknown()


def lookup_type_name(name: str) -> Type | None:
    """Resolve a bare type name such as `int32` or `glyph`; None if unknown."""
    if name in PRIMITIVES:
        return PRIMITIVES[name]
    m = _NUMERIC_NAME.match(name)
    if m is None:
        return None
    return Numeric(m.group(1), int(m.group(2)))


def type_name(t: Type) -> str:
    """Human-readable name, in Glyph's own annotation syntax."""
    if isinstance(t, Primitive):
        return t.kind
    if isinstance(t, Numeric):
        return t.family + str(t.bits)
    if isinstance(t, ArrayType):
        return "[" + type_name(t.element) + "]"
    if isinstance(t, PointerType):
        return "*" + type_name(t.target)
    if isinstance(t, OptionalType):
        inner = type_name(t.inner)
        if isinstance(t.inner, (PointerType, FunctionType)):
            inner = "(" + inner + ")"
        return inner + "?"
    if isinstance(t, FunctionType):
        if len(t.params) == 0:
            return "conjure(" + type_name(t.ret) + ")"
        params = ", ".join(type_name(p) for p in t.params)
        return "conjure(" + params + " -> " + type_name(t.ret) + ")"
    raise TypeError("not a type descriptor: " + repr(t))


# ============================================================
# PREDICATES
# ============================================================


def is_numeric(t: Type) -> bool:
    return isinstance(t, Numeric)


def is_integral(t: Type) -> bool:
    """int/uint families: exact arithmetic applies."""
    return isinstance(t, Numeric) and _base_family(t) == "int"


def is_unsigned(t: Type) -> bool:
    return isinstance(t, Numeric) and t.family.startswith("u")


def is_text(t: Type) -> bool:
    return t == STRING or t == GLYPH


def is_array(t: Type) -> bool:
    return isinstance(t, ArrayType)


def unwrap_array(t: Type) -> Type:
    assert isinstance(t, ArrayType), type_name(t)
    return t.element


def is_pointer(t: Type) -> bool:
    return isinstance(t, PointerType)


def unwrap_pointer(t: Type) -> Type:
    assert isinstance(t, PointerType), type_name(t)
    return t.target


def is_optional(t: Type) -> bool:
    return isinstance(t, OptionalType)


def unwrap_optional(t: Type) -> Type:
    assert isinstance(t, OptionalType), type_name(t)
    return t.inner


def is_function(t: Type) -> bool:
    return isinstance(t, FunctionType)


# ============================================================
# NUMERIC RANGES
# ============================================================


def _base_family(t: Numeric) -> str:
    if t.family.startswith("u"):
        return t.family[1:]
    return t.family


def value_range(t: Numeric) -> tuple[int, int]:
    """Inclusive bounds representable in the bit width, as exact integers."""
    if is_unsigned(t):
        return (0, 2**t.bits - 1)
    return (-(2 ** (t.bits - 1)), 2 ** (t.bits - 1) - 1)


def is_number_value(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def fits(value: object, t: Numeric) -> bool:
    """Is a concrete numeric value inside t's range? Integral targets also need a whole value."""
    if not is_number_value(value):
        return False
    assert isinstance(value, (int, float))
    if is_integral(t) and isinstance(value, float) and not value.is_integer():
        return False
    lo, hi = value_range(t)
    # int/float comparison in Python is exact, no rounding of the bounds
    return lo <= value <= hi


def _families_compatible(source: Numeric, target: Numeric) -> bool:
    """Same base family, or any source moving into a fractional family."""
    if _base_family(source) == _base_family(target):
        return True
    return not is_integral(target)


def smallest_int_type(value: int) -> Type:
    """Literal typing: int32 unless the value needs a wider signed integer."""
    for t in (INT32, INT64, INT128):
        assert isinstance(t, Numeric)
        if fits(value, t):
            return t
    return INT128


# ============================================================
# CONVERSION
# ============================================================


def can_convert(source: Type, target: Type, value: object = UNKNOWN) -> bool:
    """May a value of type `source` (with known value `value`) flow into `target`?

    `value` is UNKNOWN when nothing is known statically, None for a
    literal null, a number or string for a literal, and a list of element
    values for an array literal.
    """
    if source == target:
        return True
    if source == ANY or target == ANY:
        return True
    if source == GLYPH and target == STRING:
        return True
    if value is None and isinstance(target, OptionalType):
        return True
    if isinstance(target, OptionalType):
        if isinstance(source, OptionalType):
            return can_convert(source.inner, target.inner, value)
        return can_convert(source, target.inner, value)
    if isinstance(source, ArrayType) and isinstance(target, ArrayType):
        if isinstance(value, list):
            for element in value:
                if not can_convert(source.element, target.element, element):
                    return False
            return True
        return can_convert(source.element, target.element)
    if isinstance(source, FunctionType) and isinstance(target, FunctionType):
        if len(source.params) != len(target.params):
            return False
        for sp, tp in zip(source.params, target.params):
            # the callee receives the target's arguments
            if not can_convert(tp, sp):
                return False
        return can_convert(source.ret, target.ret)
    if isinstance(source, Numeric) and isinstance(target, Numeric):
        if not _families_compatible(source, target):
            return False
        if source.bits < target.bits:
            return True
        if value is UNKNOWN:
            return False
        return fits(value, target)
    return False


def are_compatible(
    left: Type, right: Type, left_value: object = UNKNOWN, right_value: object = UNKNOWN
) -> bool:
    """Operand compatibility for binary operators; symmetric and sign-lenient."""
    if can_convert(left, right, left_value) or can_convert(right, left, right_value):
        return True
    if isinstance(left, Numeric) and isinstance(right, Numeric):
        return _base_family(left) == _base_family(right) and left.bits == right.bits
    return False
