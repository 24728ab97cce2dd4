"""Glyph AST: validated, fully-typed node records.

Architecture:
    Lark parse tree -> analyze -> [AST] -> optimize -> [AST] -> generate -> JavaScript

Nodes own their children exclusively. Entities (Variable, Function,
ImportedFunction) are the exception: a declaration introduces one, and any
number of reference nodes point back at it. Entities compare by identity,
nodes compare structurally, and source locations never take part in
equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields

from .stdlib import Intrinsic
from .types import ANY, BOOL, CODEPOINT, GLYPH, STRING, OptionalType, Type, type_name


# ============================================================
# SOURCE LOCATIONS
# ============================================================


@dataclass(unsafe_hash=True)
class Loc:
    """Source location, line and column both 1-indexed; 0 means unknown."""

    line: int
    col: int


def loc_unknown() -> Loc:
    return Loc(0, 0)


# ============================================================
# ENTITIES
#
# Identity objects bound in scopes. A reference expression holds the
# entity; two references to the same declaration are equal, two
# declarations with the same name are not.
# ============================================================


@dataclass(eq=False)
class Variable:
    """A let/const binding or a function parameter.

    initializer is kept only while analysis runs (static bounds and
    range checks); later stages read the declaration node instead.
    """

    name: str
    typ: Type
    mutable: bool
    initializer: Expr | None = None
    loc: Loc = field(default_factory=loc_unknown)


@dataclass(eq=False)
class Function:
    """An evoke declaration or a conjure binding.

    typ.ret starts as `any` for functions without a declared return type
    and is fixed by the first return statement the analyzer sees.
    """

    name: str
    params: list[Variable]
    typ: Type
    declared_return: bool
    loc: Loc = field(default_factory=loc_unknown)


@dataclass(eq=False)
class ImportedFunction:
    """A standard-library symbol bound by affix."""

    module: str
    name: str
    typ: Type
    intrinsic: Intrinsic
    loc: Loc = field(default_factory=loc_unknown)


Entity = Variable | Function | ImportedFunction


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(kw_only=True)
class Stmt:
    """Base for all statements. Abstract."""

    loc: Loc = field(default_factory=loc_unknown, compare=False)


@dataclass
class VariableDeclaration(Stmt):
    variable: Variable
    value: Expr


@dataclass
class FunctionDeclaration(Stmt):
    """evoke name(params) -> T { body }, `= expr` bodies, and conjure bindings.

    The declaration owns the body; the Function entity carries only the
    signature so that call sites stay valid across rewrites.
    """

    function: Function
    body: list[Stmt]


@dataclass
class MainStatement(Stmt):
    """main = ...; the program entry point, emitted inline."""

    body: list[Stmt]


@dataclass
class ImportStatement(Stmt):
    imported: ImportedFunction


@dataclass
class Assignment(Stmt):
    target: Variable
    value: Expr


@dataclass
class Increment(Stmt):
    target: Variable


@dataclass
class Decrement(Stmt):
    target: Variable


@dataclass
class IfStatement(Stmt):
    """alternative is empty when there is no else; `else if` nests one IfStatement."""

    condition: Expr
    consequent: list[Stmt]
    alternative: list[Stmt]


@dataclass
class WhileStatement(Stmt):
    condition: Expr
    body: list[Stmt]


@dataclass
class BreakStatement(Stmt):
    pass


@dataclass
class ReturnStatement(Stmt):
    value: Expr | None


@dataclass
class ExscribeStatement(Stmt):
    """Print a value of any type."""

    value: Expr


@dataclass
class ExpressionStatement(Stmt):
    """A call evaluated for its effect; `invoke f(...)` and bare `f(...);`."""

    expression: Expr


@dataclass
class Block(Stmt):
    """An explicit { ... } with its own scope."""

    body: list[Stmt]


# ============================================================
# EXPRESSIONS
#
# All expressions carry their resolved type (typ field).
# ============================================================


@dataclass(kw_only=True)
class Expr:
    """Base for all expressions. Abstract."""

    typ: Type
    loc: Loc = field(default_factory=loc_unknown, compare=False)


# --- Literals ---


@dataclass
class NumericLiteral(Expr):
    """Integer families hold exact ints; fractional families hold floats."""

    value: int | float


@dataclass
class BooleanLiteral(Expr):
    value: bool
    typ: Type = field(default=BOOL, kw_only=True)


@dataclass
class StringLiteral(Expr):
    value: str
    typ: Type = field(default=STRING, kw_only=True)


@dataclass
class GlyphLiteral(Expr):
    """Single character in single quotes."""

    value: str
    typ: Type = field(default=GLYPH, kw_only=True)


@dataclass
class CodepointLiteral(Expr):
    """U+XXXX, stored as its integer scalar value."""

    value: int
    typ: Type = field(default=CODEPOINT, kw_only=True)


@dataclass
class NullLiteral(Expr):
    typ: Type = field(default=OptionalType(ANY), kw_only=True)

    @property
    def value(self) -> None:
        return None


LITERALS: tuple[type, ...] = (
    NumericLiteral,
    BooleanLiteral,
    StringLiteral,
    GlyphLiteral,
    CodepointLiteral,
    NullLiteral,
)


# --- References ---


@dataclass
class VariableReference(Expr):
    variable: Variable


@dataclass
class FunctionReference(Expr):
    """A user function used as a value."""

    function: Function


# --- Operators ---


@dataclass
class BinaryExpression(Expr):
    """op is one of || && == != < <= > >= + - * / % **."""

    op: str
    left: Expr
    right: Expr


@dataclass
class UnaryExpression(Expr):
    """op is - or !."""

    op: str
    operand: Expr


@dataclass
class AddressOf(Expr):
    """&x: operand is always a VariableReference."""

    operand: VariableReference


@dataclass
class Dereference(Expr):
    operand: Expr


# --- Calls and aggregates ---


@dataclass
class FunctionCall(Expr):
    """callee is a FunctionReference or a function-typed VariableReference."""

    callee: Expr
    args: list[Expr]


@dataclass
class Subscript(Expr):
    base: Expr
    index: Expr


@dataclass
class ArrayExpression(Expr):
    elements: list[Expr]


@dataclass
class Conjure(Expr):
    """conjure { ... } in expression position: an immediately-run body."""

    body: list[Stmt]


# --- Library intrinsics ---


@dataclass
class TypeOf(Expr):
    """typing@typeof: the static type name of its argument, never evaluated."""

    described: Type
    typ: Type = field(default=STRING, kw_only=True)


@dataclass
class Apply(Expr):
    """function@apply(f, xs): f mapped over xs."""

    function: Expr
    array: Expr


@dataclass
class Supplant(Expr):
    """string@supplant(s, old, new): every occurrence of old replaced by new."""

    text: Expr
    pattern: Expr
    replacement: Expr


@dataclass
class Program:
    body: list[Stmt]
    loc: Loc = field(default_factory=loc_unknown, compare=False)


# ============================================================
# TRAVERSAL
# ============================================================


def children(node: Stmt | Expr) -> list[Stmt | Expr]:
    """Direct child nodes in field order. Entities are not descended into."""
    result: list[Stmt | Expr] = []
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, (Stmt, Expr)):
            result.append(value)
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, (Stmt, Expr)):
                    result.append(item)
    return result


def walk(node: Stmt | Expr):
    """Yield node and every node below it, depth first."""
    yield node
    for child in children(node):
        yield from walk(child)


# ============================================================
# SERIALIZATION
# ============================================================


def _entity_to_dict(entity: Entity) -> dict[str, object]:
    return {"_type": type(entity).__name__, "name": entity.name, "typ": type_name(entity.typ)}


def to_dict(obj: object) -> object:
    """Recursively convert an AST into JSON-compatible values.

    Entities appear as {_type, name, typ} references, so shared
    declarations never repeat their contents.
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, list):
        return [to_dict(x) for x in obj]
    if isinstance(obj, Type):
        return type_name(obj)
    if isinstance(obj, Loc):
        return {"line": obj.line, "col": obj.col}
    if isinstance(obj, (Variable, Function, ImportedFunction)):
        return _entity_to_dict(obj)
    if isinstance(obj, (Stmt, Expr, Program)):
        d: dict[str, object] = {"_type": type(obj).__name__}
        for f in fields(obj):
            d[f.name] = to_dict(getattr(obj, f.name))
        if isinstance(obj, FunctionDeclaration):
            fn = obj.function
            d["params"] = [_entity_to_dict(p) for p in fn.params]
        if isinstance(obj, VariableDeclaration):
            d["mutable"] = obj.variable.mutable
        return d
    raise TypeError("cannot serialize " + type(obj).__name__)
