"""JavaScript backend: AST -> JavaScript source.

Every entity gets a stable `name_N` on first sight, so shadowed and
reserved-word names can never collide in the output.
"""

from __future__ import annotations

from typing import assert_never

from ..ast import (
    AddressOf,
    Apply,
    ArrayExpression,
    Assignment,
    BinaryExpression,
    Block,
    BooleanLiteral,
    BreakStatement,
    CodepointLiteral,
    Conjure,
    Decrement,
    Dereference,
    Entity,
    ExpressionStatement,
    Expr,
    ExscribeStatement,
    FunctionCall,
    FunctionDeclaration,
    FunctionReference,
    GlyphLiteral,
    IfStatement,
    ImportStatement,
    Increment,
    MainStatement,
    NullLiteral,
    NumericLiteral,
    Program,
    ReturnStatement,
    Stmt,
    StringLiteral,
    Subscript,
    Supplant,
    TypeOf,
    UnaryExpression,
    VariableDeclaration,
    VariableReference,
    WhileStatement,
)
from ..types import type_name
from .util import number_literal, string_literal


def generate(program: Program) -> str:
    """Emit JavaScript for a validated (and usually optimized) program."""
    return JsBackend().emit(program)


class JsBackend:
    """Emit JavaScript code from the AST."""

    def __init__(self) -> None:
        self.indent = 0
        self.lines: list[str] = []
        self._names: dict[int, str] = {}
        self._named: list[Entity] = []  # keeps ids stable for the emitter's lifetime

    def emit(self, program: Program) -> str:
        self.indent = 0
        self.lines = []
        self._emit_stmts(program.body)
        return "\n".join(self.lines)

    def _line(self, text: str = "") -> None:
        if text:
            self.lines.append("  " * self.indent + text)
        else:
            self.lines.append("")

    def _name(self, entity: Entity) -> str:
        key = id(entity)
        if key not in self._names:
            self._names[key] = entity.name + "_" + str(len(self._names) + 1)
            self._named.append(entity)
        return self._names[key]

    # ============================================================
    # STATEMENTS
    # ============================================================

    def _emit_stmts(self, stmts: list[Stmt]) -> None:
        for stmt in stmts:
            self._emit_stmt(stmt)

    def _emit_body(self, stmts: list[Stmt]) -> None:
        self.indent += 1
        self._emit_stmts(stmts)
        self.indent -= 1

    def _emit_stmt(self, stmt: Stmt) -> None:
        match stmt:
            case VariableDeclaration(variable=variable, value=value):
                keyword = "let" if variable.mutable else "const"
                name = self._name(variable)
                self._line(f"{keyword} {name} = {self._expr(value)};")
            case FunctionDeclaration(function=function, body=body):
                name = self._name(function)
                params = ", ".join(self._name(p) for p in function.params)
                self._line(f"function {name}({params}) {{")
                self._emit_body(body)
                self._line("}")
            case MainStatement(body=body):
                self._emit_stmts(body)
            case ImportStatement():
                pass
            case Assignment(target=target, value=value):
                self._line(f"{self._name(target)} = {self._expr(value)};")
            case Increment(target=target):
                self._line(f"{self._name(target)}++;")
            case Decrement(target=target):
                self._line(f"{self._name(target)}--;")
            case IfStatement():
                self._emit_if(stmt, "if")
            case WhileStatement(condition=condition, body=body):
                self._line(f"while ({self._expr(condition)}) {{")
                self._emit_body(body)
                self._line("}")
            case BreakStatement():
                self._line("break;")
            case ReturnStatement(value=value):
                if value is not None:
                    self._line(f"return {self._expr(value)};")
                else:
                    self._line("return;")
            case ExscribeStatement(value=value):
                self._line(f"console.log({self._expr(value)});")
            case ExpressionStatement(expression=expression):
                self._line(f"{self._expr(expression)};")
            case Block(body=body):
                self._line("{")
                self._emit_body(body)
                self._line("}")
            case _:
                assert_never(stmt)

    def _emit_if(self, stmt: IfStatement, keyword: str) -> None:
        self._line(f"{keyword} ({self._expr(stmt.condition)}) {{")
        self._emit_body(stmt.consequent)
        alternative = stmt.alternative
        if len(alternative) == 1 and isinstance(alternative[0], IfStatement):
            # the nested chain emits the closing brace
            self._emit_if(alternative[0], "} else if")
            return
        if alternative:
            self._line("} else {")
            self._emit_body(alternative)
        self._line("}")

    # ============================================================
    # EXPRESSIONS
    # ============================================================

    def _expr(self, expr: Expr) -> str:
        match expr:
            case NumericLiteral(value=value):
                return number_literal(value)
            case BooleanLiteral(value=value):
                return "true" if value else "false"
            case StringLiteral(value=value) | GlyphLiteral(value=value):
                return string_literal(value)
            case CodepointLiteral(value=value):
                return str(value)
            case NullLiteral():
                return "null"
            case VariableReference(variable=variable):
                return self._name(variable)
            case FunctionReference(function=function):
                return self._name(function)
            case BinaryExpression(op=op, left=left, right=right):
                return f"({self._expr(left)} {_binary_op(op)} {self._expr(right)})"
            case UnaryExpression(op=op, operand=operand):
                return f"({op}{self._expr(operand)})"
            case AddressOf(operand=operand):
                return f"(() => ({{ value: {self._expr(operand)} }}))()"
            case Dereference(operand=operand):
                return f"{self._expr(operand)}.value"
            case FunctionCall(callee=callee, args=args):
                return f"{self._expr(callee)}({', '.join(self._expr(a) for a in args)})"
            case Subscript(base=base, index=index):
                return f"{self._expr(base)}[{self._expr(index)}]"
            case ArrayExpression(elements=elements):
                return "[" + ",".join(self._expr(e) for e in elements) + "]"
            case Conjure(body=body):
                return f"(() => {{ {self._inline_body(body)} }})()"
            case TypeOf(described=described):
                return string_literal(type_name(described))
            case Apply(function=function, array=array):
                return f"{self._expr(array)}.map({self._expr(function)})"
            case Supplant(text=text, pattern=pattern, replacement=replacement):
                return (
                    f"{self._expr(text)}.replaceAll("
                    f"{self._expr(pattern)}, {self._expr(replacement)})"
                )
            case _:
                assert_never(expr)

    def _inline_body(self, body: list[Stmt]) -> str:
        """Statements rendered on one line, for bodies used in expression position."""
        saved_lines, saved_indent = self.lines, self.indent
        self.lines, self.indent = [], 0
        self._emit_stmts(body)
        rendered = " ".join(line.strip() for line in self.lines)
        self.lines, self.indent = saved_lines, saved_indent
        return rendered


def _binary_op(op: str) -> str:
    match op:
        case "==":
            return "==="
        case "!=":
            return "!=="
        case _:
            return op
