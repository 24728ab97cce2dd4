"""Optimizer: a pure rewrite of a validated AST.

Children are rewritten before their parent inspects them. Nodes are never
mutated; every change produces a new node with dataclasses.replace, so the
input tree stays valid and optimize(optimize(t)) == optimize(t).
"""

from __future__ import annotations

import math
from dataclasses import replace
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
    walk,
)
from ..evaluate import ARITHMETIC_OPS, binary_value, unary_value
from ..types import UNKNOWN, is_integral, is_number_value, is_numeric


def optimize(node: Program | Stmt | Expr) -> Program | list[Stmt] | Expr:
    """Optimize a program, a single statement (yielding a list), or an expression."""
    if isinstance(node, Program):
        return replace(node, body=optimize_statements(node.body))
    if isinstance(node, Stmt):
        return _statement(node)
    return optimize_expression(node)


# ============================================================
# STATEMENTS
# ============================================================


def optimize_statements(stmts: list[Stmt]) -> list[Stmt]:
    """Rewrite a statement list, folding counter steps into their declarations.

    A `let x = <number>;` stays foldable until something else touches x
    or any call runs; an x++ or x-- reached while it is still foldable is
    absorbed into the literal.
    """
    result: list[Stmt] = []
    foldable: dict[int, int] = {}  # id(Variable) -> index of its declaration in result
    for stmt in stmts:
        for s in _statement(stmt):
            if isinstance(s, (Increment, Decrement)) and id(s.target) in foldable:
                i = foldable[id(s.target)]
                decl = result[i]
                assert isinstance(decl, VariableDeclaration)
                assert isinstance(decl.value, NumericLiteral)
                step = 1 if isinstance(s, Increment) else -1
                result[i] = replace(decl, value=replace(decl.value, value=decl.value.value + step))
                continue
            _forget_touched(foldable, s)
            result.append(s)
            if (
                isinstance(s, VariableDeclaration)
                and s.variable.mutable
                and isinstance(s.value, NumericLiteral)
            ):
                foldable[id(s.variable)] = len(result) - 1
    return result


def _forget_touched(foldable: dict[int, int], stmt: Stmt) -> None:
    if not foldable:
        return
    for node in walk(stmt):
        match node:
            case FunctionCall() | Conjure() | Apply():
                foldable.clear()
                return
            case VariableReference(variable=variable):
                foldable.pop(id(variable), None)
            case Assignment(target=target) | Increment(target=target) | Decrement(target=target):
                foldable.pop(id(target), None)
            case _:
                pass


def _statement(stmt: Stmt) -> list[Stmt]:
    match stmt:
        case VariableDeclaration(value=value):
            return [replace(stmt, value=optimize_expression(value))]
        case FunctionDeclaration(body=body):
            return [replace(stmt, body=optimize_statements(body))]
        case MainStatement(body=body):
            return [replace(stmt, body=optimize_statements(body))]
        case ImportStatement() | BreakStatement() | Increment() | Decrement():
            return [stmt]
        case Assignment(target=target, value=value):
            value = optimize_expression(value)
            if isinstance(value, VariableReference) and value.variable is target:
                return []
            return [replace(stmt, value=value)]
        case IfStatement(condition=condition, consequent=consequent, alternative=alternative):
            condition = optimize_expression(condition)
            consequent = optimize_statements(consequent)
            alternative = optimize_statements(alternative)
            if isinstance(condition, BooleanLiteral):
                return consequent if condition.value else alternative
            return [
                replace(stmt, condition=condition, consequent=consequent, alternative=alternative)
            ]
        case WhileStatement(condition=condition, body=body):
            condition = optimize_expression(condition)
            if isinstance(condition, BooleanLiteral) and not condition.value:
                return []
            return [replace(stmt, condition=condition, body=optimize_statements(body))]
        case ReturnStatement(value=value):
            if value is None:
                return [stmt]
            return [replace(stmt, value=optimize_expression(value))]
        case ExscribeStatement(value=value):
            return [replace(stmt, value=optimize_expression(value))]
        case ExpressionStatement(expression=expression):
            return [replace(stmt, expression=optimize_expression(expression))]
        case Block(body=body):
            return [replace(stmt, body=optimize_statements(body))]
        case _:
            assert_never(stmt)


# ============================================================
# EXPRESSIONS
# ============================================================


def optimize_expression(expr: Expr) -> Expr:
    match expr:
        case (
            NumericLiteral()
            | BooleanLiteral()
            | StringLiteral()
            | GlyphLiteral()
            | CodepointLiteral()
            | NullLiteral()
            | VariableReference()
            | FunctionReference()
            | AddressOf()
            | TypeOf()
        ):
            return expr
        case BinaryExpression(left=left, right=right):
            return _binary(
                replace(expr, left=optimize_expression(left), right=optimize_expression(right))
            )
        case UnaryExpression(operand=operand):
            return _unary(replace(expr, operand=optimize_expression(operand)))
        case Dereference(operand=operand):
            operand = optimize_expression(operand)
            if isinstance(operand, AddressOf):
                return operand.operand
            return replace(expr, operand=operand)
        case FunctionCall(callee=callee, args=args):
            return replace(
                expr,
                callee=optimize_expression(callee),
                args=[optimize_expression(a) for a in args],
            )
        case Subscript(base=base, index=index):
            return replace(expr, base=optimize_expression(base), index=optimize_expression(index))
        case ArrayExpression(elements=elements):
            return replace(expr, elements=[optimize_expression(e) for e in elements])
        case Conjure(body=body):
            return replace(expr, body=optimize_statements(body))
        case Apply(function=function, array=array):
            return replace(
                expr, function=optimize_expression(function), array=optimize_expression(array)
            )
        case Supplant(text=text, pattern=pattern, replacement=replacement):
            return replace(
                expr,
                text=optimize_expression(text),
                pattern=optimize_expression(pattern),
                replacement=optimize_expression(replacement),
            )
        case _:
            assert_never(expr)


def _literal_value(expr: Expr) -> object:
    """Value of a numeric or boolean literal; UNKNOWN for anything else."""
    if isinstance(expr, (NumericLiteral, BooleanLiteral)):
        return expr.value
    return UNKNOWN


def _is_number(expr: Expr, n: int) -> bool:
    return isinstance(expr, NumericLiteral) and expr.value == n


def _same_type(survivor: Expr, expr: Expr) -> bool:
    return survivor.typ == expr.typ


def _numeric_literal(value: object, expr: Expr) -> Expr | None:
    """A literal of expr's type holding value, or None if it would not be one."""
    if not is_numeric(expr.typ) or not is_number_value(value):
        return None
    assert isinstance(value, (int, float))
    if is_integral(expr.typ):
        if not isinstance(value, int):
            return None
    elif not math.isfinite(value):
        return None
    return NumericLiteral(value, typ=expr.typ, loc=expr.loc)


def _fold(expr: BinaryExpression) -> Expr | None:
    lv, rv = _literal_value(expr.left), _literal_value(expr.right)
    if lv is UNKNOWN or rv is UNKNOWN:
        return None
    value = binary_value(expr.op, lv, rv, is_integral(expr.typ))
    if value is UNKNOWN:
        return None
    if expr.op in ARITHMETIC_OPS:
        return _numeric_literal(value, expr)
    if isinstance(value, bool):
        return BooleanLiteral(value, loc=expr.loc)
    return None


def _binary(expr: BinaryExpression) -> Expr:
    folded = _fold(expr)
    if folded is not None:
        return folded
    left, right, op = expr.left, expr.right, expr.op
    match op:
        case "+":
            if _is_number(left, 0) and _same_type(right, expr):
                return right
            if _is_number(right, 0) and _same_type(left, expr):
                return left
        case "-":
            if _is_number(right, 0) and _same_type(left, expr):
                return left
            if _is_number(left, 0) and _same_type(right, expr) and is_numeric(expr.typ):
                return UnaryExpression("-", right, typ=expr.typ, loc=expr.loc)
        case "*":
            if _is_number(left, 1) and _same_type(right, expr):
                return right
            if _is_number(right, 1) and _same_type(left, expr):
                return left
            if _is_number(right, 0) and is_pure(left):
                zero = _numeric_literal(right.value, expr)
                if zero is not None:
                    return zero
            if _is_number(left, 0) and is_pure(right):
                zero = _numeric_literal(left.value, expr)
                if zero is not None:
                    return zero
        case "**":
            if _is_number(left, 1) and is_pure(right):
                one = _numeric_literal(left.value, expr)
                if one is not None:
                    return one
            if _is_number(right, 0) and is_pure(left):
                one = _numeric_literal(1, expr)
                if one is not None:
                    return one
        case "&&":
            if isinstance(left, BooleanLiteral):
                if not left.value:
                    return left
                if _same_type(right, expr):
                    return right
        case "||":
            if isinstance(left, BooleanLiteral):
                if left.value:
                    return left
                if _same_type(right, expr):
                    return right
        case _:
            pass
    return expr


def _unary(expr: UnaryExpression) -> Expr:
    value = _literal_value(expr.operand)
    if value is UNKNOWN:
        return expr
    result = unary_value(expr.op, value)
    if result is UNKNOWN:
        return expr
    if isinstance(result, bool):
        return BooleanLiteral(result, loc=expr.loc)
    folded = _numeric_literal(result, expr)
    if folded is None:
        return expr
    return folded


def is_pure(expr: Expr) -> bool:
    """True if evaluating expr can have no effect beyond producing its value."""
    for node in walk(expr):
        if isinstance(node, (FunctionCall, Conjure, Apply)):
            return False
    return True
