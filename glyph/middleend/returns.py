"""Return pattern analysis: contains_return, always_returns."""

from __future__ import annotations

from ..ast import Block, IfStatement, ReturnStatement, Stmt, WhileStatement


def contains_return(stmts: list[Stmt]) -> bool:
    """Check if statement list contains any Return statements (recursively).

    Nested function declarations are not entered; their returns belong to them.
    """
    for stmt in stmts:
        if isinstance(stmt, ReturnStatement):
            return True
        if isinstance(stmt, IfStatement):
            if contains_return(stmt.consequent) or contains_return(stmt.alternative):
                return True
        elif isinstance(stmt, WhileStatement):
            if contains_return(stmt.body):
                return True
        elif isinstance(stmt, Block):
            if contains_return(stmt.body):
                return True
    return False


def always_returns(stmts: list[Stmt]) -> bool:
    """Check if a list of statements always returns (on all paths).

    A while loop never counts: its body may run zero times.
    """
    for stmt in stmts:
        if isinstance(stmt, ReturnStatement):
            return True
        if isinstance(stmt, IfStatement):
            if always_returns(stmt.consequent) and always_returns(stmt.alternative):
                return True
        if isinstance(stmt, Block):
            if always_returns(stmt.body):
                return True
    return False
