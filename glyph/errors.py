"""Compile-time diagnostics.

Every user-facing failure is a CompileError carrying the offending source
position. Analysis stops at the first one raised.
"""

from __future__ import annotations


class CompileError(Exception):
    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))

    @property
    def kind(self) -> str:
        return type(self).__name__


class ParseError(CompileError):
    """Source text rejected by the grammar."""


class UndeclaredIdentifier(CompileError):
    pass


class DuplicateDeclaration(CompileError):
    pass


class DuplicateBinding(DuplicateDeclaration):
    """An affix binds a name already present in the same scope."""


class TypeMismatch(CompileError):
    pass


class AssignToConstant(TypeMismatch):
    pass


class UnknownType(CompileError):
    pass


class ArityMismatch(CompileError):
    pass


class NotCallable(CompileError):
    pass


class NotAnArray(CompileError):
    pass


class IndexOutOfRange(CompileError):
    pass


class NegativeIndex(CompileError):
    pass


class BreakOutsideLoop(CompileError):
    pass


class ReturnOutsideFunction(CompileError):
    pass


class MissingReturn(CompileError):
    pass


class DivisionByZero(CompileError):
    pass


class UnknownModule(CompileError):
    pass


class UnknownSymbol(CompileError):
    pass
