"""Standard library table: (module, symbol) -> signature and intrinsic kind.

Library symbols are not global. They enter a scope only through an
`affix module@symbol;` statement, after which a call to the bound name is
rewritten by the analyzer into the node shape its intrinsic names.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .types import ANY, STRING, VOID, ArrayType, FunctionType


class Intrinsic(Enum):
    """Closed set of library rewrites; the analyzer matches on these exhaustively."""

    EXSCRIBE = "exscribe"
    TYPEOF = "typeof"
    APPLY = "apply"
    SUPPLANT = "supplant"


@dataclass(frozen=True)
class LibrarySymbol:
    module: str
    name: str
    typ: FunctionType
    intrinsic: Intrinsic

    @property
    def arity(self) -> int:
        return len(self.typ.params)


_SYMBOLS: list[LibrarySymbol] = [
    LibrarySymbol("io", "exscribe", FunctionType((ANY,), VOID), Intrinsic.EXSCRIBE),
    LibrarySymbol("typing", "typeof", FunctionType((ANY,), STRING), Intrinsic.TYPEOF),
    LibrarySymbol(
        "function",
        "apply",
        FunctionType((ANY, ArrayType(ANY)), ArrayType(ANY)),
        Intrinsic.APPLY,
    ),
    LibrarySymbol(
        "string",
        "supplant",
        FunctionType((STRING, STRING, STRING), STRING),
        Intrinsic.SUPPLANT,
    ),
]

LIBRARY: dict[str, dict[str, LibrarySymbol]] = {}
for _sym in _SYMBOLS:
    LIBRARY.setdefault(_sym.module, {})[_sym.name] = _sym


def has_module(module: str) -> bool:
    return module in LIBRARY


def lookup(module: str, name: str) -> LibrarySymbol | None:
    """Symbol for module@name, or None. Callers check has_module first."""
    return LIBRARY.get(module, {}).get(name)
