"""Lexical scope chain passed explicitly through analysis."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..ast import Entity, Function, Loc
from ..errors import DuplicateDeclaration


@dataclass(frozen=True)
class Context:
    """One scope: its own bindings plus flags inherited by children.

    A context only gains bindings while its own block is being analyzed;
    once a child is created the parent is read, never written, through it.
    """

    parent: Context | None = None
    locals: dict[str, Entity] = field(default_factory=dict)
    in_loop: bool = False
    function: Function | None = None
    top_level: bool = True

    def lookup(self, name: str) -> Entity | None:
        ctx: Context | None = self
        while ctx is not None:
            if name in ctx.locals:
                return ctx.locals[name]
            ctx = ctx.parent
        return None

    def declare(
        self,
        name: str,
        entity: Entity,
        loc: Loc,
        error: type[DuplicateDeclaration] = DuplicateDeclaration,
    ) -> None:
        """Bind name in this scope; re-declaring in the same scope is an error."""
        if name in self.locals:
            raise error("'" + name + "' is already declared in this scope", loc.line, loc.col)
        self.locals[name] = entity

    def block(self) -> Context:
        """Child scope for an if branch or a bare block."""
        return Context(self, {}, self.in_loop, self.function, False)

    def loop(self) -> Context:
        return Context(self, {}, True, self.function, False)

    def function_body(self, function: Function) -> Context:
        """Child scope for a function body; loop context does not cross it."""
        return Context(self, {}, False, function, False)
