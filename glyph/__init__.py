"""Glyph compiler: Glyph source -> validated AST -> optimized AST -> JavaScript."""

from __future__ import annotations

from lark import Tree

from .ast import Program
from .backend.javascript import generate
from .frontend.analyze import analyze
from .frontend.parse import parse
from .middleend.optimize import optimize

STAGES: list[str] = ["parsed", "analyzed", "optimized", "js"]


def compile(source: str, stage: str = "js", run_optimizer: bool = True) -> str | Program | Tree:
    """Run the pipeline up to stage: the parse tree, a Program, or JavaScript text."""
    if stage not in STAGES:
        raise ValueError("unknown stage '" + stage + "'")
    tree = parse(source)
    if stage == "parsed":
        return tree
    program = analyze(tree)
    if stage == "analyzed":
        return program
    if run_optimizer:
        optimized = optimize(program)
        assert isinstance(optimized, Program)
        program = optimized
    if stage == "optimized":
        return program
    return generate(program)


__all__ = ["STAGES", "analyze", "compile", "generate", "optimize", "parse"]
