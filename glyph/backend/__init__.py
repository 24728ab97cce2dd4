"""Backends - AST to target source text."""

from .javascript import JsBackend, generate
