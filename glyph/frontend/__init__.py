"""Frontend package - converts Glyph source to the validated AST."""

from .analyze import Analyzer, analyze
from .parse import parse
from .scope import Context
