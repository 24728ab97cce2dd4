"""Middleend: return-path analysis and the optimizer."""

from .optimize import optimize
from .returns import always_returns, contains_return
