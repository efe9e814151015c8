"""Shared helpers: safe expression evaluation and callback protocols."""

from .expressions import ExpressionError, eval_safe, exec_safe

__all__ = ["ExpressionError", "eval_safe", "exec_safe"]
