"""Safe evaluation of engine commands.

Provides a restricted AST evaluator that only allows safe operations,
preventing imports, arbitrary attribute access, and other dangerous
operations. Dotted access is resolved as element lookup into mappings
and dataframe columns, which is how nested engine variables are
addressed (e.g. ``scenario.catadjs.fsmoke``).
"""

import ast
import operator
from collections.abc import Mapping
from typing import Any, Callable

import numpy as np
import pandas as pd

# Safe builtins allowed in every expression
SAFE_BUILTINS = {
    "True": True,
    "False": False,
    "None": None,
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "int": int,
    "float": float,
    "str": str,
    "len": len,
    "sum": sum,
    "all": all,
    "any": any,
    "bool": bool,
}


class ExpressionError(Exception):
    """Raised when expression evaluation fails."""

    pass


_SAFE_BIN_OPS: dict[type[ast.operator], Any] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.BitAnd: operator.and_,
    ast.BitOr: operator.or_,
}
_SAFE_UNARY_OPS: dict[type[ast.unaryop], Any] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
    ast.Invert: operator.invert,
}
_SAFE_BOOL_OPS = (ast.And, ast.Or)
_SAFE_CMP_OPS: dict[type[ast.cmpop], Any] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


def get_element(container: Any, key: Any) -> Any:
    """Look up ``key`` inside an engine container.

    Mappings are indexed by key, dataframes by column and series by label.
    Sequences and arrays accept integer positions.
    """
    if isinstance(container, Mapping):
        if key not in container:
            raise ExpressionError(f"No element '{key}' in container")
        return container[key]
    if isinstance(container, pd.DataFrame):
        if key not in container.columns:
            raise ExpressionError(f"No column '{key}' in dataframe")
        return container[key]
    if isinstance(container, pd.Series):
        if key not in container.index:
            raise ExpressionError(f"No label '{key}' in series")
        return container.loc[key]
    if isinstance(container, (list, tuple, np.ndarray)) and isinstance(key, int):
        return container[key]
    raise ExpressionError(
        f"Cannot look up '{key}' in value of type {type(container).__name__}"
    )


def target_path(node: ast.AST) -> str:
    """Convert an assignment target (name or dotted chain) to a dotted path."""
    if isinstance(node, ast.Name):
        if node.id.startswith("__"):
            raise ExpressionError("dunder names are not allowed in expressions")
        return node.id
    if isinstance(node, ast.Attribute):
        if node.attr.startswith("__"):
            raise ExpressionError("dunder names are not allowed in expressions")
        return f"{target_path(node.value)}.{node.attr}"
    raise ExpressionError(
        f"Unsupported assignment target: {type(node).__name__}"
    )


def _eval_ast(node: ast.AST, context: Mapping[str, Any], functions: Mapping) -> Any:
    if isinstance(node, ast.Expression):
        return _eval_ast(node.body, context, functions)

    if isinstance(node, ast.Constant):
        return node.value

    if isinstance(node, ast.Name):
        if node.id.startswith("__"):
            raise ExpressionError("dunder names are not allowed in expressions")
        if node.id in context:
            return context[node.id]
        if node.id in SAFE_BUILTINS:
            return SAFE_BUILTINS[node.id]
        raise ExpressionError(f"Unknown name '{node.id}' in expression")

    if isinstance(node, ast.Attribute):
        if node.attr.startswith("_"):
            raise ExpressionError("private members are not allowed in expressions")
        return get_element(_eval_ast(node.value, context, functions), node.attr)

    if isinstance(node, ast.Subscript):
        container = _eval_ast(node.value, context, functions)
        key = _eval_ast(node.slice, context, functions)
        return get_element(container, key)

    if isinstance(node, ast.List):
        return [_eval_ast(elt, context, functions) for elt in node.elts]

    if isinstance(node, ast.Tuple):
        return tuple(_eval_ast(elt, context, functions) for elt in node.elts)

    if isinstance(node, ast.Dict):
        for key in node.keys:
            if key is None:
                raise ExpressionError("Dict unpacking is not allowed")
        return {
            _eval_ast(key, context, functions): _eval_ast(val, context, functions)
            for key, val in zip(node.keys, node.values)
        }

    if isinstance(node, ast.UnaryOp):
        op_type = type(node.op)
        if op_type not in _SAFE_UNARY_OPS:
            raise ExpressionError(f"Unary operator not allowed: {op_type.__name__}")
        return _SAFE_UNARY_OPS[op_type](_eval_ast(node.operand, context, functions))

    if isinstance(node, ast.BinOp):
        op_type = type(node.op)
        if op_type not in _SAFE_BIN_OPS:
            raise ExpressionError(f"Binary operator not allowed: {op_type.__name__}")
        left = _eval_ast(node.left, context, functions)
        right = _eval_ast(node.right, context, functions)
        return _SAFE_BIN_OPS[op_type](left, right)

    if isinstance(node, ast.BoolOp):
        if not isinstance(node.op, _SAFE_BOOL_OPS):
            raise ExpressionError(
                f"Boolean operator not allowed: {type(node.op).__name__}"
            )
        if isinstance(node.op, ast.And):
            for value in node.values:
                if not _eval_ast(value, context, functions):
                    return False
            return True
        # ast.Or
        for value in node.values:
            if _eval_ast(value, context, functions):
                return True
        return False

    if isinstance(node, ast.Compare):
        # Element-wise comparisons on series and arrays are returned as-is
        if len(node.ops) == 1:
            op_type = type(node.ops[0])
            if op_type not in _SAFE_CMP_OPS:
                raise ExpressionError(
                    f"Comparison operator not allowed: {op_type.__name__}"
                )
            left = _eval_ast(node.left, context, functions)
            right = _eval_ast(node.comparators[0], context, functions)
            return _SAFE_CMP_OPS[op_type](left, right)

        left = _eval_ast(node.left, context, functions)
        for op, comparator in zip(node.ops, node.comparators):
            op_type = type(op)
            if op_type not in _SAFE_CMP_OPS:
                raise ExpressionError(
                    f"Comparison operator not allowed: {op_type.__name__}"
                )
            right = _eval_ast(comparator, context, functions)
            if not _SAFE_CMP_OPS[op_type](left, right):
                return False
            left = right
        return True

    if isinstance(node, ast.IfExp):
        return (
            _eval_ast(node.body, context, functions)
            if _eval_ast(node.test, context, functions)
            else _eval_ast(node.orelse, context, functions)
        )

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name):
            raise ExpressionError("Only direct function calls are allowed")
        func_name = node.func.id
        if func_name.startswith("__"):
            raise ExpressionError("Dunder functions are not allowed")
        func = functions.get(func_name, SAFE_BUILTINS.get(func_name))
        if not callable(func):
            raise ExpressionError(f"Function '{func_name}' is not allowed")

        args = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                raise ExpressionError("Star-args are not allowed")
            args.append(_eval_ast(arg, context, functions))
        kwargs = {}
        for kw in node.keywords:
            if kw.arg is None:
                raise ExpressionError("Keyword splats are not allowed")
            kwargs[kw.arg] = _eval_ast(kw.value, context, functions)

        return func(*args, **kwargs)

    raise ExpressionError(f"Unsupported expression element: {type(node).__name__}")


def eval_safe(
    expression: str,
    context: Mapping[str, Any],
    functions: Mapping[str, Callable] | None = None,
) -> Any:
    """
    Safely evaluate a single expression with restricted builtins.

    Args:
        expression: Python expression string (e.g., "prop_table(table(people.sex))")
        context: Mapping of variable names to values
        functions: Extra callables allowed in calls, by name

    Returns:
        Result of evaluating the expression

    Raises:
        ExpressionError: If evaluation fails

    Example:
        >>> eval_safe("max(0, age - 26)", {"age": 45})
        19
    """
    try:
        tree = ast.parse(expression, mode="eval")
        return _eval_ast(tree, context, functions or {})
    except ExpressionError:
        raise
    except Exception as e:
        raise ExpressionError(f"Failed to evaluate '{expression}': {e}") from e


def exec_safe(
    source: str,
    context: Mapping[str, Any],
    assign: Callable[[str, Any], None],
    functions: Mapping[str, Callable] | None = None,
) -> Any:
    """
    Run a sequence of expressions and assignments.

    Statements are separated by newlines or ``;``. Only bare expressions and
    single-target assignments (``x = ...``, ``a.b.c = ...``) are allowed.
    Assignments are handed to ``assign`` with the dotted target path, so the
    caller decides how nested paths are written.

    Returns:
        Value of the last statement (the assigned value for assignments),
        or None for empty source.

    Raises:
        ExpressionError: If parsing or any statement fails
    """
    functions = functions or {}
    try:
        module = ast.parse(source, mode="exec")
    except SyntaxError as e:
        raise ExpressionError(f"Syntax error in '{source}': {e.msg}") from e

    result = None
    for stmt in module.body:
        try:
            if isinstance(stmt, ast.Expr):
                result = _eval_ast(stmt.value, context, functions)
            elif isinstance(stmt, ast.Assign):
                if len(stmt.targets) != 1:
                    raise ExpressionError("Chained assignment is not allowed")
                path = target_path(stmt.targets[0])
                result = _eval_ast(stmt.value, context, functions)
                assign(path, result)
            else:
                raise ExpressionError(
                    f"Statement not allowed: {type(stmt).__name__}"
                )
        except ExpressionError:
            raise
        except Exception as e:
            raise ExpressionError(f"Failed to evaluate '{source}': {e}") from e

    return result
