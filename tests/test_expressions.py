"""Tests for restricted command evaluation.

Functions under test in microsim/utils/expressions.py.
"""

import pandas as pd
import pytest

from microsim.utils.expressions import ExpressionError, eval_safe, exec_safe, get_element


class TestEvalSafe:
    """Single expression evaluation."""

    def test_arithmetic_and_builtins(self):
        assert eval_safe("max(0, age - 26)", {"age": 45}) == 19

    def test_dotted_access_into_nested_containers(self):
        context = {"scenario": {"catadjs": {"fsmoke": 3}}}
        assert eval_safe("scenario.catadjs.fsmoke", context) == 3

    def test_dotted_access_into_dataframe_column(self):
        people = pd.DataFrame({"sex": ["M", "F", "F"]})
        result = eval_safe("people.sex", {"people": people})
        assert list(result) == ["M", "F", "F"]

    def test_subscript_column(self):
        people = pd.DataFrame({"age": [1, 2]})
        assert list(eval_safe("people['age']", {"people": people})) == [1, 2]

    def test_elementwise_comparison_returns_series(self):
        people = pd.DataFrame({"age": [10, 40]})
        result = eval_safe("people.age > 18", {"people": people})
        assert list(result) == [False, True]

    def test_chained_comparison(self):
        assert eval_safe("1 < x < 3", {"x": 2}) is True
        assert eval_safe("1 < x < 3", {"x": 5}) is False

    def test_extra_functions(self):
        assert eval_safe("double(4)", {}, {"double": lambda x: x * 2}) == 8

    def test_unknown_name(self):
        with pytest.raises(ExpressionError, match="Unknown name"):
            eval_safe("missing + 1", {})

    def test_missing_element(self):
        with pytest.raises(ExpressionError, match="No element"):
            eval_safe("a.b", {"a": {}})

    def test_private_attribute_blocked(self):
        with pytest.raises(ExpressionError, match="private"):
            eval_safe("x._secret", {"x": {"_secret": 1}})

    def test_dunder_blocked(self):
        with pytest.raises(ExpressionError):
            eval_safe("__import__('os')", {})

    def test_method_calls_blocked(self):
        with pytest.raises(ExpressionError, match="direct function calls"):
            eval_safe("x.copy()", {"x": {"copy": 1}})

    def test_unlisted_function_blocked(self):
        with pytest.raises(ExpressionError, match="not allowed"):
            eval_safe("open('f')", {})


class TestExecSafe:
    """Statement sequences with assignments."""

    def test_assignments_are_delegated(self):
        assigned = {}
        context = {"x": 2}

        def assign(path, value):
            assigned[path] = value
            context[path] = value

        result = exec_safe("y = x * 3; z.w = y", context, assign)

        assert assigned == {"y": 6, "z.w": 6}
        assert result == 6

    def test_returns_last_expression(self):
        assert exec_safe("1\n2 + 3", {}, lambda p, v: None) == 5

    def test_empty_source(self):
        assert exec_safe("", {}, lambda p, v: None) is None

    def test_statements_other_than_expr_and_assign(self):
        with pytest.raises(ExpressionError, match="Statement not allowed"):
            exec_safe("import os", {}, lambda p, v: None)

    def test_chained_assignment(self):
        with pytest.raises(ExpressionError, match="Chained"):
            exec_safe("a = b = 1", {}, lambda p, v: None)

    def test_syntax_error(self):
        with pytest.raises(ExpressionError, match="Syntax error"):
            exec_safe("x = (", {}, lambda p, v: None)

    def test_runtime_error_is_wrapped(self):
        with pytest.raises(ExpressionError, match="Failed to evaluate"):
            exec_safe("1 / 0", {}, lambda p, v: None)


class TestGetElement:
    def test_series_label(self):
        assert get_element(pd.Series([5, 6], index=["a", "b"]), "b") == 6

    def test_list_position(self):
        assert get_element([1, 2, 3], 1) == 2

    def test_unsupported_container(self):
        with pytest.raises(ExpressionError, match="Cannot look up"):
            get_element(5, "x")
