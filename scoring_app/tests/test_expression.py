import pytest
from scoring_app.exceptions import ExpressionRuntimeError, ExpressionSyntaxError
from scoring_app.services.expression import (
    MAX_EXPRESSION_LENGTH, evaluate_expression, parse_expression, variable_names,
)

VARS = {"actual": 90.0, "target": 100.0, "challenge": 120.0}


class TestEvaluate:
    @pytest.mark.parametrize("expression,expected", [
        ("actual / target * 100", 90.0),
        ("min(actual / target * 100, 80)", 80.0),
        ("max(0, actual - target)", 0.0),
        ("sqrt(target)", 10.0),
        ("round(actual / 7, 2)", 12.86),
        ("100 if actual >= target else 50", 50.0),
        ("100 if actual >= target or challenge > 110 else 50", 100.0),
        ("-actual + 2 ** 3", -82.0),
        ("actual % 7", 6.0),
        ("50 < actual < 100", 1.0),
    ])
    def test_arithmetic(self, expression, expected):
        assert evaluate_expression(expression, VARS) == pytest.approx(expected)

    def test_accepts_parsed_tree(self):
        tree = parse_expression("actual + target")
        assert evaluate_expression(tree, VARS) == pytest.approx(190)

    def test_division_by_zero(self):
        with pytest.raises(ExpressionRuntimeError):
            evaluate_expression("actual / 0", VARS)

    def test_unbound_variable(self):
        with pytest.raises(ExpressionRuntimeError):
            evaluate_expression("actual / weight", VARS)

    def test_math_domain_error(self):
        with pytest.raises(ExpressionRuntimeError):
            evaluate_expression("sqrt(-1)", VARS)

    def test_huge_exponent_is_refused(self):
        with pytest.raises(ExpressionRuntimeError):
            evaluate_expression("10 ** 1000", VARS)

    @pytest.mark.parametrize("expression", [
        "(((10 ** 100) ** 100) ** 100) ** 100",
        "((((10 ** 100) ** 100) ** 100) ** 100) ** 100",
        "floor(1e300) ** 100",
    ])
    def test_nested_powers_overflow_instead_of_growing(self, expression):
        with pytest.raises(ExpressionRuntimeError):
            evaluate_expression(expression, VARS)

    def test_integer_powers_still_evaluate(self):
        assert evaluate_expression("2 ** 10 + 3 ** 2", VARS) == pytest.approx(1033)

    def test_non_finite_result(self):
        with pytest.raises(ExpressionRuntimeError):
            evaluate_expression("exp(1000)", VARS)


class TestParse:
    @pytest.mark.parametrize("expression", [
        "__import__('os')",
        "open('x')",
        "actual.__class__",
        "[actual, target]",
        "lambda: 1",
        "'text'",
        "actual if True else target",
        "min(*[1, 2])",
        "round(actual, ndigits=2)",
        "x = 1",
        "actual; target",
    ])
    def test_rejects_everything_outside_the_grammar(self, expression):
        with pytest.raises(ExpressionSyntaxError):
            parse_expression(expression)

    def test_rejects_overlong_text(self):
        with pytest.raises(ExpressionSyntaxError):
            parse_expression("1+" * MAX_EXPRESSION_LENGTH + "1")

    def test_variable_names_skip_function_names(self):
        assert variable_names(parse_expression("min(actual, challenge) / target")) == {"actual", "challenge", "target"}
