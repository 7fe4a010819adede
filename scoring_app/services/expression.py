"""
Sandboxed arithmetic expressions for CUSTOM metric formulas.

Expressions are parsed with ``ast`` in ``eval`` mode and every node is
checked against a small whitelist: numbers, variable names, arithmetic,
comparisons, boolean logic, ``x if cond else y`` and calls to the
functions in ``FUNCTIONS``. The tree is then walked directly; nothing is
ever compiled or handed to ``eval``.

    >>> evaluate_expression("min(actual / target * 100, 150)", {"actual": 9, "target": 10})
    90.0
"""
import ast
import math
import operator
from typing import Mapping, Union

from scoring_app.exceptions import ExpressionRuntimeError, ExpressionSyntaxError

MAX_EXPRESSION_LENGTH = 500
MAX_POWER_EXPONENT = 100

FUNCTIONS = {
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "sqrt": math.sqrt,
    "floor": math.floor,
    "ceil": math.ceil,
    "pow": math.pow,
    "log": math.log,
    "exp": math.exp,
}


def _power(left, right):
    if abs(right) > MAX_POWER_EXPONENT:
        raise ExpressionRuntimeError(f"exponent {right} is too large")
    # float base: an oversized result overflows instead of growing an unbounded int
    return operator.pow(float(left), right)


BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: _power,
}

UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

COMPARE_OPERATORS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}


# ---- parsing -----------------------------------------------------------------

def _check_node(node: ast.AST) -> None:
    if isinstance(node, ast.Expression):
        _check_node(node.body)
    elif isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ExpressionSyntaxError(f"unsupported literal {node.value!r}")
    elif isinstance(node, ast.Name):
        if not isinstance(node.ctx, ast.Load):
            raise ExpressionSyntaxError(f"cannot assign to {node.id!r}")
    elif isinstance(node, ast.BinOp):
        if type(node.op) not in BINARY_OPERATORS:
            raise ExpressionSyntaxError(f"operator {type(node.op).__name__} is not allowed")
        _check_node(node.left)
        _check_node(node.right)
    elif isinstance(node, ast.UnaryOp):
        if type(node.op) not in UNARY_OPERATORS:
            raise ExpressionSyntaxError(f"operator {type(node.op).__name__} is not allowed")
        _check_node(node.operand)
    elif isinstance(node, ast.Compare):
        for op in node.ops:
            if type(op) not in COMPARE_OPERATORS:
                raise ExpressionSyntaxError(f"comparison {type(op).__name__} is not allowed")
        _check_node(node.left)
        for comparator in node.comparators:
            _check_node(comparator)
    elif isinstance(node, ast.BoolOp):
        for value in node.values:
            _check_node(value)
    elif isinstance(node, ast.IfExp):
        _check_node(node.test)
        _check_node(node.body)
        _check_node(node.orelse)
    elif isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
            name = getattr(node.func, "id", type(node.func).__name__)
            raise ExpressionSyntaxError(f"function {name!r} is not allowed")
        if node.keywords:
            raise ExpressionSyntaxError("keyword arguments are not allowed")
        if not node.args:
            raise ExpressionSyntaxError(f"function {node.func.id!r} needs arguments")
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                raise ExpressionSyntaxError("argument unpacking is not allowed")
            _check_node(arg)
    else:
        raise ExpressionSyntaxError(f"{type(node).__name__} is not allowed in formulas")


def parse_expression(text: str) -> ast.Expression:
    """Parse and whitelist-check ``text``; raises ExpressionSyntaxError."""
    if not isinstance(text, str) or not text.strip():
        raise ExpressionSyntaxError("expression is empty")
    if len(text) > MAX_EXPRESSION_LENGTH:
        raise ExpressionSyntaxError(f"expression longer than {MAX_EXPRESSION_LENGTH} characters")
    try:
        tree = ast.parse(text.strip(), mode="eval")
    except SyntaxError as e:
        raise ExpressionSyntaxError(f"invalid syntax at column {e.offset}: {e.msg}") from e
    _check_node(tree)
    return tree


def variable_names(tree: ast.Expression) -> set:
    called = {id(n.func) for n in ast.walk(tree) if isinstance(n, ast.Call)}
    return {n.id for n in ast.walk(tree) if isinstance(n, ast.Name) and id(n) not in called}


# ---- evaluation --------------------------------------------------------------

def _eval(node: ast.AST, variables: Mapping[str, float]):
    if isinstance(node, ast.Expression):
        return _eval(node.body, variables)
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.Name):
        if node.id not in variables:
            raise ExpressionRuntimeError(f"unknown variable {node.id!r}")
        return variables[node.id]
    if isinstance(node, ast.BinOp):
        return BINARY_OPERATORS[type(node.op)](_eval(node.left, variables), _eval(node.right, variables))
    if isinstance(node, ast.UnaryOp):
        return UNARY_OPERATORS[type(node.op)](_eval(node.operand, variables))
    if isinstance(node, ast.Compare):
        left = _eval(node.left, variables)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval(comparator, variables)
            if not COMPARE_OPERATORS[type(op)](left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            result = True
            for value in node.values:
                result = _eval(value, variables)
                if not result:
                    return result
            return result
        result = False
        for value in node.values:
            result = _eval(value, variables)
            if result:
                return result
        return result
    if isinstance(node, ast.IfExp):
        if _eval(node.test, variables):
            return _eval(node.body, variables)
        return _eval(node.orelse, variables)
    if isinstance(node, ast.Call):
        args = [_eval(arg, variables) for arg in node.args]
        return FUNCTIONS[node.func.id](*args)
    # parse_expression rejects everything else
    raise ExpressionSyntaxError(f"{type(node).__name__} is not allowed in formulas")


def evaluate_expression(expression: Union[str, ast.Expression], variables: Mapping[str, float]) -> float:
    """
    Evaluate a custom formula with the given variable bindings.

    Raises ExpressionSyntaxError for text that does not parse and
    ExpressionRuntimeError for anything that goes wrong while computing.
    """
    tree = parse_expression(expression) if isinstance(expression, str) else expression
    try:
        value = _eval(tree, variables)
        if isinstance(value, complex):
            raise ExpressionRuntimeError("expression produced a complex number")
        value = float(value)
    except ExpressionRuntimeError:
        raise
    except ZeroDivisionError as e:
        raise ExpressionRuntimeError("division by zero") from e
    except (ArithmeticError, ValueError, TypeError) as e:
        raise ExpressionRuntimeError(str(e)) from e

    if not math.isfinite(value):
        raise ExpressionRuntimeError(f"expression produced a non-finite value ({value})")
    return value
