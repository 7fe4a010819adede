from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from scoring_app.models import FormulaKind
from scoring_app.exceptions import (
    ExpressionRuntimeError, ExpressionSyntaxError, FormulaEvaluationError,
)
from scoring_app.services.expression import evaluate_expression, parse_expression

FULL_SCORE = 100.0
DEFAULT_CAP = 120.0
DEFAULT_FLOOR = 0.0
DEFAULT_CUSTOM_EXPRESSION = "(actual / target) * 100"

# accepted spellings for stepped-rule operators
STEP_OPERATORS = {
    "gte": lambda actual, threshold: actual >= threshold,
    "gt":  lambda actual, threshold: actual > threshold,
    "lte": lambda actual, threshold: actual <= threshold,
    "lt":  lambda actual, threshold: actual < threshold,
    "eq":  lambda actual, threshold: actual == threshold,
}
OPERATOR_ALIASES = {
    ">=": "gte", "≥": "gte",
    ">":  "gt",
    "<=": "lte", "≤": "lte",
    "<":  "lt",
    "=":  "eq", "==": "eq",
}


@dataclass(frozen=True)
class ScoreResult:
    raw_score: float
    capped_score: float
    weighted_score: float

    def as_dict(self) -> dict:
        return {
            "raw_score": self.raw_score,
            "capped_score": self.capped_score,
            "weighted_score": self.weighted_score,
        }


def _clamp(value: float, floor: float, cap: float) -> float:
    return max(floor, min(value, cap))


def _weighted(capped: float, weight: float) -> float:
    return capped * (weight / 100)


def normalize_operator(op: str) -> str:
    key = str(op).strip().lower()
    key = OPERATOR_ALIASES.get(key, key)
    if key not in STEP_OPERATORS:
        raise ValueError(f"unknown stepped-rule operator {op!r}")
    return key


# ---- per kind raw scores --------------------------------------------------------

def positive_raw(actual: float, target: float) -> float:
    """(actual / target) * 100; a zero target scores 0."""
    return 0.0 if target == 0 else (actual / target) * 100


def negative_raw(actual: float, target: float, cap: float, floor: float) -> float:
    """
    (target / actual) * 100 for lower-is-better metrics.
    Zero actual scores 100 when the target is also zero, otherwise the cap.
    A negative actual scores the floor.
    """
    if actual == 0:
        return FULL_SCORE if target == 0 else cap
    if actual < 0:
        return floor
    return (target / actual) * 100


def binary_raw(actual: float, full_score: float = FULL_SCORE) -> float:
    return full_score if actual == 0 else 0.0


def stepped_raw(actual: float, rules: Optional[Sequence[Mapping]]) -> float:
    """
    Rules are tried from the highest threshold down; the first one whose
    operator matches ``actual`` gives the score. No match scores 0.
    """
    ordered = sorted(rules or [], key=lambda r: float(r["threshold"]), reverse=True)
    for rule in ordered:
        match = STEP_OPERATORS[normalize_operator(rule.get("operator", "gte"))]
        if match(actual, float(rule["threshold"])):
            return float(rule["score"])
    return 0.0


def custom_raw(expression: str, variables: Mapping[str, float], context: Optional[Mapping] = None) -> float:
    try:
        return evaluate_expression(expression, variables)
    except (ExpressionSyntaxError, ExpressionRuntimeError) as e:
        raise FormulaEvaluationError(expression, str(e), context) from e


# ---- public API ---------------------------------------------------------------------

def evaluate(
    kind: str,
    actual: float,
    target: float = 0.0,
    challenge: Optional[float] = None,
    *,
    weight: float,
    cap: float = DEFAULT_CAP,
    floor: float = DEFAULT_FLOOR,
    stepped_rules: Optional[Sequence[Mapping]] = None,
    expression: Optional[str] = None,
    context: Optional[Mapping] = None,
) -> ScoreResult:
    """
    Score one metric result.

    POSITIVE, NEGATIVE and CUSTOM raw scores are clamped to [floor, cap];
    BINARY and STEPPED scores are already bounded and used as-is.
    weighted_score = capped_score * weight / 100 for every kind.

    ``context`` (entry / employee ids) is attached to FormulaEvaluationError.
    """
    actual = float(actual)
    target = float(target or 0)
    cap = DEFAULT_CAP if cap is None else float(cap)
    floor = DEFAULT_FLOOR if floor is None else float(floor)
    weight = float(weight or 0)

    if kind == FormulaKind.POSITIVE:
        raw = positive_raw(actual, target)
        capped = _clamp(raw, floor, cap)
    elif kind == FormulaKind.NEGATIVE:
        raw = negative_raw(actual, target, cap, floor)
        capped = _clamp(raw, floor, cap)
    elif kind == FormulaKind.BINARY:
        raw = binary_raw(actual)
        capped = raw
    elif kind == FormulaKind.STEPPED:
        try:
            raw = stepped_raw(actual, stepped_rules)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise FormulaEvaluationError(str(stepped_rules), f"invalid stepped rules: {e}", context) from e
        capped = raw
    elif kind == FormulaKind.CUSTOM:
        variables = {"actual": actual, "target": target, "weight": weight}
        if challenge is not None:
            variables["challenge"] = float(challenge)
        raw = custom_raw(expression or DEFAULT_CUSTOM_EXPRESSION, variables, context)
        capped = _clamp(raw, floor, cap)
    else:
        raise FormulaEvaluationError(str(kind), "unknown formula kind", context)

    return ScoreResult(raw_score=raw, capped_score=capped, weighted_score=_weighted(capped, weight))


def validate(expression: str) -> dict:
    """Statically parse a custom expression: {"valid": True} or {"valid": False, "error": ...}."""
    try:
        parse_expression(expression)
    except ExpressionSyntaxError as e:
        return {"valid": False, "error": str(e)}
    return {"valid": True}


def validate_stepped_rules(rules) -> dict:
    if not isinstance(rules, (list, tuple)) or not rules:
        return {"valid": False, "error": "stepped rules must be a non-empty list"}
    for i, rule in enumerate(rules):
        try:
            float(rule["threshold"])
            float(rule["score"])
            normalize_operator(rule.get("operator", "gte"))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            return {"valid": False, "error": f"rule {i}: {e}"}
    return {"valid": True}


def total_score(results: Iterable) -> float:
    """
    Sum of weighted scores for one employee. Weights that add up to less
    than 100 simply give a lower total; nothing is normalized.
    """
    total = 0.0
    for r in results:
        total += r.weighted_score if hasattr(r, "weighted_score") else float(r["weighted_score"])
    return total
