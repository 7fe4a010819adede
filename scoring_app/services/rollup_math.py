from collections import OrderedDict
from dataclasses import dataclass
from typing import Hashable, Iterable, List, Mapping, Optional, Sequence

from scoring_app.models import RollupMethod


@dataclass(frozen=True)
class MemberScore:
    """One individual total as seen by a group rollup."""
    employee_id: Hashable
    department_id: Optional[Hashable]
    score: float
    is_leader: bool = False
    weight: Optional[float] = None  # per-member weight for WEIGHTED_AVERAGE


def _score_of(item) -> float:
    return float(item.score if hasattr(item, "score") else item)


def _average(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _weighted_average(scores: Sequence) -> float:
    weights = []
    for s in scores:
        w = getattr(s, "weight", None)
        weights.append(1.0 if w is None else float(w))  # unweighted members count as 1
    total_weight = sum(weights)
    if total_weight == 0:
        return 0.0
    return sum(_score_of(s) * w for s, w in zip(scores, weights)) / total_weight


def rollup(scores: Iterable, method: str = RollupMethod.AVERAGE) -> float:
    """
    Combine member scores into one group score.

    ``scores`` holds MemberScore objects (plain numbers are accepted and
    treated as unweighted, non-leader members). Empty input is 0 for every
    method.
    """
    scores = list(scores)
    if not scores:
        return 0.0
    values = [_score_of(s) for s in scores]

    if method == RollupMethod.AVERAGE:
        return _average(values)
    if method == RollupMethod.WEIGHTED_AVERAGE:
        return _weighted_average(scores)
    if method == RollupMethod.LEADER_SCORE:
        leader = next((s for s in scores if getattr(s, "is_leader", False)), None)
        return _score_of(leader) if leader is not None else _average(values)
    if method == RollupMethod.SUM:
        return sum(values)
    if method == RollupMethod.MIN:
        return min(values)
    if method == RollupMethod.MAX:
        return max(values)
    raise ValueError(f"unknown rollup method {method!r}")


def group_by_department(scores: Iterable[MemberScore]) -> "OrderedDict[Hashable, List[MemberScore]]":
    """Partition by department id; members with no department are left out."""
    grouped: "OrderedDict[Hashable, List[MemberScore]]" = OrderedDict()
    for s in scores:
        if s.department_id is None:
            continue
        grouped.setdefault(s.department_id, []).append(s)
    return grouped


def company_rollup(
    department_scores: Mapping[Hashable, float],
    method: str = RollupMethod.WEIGHTED_AVERAGE,
    weights: Optional[Mapping[Hashable, float]] = None,
) -> float:
    """
    Company score from department scores.

    WEIGHTED_AVERAGE uses ``weights`` (department id -> weight) and falls
    back to a plain average when no weights are given. Departments missing
    from ``weights`` weigh 0.

    Standalone helper for combining department scores computed elsewhere.
    Calculation runs do not call it: their COMPANY row rolls up individual
    scores directly, so employees without a department still count.
    """
    if not department_scores:
        return 0.0
    if method == RollupMethod.WEIGHTED_AVERAGE:
        if not weights:
            return _average(list(department_scores.values()))
        total_weight = sum(weights.values())
        if total_weight <= 0:
            return 0.0
        weighted_sum = sum(score * weights.get(dept, 0) for dept, score in department_scores.items())
        return weighted_sum / total_weight
    return rollup(list(department_scores.values()), method)


