from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable
import math

from django.db import transaction
from django.utils import timezone

from scoring_app.models import CalibrationAdjustment, IndividualResult
from scoring_app.services.boundaries import classify_grade, classify_status


def _round2(x) -> float:
    return float(Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def adjust_score(result: IndividualResult, adjusted_score: float, user=None, reason: str = "") -> CalibrationAdjustment:
    """
    Record a manual override next to the stored score. Original and
    adjusted grades are classified independently.

    The original is always re-read from the result: a pending override
    has not touched it yet, while an applied one or a recalculation has.
    """
    result.refresh_from_db(fields=["total_score"])
    original = result.total_score
    adjustment, _ = CalibrationAdjustment.objects.update_or_create(
        result=result,
        defaults=dict(
            original_score=original,
            adjusted_score=adjusted_score,
            original_grade=classify_grade(original),
            adjusted_grade=classify_grade(adjusted_score),
            reason=reason,
            adjusted_by=user,
            applied=False,
        ),
    )
    return adjustment


def apply_adjustments(period) -> int:
    """Write pending adjusted scores back to the individual results."""
    pending = (CalibrationAdjustment.objects
               .filter(result__period=period, applied=False)
               .select_related("result"))
    count = 0
    with transaction.atomic():
        for adj in pending:
            result = adj.result
            result.total_score = adj.adjusted_score
            result.status = classify_status(adj.adjusted_score)
            result.grade = adj.adjusted_grade
            result.calculated_at = timezone.now()
            result.save(update_fields=["total_score", "status", "grade", "calculated_at"])
            adj.applied = True
            adj.save(update_fields=["applied", "updated_at"])
            count += 1
    return count


def score_stats(scores: Iterable[float]) -> dict:
    scores = [float(s) for s in scores]
    if not scores:
        return {"avg": 0, "min": 0, "max": 0, "std_dev": 0, "count": 0}
    avg = sum(scores) / len(scores)
    variance = sum((s - avg) ** 2 for s in scores) / len(scores)
    return {
        "avg": _round2(avg),
        "min": min(scores),
        "max": max(scores),
        "std_dev": _round2(math.sqrt(variance)),
        "count": len(scores),
    }
