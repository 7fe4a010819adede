from django.conf import settings
from typing import Iterable, Mapping, Tuple

from scoring_app.models import KPIStatus, PerformanceGrade

DEFAULT_GRADE_BOUNDARIES = {
    PerformanceGrade.S: 95,
    PerformanceGrade.A: 85,
    PerformanceGrade.B: 70,
    PerformanceGrade.C: 60,
}

DEFAULT_STATUS_BOUNDARIES = {
    KPIStatus.EXCELLENT: 90,
    KPIStatus.GOOD: 75,
    KPIStatus.AVERAGE: 60,
}


class ThresholdTable:
    """
    Ordered (label, minimum score) pairs plus a catch-all label.

    Pairs are kept sorted from the highest minimum to the lowest, so the
    table can be declared in any order.
    """

    def __init__(self, thresholds: Iterable[Tuple[str, float]], fallback: str):
        self.thresholds = sorted(
            ((str(label), float(minimum)) for label, minimum in thresholds),
            key=lambda pair: pair[1],
            reverse=True,
        )
        self.fallback = str(fallback)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, float], fallback: str) -> "ThresholdTable":
        return cls(mapping.items(), fallback)

    @property
    def labels(self) -> list:
        return [label for label, _ in self.thresholds] + [self.fallback]

    def __repr__(self):
        return f"ThresholdTable({self.thresholds!r}, fallback={self.fallback!r})"


def classify(score: float, table: ThresholdTable) -> str:
    """
    Return the first label whose minimum is <= score, else the catch-all.
    Minimums are inclusive, so a score equal to a threshold gets that label.
    """
    for label, minimum in table.thresholds:
        if minimum <= score:
            return label
    return table.fallback


def _scoring_conf() -> dict:
    return getattr(settings, "SCORING", {}) or {}


def grade_table() -> ThresholdTable:
    mapping = _scoring_conf().get("GRADE_BOUNDARIES") or DEFAULT_GRADE_BOUNDARIES
    return ThresholdTable.from_mapping(mapping, PerformanceGrade.D)


def status_table() -> ThresholdTable:
    mapping = _scoring_conf().get("STATUS_BOUNDARIES") or DEFAULT_STATUS_BOUNDARIES
    return ThresholdTable.from_mapping(mapping, KPIStatus.POOR)


def classify_grade(score: float) -> str:
    return classify(score, grade_table())


def classify_status(score: float) -> str:
    return classify(score, status_table())
