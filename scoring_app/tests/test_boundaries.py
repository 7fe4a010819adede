import pytest
from scoring_app.services.boundaries import (
    ThresholdTable, classify, classify_grade, classify_status, grade_table,
)


class TestClassify:
    table = ThresholdTable([("C", 60), ("S", 95), ("B", 70), ("A", 85)], fallback="D")

    def test_table_is_sorted_highest_first(self):
        assert [label for label, _ in self.table.thresholds] == ["S", "A", "B", "C"]
        assert self.table.labels == ["S", "A", "B", "C", "D"]

    @pytest.mark.parametrize("score,label", [
        (100, "S"), (95, "S"), (94.99, "A"), (85, "A"), (70, "B"),
        (60, "C"), (59.99, "D"), (0, "D"),
    ])
    def test_threshold_is_inclusive_lower_bound(self, score, label):
        assert classify(score, self.table) == label

    def test_total_for_extreme_scores(self):
        assert classify(-50, self.table) == "D"
        assert classify(10_000, self.table) == "S"

    def test_empty_table_returns_catch_all(self):
        assert classify(99, ThresholdTable([], fallback="NONE")) == "NONE"


class TestConfiguredTables:
    def test_default_grade_and_status(self):
        assert classify_grade(96) == "S"
        assert classify_grade(59) == "D"
        assert classify_status(90) == "EXCELLENT"
        assert classify_status(74.5) == "AVERAGE"
        assert classify_status(10) == "POOR"

    def test_grade_boundaries_come_from_settings(self, settings):
        settings.SCORING = {**settings.SCORING, "GRADE_BOUNDARIES": {"A": 50}}
        assert grade_table().labels == ["A", "D"]
        assert classify_grade(50) == "A"
        assert classify_grade(49) == "D"
