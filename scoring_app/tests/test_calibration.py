import pytest
from scoring_app.models import CalibrationAdjustment, IndividualResult
from scoring_app.services.calibration import adjust_score, apply_adjustments, score_stats
from scoring_app.services.calculation import execute_calculation


@pytest.fixture
def result(period, create_employee, create_assignment, create_submission):
    emp = create_employee()
    a = create_assignment(employee=emp, weight=100)
    create_submission(emp, entries=[(a, 72)])
    execute_calculation(period.pk, period.company_id)
    return IndividualResult.objects.get(period=period, employee=emp)


@pytest.mark.django_db
class TestCalibration:
    def test_adjust_keeps_original_score(self, result, create_user):
        hr = create_user(role="HR")
        adj = adjust_score(result, 88, user=hr, reason="Cross-team project")
        assert adj.original_score == pytest.approx(72)
        assert adj.original_grade == "B"
        assert adj.adjusted_grade == "A"
        assert adj.applied is False

        # a second override still remembers the calculated score
        adj = adjust_score(result, 90, user=hr)
        assert adj.original_score == pytest.approx(72)
        assert CalibrationAdjustment.objects.count() == 1

    def test_readjust_after_recalculation_uses_new_score(self, result):
        adjust_score(result, 88)
        # a later run changed the calculated score
        IndividualResult.objects.filter(pk=result.pk).update(total_score=65)

        adj = adjust_score(result, 90)
        assert adj.original_score == pytest.approx(65)
        assert adj.original_grade == "C"

    def test_readjust_after_apply_starts_from_applied_score(self, period, result):
        adjust_score(result, 96)
        apply_adjustments(period)

        adj = adjust_score(result, 80)
        assert adj.original_score == pytest.approx(96)
        assert adj.applied is False

    def test_readjust_after_apply_and_recalculation(self, period, result):
        adjust_score(result, 96)
        apply_adjustments(period)
        execute_calculation(period.pk, period.company_id)

        adj = adjust_score(result, 80)
        assert adj.original_score == pytest.approx(72)

    def test_apply_writes_back_once(self, period, result):
        adjust_score(result, 96)
        assert apply_adjustments(period) == 1
        result.refresh_from_db()
        assert result.total_score == pytest.approx(96)
        assert result.grade == "S"
        assert result.status == "EXCELLENT"
        assert apply_adjustments(period) == 0

    def test_recalculation_replaces_applied_override(self, period, result):
        adjust_score(result, 96)
        apply_adjustments(period)
        execute_calculation(period.pk, period.company_id)
        result.refresh_from_db()
        assert result.total_score == pytest.approx(72)


class TestScoreStats:
    def test_stats(self):
        stats = score_stats([60, 80, 100])
        assert stats["avg"] == pytest.approx(80)
        assert stats["min"] == 60
        assert stats["max"] == 100
        assert stats["std_dev"] == pytest.approx(16.33)
        assert stats["count"] == 3

    def test_empty(self):
        assert score_stats([]) == {"avg": 0, "min": 0, "max": 0, "std_dev": 0, "count": 0}
