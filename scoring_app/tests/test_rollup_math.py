import pytest
from scoring_app.models import RollupMethod
from scoring_app.services.rollup_math import (
    MemberScore, company_rollup, group_by_department, rollup,
)


def member(score, dept="A", **kw):
    return MemberScore(employee_id=kw.pop("employee_id", object()), department_id=dept, score=score, **kw)


class TestRollup:
    @pytest.mark.parametrize("method", list(RollupMethod.values))
    def test_empty_input_is_zero_for_every_method(self, method):
        assert rollup([], method) == 0

    def test_average(self):
        assert rollup([member(80), member(60)], RollupMethod.AVERAGE) == pytest.approx(70)

    def test_plain_numbers_are_accepted(self):
        assert rollup([80, 60]) == pytest.approx(70)

    def test_weighted_average(self):
        scores = [member(90, weight=3), member(50, weight=1)]
        assert rollup(scores, RollupMethod.WEIGHTED_AVERAGE) == pytest.approx(80)

    def test_weighted_average_unweighted_members_count_as_one(self):
        scores = [member(90, weight=2), member(60)]
        assert rollup(scores, RollupMethod.WEIGHTED_AVERAGE) == pytest.approx(80)

    def test_weighted_average_zero_total_weight(self):
        scores = [member(90, weight=0), member(60, weight=0)]
        assert rollup(scores, RollupMethod.WEIGHTED_AVERAGE) == 0

    def test_leader_score(self):
        scores = [member(70), member(95, is_leader=True), member(40)]
        assert rollup(scores, RollupMethod.LEADER_SCORE) == pytest.approx(95)

    def test_leader_score_falls_back_to_average(self):
        assert rollup([member(70), member(40)], RollupMethod.LEADER_SCORE) == pytest.approx(55)

    def test_literal_methods(self):
        scores = [member(70), member(40), member(90)]
        assert rollup(scores, RollupMethod.SUM) == pytest.approx(200)
        assert rollup(scores, RollupMethod.MIN) == pytest.approx(40)
        assert rollup(scores, RollupMethod.MAX) == pytest.approx(90)

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            rollup([member(1)], "MEDIAN")


class TestGrouping:
    def test_partition_by_department(self):
        scores = [member(80, "A"), member(60, "B"), member(40, "A"), member(100, None)]
        grouped = group_by_department(scores)
        assert list(grouped) == ["A", "B"]
        assert [s.score for s in grouped["A"]] == [80, 40]
        # no department: left out of department rollups
        assert sum(len(v) for v in grouped.values()) == 3


class TestCompanyRollup:
    def test_plain_average_without_weights(self):
        assert company_rollup({"A": 80, "B": 60}) == pytest.approx(70)

    def test_weighted_by_department(self):
        assert company_rollup({"A": 80, "B": 60}, weights={"A": 3, "B": 1}) == pytest.approx(75)

    def test_other_methods(self):
        assert company_rollup({"A": 80, "B": 60}, RollupMethod.MAX) == pytest.approx(80)

    def test_empty(self):
        assert company_rollup({}) == 0
