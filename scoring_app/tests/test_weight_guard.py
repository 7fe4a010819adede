import itertools
import threading
import pytest
from django.core.exceptions import ValidationError
from django.db import connection
from scoring_app.exceptions import NotFoundError, PeriodLockedError, WeightExceededError
from scoring_app.models import Assignment, Company, MetricDefinition, PeriodStatus
from scoring_app.services import weight_guard
from scoring_app.services.weight_guard import ScopeKey, current_weight_sum, reserve_weight


def committed_sum(period, **target):
    return float(current_weight_sum(ScopeKey(period.pk, period.company_id, **target)))


@pytest.mark.django_db
class TestCreateAssignment:
    def test_three_times_forty_lets_exactly_two_through(self, period, create_assignment):
        outcomes = []
        for _ in range(3):
            try:
                create_assignment(weight=40)
                outcomes.append("ok")
            except WeightExceededError as e:
                outcomes.append("rejected")
                assert e.attempted_total == pytest.approx(120)
                assert e.current_sum == pytest.approx(80)
        assert outcomes.count("ok") == 2
        assert outcomes.count("rejected") == 1
        assert committed_sum(period) == pytest.approx(80)

    @pytest.mark.parametrize("order", list(itertools.permutations([60, 40, 30])))
    def test_committed_sum_never_exceeds_100(self, order, period, create_assignment):
        for weight in order:
            try:
                create_assignment(weight=weight)
            except WeightExceededError:
                pass
            assert committed_sum(period) <= 100

    def test_exactly_100_is_allowed(self, period, create_assignment):
        create_assignment(weight=70)
        create_assignment(weight=30)
        assert committed_sum(period) == pytest.approx(100)

    def test_scopes_are_disjoint(self, period, create_assignment, create_department, create_employee):
        dept = create_department()
        emp = create_employee(department=dept)
        create_assignment(weight=100)
        create_assignment(weight=100, department=dept)
        create_assignment(weight=100, employee=emp)
        assert committed_sum(period) == pytest.approx(100)
        assert committed_sum(period, department_id=dept.pk) == pytest.approx(100)
        assert committed_sum(period, employee_id=emp.pk) == pytest.approx(100)

    def test_default_weight_comes_from_metric(self, create_assignment, create_metric):
        assignment = create_assignment(metric=create_metric(default_weight=15), weight=None)
        assert assignment.weight == 15

    def test_department_and_employee_together(self, create_assignment, create_department, create_employee):
        with pytest.raises(ValidationError):
            create_assignment(department=create_department(), employee=create_employee())

    def test_weight_out_of_range(self, create_assignment):
        with pytest.raises(ValidationError):
            create_assignment(weight=120)

    def test_same_metric_twice_on_one_target(self, create_assignment, create_metric):
        metric = create_metric()
        create_assignment(metric=metric, weight=10)
        with pytest.raises(ValidationError):
            create_assignment(metric=metric, weight=10)

    def test_inactive_metric(self, create_assignment, create_metric):
        with pytest.raises(ValidationError):
            create_assignment(metric=create_metric(is_active=False))

    def test_locked_period(self, create_period, create_assignment):
        locked = create_period(status=PeriodStatus.LOCKED)
        with pytest.raises(PeriodLockedError):
            create_assignment(period=locked)

    def test_metric_of_another_company(self, create_assignment):
        other = Company.objects.create(name="Other Co")
        foreign = MetricDefinition.objects.create(company=other, code="X1", name="Foreign")
        with pytest.raises(NotFoundError):
            create_assignment(metric=foreign)


@pytest.mark.django_db
class TestUpdateAndDelete:
    def test_update_excludes_own_weight(self, period, create_assignment):
        a = create_assignment(weight=60)
        create_assignment(weight=40)
        with pytest.raises(WeightExceededError):
            weight_guard.update_assignment(a, weight=61)
        updated = weight_guard.update_assignment(a, weight=60, target_value=200)
        assert updated.target_value == 200
        weight_guard.update_assignment(a, weight=10)
        assert committed_sum(period) == pytest.approx(50)

    def test_scope_fields_cannot_change(self, create_assignment, create_department):
        a = create_assignment()
        with pytest.raises(ValidationError):
            weight_guard.update_assignment(a, department=create_department())

    def test_delete_returns_weight_to_scope(self, period, create_assignment):
        a = create_assignment(weight=80)
        with pytest.raises(WeightExceededError):
            create_assignment(weight=30)
        weight_guard.delete_assignment(a)
        create_assignment(weight=30)
        assert committed_sum(period) == pytest.approx(30)
        assert Assignment.objects.filter(pk=a.pk, is_deleted=True).exists()

    def test_update_deleted_assignment(self, create_assignment):
        a = create_assignment()
        weight_guard.delete_assignment(a)
        with pytest.raises(NotFoundError):
            weight_guard.update_assignment(a, weight=5)


@pytest.mark.django_db
class TestBulkAndSummary:
    def test_bulk_reports_per_item_failures(self, period, create_metric, create_department):
        dept = create_department()
        items = [
            {"metric_id": create_metric().pk, "target_value": 10, "weight": 70},
            {"metric_id": create_metric().pk, "target_value": 10, "weight": 40},
            {"metric_id": create_metric().pk, "department_id": dept.pk, "target_value": 10, "weight": 40},
            {"metric_id": create_metric().pk, "employee_id": dept.pk, "target_value": 10, "weight": 5},
        ]
        result = weight_guard.bulk_create_assignments(period, items)
        assert result["success"] == 2
        assert result["failed"] == 2
        assert len(result["errors"]) == 2

    def test_scope_summary(self, period, create_assignment):
        create_assignment(weight=35)
        summary = weight_guard.scope_summary(ScopeKey(period.pk, period.company_id))
        assert summary == {
            "scope": "COMPANY",
            "key": f"company:{period.company_id}",
            "assigned": 35.0,
            "remaining": 65.0,
        }


@pytest.mark.django_db(transaction=True)
def test_reserve_requires_transaction(period):
    with pytest.raises(RuntimeError):
        reserve_weight(ScopeKey(period.pk, period.company_id), 10)


@pytest.mark.django_db(transaction=True)
def test_concurrent_reservations_on_one_scope(period, create_metric):
    metrics = [create_metric() for _ in range(3)]
    barrier = threading.Barrier(3)
    outcomes = []

    def worker(metric):
        try:
            barrier.wait()
            weight_guard.create_assignment(period=period, metric=metric, target_value=1, weight=40)
            outcomes.append("ok")
        except WeightExceededError:
            outcomes.append("rejected")
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(m,)) for m in metrics]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["ok", "ok", "rejected"]
    assert committed_sum(period) == pytest.approx(80)
