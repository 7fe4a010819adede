import pytest
from datetime import date, timedelta
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.utils import timezone
from scoring_app.exceptions import CalculationError, NotFoundError, PeriodLockedError
from scoring_app.models import (
    CalculationRun, DataEntry, Employee, EmployeeDepartmentHistory, FormulaKind, GroupResult, GroupScope,
    IndividualResult, PeriodStatus, RollupMethod, RunStatus, Submission, SubmissionStatus,
)
from scoring_app.services import calculation
from scoring_app.services.calculation import (
    LockedDepartment, execute_calculation, locked_departments, process_run, trigger_calculation,
)


@pytest.fixture
def org(create_department, create_employee, create_assignment, create_submission):
    """
    Two departments (sales: 2 people, ops: 1 person) plus one employee
    without a department. Each employee has two metrics weighted 60 / 40.
    """
    sales, ops = create_department(name="Sales"), create_department(name="Ops")
    people = {
        "alice": create_employee(department=sales, is_leader=True),
        "bob": create_employee(department=sales),
        "carol": create_employee(department=ops),
        "dave": create_employee(),
    }
    actuals = {"alice": (100, 100), "bob": (50, 100), "carol": (90, 80), "dave": (120, 0)}
    for key, employee in people.items():
        a1 = create_assignment(employee=employee, target_value=100, weight=60)
        a2 = create_assignment(employee=employee, target_value=100, weight=40)
        create_submission(employee, entries=[(a1, actuals[key][0]), (a2, actuals[key][1])])
    return {"sales": sales, "ops": ops, **people}


def individual(period, employee):
    return IndividualResult.objects.get(period=period, employee=employee)


@pytest.mark.django_db
class TestExecuteCalculation:
    def test_one_row_per_employee_and_department(self, period, org):
        summary = execute_calculation(period.pk, period.company_id)

        assert summary.employee_count == 4
        assert summary.department_count == 2
        assert IndividualResult.objects.filter(period=period).count() == 4
        assert GroupResult.objects.filter(period=period).count() == 2

    def test_scores_flow_through_all_three_phases(self, period, org):
        execute_calculation(period.pk, period.company_id)

        # alice: 100%*60 + 100%*40
        assert individual(period, org["alice"]).total_score == pytest.approx(100)
        # bob: 50%*60 + 100%*40
        assert individual(period, org["bob"]).total_score == pytest.approx(70)
        # carol: 90%*60 + 80%*40
        assert individual(period, org["carol"]).total_score == pytest.approx(86)
        # dave: capped 120%*60 + 0
        assert individual(period, org["dave"]).total_score == pytest.approx(72)

        alice = individual(period, org["alice"])
        assert alice.grade == "S" and alice.status == "EXCELLENT"
        assert individual(period, org["bob"]).grade == "B"

        sales = GroupResult.objects.get(period=period, department=org["sales"])
        assert sales.total_score == pytest.approx(85)
        assert sales.employee_count == 2
        assert sales.rollup_method == RollupMethod.AVERAGE
        assert sales.grade == "A"
        ops = GroupResult.objects.get(period=period, department=org["ops"])
        assert ops.total_score == pytest.approx(86)

    def test_entry_scores_are_stored(self, period, org):
        execute_calculation(period.pk, period.company_id)
        entry = DataEntry.objects.get(employee=org["bob"], actual_value=50)
        assert entry.raw_score == pytest.approx(50)
        assert entry.capped_score == pytest.approx(50)
        assert entry.weighted_score == pytest.approx(30)

    def test_rerun_is_idempotent(self, period, org):
        execute_calculation(period.pk, period.company_id)
        first = sorted(IndividualResult.objects.filter(period=period).values_list("employee_id", "total_score"))
        groups = sorted(GroupResult.objects.filter(period=period).values_list("department_id", "total_score"))

        execute_calculation(period.pk, period.company_id)
        assert sorted(IndividualResult.objects.filter(period=period).values_list("employee_id", "total_score")) == first
        assert sorted(GroupResult.objects.filter(period=period).values_list("department_id", "total_score")) == groups
        assert CalculationRun.objects.filter(period=period, status=RunStatus.COMPLETED).count() == 2

    def test_leader_score_method(self, period, org):
        execute_calculation(period.pk, period.company_id, method=RollupMethod.LEADER_SCORE)
        sales = GroupResult.objects.get(period=period, department=org["sales"])
        assert sales.total_score == pytest.approx(100)

    def test_company_rollup_is_opt_in(self, period, org, settings):
        settings.SCORING = {**settings.SCORING, "COMPANY_ROLLUP": True}
        execute_calculation(period.pk, period.company_id)

        company_row = GroupResult.objects.get(period=period, scope=GroupScope.COMPANY)
        # every individual counts, dave included
        assert company_row.employee_count == 4
        assert company_row.total_score == pytest.approx((100 + 70 + 86 + 72) / 4)
        assert GroupResult.objects.filter(period=period, scope=GroupScope.DEPARTMENT).count() == 2

    def test_only_latest_approved_version_counts(self, period, create_employee, create_assignment, create_submission):
        emp = create_employee()
        a = create_assignment(employee=emp, weight=100)
        create_submission(emp, entries=[(a, 10)], version=1)
        create_submission(emp, entries=[(a, 80)], version=2)
        create_submission(emp, entries=[(a, 99)], version=3, status=SubmissionStatus.SUBMITTED)

        execute_calculation(period.pk, period.company_id)
        assert individual(period, emp).total_score == pytest.approx(80)

    def test_run_records_the_summary(self, period, org, create_user):
        user = create_user(role="HR")
        summary = execute_calculation(period.pk, period.company_id, user=user)
        run = CalculationRun.objects.get(period=period)
        assert run.status == RunStatus.COMPLETED
        assert run.employee_count == summary.employee_count
        assert run.department_count == summary.department_count
        assert run.elapsed_ms is not None
        assert individual(period, org["alice"]).calculated_by == user


@pytest.mark.django_db
class TestDepartmentPlacement:
    def test_moved_employee_leaves_no_stale_rows(self, period, create_department, create_employee,
                                                 create_assignment, create_submission):
        sales, ops = create_department(name="Sales"), create_department(name="Ops")
        emp = create_employee(department=sales)
        a = create_assignment(employee=emp, weight=100)
        create_submission(emp, entries=[(a, 80)])
        execute_calculation(period.pk, period.company_id)
        assert list(GroupResult.objects.filter(period=period).values_list("department__name", flat=True)) == ["Sales"]

        emp.department = ops
        emp.save()
        summary = execute_calculation(period.pk, period.company_id)

        assert summary.department_count == 1
        rows = GroupResult.objects.filter(period=period)
        assert [(r.department.name, r.employee_count) for r in rows] == [("Ops", 1)]
        assert individual(period, emp).department == ops

    def test_employee_without_approved_submission_is_removed(self, period, org):
        execute_calculation(period.pk, period.company_id)
        Submission.objects.filter(employee=org["carol"]).update(status=SubmissionStatus.REJECTED)

        summary = execute_calculation(period.pk, period.company_id)
        assert summary.employee_count == 3
        assert not IndividualResult.objects.filter(period=period, employee=org["carol"]).exists()
        # ops had only carol
        assert not GroupResult.objects.filter(period=period, department=org["ops"]).exists()

    def test_company_row_is_removed_when_rollup_is_switched_off(self, period, org, settings):
        settings.SCORING = {**settings.SCORING, "COMPANY_ROLLUP": True}
        execute_calculation(period.pk, period.company_id)
        assert GroupResult.objects.filter(period=period, scope=GroupScope.COMPANY).exists()

        settings.SCORING = {**settings.SCORING, "COMPANY_ROLLUP": False}
        execute_calculation(period.pk, period.company_id)
        assert not GroupResult.objects.filter(period=period, scope=GroupScope.COMPANY).exists()
        assert GroupResult.objects.filter(period=period).count() == 2

    def test_transfer_during_period_keeps_start_department(self, period, create_department, create_employee,
                                                           create_assignment, create_submission):
        sales, ops = create_department(name="Sales"), create_department(name="Ops")
        emp = create_employee(department=ops)
        EmployeeDepartmentHistory.objects.create(
            employee=emp, company=period.company, department=sales, department_name="Sales",
            effective_date=date(2024, 6, 1), end_date=date(2025, 2, 14),
        )
        EmployeeDepartmentHistory.objects.create(
            employee=emp, company=period.company, department=ops, department_name="Ops",
            effective_date=date(2025, 2, 15),
        )
        a = create_assignment(employee=emp, weight=100)
        create_submission(emp, entries=[(a, 90)])

        execute_calculation(period.pk, period.company_id)

        result = individual(period, emp)
        assert result.department == sales
        assert result.department_name == "Sales"
        assert GroupResult.objects.get(period=period, department=sales).employee_count == 1
        assert not GroupResult.objects.filter(period=period, department=ops).exists()

    def test_no_history_falls_back_to_current_department(self, period, org):
        departments = locked_departments(period, {org["bob"].pk: org["bob"], org["dave"].pk: org["dave"]})
        assert departments[org["bob"].pk] == LockedDepartment(org["sales"].pk, "Sales")
        assert departments[org["dave"].pk] == LockedDepartment(None, "")

    def test_history_is_read_in_one_query(self, period, org, django_assert_num_queries):
        employees = {e.pk: e for e in Employee.objects.select_related("department")}
        with django_assert_num_queries(1):
            departments = locked_departments(period, employees)
        assert len(departments) == 4


@pytest.mark.django_db
class TestFailures:
    def test_bad_custom_formula_fails_run_with_context(self, period, create_employee, create_metric,
                                                       create_assignment, create_submission):
        good_emp, bad_emp = create_employee(), create_employee()
        good = create_assignment(employee=good_emp, weight=100)
        create_submission(good_emp, entries=[(good, 100)])
        metric = create_metric(formula_kind=FormulaKind.CUSTOM, custom_expression="actual / target")
        bad = create_assignment(employee=bad_emp, metric=metric, target_value=0, weight=100)
        create_submission(bad_emp, entries=[(bad, 5)])
        bad_entry = DataEntry.objects.get(assignment=bad)

        with pytest.raises(CalculationError) as exc:
            execute_calculation(period.pk, period.company_id)

        assert exc.value.phase == "entries"
        run = CalculationRun.objects.get(period=period)
        assert run.status == RunStatus.FAILED
        assert run.failed_context["phase"] == "entries"
        assert run.failed_context["entry_id"] == str(bad_entry.pk)
        assert run.failed_context["employee_id"] == str(bad_emp.pk)
        assert "Formula evaluation failed" in run.error
        assert not IndividualResult.objects.filter(period=period).exists()

    def test_locked_period(self, create_period):
        locked = create_period(status=PeriodStatus.LOCKED)
        with pytest.raises(PeriodLockedError):
            execute_calculation(locked.pk, locked.company_id)

    def test_lock_date_passed(self, create_period):
        past = create_period(lock_date=timezone.now() - timedelta(days=1))
        with pytest.raises(PeriodLockedError):
            execute_calculation(past.pk, past.company_id)

    def test_unknown_period(self, company):
        with pytest.raises(NotFoundError):
            execute_calculation("00000000-0000-0000-0000-000000000000", company.company_id)

    def test_run_cannot_restart(self, period, org):
        execute_calculation(period.pk, period.company_id)
        run = CalculationRun.objects.get(period=period)
        with pytest.raises(CalculationError):
            execute_calculation(period.pk, period.company_id, run=run)


@pytest.mark.django_db
class TestQueuedRuns:
    def test_trigger_then_process(self, period, org, create_user):
        user = create_user(role="HR")
        run = trigger_calculation(period.pk, period.company_id, user)
        assert run.status == RunStatus.IDLE
        assert run.payload == {
            "period_id": str(period.pk),
            "company_id": str(period.company_id),
            "triggered_by": str(user.pk),
        }

        summary = process_run(run)
        run.refresh_from_db()
        assert run.status == RunStatus.COMPLETED
        assert summary.employee_count == 4

    def test_trigger_needs_approved_submissions(self, period):
        with pytest.raises(ValidationError):
            trigger_calculation(period.pk, period.company_id)

    def test_process_records_period_locked_after_queueing(self, period, org):
        run = trigger_calculation(period.pk, period.company_id)
        period.status = PeriodStatus.LOCKED
        period.save()

        assert process_run(run) is None
        run.refresh_from_db()
        assert run.status == RunStatus.FAILED
        assert run.failed_context["phase"] == "validation"

    def test_management_command_processes_idle_runs(self, period, org):
        trigger_calculation(period.pk, period.company_id)
        call_command("process_calculation_runs")
        assert CalculationRun.objects.get(period=period).status == RunStatus.COMPLETED
        assert IndividualResult.objects.filter(period=period).count() == 4


@pytest.mark.django_db
class TestNotifications:
    def test_low_performers_and_completion_are_reported(self, period, org, monkeypatch):
        calls = []
        monkeypatch.setattr(calculation, "notify_safely", lambda name, *args: calls.append((name, args)))
        execute_calculation(period.pk, period.company_id)

        low = [args[0].employee_id for name, args in calls if name == "low_performance"]
        # nobody scores below 60 in this org
        assert low == []
        assert [name for name, _ in calls].count("calculation_completed") == 1

    def test_threshold_comes_from_settings(self, period, org, settings, monkeypatch):
        settings.SCORING = {**settings.SCORING, "LOW_PERFORMANCE_THRESHOLD": 80}
        calls = []
        monkeypatch.setattr(calculation, "notify_safely", lambda name, *args: calls.append((name, args)))
        execute_calculation(period.pk, period.company_id)

        low = {args[0].employee_id for name, args in calls if name == "low_performance"}
        assert low == {org["bob"].pk, org["dave"].pk}

    def test_failing_notifier_does_not_fail_the_run(self, period, org, settings):
        settings.SCORING = {**settings.SCORING, "NOTIFIER": "scoring_app.tests.test_calculation.BrokenNotifier"}
        summary = execute_calculation(period.pk, period.company_id)
        assert summary.employee_count == 4


class BrokenNotifier:
    def calculation_completed(self, period, summary):
        raise RuntimeError("mail server down")

    def low_performance(self, result):
        raise RuntimeError("mail server down")
