"""
Calculation runs: approved data entries -> entry scores -> individual
totals -> department (and optional company) rollups.

A run goes IDLE -> RUNNING -> COMPLETED | FAILED. The three phases are
strict barriers: every entry of the period is scored before any total is
computed, and every total is written before any department is rolled up.
All writes are upserts, so a failed run is fixed by running again; rows
written before the failure are left in place. A completed run also removes
result rows of earlier runs that it no longer produces.

Employees are rolled up into the department they belonged to on the
period's start date, not the one they are in today.
"""
from dataclasses import asdict, dataclass
from typing import Dict, List, NamedTuple, Optional
import logging
import time

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from scoring_app.exceptions import (
    CalculationError, FormulaEvaluationError, NotFoundError, PeriodLockedError,
)
from scoring_app.models import (
    AssessmentPeriod, CalculationRun, DataEntry, Employee, EmployeeDepartmentHistory, GroupResult,
    GroupScope, IndividualResult, PeriodStatus, RollupMethod, RunStatus, Submission, SubmissionStatus,
)
from scoring_app.services.boundaries import classify_grade, classify_status
from scoring_app.services.formula_math import ScoreResult, evaluate, total_score
from scoring_app.services.notifications import low_performance_threshold, notify_safely
from scoring_app.services.rollup_math import MemberScore, group_by_department, rollup

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    RunStatus.IDLE: {RunStatus.RUNNING},
    RunStatus.RUNNING: {RunStatus.COMPLETED, RunStatus.FAILED},
    RunStatus.COMPLETED: set(),
    RunStatus.FAILED: set(),
}


@dataclass
class CalculationSummary:
    period_id: str
    employee_count: int
    department_count: int
    elapsed_ms: int

    def as_dict(self) -> dict:
        return asdict(self)


class LockedDepartment(NamedTuple):
    department_id: Optional[object]
    name: str


def _scoring_conf() -> dict:
    return getattr(settings, "SCORING", {}) or {}


def default_rollup_method() -> str:
    return _scoring_conf().get("DEFAULT_ROLLUP_METHOD", RollupMethod.AVERAGE)


# ---- run state machine --------------------------------------------------------

def _transition(run: CalculationRun, status: str, **fields) -> None:
    if status not in ALLOWED_TRANSITIONS[run.status]:
        raise CalculationError(
            f"Run {run.pk} cannot move from {run.status} to {status}.",
            phase="state", context={"run_id": str(run.pk)},
        )
    run.status = status
    for name, value in fields.items():
        setattr(run, name, value)
    run.save(update_fields=["status", *fields.keys()])


# ---- validation ---------------------------------------------------------------------

def validate_calculation_allowed(period_id, company_id) -> AssessmentPeriod:
    """Calculation is frozen once the period is locked or its lock date passed."""
    try:
        period = AssessmentPeriod.objects.get(pk=period_id, company_id=company_id)
    except AssessmentPeriod.DoesNotExist:
        raise NotFoundError(f"Assessment period {period_id} not found.")

    if period.status == PeriodStatus.LOCKED:
        raise PeriodLockedError(f"Assessment period {period.name} is locked and cannot be recalculated.")
    if period.lock_date and timezone.now() > period.lock_date:
        raise PeriodLockedError(
            f"Assessment period {period.name} was locked on {period.lock_date:%Y-%m-%d} "
            f"and cannot be recalculated."
        )
    return period


def approved_entries(period_id, company_id) -> List[DataEntry]:
    """
    Entries of the latest approved submission version of every employee.
    Older approved versions are superseded and ignored.
    """
    latest: Dict[object, Submission] = {}
    submissions = Submission.objects.filter(
        period_id=period_id, company_id=company_id, status=SubmissionStatus.APPROVED,
    ).order_by("employee_id", "-version")
    for sub in submissions:
        latest.setdefault(sub.employee_id, sub)

    return list(
        DataEntry.objects
        .filter(submission__in=list(latest.values()))
        .select_related("assignment__metric", "employee__department")
        .order_by("employee_id", "created_at")
    )


def locked_departments(period: AssessmentPeriod, employees: Dict[object, Employee]) -> Dict[object, LockedDepartment]:
    """
    Department of every employee as of the period's start date, read from
    the department history in one query. Employees without a history row
    covering that date fall back to their current department.
    """
    history = (
        EmployeeDepartmentHistory.objects
        .filter(
            company_id=period.company_id,
            employee_id__in=list(employees),
            effective_date__lte=period.start_date,
        )
        .filter(Q(end_date__isnull=True) | Q(end_date__gte=period.start_date))
        .order_by("employee_id", "-effective_date", "-created_at")
    )
    locked: Dict[object, LockedDepartment] = {}
    for row in history:
        # newest row first per employee
        locked.setdefault(row.employee_id, LockedDepartment(row.department_id, row.department_name))

    for employee_id, employee in employees.items():
        if employee_id not in locked:
            department = employee.department
            locked[employee_id] = LockedDepartment(
                employee.department_id, department.name if department is not None else "",
            )
    return locked


# ---- per entry -------------------------------------------------------------------------

def calculate_entry_score(entry: DataEntry) -> ScoreResult:
    assignment = entry.assignment
    if assignment is None:
        raise NotFoundError(f"Assignment for entry {entry.pk} not found.")
    metric = assignment.metric
    if metric is None:
        raise NotFoundError(f"Metric for assignment {assignment.pk} not found.")

    return evaluate(
        metric.formula_kind,
        entry.actual_value,
        assignment.target_value,
        assignment.challenge_value,
        weight=assignment.weight,
        cap=metric.score_cap,
        floor=metric.score_floor,
        stepped_rules=metric.stepped_rules,
        expression=metric.custom_expression,
        context={
            "entry_id": str(entry.pk),
            "employee_id": str(entry.employee_id),
            "metric": metric.code,
        },
    )


# ---- phases ----------------------------------------------------------------------------

def _score_entries(entries: List[DataEntry]) -> Dict[object, List[ScoreResult]]:
    by_employee: Dict[object, List[ScoreResult]] = {}
    for entry in entries:
        try:
            result = calculate_entry_score(entry)
        except (FormulaEvaluationError, NotFoundError) as e:
            raise CalculationError(
                str(e), phase="entries",
                context={"entry_id": str(entry.pk), "employee_id": str(entry.employee_id)},
            ) from e
        entry.raw_score = result.raw_score
        entry.capped_score = result.capped_score
        entry.weighted_score = result.weighted_score
        by_employee.setdefault(entry.employee_id, []).append(result)

    with transaction.atomic():
        DataEntry.objects.bulk_update(entries, ["raw_score", "capped_score", "weighted_score"], batch_size=500)
    return by_employee


def _upsert_individuals(period, employees, by_employee, user) -> List[MemberScore]:
    members = []
    threshold = low_performance_threshold()
    low_performers = []
    now = timezone.now()
    departments = locked_departments(period, employees)

    with transaction.atomic():
        for employee_id, results in by_employee.items():
            employee = employees[employee_id]
            department = departments[employee_id]
            try:
                total = total_score(results)
                result, _ = IndividualResult.objects.update_or_create(
                    period=period,
                    employee=employee,
                    defaults=dict(
                        company_id=period.company_id,
                        department_id=department.department_id,
                        department_name=department.name,
                        total_score=total,
                        status=classify_status(total),
                        grade=classify_grade(total),
                        calculated_by=user,
                        calculated_at=now,
                    ),
                )
            except Exception as e:
                raise CalculationError(
                    f"Failed to store result for employee {employee_id}: {e}",
                    phase="individuals", context={"employee_id": str(employee_id)},
                ) from e
            if total < threshold:
                low_performers.append(result)
            members.append(MemberScore(
                employee_id=employee_id,
                department_id=department.department_id,
                score=total,
                is_leader=employee.is_leader,
                weight=employee.rollup_weight,
            ))

        # employees dropped from the approved set since the last run
        stale, _ = (
            IndividualResult.objects
            .filter(period=period, company_id=period.company_id)
            .exclude(employee_id__in=list(by_employee))
            .delete()
        )
    if stale:
        logger.info("Removed %s stale individual results for period %s", stale, period.name)

    for result in low_performers:
        notify_safely("low_performance", result)
    return members


def _upsert_groups(period, members: List[MemberScore], method: str) -> int:
    grouped = group_by_department(members)
    now = timezone.now()

    with transaction.atomic():
        for department_id, dept_members in grouped.items():
            try:
                score = rollup(dept_members, method)
                GroupResult.objects.update_or_create(
                    period=period,
                    scope=GroupScope.DEPARTMENT,
                    department_id=department_id,
                    defaults=dict(
                        company_id=period.company_id,
                        total_score=score,
                        employee_count=len(dept_members),
                        rollup_method=method,
                        grade=classify_grade(score),
                        calculated_at=now,
                    ),
                )
            except Exception as e:
                raise CalculationError(
                    f"Failed to roll up department {department_id}: {e}",
                    phase="groups", context={"department_id": str(department_id)},
                ) from e

        previous = GroupResult.objects.filter(period=period, company_id=period.company_id)
        previous.filter(scope=GroupScope.DEPARTMENT).exclude(department_id__in=list(grouped)).delete()

        if _scoring_conf().get("COMPANY_ROLLUP", False) and members:
            # every individual counts here, including those without a department
            score = rollup(members, method)
            GroupResult.objects.update_or_create(
                period=period,
                scope=GroupScope.COMPANY,
                company_id=period.company_id,
                defaults=dict(
                    department=None,
                    total_score=score,
                    employee_count=len(members),
                    rollup_method=method,
                    grade=classify_grade(score),
                    calculated_at=now,
                ),
            )
        else:
            previous.filter(scope=GroupScope.COMPANY).delete()
    return len(grouped)


# ---- public entry points -------------------------------------------------------

def execute_calculation(period_id, company_id, user=None, run: Optional[CalculationRun] = None,
                        method: Optional[str] = None) -> CalculationSummary:
    """
    Run a full calculation for one (period, company) synchronously and
    return the completion summary. ``run`` is created when not given.
    """
    started = time.monotonic()
    period = validate_calculation_allowed(period_id, company_id)
    method = method or default_rollup_method()

    if run is None:
        run = CalculationRun.objects.create(period=period, company_id=company_id, triggered_by=user)
    _transition(run, RunStatus.RUNNING, started_at=timezone.now())
    logger.info("Calculation run %s started for period %s", run.pk, period.name)

    try:
        entries = approved_entries(period.pk, company_id)
        employees = {e.employee_id: e.employee for e in entries}

        by_employee = _score_entries(entries)
        members = _upsert_individuals(period, employees, by_employee, user)
        department_count = _upsert_groups(period, members, method)
    except CalculationError as e:
        _fail(run, e, started)
        raise
    except Exception as e:
        err = CalculationError(str(e), phase="unknown")
        _fail(run, err, started)
        raise err from e

    summary = CalculationSummary(
        period_id=str(period.pk),
        employee_count=len(by_employee),
        department_count=department_count,
        elapsed_ms=int((time.monotonic() - started) * 1000),
    )
    _transition(
        run, RunStatus.COMPLETED,
        employee_count=summary.employee_count,
        department_count=summary.department_count,
        elapsed_ms=summary.elapsed_ms,
        finished_at=timezone.now(),
    )
    logger.info(
        "Calculation run %s completed: %s employees, %s departments in %sms",
        run.pk, summary.employee_count, summary.department_count, summary.elapsed_ms,
    )
    notify_safely("calculation_completed", period, summary)
    return summary


def _fail(run: CalculationRun, error: CalculationError, started: float) -> None:
    logger.error("Calculation run %s failed in %s phase: %s %s", run.pk, error.phase, error, error.context)
    _transition(
        run, RunStatus.FAILED,
        error=str(error),
        failed_context={"phase": error.phase, **error.context},
        elapsed_ms=int((time.monotonic() - started) * 1000),
        finished_at=timezone.now(),
    )


def trigger_calculation(period_id, company_id, user=None) -> CalculationRun:
    """
    Queue a run: validates the period and stores an IDLE run whose payload
    is {period_id, company_id, triggered_by}. ``process_calculation_runs``
    picks it up.
    """
    period = validate_calculation_allowed(period_id, company_id)
    approved = Submission.objects.filter(
        period=period, company_id=company_id, status=SubmissionStatus.APPROVED,
    ).count()
    if approved == 0:
        raise ValidationError("No approved submissions for this period; nothing to calculate.")

    run = CalculationRun.objects.create(period=period, company_id=company_id, triggered_by=user)
    logger.info("Calculation run %s queued for period %s", run.pk, period.name)
    return run


def process_run(run: CalculationRun) -> Optional[CalculationSummary]:
    """Worker side of ``trigger_calculation``; a failed run is recorded, not raised."""
    try:
        return execute_calculation(run.period_id, run.company_id, user=run.triggered_by, run=run)
    except CalculationError:
        return None
    except (NotFoundError, PeriodLockedError) as e:
        # rejected before the run started
        _transition(run, RunStatus.RUNNING, started_at=timezone.now())
        _fail(run, CalculationError(str(e), phase="validation"), time.monotonic())
        return None


def get_period_results(period_id, company_id) -> dict:
    return {
        "individual_results": list(
            IndividualResult.objects.filter(period_id=period_id, company_id=company_id)
            .select_related("employee__user").order_by("-total_score")
        ),
        "group_results": list(
            GroupResult.objects.filter(period_id=period_id, company_id=company_id)
            .select_related("department").order_by("-total_score")
        ),
    }
