"""
Weight budget guard for assignments.

Every (period, target) scope owns a budget of 100%: company-wide
assignments (no department, no employee), one department's assignments,
or one employee's assignments. The three scopes are disjoint.

``reserve_weight`` must run inside the same ``transaction.atomic()`` block
as the assignment write it protects. It takes a row lock on the scope's
``WeightScopeLock`` row before reading the current sum, so a second writer
of the same scope blocks until the first one commits and then sees its
weight.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from scoring_app.exceptions import NotFoundError, PeriodLockedError, WeightExceededError
from scoring_app.models import (
    AssessmentPeriod, Assignment, Department, Employee, MetricDefinition, PeriodStatus,
    WeightScopeLock,
)

logger = logging.getLogger(__name__)

TOTAL_WEIGHT = Decimal("100")

def _d(x) -> Decimal:
    return Decimal(str(x))

@dataclass(frozen=True)
class ScopeKey:
    period_id: object
    company_id: object
    department_id: Optional[object] = None
    employee_id: Optional[object] = None

    def __post_init__(self):
        if self.department_id and self.employee_id:
            raise ValidationError("An assignment targets either a department or an employee, not both.")

    @classmethod
    def for_assignment(cls, assignment: Assignment) -> "ScopeKey":
        return cls(
            period_id=assignment.period_id,
            company_id=assignment.company_id,
            department_id=assignment.department_id,
            employee_id=assignment.employee_id,
        )

    @property
    def scope_type(self) -> str:
        if self.employee_id:
            return "EMPLOYEE"
        if self.department_id:
            return "DEPARTMENT"
        return "COMPANY"

    @property
    def key(self) -> str:
        if self.employee_id:
            return f"employee:{self.employee_id}"
        if self.department_id:
            return f"department:{self.department_id}"
        return f"company:{self.company_id}"

    @property
    def label(self) -> str:
        return {
            "EMPLOYEE": "Employee",
            "DEPARTMENT": "Department",
            "COMPANY": "Company-level",
        }[self.scope_type]

    def assignment_filter(self) -> dict:
        # exact scope: the unset dimensions must be NULL
        return dict(
            period_id=self.period_id,
            company_id=self.company_id,
            department_id=None if self.employee_id else self.department_id,
            employee_id=self.employee_id,
            is_deleted=False,
        )

def current_weight_sum(scope: ScopeKey, exclude_assignment_id=None) -> Decimal:
    qs = Assignment.objects.filter(**scope.assignment_filter())
    if exclude_assignment_id is not None:
        qs = qs.exclude(pk=exclude_assignment_id)
    total = qs.aggregate(total=Sum("weight"))["total"]
    return _d(total or 0)

def _lock_scope(scope: ScopeKey) -> None:
    # get_or_create re-reads the row when a concurrent writer inserted it first
    WeightScopeLock.objects.get_or_create(period_id=scope.period_id, scope_key=scope.key)
    # blocks here while another transaction holds this scope
    list(WeightScopeLock.objects.select_for_update().filter(period_id=scope.period_id, scope_key=scope.key))

def reserve_weight(scope: ScopeKey, proposed_weight, exclude_assignment_id=None) -> None:
    """
    Check that ``proposed_weight`` still fits in the scope's budget.

    Raises WeightExceededError when current + proposed > 100. Never
    retries; the caller picks a smaller weight.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("reserve_weight must run inside transaction.atomic()")

    _lock_scope(scope)
    current = current_weight_sum(scope, exclude_assignment_id)
    attempted = current + _d(proposed_weight)
    if attempted > TOTAL_WEIGHT:
        logger.warning(
            "Weight reservation rejected for %s in period %s: %s + %s > 100",
            scope.key, scope.period_id, current, proposed_weight,
        )
        raise WeightExceededError(scope, float(attempted), float(current))

# ---- transactional write primitives ---------------------------------------------

def _check_period_open(period: AssessmentPeriod) -> None:
    if period.status == PeriodStatus.LOCKED:
        raise PeriodLockedError(f"Assessment period {period.name} is locked; assignments cannot change.")

def _check_weight_range(weight) -> None:
    if weight is None or _d(weight) < 0 or _d(weight) > TOTAL_WEIGHT:
        raise ValidationError(f"Weight must be between 0 and 100, got {weight}.")

def create_assignment(*, period, metric, target_value, weight=None, department=None,
                      employee=None, challenge_value=None) -> Assignment:
    """Create one assignment, reserving its weight in the same transaction."""
    if department is not None and employee is not None:
        raise ValidationError("An assignment targets either a department or an employee, not both.")
    if metric.company_id != period.company_id:
        raise NotFoundError(f"Metric {metric.pk} not found for company {period.company_id}.")
    for target in (department, employee):
        if target is not None and target.company_id != period.company_id:
            raise NotFoundError(f"{type(target).__name__} {target.pk} not found for company {period.company_id}.")
    if not metric.is_active:
        raise ValidationError(f"Metric {metric.code} is deactivated.")
    _check_period_open(period)

    if weight is None:
        weight = metric.default_weight
    _check_weight_range(weight)

    scope = ScopeKey(
        period_id=period.pk,
        company_id=period.company_id,
        department_id=getattr(department, "pk", None),
        employee_id=getattr(employee, "pk", None),
    )

    with transaction.atomic():
        reserve_weight(scope, weight)
        duplicate = Assignment.objects.filter(
            period=period, metric=metric, department=department, employee=employee, is_deleted=False,
        ).exists()
        if duplicate:
            raise ValidationError(f"Metric {metric.code} is already assigned to this target.")
        assignment = Assignment.objects.create(
            period=period,
            metric=metric,
            company_id=period.company_id,
            department=department,
            employee=employee,
            target_value=target_value,
            challenge_value=challenge_value,
            weight=weight,
        )
    logger.info("Assignment %s created in %s with weight %s", assignment.pk, scope.key, weight)
    return assignment

def update_assignment(assignment: Assignment, **changes) -> Assignment:
    """
    Update target / challenge / weight of an assignment. Scope fields are
    fixed; moving an assignment means deleting and recreating it.
    """
    allowed = {"target_value", "challenge_value", "weight"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Cannot change {', '.join(sorted(unknown))} on an assignment.")

    with transaction.atomic():
        locked = Assignment.objects.select_for_update().get(pk=assignment.pk)
        if locked.is_deleted:
            raise NotFoundError(f"Assignment {assignment.pk} not found.")
        _check_period_open(locked.period)

        new_weight = changes.get("weight", locked.weight)
        if "weight" in changes and _d(new_weight) != _d(locked.weight):
            _check_weight_range(new_weight)
            reserve_weight(ScopeKey.for_assignment(locked), new_weight, exclude_assignment_id=locked.pk)

        for field, value in changes.items():
            setattr(locked, field, value)
        locked.save(update_fields=[*changes.keys(), "updated_at"])
    return locked

def delete_assignment(assignment: Assignment) -> None:
    """Soft delete; the weight goes back to the scope's budget."""
    _check_period_open(assignment.period)
    Assignment.objects.filter(pk=assignment.pk).update(is_deleted=True, updated_at=timezone.now())

def _resolve(model, pk, company_id, label):
    if not pk:
        return None
    try:
        return model.objects.get(pk=pk, company_id=company_id)
    except model.DoesNotExist:
        raise NotFoundError(f"{label} {pk} not found.")

def bulk_create_assignments(period: AssessmentPeriod, items) -> dict:
    """
    Create assignments one by one from dicts holding metric_id /
    department_id / employee_id plus values. Each item is independent, so
    one failure does not roll back the others.
    """
    _check_period_open(period)
    results = {"success": 0, "failed": 0, "errors": []}
    for item in items:
        item = dict(item)
        metric_id = item.pop("metric_id", None)
        try:
            metric = _resolve(MetricDefinition, metric_id, period.company_id, "Metric")
            if metric is None:
                raise NotFoundError("metric_id is required.")
            create_assignment(
                period=period,
                metric=metric,
                department=_resolve(Department, item.pop("department_id", None), period.company_id, "Department"),
                employee=_resolve(Employee, item.pop("employee_id", None), period.company_id, "Employee"),
                **item,
            )
            results["success"] += 1
        except (ValidationError, WeightExceededError, NotFoundError, PeriodLockedError) as e:
            results["failed"] += 1
            message = "; ".join(e.messages) if isinstance(e, ValidationError) else str(e)
            results["errors"].append(f"{metric_id}: {message}")
    return results

def scope_summary(scope: ScopeKey) -> dict:
    assigned = current_weight_sum(scope)
    return {
        "scope": scope.scope_type,
        "key": scope.key,
        "assigned": float(assigned),
        "remaining": float(TOTAL_WEIGHT - assigned),
    }
