import uuid
from django.db import models
from django.utils import timezone
from django.conf import settings
from django.db.models import Q
from django.core.exceptions import ValidationError

# ── Lookup / Enum helpers ────────────────────────────────────────────────

class PeriodStatus(models.TextChoices):
    DRAFT  = "DRAFT",  "Draft"
    ACTIVE = "ACTIVE", "Active"
    LOCKED = "LOCKED", "Locked"

class FormulaKind(models.TextChoices):
    POSITIVE = "POSITIVE", "Positive"      # higher actual is better
    NEGATIVE = "NEGATIVE", "Negative"      # lower actual is better
    BINARY   = "BINARY",   "Binary"        # any incident is a full failure
    STEPPED  = "STEPPED",  "Stepped"
    CUSTOM   = "CUSTOM",   "Custom"

class SubmissionStatus(models.TextChoices):
    DRAFT     = "DRAFT",     "Draft"
    SUBMITTED = "SUBMITTED", "Submitted"
    APPROVED  = "APPROVED",  "Approved"
    REJECTED  = "REJECTED",  "Rejected"

class KPIStatus(models.TextChoices):
    EXCELLENT = "EXCELLENT", "Excellent"
    GOOD      = "GOOD",      "Good"
    AVERAGE   = "AVERAGE",   "Average"
    POOR      = "POOR",      "Poor"

class PerformanceGrade(models.TextChoices):
    S = "S", "S"
    A = "A", "A"
    B = "B", "B"
    C = "C", "C"
    D = "D", "D"

class RollupMethod(models.TextChoices):
    AVERAGE          = "AVERAGE",          "Average"
    WEIGHTED_AVERAGE = "WEIGHTED_AVERAGE", "Weighted average"
    LEADER_SCORE     = "LEADER_SCORE",     "Leader score"
    SUM              = "SUM",              "Sum"
    MIN              = "MIN",              "Min"
    MAX              = "MAX",              "Max"

class GroupScope(models.TextChoices):
    DEPARTMENT = "DEPARTMENT", "Department"
    COMPANY    = "COMPANY",    "Company"

class RunStatus(models.TextChoices):
    IDLE      = "IDLE",      "Idle"
    RUNNING   = "RUNNING",   "Running"
    COMPLETED = "COMPLETED", "Completed"
    FAILED    = "FAILED",    "Failed"

# ── Org tables ───────────────────────────────────────────────────────────
class Company(models.Model):
    company_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name       = models.CharField(max_length=180)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name


class Department(models.Model):
    department_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name          = models.CharField(max_length=120)
    company       = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="departments")
    leader        = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, related_name="led_departments", null=True, blank=True)
    created_at    = models.DateTimeField(default=timezone.now)
    updated_at    = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "name"], name="uniq_dept_per_company")
        ]

    def __str__(self):
        return self.name


class Employee(models.Model):
    employee_id   = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user          = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="employee_profile")
    company       = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="employees")
    department    = models.ForeignKey(Department, on_delete=models.SET_NULL, null=True, blank=True, related_name="employees")
    is_leader     = models.BooleanField(default=False)
    rollup_weight = models.FloatField(null=True, blank=True)  # member weight for WEIGHTED_AVERAGE rollups
    created_at    = models.DateTimeField(default=timezone.now)
    updated_at    = models.DateTimeField(auto_now=True)

    def __str__(self):
        return getattr(self.user, "name", "") or str(self.employee_id)


class EmployeeDepartmentHistory(models.Model):
    """One row per stint in a department; ``end_date`` is empty for the current one."""
    history_id      = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    employee        = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="department_history")
    company         = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="department_history")
    department      = models.ForeignKey(Department, on_delete=models.SET_NULL, null=True, blank=True, related_name="member_history")
    department_name = models.CharField(max_length=120, blank=True)  # kept when the department is deleted
    effective_date  = models.DateField()
    end_date        = models.DateField(null=True, blank=True)
    created_at      = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["employee", "-effective_date"]
        indexes = [models.Index(fields=["company", "employee", "effective_date"], name="idx_dept_history_lookup")]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_date__isnull=True) | Q(end_date__gte=models.F("effective_date")),
                name="dept_history_end_after_start",
            )
        ]

    def __str__(self):
        return f"{self.employee} in {self.department_name or '-'} from {self.effective_date}"


# ── Assessment periods & metric library ─────────────────────────────────
class AssessmentPeriod(models.Model):
    period_id  = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company    = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="periods")
    name       = models.CharField(max_length=60)       # e.g. '2025-Q1'
    start_date = models.DateField()
    end_date   = models.DateField()
    lock_date  = models.DateTimeField(null=True, blank=True)
    status     = models.CharField(max_length=10, choices=PeriodStatus.choices, default=PeriodStatus.DRAFT)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name


# Formula fields of a definition become immutable once an assignment references it.
FORMULA_FIELDS = ("formula_kind", "score_cap", "score_floor", "stepped_rules", "custom_expression")


class MetricDefinition(models.Model):
    metric_id         = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company           = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="metrics")
    code              = models.CharField(max_length=40)
    name              = models.CharField(max_length=200)
    formula_kind      = models.CharField(max_length=10, choices=FormulaKind.choices, default=FormulaKind.POSITIVE)
    score_cap         = models.FloatField(default=120)
    score_floor       = models.FloatField(default=0)
    stepped_rules     = models.JSONField(default=list, blank=True)  # [{"threshold":..,"score":..,"operator":"gte"}]
    custom_expression = models.TextField(blank=True, default="")
    default_weight    = models.FloatField(default=10)
    is_active         = models.BooleanField(default=True)
    created_at        = models.DateTimeField(default=timezone.now)
    updated_at        = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "code"], name="uniq_metric_code_per_company")
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    def is_referenced(self) -> bool:
        return self.pk is not None and self.assignments.filter(is_deleted=False).exists()

    def save(self, *args, **kwargs):
        if not self._state.adding and self.is_referenced():
            old = MetricDefinition.objects.filter(pk=self.pk).values(*FORMULA_FIELDS).first()
            if old:
                changed = [f for f in FORMULA_FIELDS if old[f] != getattr(self, f)]
                if changed:
                    raise ValidationError(
                        f"Metric {self.code} is referenced by assignments; "
                        f"cannot change {', '.join(changed)}."
                    )
        super().save(*args, **kwargs)


class Assignment(models.Model):
    assignment_id   = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    metric          = models.ForeignKey(MetricDefinition, on_delete=models.PROTECT, related_name="assignments")
    period          = models.ForeignKey(AssessmentPeriod, on_delete=models.CASCADE, related_name="assignments")
    company         = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="assignments")
    # at most one of department / employee; neither means company-wide
    department      = models.ForeignKey(Department, on_delete=models.CASCADE, null=True, blank=True, related_name="assignments")
    employee        = models.ForeignKey(Employee, on_delete=models.CASCADE, null=True, blank=True, related_name="assignments")
    target_value    = models.FloatField()
    challenge_value = models.FloatField(null=True, blank=True)
    weight          = models.FloatField()
    is_deleted      = models.BooleanField(default=False)
    created_at      = models.DateTimeField(default=timezone.now)
    updated_at      = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(weight__gte=0) & Q(weight__lte=100),
                name="assignment_weight_0_100",
            ),
            models.CheckConstraint(
                condition=Q(department__isnull=True) | Q(employee__isnull=True),
                name="assignment_single_target",
            ),
        ]

    @property
    def scope_type(self) -> str:
        if self.employee_id:
            return "EMPLOYEE"
        if self.department_id:
            return "DEPARTMENT"
        return "COMPANY"


class WeightScopeLock(models.Model):
    """One row per weight budget; locked while an assignment write is checked."""
    period     = models.ForeignKey(AssessmentPeriod, on_delete=models.CASCADE, related_name="weight_locks")
    scope_key  = models.CharField(max_length=120)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["period", "scope_key"], name="uniq_weight_scope_per_period")
        ]


# ── Data submission ─────────────────────────────────────────────────────
class Submission(models.Model):
    submission_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    period        = models.ForeignKey(AssessmentPeriod, on_delete=models.CASCADE, related_name="submissions")
    company       = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="submissions")
    employee      = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="submissions")
    version       = models.PositiveIntegerField(default=1)
    status        = models.CharField(max_length=10, choices=SubmissionStatus.choices, default=SubmissionStatus.DRAFT)
    created_at    = models.DateTimeField(default=timezone.now)
    updated_at    = models.DateTimeField(auto_now=True)


class DataEntry(models.Model):
    entry_id       = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    submission     = models.ForeignKey(Submission, on_delete=models.CASCADE, related_name="entries")
    assignment     = models.ForeignKey(Assignment, on_delete=models.PROTECT, related_name="entries")
    employee       = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="entries")
    actual_value   = models.FloatField()
    raw_score      = models.FloatField(null=True, blank=True)
    capped_score   = models.FloatField(null=True, blank=True)
    weighted_score = models.FloatField(null=True, blank=True)
    created_at     = models.DateTimeField(default=timezone.now)
    updated_at     = models.DateTimeField(auto_now=True)


# ── Results ─────────────────────────────────────────────────────────────
class IndividualResult(models.Model):
    result_id     = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    period        = models.ForeignKey(AssessmentPeriod, on_delete=models.CASCADE, related_name="individual_results")
    company       = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="individual_results")
    employee      = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name="results")
    department    = models.ForeignKey(Department, on_delete=models.SET_NULL, null=True, blank=True, related_name="individual_results")  # as of period start
    department_name = models.CharField(max_length=120, blank=True)
    total_score   = models.FloatField()
    status        = models.CharField(max_length=10, choices=KPIStatus.choices)
    grade         = models.CharField(max_length=1, choices=PerformanceGrade.choices)
    calculated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    calculated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["period", "employee"], name="uniq_result_per_employee_period")
        ]


class GroupResult(models.Model):
    result_id      = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    period         = models.ForeignKey(AssessmentPeriod, on_delete=models.CASCADE, related_name="group_results")
    company        = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="group_results")
    scope          = models.CharField(max_length=10, choices=GroupScope.choices, default=GroupScope.DEPARTMENT)
    department     = models.ForeignKey(Department, on_delete=models.CASCADE, null=True, blank=True, related_name="group_results")
    total_score    = models.FloatField()
    employee_count = models.PositiveIntegerField(default=0)
    rollup_method  = models.CharField(max_length=16, choices=RollupMethod.choices, default=RollupMethod.AVERAGE)
    grade          = models.CharField(max_length=1, choices=PerformanceGrade.choices)
    calculated_at  = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["period", "department"],
                condition=Q(scope="DEPARTMENT"),
                name="uniq_group_result_per_department",
            ),
            models.UniqueConstraint(
                fields=["period", "company"],
                condition=Q(scope="COMPANY"),
                name="uniq_group_result_per_company",
            ),
        ]


class CalculationRun(models.Model):
    run_id           = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    period           = models.ForeignKey(AssessmentPeriod, on_delete=models.CASCADE, related_name="calculation_runs")
    company          = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="calculation_runs")
    triggered_by     = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    status           = models.CharField(max_length=10, choices=RunStatus.choices, default=RunStatus.IDLE)
    employee_count   = models.PositiveIntegerField(default=0)
    department_count = models.PositiveIntegerField(default=0)
    elapsed_ms       = models.PositiveIntegerField(null=True, blank=True)
    error            = models.TextField(blank=True, default="")
    failed_context   = models.JSONField(default=dict, blank=True)
    started_at       = models.DateTimeField(null=True, blank=True)
    finished_at      = models.DateTimeField(null=True, blank=True)
    created_at       = models.DateTimeField(default=timezone.now)

    @property
    def payload(self) -> dict:
        return {
            "period_id": str(self.period_id),
            "company_id": str(self.company_id),
            "triggered_by": str(self.triggered_by_id) if self.triggered_by_id else None,
        }


class CalibrationAdjustment(models.Model):
    adjustment_id  = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    result         = models.OneToOneField(IndividualResult, on_delete=models.CASCADE, related_name="adjustment")
    original_score = models.FloatField()
    adjusted_score = models.FloatField()
    original_grade = models.CharField(max_length=1, choices=PerformanceGrade.choices)
    adjusted_grade = models.CharField(max_length=1, choices=PerformanceGrade.choices)
    reason         = models.TextField(blank=True)
    adjusted_by    = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    applied        = models.BooleanField(default=False)
    created_at     = models.DateTimeField(default=timezone.now)
    updated_at     = models.DateTimeField(auto_now=True)
