from django.contrib import admin
from .import models as m
from scoring_app.services.calculation import execute_calculation
from scoring_app.exceptions import CalculationError, NotFoundError, PeriodLockedError


# ───────────────────────────────
#  Org
# ───────────────────────────────
@admin.register(m.Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "created_at")
    search_fields = ("name",)


@admin.register(m.Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "leader")
    search_fields = ("name", "company__name")
    list_filter = ("company",)


@admin.register(m.Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ("user", "company", "department", "is_leader", "rollup_weight")
    search_fields = ("user__name", "user__email")
    list_filter = ("company", "department", "is_leader")


@admin.register(m.EmployeeDepartmentHistory)
class EmployeeDepartmentHistoryAdmin(admin.ModelAdmin):
    list_display = ("employee", "department_name", "effective_date", "end_date")
    list_filter = ("company", "department")
    search_fields = ("employee__user__name", "department_name")


# ───────────────────────────────
#  Periods
# ───────────────────────────────
@admin.register(m.AssessmentPeriod)
class AssessmentPeriodAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "status", "start_date", "end_date", "lock_date")
    list_filter = ("status", "company")
    actions = ["recalculate"]

    @admin.action(description="Run calculation for selected periods")
    def recalculate(self, request, queryset):
        for period in queryset:
            try:
                summary = execute_calculation(period.pk, period.company_id, user=request.user)
            except (CalculationError, NotFoundError, PeriodLockedError) as e:
                self.message_user(request, f"{period.name}: {e}", level="error")
                continue
            self.message_user(
                request,
                f"{period.name}: {summary.employee_count} employees, "
                f"{summary.department_count} departments in {summary.elapsed_ms}ms.",
            )


# ───────────────────────────────
#  Metric library & assignments
# ───────────────────────────────
@admin.register(m.MetricDefinition)
class MetricDefinitionAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "company", "formula_kind", "score_cap", "score_floor", "is_active")
    search_fields = ("code", "name")
    list_filter = ("formula_kind", "is_active", "company")


@admin.register(m.Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    # weights are only written through the API so the 100% guard always runs
    list_display = ("metric", "period", "department", "employee", "weight", "target_value", "is_deleted")
    list_filter = ("period", "is_deleted")
    readonly_fields = ("weight",)


# ───────────────────────────────
#  Results
# ───────────────────────────────
@admin.register(m.IndividualResult)
class IndividualResultAdmin(admin.ModelAdmin):
    list_display = ("employee", "period", "department", "total_score", "status", "grade", "calculated_at")
    list_filter = ("period", "status", "grade")


@admin.register(m.GroupResult)
class GroupResultAdmin(admin.ModelAdmin):
    list_display = ("scope", "department", "period", "total_score", "employee_count", "rollup_method", "grade")
    list_filter = ("period", "scope")


@admin.register(m.CalculationRun)
class CalculationRunAdmin(admin.ModelAdmin):
    list_display = ("run_id", "period", "status", "employee_count", "department_count", "elapsed_ms", "created_at")
    list_filter = ("status",)
    readonly_fields = ("error", "failed_context")


@admin.register(m.CalibrationAdjustment)
class CalibrationAdjustmentAdmin(admin.ModelAdmin):
    list_display = ("result", "original_score", "adjusted_score", "original_grade", "adjusted_grade", "applied")
