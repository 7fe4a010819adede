import django_filters as filters
from scoring_app.models import Assignment, MetricDefinition, IndividualResult, GroupResult


class MetricFilter(filters.FilterSet):
    formula_kind = filters.CharFilter(field_name="formula_kind", lookup_expr="exact")  # use keys e.g. STEPPED
    is_active    = filters.BooleanFilter(field_name="is_active")
    code         = filters.CharFilter(field_name="code", lookup_expr="icontains")

    class Meta:
        model = MetricDefinition
        fields = ["formula_kind", "is_active", "code"]


class AssignmentFilter(filters.FilterSet):
    period_id     = filters.UUIDFilter(field_name="period__period_id", lookup_expr="exact")
    department_id = filters.UUIDFilter(field_name="department__department_id", lookup_expr="exact")
    employee_id   = filters.UUIDFilter(field_name="employee__employee_id", lookup_expr="exact")
    metric_id     = filters.UUIDFilter(field_name="metric__metric_id", lookup_expr="exact")

    class Meta:
        model = Assignment
        fields = ["period_id", "department_id", "employee_id", "metric_id"]


class IndividualResultFilter(filters.FilterSet):
    period_id     = filters.UUIDFilter(field_name="period__period_id", lookup_expr="exact")
    department_id = filters.UUIDFilter(field_name="department__department_id", lookup_expr="exact")
    status        = filters.CharFilter(field_name="status", lookup_expr="exact")
    grade         = filters.CharFilter(field_name="grade", lookup_expr="exact")

    class Meta:
        model = IndividualResult
        fields = ["period_id", "department_id", "status", "grade"]


class GroupResultFilter(filters.FilterSet):
    period_id = filters.UUIDFilter(field_name="period__period_id", lookup_expr="exact")
    scope     = filters.CharFilter(field_name="scope", lookup_expr="exact")

    class Meta:
        model = GroupResult
        fields = ["period_id", "scope"]
