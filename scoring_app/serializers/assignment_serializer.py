from rest_framework import serializers
from scoring_app.models import Assignment, AssessmentPeriod, Department, Employee, MetricDefinition


class AssignmentSerializer(serializers.ModelSerializer):
    assignment_id = serializers.UUIDField(read_only=True)
    metric_id     = serializers.PrimaryKeyRelatedField(source="metric", queryset=MetricDefinition.objects.all())
    period_id     = serializers.PrimaryKeyRelatedField(source="period", queryset=AssessmentPeriod.objects.all())
    department_id = serializers.PrimaryKeyRelatedField(
        source="department", queryset=Department.objects.all(), allow_null=True, required=False
    )
    employee_id   = serializers.PrimaryKeyRelatedField(
        source="employee", queryset=Employee.objects.all(), allow_null=True, required=False
    )
    metric_code   = serializers.CharField(source="metric.code", read_only=True)
    weight        = serializers.FloatField(min_value=0, max_value=100, required=False)
    scope_type    = serializers.CharField(read_only=True)

    class Meta:
        model = Assignment
        fields = [
            "assignment_id",
            "metric_id",
            "metric_code",
            "period_id",
            "department_id",
            "employee_id",
            "scope_type",
            "target_value",
            "challenge_value",
            "weight",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ("assignment_id", "created_at", "updated_at")

    def validate(self, attrs):
        if attrs.get("department") and attrs.get("employee"):
            raise serializers.ValidationError(
                "An assignment targets either a department or an employee, not both."
            )
        if self.instance is not None:
            for field in ("metric", "period", "department", "employee"):
                if field in attrs and attrs[field] != getattr(self.instance, field):
                    raise serializers.ValidationError({f"{field}_id": "Cannot move an assignment to another scope."})
        return attrs


class BulkAssignmentItemSerializer(serializers.Serializer):
    metric_id       = serializers.UUIDField()
    department_id   = serializers.UUIDField(allow_null=True, required=False)
    employee_id     = serializers.UUIDField(allow_null=True, required=False)
    target_value    = serializers.FloatField()
    challenge_value = serializers.FloatField(allow_null=True, required=False)
    weight          = serializers.FloatField(min_value=0, max_value=100, required=False)


class BulkAssignmentSerializer(serializers.Serializer):
    period_id   = serializers.UUIDField()
    assignments = BulkAssignmentItemSerializer(many=True)
