from rest_framework import serializers
from scoring_app.models import (
    IndividualResult, GroupResult, CalculationRun, CalibrationAdjustment,
)


class IndividualResultSerializer(serializers.ModelSerializer):
    employee_id   = serializers.UUIDField(source="employee.employee_id", read_only=True)
    employee      = serializers.CharField(source="employee.user.name", read_only=True)
    department_id = serializers.UUIDField(source="department.department_id", read_only=True, default=None)
    period_id     = serializers.UUIDField(source="period.period_id", read_only=True)

    class Meta:
        model = IndividualResult
        fields = [
            "result_id", "period_id", "employee_id", "employee", "department_id",
            "department_name", "total_score", "status", "grade", "calculated_at",
        ]
        read_only_fields = fields


class GroupResultSerializer(serializers.ModelSerializer):
    department_id = serializers.UUIDField(source="department.department_id", read_only=True, default=None)
    department    = serializers.CharField(source="department.name", read_only=True, default=None)

    class Meta:
        model = GroupResult
        fields = [
            "result_id", "scope", "department_id", "department", "total_score",
            "employee_count", "rollup_method", "grade", "calculated_at",
        ]
        read_only_fields = fields


class CalculationRunSerializer(serializers.ModelSerializer):
    payload = serializers.DictField(read_only=True)

    class Meta:
        model = CalculationRun
        fields = [
            "run_id", "payload", "status", "employee_count", "department_count",
            "elapsed_ms", "error", "failed_context", "started_at", "finished_at", "created_at",
        ]
        read_only_fields = fields


class CalibrationAdjustmentSerializer(serializers.ModelSerializer):
    result_id = serializers.UUIDField(source="result.result_id", read_only=True)

    class Meta:
        model = CalibrationAdjustment
        fields = [
            "adjustment_id", "result_id", "original_score", "adjusted_score",
            "original_grade", "adjusted_grade", "reason", "applied", "updated_at",
        ]
        read_only_fields = fields


class AdjustScoreSerializer(serializers.Serializer):
    result_id      = serializers.UUIDField()
    adjusted_score = serializers.FloatField()
    reason         = serializers.CharField(allow_blank=True, required=False, default="")
