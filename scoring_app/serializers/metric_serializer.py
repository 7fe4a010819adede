from rest_framework import serializers
from scoring_app.models import MetricDefinition, FormulaKind
from scoring_app.services.formula_math import validate, validate_stepped_rules
from scoring_app.utils import LabelChoiceField


class MetricDefinitionSerializer(serializers.ModelSerializer):
    metric_id         = serializers.UUIDField(read_only=True)
    formula_kind      = LabelChoiceField(choices=FormulaKind.choices)
    stepped_rules     = serializers.JSONField(required=False)
    custom_expression = serializers.CharField(allow_blank=True, required=False)
    is_referenced     = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = MetricDefinition
        fields = [
            "metric_id",
            "code",
            "name",
            "formula_kind",
            "score_cap",
            "score_floor",
            "stepped_rules",
            "custom_expression",
            "default_weight",
            "is_active",
            "is_referenced",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ("metric_id", "is_active", "created_at", "updated_at")

    def get_is_referenced(self, obj):
        return obj.is_referenced()

    def validate(self, attrs):
        kind = attrs.get("formula_kind", getattr(self.instance, "formula_kind", None))
        cap = attrs.get("score_cap", getattr(self.instance, "score_cap", 120))
        floor = attrs.get("score_floor", getattr(self.instance, "score_floor", 0))
        if floor > cap:
            raise serializers.ValidationError({"score_floor": "Score floor cannot be above the score cap."})

        if kind == FormulaKind.CUSTOM:
            expression = attrs.get("custom_expression", getattr(self.instance, "custom_expression", ""))
            if expression:
                check = validate(expression)
                if not check["valid"]:
                    raise serializers.ValidationError({"custom_expression": check["error"]})

        if kind == FormulaKind.STEPPED:
            rules = attrs.get("stepped_rules", getattr(self.instance, "stepped_rules", None))
            check = validate_stepped_rules(rules)
            if not check["valid"]:
                raise serializers.ValidationError({"stepped_rules": check["error"]})
        return attrs


class FormulaValidationSerializer(serializers.Serializer):
    expression = serializers.CharField(allow_blank=True, trim_whitespace=False)
