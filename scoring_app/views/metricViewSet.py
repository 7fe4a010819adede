from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
import logging

from scoring_app.filters import MetricFilter
from scoring_app.models import MetricDefinition
from scoring_app.permissions import BelongsToTenant, ReadOnlyOrAdminHR
from scoring_app.serializers.metric_serializer import (
    MetricDefinitionSerializer, FormulaValidationSerializer,
)
from scoring_app.services.formula_math import validate
from scoring_app.views.base import TenantScopedMixin

logger = logging.getLogger(__name__)


class MetricDefinitionViewSet(TenantScopedMixin, viewsets.ModelViewSet):
    """
    • GET    /metrics/                    → list the company's metric library
    • POST   /metrics/                    → create (Admin / HR)
    • DELETE /metrics/{id}/               → deactivate when referenced, delete otherwise
    • POST   /metrics/validate-formula/   → parse a custom expression without saving it
    """
    queryset = MetricDefinition.objects.all()
    serializer_class = MetricDefinitionSerializer
    permission_classes = [IsAuthenticated, BelongsToTenant, ReadOnlyOrAdminHR]

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = MetricFilter
    search_fields = ["code", "name"]
    ordering_fields = ["code", "created_at"]

    def perform_create(self, serializer):
        serializer.save(company_id=self.request.user.company_id)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        if instance.is_referenced():
            MetricDefinition.objects.filter(pk=instance.pk).update(is_active=False)
            logger.info("Metric %s is referenced; deactivated instead of deleted", instance.code)
            return Response(
                {"message": "Metric is in use and was deactivated."},
                status=status.HTTP_200_OK,
            )
        self.perform_destroy(instance)
        return Response(
            {"message": "Metric deleted successfully."},
            status=status.HTTP_204_NO_CONTENT,
        )

    @action(detail=False, methods=["post"], url_path="validate-formula")
    def validate_formula(self, request):
        """
        POST /api/metrics/validate-formula/
        Body: {"expression": "actual / target * 100"}

        Returns: {"valid": true} or {"valid": false, "error": "..."}
        """
        ser = FormulaValidationSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return Response(validate(ser.validated_data["expression"]))
