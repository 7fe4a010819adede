from rest_framework import viewsets, filters
from rest_framework.permissions import IsAuthenticated
from django_filters.rest_framework import DjangoFilterBackend

from scoring_app.filters import GroupResultFilter, IndividualResultFilter
from scoring_app.models import GroupResult, IndividualResult
from scoring_app.permissions import BelongsToTenant
from scoring_app.serializers.result_serializers import (
    GroupResultSerializer, IndividualResultSerializer,
)
from scoring_app.views.base import TenantScopedMixin


class IndividualResultViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    """
    • GET /individual-results/?period_id=..&grade=..
    Employees only see their own results; managers and up see the whole company.
    """
    queryset = IndividualResult.objects.select_related("employee__user", "department", "period")
    serializer_class = IndividualResultSerializer
    permission_classes = [IsAuthenticated, BelongsToTenant]

    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = IndividualResultFilter
    ordering_fields = ["total_score", "calculated_at"]
    ordering = ["-total_score"]

    def get_queryset(self):
        qs = super().get_queryset()
        if self.request.user.role == "EMP":
            return qs.filter(employee__user=self.request.user)
        return qs


class GroupResultViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    queryset = GroupResult.objects.select_related("department", "period")
    serializer_class = GroupResultSerializer
    permission_classes = [IsAuthenticated, BelongsToTenant]

    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = GroupResultFilter
    ordering_fields = ["total_score", "calculated_at"]
    ordering = ["-total_score"]
