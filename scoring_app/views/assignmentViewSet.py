from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from scoring_app.exceptions import NotFoundError
from scoring_app.filters import AssignmentFilter
from scoring_app.models import AssessmentPeriod, Assignment
from scoring_app.permissions import BelongsToTenant, IsAdmin, IsHR, IsManager
from scoring_app.serializers.assignment_serializer import (
    AssignmentSerializer, BulkAssignmentSerializer,
)
from scoring_app.services import weight_guard
from scoring_app.views.base import TenantScopedMixin


class AssignmentViewSet(TenantScopedMixin, viewsets.ModelViewSet):
    """
    Every write goes through the weight guard, so a scope never holds more
    than 100% of weight.

    • POST /assignments/bulk/             → create many, reporting per-item failures
    • GET  /assignments/weight-summary/   → assigned / remaining weight for one scope
    """
    queryset = Assignment.objects.filter(is_deleted=False).select_related("metric", "period")
    serializer_class = AssignmentSerializer
    permission_classes = [IsAuthenticated, BelongsToTenant]

    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = AssignmentFilter
    ordering_fields = ["created_at", "weight"]

    def get_permissions(self):
        if self.action in ("list", "retrieve", "weight_summary"):
            return [IsAuthenticated(), BelongsToTenant()]
        return [IsAuthenticated(), BelongsToTenant(), (IsAdmin | IsHR | IsManager)()]

    def _own_period(self, period):
        if str(period.company_id) != str(self.request.user.company_id):
            raise NotFoundError(f"Assessment period {period.pk} not found.")
        return period

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        assignment = weight_guard.create_assignment(
            period=self._own_period(data["period"]),
            metric=data["metric"],
            department=data.get("department"),
            employee=data.get("employee"),
            target_value=data["target_value"],
            challenge_value=data.get("challenge_value"),
            weight=data.get("weight"),
        )
        out = self.get_serializer(assignment).data
        return Response(out, status=status.HTTP_201_CREATED, headers=self.get_success_headers(out))

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        changes = {
            field: serializer.validated_data[field]
            for field in ("target_value", "challenge_value", "weight")
            if field in serializer.validated_data
        }
        assignment = weight_guard.update_assignment(instance, **changes)
        return Response(self.get_serializer(assignment).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        weight_guard.delete_assignment(instance)
        return Response(
            {"message": "Assignment deleted successfully."},
            status=status.HTTP_204_NO_CONTENT,
        )

    @action(detail=False, methods=["post"], url_path="bulk")
    def bulk(self, request):
        ser = BulkAssignmentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            period = AssessmentPeriod.objects.get(
                pk=ser.validated_data["period_id"], company_id=request.user.company_id
            )
        except AssessmentPeriod.DoesNotExist:
            raise NotFoundError("Assessment period not found.")

        return Response(weight_guard.bulk_create_assignments(period, ser.validated_data["assignments"]))

    @action(detail=False, methods=["get"], url_path="weight-summary")
    def weight_summary(self, request):
        """
        GET /api/assignments/weight-summary/?period_id=..[&department_id=..|&employee_id=..]
        """
        period_id = request.query_params.get("period_id")
        if not period_id:
            return Response({"error": "period_id is required"}, status=status.HTTP_400_BAD_REQUEST)
        scope = weight_guard.ScopeKey(
            period_id=period_id,
            company_id=request.user.company_id,
            department_id=request.query_params.get("department_id") or None,
            employee_id=request.query_params.get("employee_id") or None,
        )
        return Response(weight_guard.scope_summary(scope))
