from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scoring_app.models import CalculationRun
from scoring_app.permissions import BelongsToTenant, IsAdminOrHR
from scoring_app.serializers.result_serializers import (
    CalculationRunSerializer, GroupResultSerializer, IndividualResultSerializer,
)
from scoring_app.services.calculation import (
    execute_calculation, get_period_results, trigger_calculation,
)
from scoring_app.views.base import TenantScopedMixin


class CalculationViewSet(TenantScopedMixin, viewsets.GenericViewSet):
    """
    • POST /calculation/trigger/{period_id}/   → queue a run (IDLE), 202
    • POST /calculation/execute/{period_id}/   → run now, returns the completion summary
    • GET  /calculation/results/{period_id}/   → individual + group results
    • GET  /calculation/runs/{run_id}/         → run state / summary / failure context
    """
    queryset = CalculationRun.objects.all()
    serializer_class = CalculationRunSerializer
    permission_classes = [IsAuthenticated, BelongsToTenant]

    def get_permissions(self):
        if self.action in ("trigger", "execute"):
            return [IsAuthenticated(), BelongsToTenant(), IsAdminOrHR()]
        return super().get_permissions()

    @action(detail=False, methods=["post"], url_path="trigger/(?P<period_id>[^/.]+)")
    def trigger(self, request, period_id=None):
        run = trigger_calculation(period_id, request.user.company_id, request.user)
        return Response(
            {"job_id": str(run.run_id), "message": "Calculation queued.", "run": CalculationRunSerializer(run).data},
            status=status.HTTP_202_ACCEPTED,
        )

    @action(detail=False, methods=["post"], url_path="execute/(?P<period_id>[^/.]+)")
    def execute(self, request, period_id=None):
        summary = execute_calculation(period_id, request.user.company_id, request.user)
        return Response(summary.as_dict(), status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="results/(?P<period_id>[^/.]+)")
    def results(self, request, period_id=None):
        results = get_period_results(period_id, request.user.company_id)
        return Response({
            "individual_results": IndividualResultSerializer(results["individual_results"], many=True).data,
            "group_results": GroupResultSerializer(results["group_results"], many=True).data,
        })

    @action(detail=False, methods=["get"], url_path="runs/(?P<run_id>[^/.]+)")
    def run_status(self, request, run_id=None):
        run = self.get_queryset().filter(pk=run_id).first()
        if run is None:
            return Response({"error": "Calculation run not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(CalculationRunSerializer(run).data)
