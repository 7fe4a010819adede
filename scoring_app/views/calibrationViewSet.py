from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scoring_app.exceptions import NotFoundError
from scoring_app.models import AssessmentPeriod, IndividualResult
from scoring_app.permissions import BelongsToTenant, IsAdminOrHR
from scoring_app.serializers.result_serializers import (
    AdjustScoreSerializer, CalibrationAdjustmentSerializer,
)
from scoring_app.services.calibration import adjust_score, apply_adjustments, score_stats
from scoring_app.views.base import TenantScopedMixin


class CalibrationViewSet(TenantScopedMixin, viewsets.GenericViewSet):
    """
    • POST /calibration/adjust/                → override one employee's score
    • POST /calibration/apply/{period_id}/     → write pending overrides back to results
    • GET  /calibration/stats/{period_id}/     → avg / min / max / std dev of the period
    """
    queryset = IndividualResult.objects.all()
    permission_classes = [IsAuthenticated, BelongsToTenant, IsAdminOrHR]

    def _period(self, period_id):
        try:
            return AssessmentPeriod.objects.get(pk=period_id, company_id=self.request.user.company_id)
        except AssessmentPeriod.DoesNotExist:
            raise NotFoundError(f"Assessment period {period_id} not found.")

    @action(detail=False, methods=["post"], url_path="adjust")
    def adjust(self, request):
        ser = AdjustScoreSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        result = self.get_queryset().filter(pk=ser.validated_data["result_id"]).first()
        if result is None:
            raise NotFoundError("Individual result not found.")
        adjustment = adjust_score(
            result,
            ser.validated_data["adjusted_score"],
            user=request.user,
            reason=ser.validated_data.get("reason", ""),
        )
        return Response(CalibrationAdjustmentSerializer(adjustment).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="apply/(?P<period_id>[^/.]+)")
    def apply(self, request, period_id=None):
        applied = apply_adjustments(self._period(period_id))
        return Response({"applied": applied})

    @action(detail=False, methods=["get"], url_path="stats/(?P<period_id>[^/.]+)")
    def stats(self, request, period_id=None):
        period = self._period(period_id)
        scores = self.get_queryset().filter(period=period).values_list("total_score", flat=True)
        return Response(score_stats(scores))
