from rest_framework import status
from rest_framework.response import Response
from django.core.exceptions import ValidationError as DjangoValidationError
from scoring_app.exceptions import (
    CalculationError, NotFoundError, PeriodLockedError, WeightExceededError,
)


class TenantScopedMixin:
    """
    Restricts querysets to the requesting user's company and turns engine
    errors into API responses.
    """

    def get_queryset(self):
        qs = super().get_queryset()
        company_id = getattr(self.request.user, "company_id", None)
        if not company_id:
            return qs.none()
        return qs.filter(company_id=company_id)

    def handle_exception(self, exc):
        if isinstance(exc, WeightExceededError):
            return Response({
                "error": str(exc),
                "scope": exc.scope.scope_type,
                "attempted_total": exc.attempted_total,
                "current_sum": exc.current_sum,
            }, status=status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, PeriodLockedError):
            return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, NotFoundError):
            return Response({"error": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        if isinstance(exc, DjangoValidationError):
            return Response({"error": "; ".join(exc.messages)}, status=status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, CalculationError):
            return Response({
                "error": str(exc),
                "phase": exc.phase,
                "context": exc.context,
            }, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
        return super().handle_exception(exc)
