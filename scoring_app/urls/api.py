# scoring_app/urls/api.py
from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from scoring_app.views.metricViewSet import MetricDefinitionViewSet
from scoring_app.views.assignmentViewSet import AssignmentViewSet
from scoring_app.views.calculationViewSet import CalculationViewSet
from scoring_app.views.calibrationViewSet import CalibrationViewSet
from scoring_app.views.resultViewSet import GroupResultViewSet, IndividualResultViewSet

router = DefaultRouter()

router.register("metrics", MetricDefinitionViewSet, basename="metrics")              #GET /api/metrics/
router.register("assignments", AssignmentViewSet, basename="assignments")           #GET /api/assignments/
router.register("calculation", CalculationViewSet, basename="calculation")          #POST /api/calculation/execute/{period_id}/
router.register("calibration", CalibrationViewSet, basename="calibration")          #POST /api/calibration/adjust/
router.register("individual-results", IndividualResultViewSet, basename="individual-results")  #GET /api/individual-results/
router.register("group-results", GroupResultViewSet, basename="group-results")                #GET /api/group-results/

urlpatterns = [
    # JWT
    path("auth/login/",   TokenObtainPairView.as_view(), name="jwt-login"),
    path("auth/refresh/", TokenRefreshView.as_view(),    name="jwt-refresh"),
    # REST resources
    *router.urls
]
