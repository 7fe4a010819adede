from django.conf import settings
from django.utils.module_loading import import_string
import logging

logger = logging.getLogger(__name__)

DEFAULT_NOTIFIER = "scoring_app.services.notifications.LoggingNotifier"
DEFAULT_LOW_PERFORMANCE_THRESHOLD = 60


class LoggingNotifier:
    """
    Default notification collaborator. Delivery (mail, in-app inbox) lives
    outside the engine; this one only writes log records.
    """

    def calculation_completed(self, period, summary):
        logger.info(
            "Calculation for period %s completed: %s employees, %s departments in %sms",
            getattr(period, "name", period), summary.employee_count,
            summary.department_count, summary.elapsed_ms,
        )

    def low_performance(self, result):
        logger.info(
            "Low performance alert: employee %s scored %.2f in period %s",
            result.employee_id, result.total_score, result.period_id,
        )


def get_notifier():
    path = getattr(settings, "SCORING", {}).get("NOTIFIER") or DEFAULT_NOTIFIER
    return import_string(path)()


def low_performance_threshold() -> float:
    return float(getattr(settings, "SCORING", {}).get(
        "LOW_PERFORMANCE_THRESHOLD", DEFAULT_LOW_PERFORMANCE_THRESHOLD))


def notify_safely(method_name: str, *args):
    """Fire-and-forget: a failing notifier never fails the calculation."""
    try:
        notifier = get_notifier()
        getattr(notifier, method_name)(*args)
    except Exception:
        logger.exception("Notifier %s failed", method_name)
