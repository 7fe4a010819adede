"""
Error taxonomy of the scoring engine.

Definition-time problems (bad custom expressions, conflicting assignment
targets) are raised as ``django.core.exceptions.ValidationError`` like the
rest of the Django code base; the classes below cover the engine specific
failures.
"""


class ScoringError(Exception):
    """Base class for scoring engine errors."""


class NotFoundError(ScoringError):
    """A referenced period / assignment / metric does not exist."""


class PeriodLockedError(ScoringError):
    """The assessment period is locked and can no longer be changed or recalculated."""


class WeightExceededError(ScoringError):
    """Raised when a weight reservation would push a scope over 100%."""

    def __init__(self, scope, attempted_total, current_sum):
        self.scope = scope
        self.attempted_total = attempted_total
        self.current_sum = current_sum
        super().__init__(
            f"{scope.label} weight total would reach {attempted_total:g}%, "
            f"above the 100% limit (currently assigned {current_sum:g}%)."
        )


class ExpressionSyntaxError(ScoringError):
    """A custom expression could not be parsed or uses a forbidden construct."""


class ExpressionRuntimeError(ScoringError):
    """A parsed custom expression failed while being evaluated."""


class FormulaEvaluationError(ScoringError):
    """A metric formula failed to produce a score for one data entry."""

    def __init__(self, expression, message, context=None):
        self.expression = expression
        self.context = dict(context or {})
        detail = ", ".join(f"{k}={v}" for k, v in self.context.items())
        text = f"Formula evaluation failed: {expression!r} - {message}"
        if detail:
            text = f"{text} ({detail})"
        super().__init__(text)


class CalculationError(ScoringError):
    """A calculation run failed; ``context`` names what was being processed."""

    def __init__(self, message, phase, context=None):
        self.phase = phase
        self.context = dict(context or {})
        super().__init__(message)
