from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model
from scoring_app.exceptions import CalculationError, NotFoundError, PeriodLockedError
from scoring_app.services.calculation import execute_calculation


class Command(BaseCommand):
    help = "Run the scoring calculation for one period synchronously."

    def add_arguments(self, parser):
        parser.add_argument("--period", required=True, help="AssessmentPeriod id")
        parser.add_argument("--company", required=True, help="Company id")
        parser.add_argument("--user", default=None, help="User id recorded as the trigger")

    def handle(self, *args, **options):
        user = None
        if options["user"]:
            user = get_user_model().objects.filter(pk=options["user"]).first()
        try:
            summary = execute_calculation(options["period"], options["company"], user=user)
        except (CalculationError, NotFoundError, PeriodLockedError) as e:
            raise CommandError(str(e))
        self.stdout.write(self.style.SUCCESS(
            f"Calculated {summary.employee_count} employees and "
            f"{summary.department_count} departments in {summary.elapsed_ms}ms."
        ))
