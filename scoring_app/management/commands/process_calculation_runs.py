from django.core.management.base import BaseCommand
from scoring_app.models import CalculationRun, RunStatus
from scoring_app.services.calculation import process_run


class Command(BaseCommand):
    help = "Execute queued (IDLE) calculation runs."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=None, help="Stop after this many runs")

    def handle(self, *args, **options):
        qs = CalculationRun.objects.filter(status=RunStatus.IDLE).order_by("created_at")
        if options["limit"]:
            qs = qs[: options["limit"]]

        done = failed = 0
        for run in qs:
            summary = process_run(run)
            if summary is None:
                failed += 1
                self.stdout.write(self.style.WARNING(f"Run {run.run_id} failed: {run.error}"))
            else:
                done += 1
                self.stdout.write(f"Run {run.run_id}: {summary.as_dict()}")
        self.stdout.write(self.style.SUCCESS(f"Processed {done + failed} runs ({failed} failed)."))
