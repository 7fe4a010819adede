import django.db.models.deletion
import django.utils.timezone
import uuid
from django.conf import settings
from django.db import migrations, models

GRADES = [("S", "S"), ("A", "A"), ("B", "B"), ("C", "C"), ("D", "D")]
ROLLUP_METHODS = [
    ("AVERAGE", "Average"), ("WEIGHTED_AVERAGE", "Weighted average"), ("LEADER_SCORE", "Leader score"),
    ("SUM", "Sum"), ("MIN", "Min"), ("MAX", "Max"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Company",
            fields=[
                ("company_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=180)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="Department",
            fields=[
                ("department_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=120)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="departments", to="scoring_app.company")),
                ("leader", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="led_departments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("company", "name"), name="uniq_dept_per_company")],
            },
        ),
        migrations.CreateModel(
            name="Employee",
            fields=[
                ("employee_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("is_leader", models.BooleanField(default=False)),
                ("rollup_weight", models.FloatField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="employees", to="scoring_app.company")),
                ("department", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="employees", to="scoring_app.department")),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="employee_profile", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="AssessmentPeriod",
            fields=[
                ("period_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=60)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("lock_date", models.DateTimeField(blank=True, null=True)),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("ACTIVE", "Active"), ("LOCKED", "Locked")], default="DRAFT", max_length=10)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="periods", to="scoring_app.company")),
            ],
        ),
        migrations.CreateModel(
            name="MetricDefinition",
            fields=[
                ("metric_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("code", models.CharField(max_length=40)),
                ("name", models.CharField(max_length=200)),
                ("formula_kind", models.CharField(choices=[("POSITIVE", "Positive"), ("NEGATIVE", "Negative"), ("BINARY", "Binary"), ("STEPPED", "Stepped"), ("CUSTOM", "Custom")], default="POSITIVE", max_length=10)),
                ("score_cap", models.FloatField(default=120)),
                ("score_floor", models.FloatField(default=0)),
                ("stepped_rules", models.JSONField(blank=True, default=list)),
                ("custom_expression", models.TextField(blank=True, default="")),
                ("default_weight", models.FloatField(default=10)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="metrics", to="scoring_app.company")),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("company", "code"), name="uniq_metric_code_per_company")],
            },
        ),
        migrations.CreateModel(
            name="Assignment",
            fields=[
                ("assignment_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("target_value", models.FloatField()),
                ("challenge_value", models.FloatField(blank=True, null=True)),
                ("weight", models.FloatField()),
                ("is_deleted", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="scoring_app.company")),
                ("department", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="scoring_app.department")),
                ("employee", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="scoring_app.employee")),
                ("metric", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="assignments", to="scoring_app.metricdefinition")),
                ("period", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="scoring_app.assessmentperiod")),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("weight__gte", 0), ("weight__lte", 100)), name="assignment_weight_0_100"),
                    models.CheckConstraint(condition=models.Q(("department__isnull", True), ("employee__isnull", True), _connector="OR"), name="assignment_single_target"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WeightScopeLock",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scope_key", models.CharField(max_length=120)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("period", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="weight_locks", to="scoring_app.assessmentperiod")),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("period", "scope_key"), name="uniq_weight_scope_per_period")],
            },
        ),
        migrations.CreateModel(
            name="Submission",
            fields=[
                ("submission_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("version", models.PositiveIntegerField(default=1)),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("SUBMITTED", "Submitted"), ("APPROVED", "Approved"), ("REJECTED", "Rejected")], default="DRAFT", max_length=10)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="submissions", to="scoring_app.company")),
                ("employee", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="submissions", to="scoring_app.employee")),
                ("period", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="submissions", to="scoring_app.assessmentperiod")),
            ],
        ),
        migrations.CreateModel(
            name="DataEntry",
            fields=[
                ("entry_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("actual_value", models.FloatField()),
                ("raw_score", models.FloatField(blank=True, null=True)),
                ("capped_score", models.FloatField(blank=True, null=True)),
                ("weighted_score", models.FloatField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("assignment", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="entries", to="scoring_app.assignment")),
                ("employee", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="entries", to="scoring_app.employee")),
                ("submission", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="entries", to="scoring_app.submission")),
            ],
        ),
        migrations.CreateModel(
            name="IndividualResult",
            fields=[
                ("result_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("total_score", models.FloatField()),
                ("status", models.CharField(choices=[("EXCELLENT", "Excellent"), ("GOOD", "Good"), ("AVERAGE", "Average"), ("POOR", "Poor")], max_length=10)),
                ("grade", models.CharField(choices=GRADES, max_length=1)),
                ("calculated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("calculated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="individual_results", to="scoring_app.company")),
                ("department", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="individual_results", to="scoring_app.department")),
                ("employee", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="results", to="scoring_app.employee")),
                ("period", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="individual_results", to="scoring_app.assessmentperiod")),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("period", "employee"), name="uniq_result_per_employee_period")],
            },
        ),
        migrations.CreateModel(
            name="GroupResult",
            fields=[
                ("result_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("scope", models.CharField(choices=[("DEPARTMENT", "Department"), ("COMPANY", "Company")], default="DEPARTMENT", max_length=10)),
                ("total_score", models.FloatField()),
                ("employee_count", models.PositiveIntegerField(default=0)),
                ("rollup_method", models.CharField(choices=ROLLUP_METHODS, default="AVERAGE", max_length=16)),
                ("grade", models.CharField(choices=GRADES, max_length=1)),
                ("calculated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="group_results", to="scoring_app.company")),
                ("department", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="group_results", to="scoring_app.department")),
                ("period", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="group_results", to="scoring_app.assessmentperiod")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("scope", "DEPARTMENT")), fields=("period", "department"), name="uniq_group_result_per_department"),
                    models.UniqueConstraint(condition=models.Q(("scope", "COMPANY")), fields=("period", "company"), name="uniq_group_result_per_company"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CalculationRun",
            fields=[
                ("run_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("status", models.CharField(choices=[("IDLE", "Idle"), ("RUNNING", "Running"), ("COMPLETED", "Completed"), ("FAILED", "Failed")], default="IDLE", max_length=10)),
                ("employee_count", models.PositiveIntegerField(default=0)),
                ("department_count", models.PositiveIntegerField(default=0)),
                ("elapsed_ms", models.PositiveIntegerField(blank=True, null=True)),
                ("error", models.TextField(blank=True, default="")),
                ("failed_context", models.JSONField(blank=True, default=dict)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="calculation_runs", to="scoring_app.company")),
                ("period", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="calculation_runs", to="scoring_app.assessmentperiod")),
                ("triggered_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="CalibrationAdjustment",
            fields=[
                ("adjustment_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("original_score", models.FloatField()),
                ("adjusted_score", models.FloatField()),
                ("original_grade", models.CharField(choices=GRADES, max_length=1)),
                ("adjusted_grade", models.CharField(choices=GRADES, max_length=1)),
                ("reason", models.TextField(blank=True)),
                ("applied", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("adjusted_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("result", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="adjustment", to="scoring_app.individualresult")),
            ],
        ),
    ]
