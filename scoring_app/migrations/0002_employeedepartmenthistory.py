import django.db.models.deletion
import django.utils.timezone
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("scoring_app", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="EmployeeDepartmentHistory",
            fields=[
                ("history_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("department_name", models.CharField(blank=True, max_length=120)),
                ("effective_date", models.DateField()),
                ("end_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="department_history", to="scoring_app.company")),
                ("department", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="member_history", to="scoring_app.department")),
                ("employee", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="department_history", to="scoring_app.employee")),
            ],
            options={
                "ordering": ["employee", "-effective_date"],
                "indexes": [models.Index(fields=["company", "employee", "effective_date"], name="idx_dept_history_lookup")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("end_date__isnull", True), ("end_date__gte", models.F("effective_date")), _connector="OR"),
                        name="dept_history_end_after_start",
                    ),
                ],
            },
        ),
        migrations.AddField(
            model_name="individualresult",
            name="department_name",
            field=models.CharField(blank=True, max_length=120),
        ),
    ]
