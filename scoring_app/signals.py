from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver
from django.core.exceptions import ValidationError
from django.utils import timezone
from scoring_app.models import DataEntry, Employee, EmployeeDepartmentHistory, SubmissionStatus


# ----data entries----
@receiver(pre_save, sender=DataEntry)
def _stamp_employee(sender, instance: DataEntry, **kwargs):
    if not instance.employee_id and instance.submission_id:
        instance.employee_id = instance.submission.employee_id


@receiver(pre_save, sender=DataEntry)
def _guard_actual_value(sender, instance: DataEntry, update_fields=None, **kwargs):
    # score-only writes come from the calculation run
    if update_fields and set(update_fields) <= {"raw_score", "capped_score", "weighted_score", "updated_at"}:
        return
    if instance._state.adding:
        return

    old = DataEntry.objects.filter(pk=instance.pk).values_list("actual_value", flat=True).first()
    if old is None or old == instance.actual_value:
        return
    if instance.submission.status != SubmissionStatus.DRAFT:
        raise ValidationError("Actual values can only change before the submission is submitted.")
    # previous scores no longer match the value
    instance.raw_score = None
    instance.capped_score = None
    instance.weighted_score = None


# ----department history----
@receiver(pre_save, sender=Employee)
def _stash_old_department(sender, instance: Employee, **kwargs):
    if instance._state.adding:
        instance._old_department_id = None
        return
    instance._old_department_id = (
        Employee.objects.filter(pk=instance.pk).values_list("department_id", flat=True).first()
    )


@receiver(post_save, sender=Employee)
def _record_department_change(sender, instance: Employee, created, **kwargs):
    if created and not instance.department_id:
        return
    if not created and instance._old_department_id == instance.department_id:
        return

    today = timezone.localdate()
    EmployeeDepartmentHistory.objects.filter(employee=instance, end_date__isnull=True).update(end_date=today)
    EmployeeDepartmentHistory.objects.create(
        employee=instance,
        company_id=instance.company_id,
        department_id=instance.department_id,
        department_name=instance.department.name if instance.department_id else "",
        effective_date=today,
    )
