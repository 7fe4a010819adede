from django.db import models
import uuid
from django.utils import timezone
from django.contrib.auth.models import AbstractUser


class Role(models.TextChoices):
    ADMIN   = "ADMIN",   "Admin"
    HR      = "HR",      "HR"
    MANAGER = "MANAGER", "Manager"
    EMP     = "EMP",     "Employee"


class User(AbstractUser):
    user_id    = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name       = models.CharField(max_length=120)
    email      = models.EmailField(unique=True)
    role       = models.CharField(max_length=8, choices=Role.choices, default=Role.EMP)
    # tenant the user acts for; kept as a plain id so accounts has no dependency on scoring_app
    company_id = models.UUIDField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name or self.username
