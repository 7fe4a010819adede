import pytest
from datetime import date
from uuid import uuid4
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from scoring_app.models import (
    AssessmentPeriod, Company, DataEntry, Department, Employee, FormulaKind,
    MetricDefinition, PeriodStatus, Submission, SubmissionStatus,
)
from scoring_app.services import weight_guard


@pytest.fixture
def api_client():
    return APIClient()

@pytest.fixture
def company(db):
    return Company.objects.create(name="Test Co")

@pytest.fixture
def create_user(db, company):
    User = get_user_model()
    def _create_user(**kw):
        data = {
            "username": f"u_{uuid4().hex[:8]}",
            "email": f"{uuid4().hex[:8]}@test.local",
            "password": "pass12345",
            "name": "Test User",
            "role": "EMP",
            "company_id": company.company_id,
        }
        data.update(kw)
        return User.objects.create_user(**data)
    return _create_user

@pytest.fixture
def create_department(db, company):
    def _create_department(**kw):
        defaults = dict(name=f"Dept {uuid4().hex[:6]}", company=company)
        defaults.update(kw)
        return Department.objects.create(**defaults)
    return _create_department

@pytest.fixture
def create_employee(db, company, create_user):
    def _create_employee(**kw):
        user = kw.pop("user", None) or create_user()
        defaults = dict(user=user, company=company)
        defaults.update(kw)
        return Employee.objects.create(**defaults)
    return _create_employee

@pytest.fixture
def create_period(db, company):
    def _create_period(**kw):
        defaults = dict(
            company=company,
            name="2025-Q1",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 3, 31),
            status=PeriodStatus.ACTIVE,
        )
        defaults.update(kw)
        return AssessmentPeriod.objects.create(**defaults)
    return _create_period

@pytest.fixture
def period(create_period):
    return create_period()

@pytest.fixture
def create_metric(db, company):
    def _create_metric(**kw):
        defaults = dict(
            company=company,
            code=f"M{uuid4().hex[:6].upper()}",
            name="Sales volume",
            formula_kind=FormulaKind.POSITIVE,
        )
        defaults.update(kw)
        return MetricDefinition.objects.create(**defaults)
    return _create_metric

@pytest.fixture
def create_assignment(db, period, create_metric):
    def _create_assignment(**kw):
        defaults = dict(
            period=period,
            metric=kw.pop("metric", None) or create_metric(),
            target_value=100,
            weight=50,
        )
        defaults.update(kw)
        return weight_guard.create_assignment(**defaults)
    return _create_assignment

@pytest.fixture
def create_submission(db, period):
    def _create_submission(employee, entries=(), **kw):
        """``entries`` holds (assignment, actual_value) pairs."""
        defaults = dict(
            period=period,
            company_id=period.company_id,
            employee=employee,
            status=SubmissionStatus.APPROVED,
        )
        defaults.update(kw)
        submission = Submission.objects.create(**defaults)
        for assignment, actual in entries:
            DataEntry.objects.create(submission=submission, assignment=assignment, actual_value=actual)
        return submission
    return _create_submission
