# lab_core/tests/conftest.py

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable, Optional

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from lab_core.models import (
    JobOrder,
    Profile,
    Quotation,
    QuotationItem,
    SamplingAssignment,
    Service,
    ServiceCategory,
)


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class AuthAPIClient(APIClient):
    """
    Test client that uses force_authenticate for predictable DRF auth.
    """

    def as_user(self, user) -> "AuthAPIClient":
        self.force_authenticate(user=user)
        return self


@pytest.fixture
def api_client() -> AuthAPIClient:
    return AuthAPIClient()


@pytest.fixture
def client_for() -> Callable[[Any], AuthAPIClient]:
    def _factory(user) -> AuthAPIClient:
        return AuthAPIClient().as_user(user)

    return _factory


# =============================================================
# Users
# =============================================================

@pytest.fixture
def make_user(db) -> Callable[..., Any]:
    User = get_user_model()

    def _factory(username: str, role: str, *, full_name: str = "", company_name: str = "", email: Optional[str] = None):
        user = User.objects.create_user(
            username=username,
            email=email if email is not None else f"{username}@example.com",
            password="pass123",
        )
        Profile.objects.create(
            user=user,
            role=role,
            full_name=full_name or username.title(),
            company_name=company_name,
        )
        return user

    return _factory


@pytest.fixture
def admin_user(make_user):
    return make_user("admin", Profile.Role.ADMIN, full_name="Admin Lab")


@pytest.fixture
def operator(make_user):
    return make_user("operator", Profile.Role.OPERATOR, full_name="Operator Lab")


@pytest.fixture
def field_officer(make_user):
    return make_user("budi", Profile.Role.FIELD_OFFICER, full_name="Budi Santoso", email="budi@wahfalab.com")


@pytest.fixture
def other_officer(make_user):
    return make_user("sari", Profile.Role.FIELD_OFFICER, full_name="Sari Dewi")


@pytest.fixture
def client_user(make_user):
    return make_user("klien", Profile.Role.CLIENT, full_name="Andi Wijaya", company_name="PT Sumber Air")


@pytest.fixture
def other_client(make_user):
    return make_user("klien2", Profile.Role.CLIENT, full_name="Rina")


# =============================================================
# Catalog and orders
# =============================================================

@pytest.fixture
def service(db) -> Service:
    category = ServiceCategory.objects.create(name="Air")
    return Service.objects.create(
        category=category,
        name="Air Limbah",
        price=Decimal("750000"),
        parameters=["pH", "BOD", "COD"],
    )


@pytest.fixture
def quotation_factory(db, client_user, service) -> Callable[..., Quotation]:
    """
    Quotation rows with a chosen status, inserted directly.
    """

    def _factory(*, status: str = "accepted", client=None, **extra: Any) -> Quotation:
        quotation = Quotation.objects.create(
            quotation_number=_rand("INV"),
            client=client or client_user,
            status=status,
            subtotal=Decimal("1500000"),
            total_amount=Decimal("1665000"),
            tax_amount=Decimal("165000"),
            **extra,
        )
        QuotationItem.objects.create(
            quotation=quotation,
            service=service,
            service_name=service.name,
            qty=2,
            price=service.price,
            parameter_snapshot=service.parameters,
        )
        return quotation

    return _factory


@pytest.fixture
def job_factory(db, quotation_factory) -> Callable[..., JobOrder]:
    def _factory(*, status: str = "scheduled", quotation: Optional[Quotation] = None, **extra: Any) -> JobOrder:
        return JobOrder.objects.create(
            quotation=quotation or quotation_factory(),
            tracking_code=_rand("JO"),
            status=status,
            **extra,
        )

    return _factory


@pytest.fixture
def assignment_factory(db, job_factory, field_officer) -> Callable[..., SamplingAssignment]:
    def _factory(
        *,
        status: str = "pending",
        job: Optional[JobOrder] = None,
        officer=None,
        job_status: str = "sampling",
        **extra: Any,
    ) -> SamplingAssignment:
        return SamplingAssignment.objects.create(
            job_order=job or job_factory(status=job_status),
            field_officer=officer or field_officer,
            status=status,
            scheduled_date=timezone.now() + timedelta(days=1),
            location=extra.pop("location", "Kawasan Industri Cikarang"),
            **extra,
        )

    return _factory
