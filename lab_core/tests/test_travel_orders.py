# lab_core/tests/test_travel_orders.py

from datetime import date
from decimal import Decimal

import pytest
from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from rest_framework.exceptions import PermissionDenied, ValidationError

from lab_core.models import SamplingAssignment, TravelOrder
from lab_core.services.travel_orders import (
    attach_travel_order_pdf,
    create_travel_order,
    delete_travel_order,
    update_travel_order,
)
from lab_core.tasks import render_travel_order_pdf


def _issue(assignment, user, **overrides):
    data = {
        "assignment": assignment,
        "departure_date": date(2025, 3, 7),
        "return_date": date(2025, 3, 8),
        "destination": "Kawasan Industri Jababeka",
        "purpose": "Pengambilan sampel air limbah",
        "user": user,
    }
    data.update(overrides)
    return create_travel_order(**data)


@pytest.mark.django_db
def test_issue_travel_order(assignment_factory, operator):
    travel_order = _issue(assignment_factory(), operator, daily_allowance=Decimal("150000"))

    assert travel_order.document_number.startswith("TO/")
    assert travel_order.document_number.endswith("/0001")
    assert travel_order.daily_allowance == Decimal("150000")


@pytest.mark.django_db
def test_second_travel_order_for_assignment_fails(assignment_factory, operator):
    assignment = assignment_factory()
    _issue(assignment, operator)

    with pytest.raises(ValidationError) as exc:
        _issue(assignment, operator)

    assert "already exists" in str(exc.value.detail["assignment"])
    assert TravelOrder.objects.filter(assignment=assignment).count() == 1


@pytest.mark.django_db
def test_return_before_departure_is_rejected(assignment_factory, operator):
    with pytest.raises(ValidationError) as exc:
        _issue(assignment_factory(), operator, return_date=date(2025, 3, 6))
    assert "return_date" in exc.value.detail


@pytest.mark.django_db
def test_database_enforces_date_order(assignment_factory):
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            TravelOrder.objects.create(
                assignment=assignment_factory(),
                document_number="TO/2025/03/0099",
                departure_date=date(2025, 3, 8),
                return_date=date(2025, 3, 7),
                destination="Bogor",
                purpose="Sampling",
            )


@pytest.mark.django_db
def test_cancelled_assignment_gets_no_travel_order(assignment_factory, operator):
    with pytest.raises(ValidationError):
        _issue(assignment_factory(status=SamplingAssignment.Status.CANCELLED), operator)


@pytest.mark.django_db
def test_field_officer_cannot_issue(assignment_factory, field_officer):
    with pytest.raises(PermissionDenied):
        _issue(assignment_factory(), field_officer)


@pytest.mark.django_db
def test_update_checks_dates_and_fields(assignment_factory, operator):
    travel_order = _issue(assignment_factory(), operator)

    updated = update_travel_order(travel_order, operator, destination="Karawang", return_date=date(2025, 3, 9))
    assert updated.destination == "Karawang"

    with pytest.raises(ValidationError):
        update_travel_order(travel_order, operator, document_number="TO/2000/01/0001")
    with pytest.raises(ValidationError):
        update_travel_order(travel_order, operator, return_date=date(2025, 3, 1))


@pytest.mark.django_db
def test_attach_pdf_stores_file(assignment_factory, operator):
    travel_order = _issue(assignment_factory(), operator)

    attach_travel_order_pdf(travel_order, b"%PDF-1.4 test", filename="st.pdf")

    travel_order.refresh_from_db()
    assert travel_order.pdf_url.endswith(".pdf")
    assert default_storage.exists("travel-orders/st.pdf")


@pytest.mark.django_db
def test_render_task_records_pdf_url(assignment_factory, operator):
    travel_order = _issue(assignment_factory(), operator, total_budget=Decimal("2500000"))

    url = render_travel_order_pdf(travel_order.pk)

    travel_order.refresh_from_db()
    assert url == travel_order.pdf_url
    assert url


@pytest.mark.django_db
def test_render_task_tolerates_missing_rows():
    assert render_travel_order_pdf(987654) is None


@pytest.mark.django_db
def test_delete_is_staff_only(assignment_factory, operator, field_officer):
    travel_order = _issue(assignment_factory(), operator)

    with pytest.raises(PermissionDenied):
        delete_travel_order(travel_order, field_officer)
    assert TravelOrder.objects.filter(pk=travel_order.pk).exists()

    delete_travel_order(travel_order, operator)
    assert not TravelOrder.objects.filter(pk=travel_order.pk).exists()
