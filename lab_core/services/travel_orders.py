# lab_core/services/travel_orders.py

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from django.utils import timezone

from rest_framework.exceptions import PermissionDenied, ValidationError

from lab_core.models import SamplingAssignment, TravelOrder
from lab_core.permissions import is_staff_role
from lab_core.services.numbering import next_document_number

logger = logging.getLogger(__name__)


UPDATABLE_FIELDS = (
    "departure_date",
    "return_date",
    "destination",
    "purpose",
    "transportation_type",
    "accommodation_type",
    "daily_allowance",
    "total_budget",
    "notes",
    "pdf_url",
)


def _require_staff(user, action: str) -> None:
    if not is_staff_role(user):
        raise PermissionDenied(f"Only admins and operators can {action} travel orders.")


def _check_dates(departure_date, return_date) -> None:
    if departure_date and return_date and return_date < departure_date:
        raise ValidationError({"return_date": "Return date cannot be before departure date."})


def create_travel_order(
    *,
    assignment: SamplingAssignment,
    departure_date,
    return_date,
    destination: str,
    purpose: str,
    transportation_type: str = "",
    accommodation_type: str = "",
    daily_allowance: Optional[Decimal] = None,
    total_budget: Optional[Decimal] = None,
    notes: Optional[str] = None,
    user,
) -> TravelOrder:
    """
    Issue the travel order for a sampling assignment with the next
    TO/YYYY/MM/NNNN number. An assignment has at most one travel order.
    """
    _require_staff(user, "create")
    _check_dates(departure_date, return_date)

    with transaction.atomic():
        locked = SamplingAssignment.objects.select_for_update().get(pk=assignment.pk)

        if locked.status == SamplingAssignment.Status.CANCELLED:
            raise ValidationError({"assignment": "Cannot issue a travel order for a cancelled assignment."})

        if TravelOrder.objects.filter(assignment=locked).exists():
            raise ValidationError({"assignment": "A travel order already exists for this assignment."})

        document_number = next_document_number("travel_order")

        try:
            with transaction.atomic():
                travel_order = TravelOrder.objects.create(
                    assignment=locked,
                    document_number=document_number,
                    departure_date=departure_date,
                    return_date=return_date,
                    destination=destination,
                    purpose=purpose,
                    transportation_type=transportation_type or "",
                    accommodation_type=accommodation_type or "",
                    daily_allowance=daily_allowance,
                    total_budget=total_budget,
                    notes=notes or "",
                )
        except IntegrityError as e:
            logger.warning("Travel order insert rejected for assignment %s: %s", locked.pk, e)
            raise ValidationError({"assignment": "A travel order already exists for this assignment."})

    logger.info("Travel order %s issued for assignment %s", travel_order.document_number, locked.pk)
    return travel_order


def update_travel_order(travel_order: TravelOrder, user, **changes) -> TravelOrder:
    _require_staff(user, "update")

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError({f: "This field cannot be changed." for f in sorted(unknown)})

    for field, value in changes.items():
        setattr(travel_order, field, value)

    _check_dates(travel_order.departure_date, travel_order.return_date)
    travel_order.save()
    return travel_order


def delete_travel_order(travel_order: TravelOrder, user) -> None:
    _require_staff(user, "delete")
    logger.info("Travel order %s deleted by %s", travel_order.document_number, user)
    travel_order.delete()


def attach_travel_order_pdf(travel_order: TravelOrder, content, *, filename: Optional[str] = None) -> TravelOrder:
    """
    Store a rendered or uploaded PDF and record its url on the travel order.
    content may be raw bytes or an uploaded file.
    """
    if isinstance(content, (bytes, bytearray)):
        content = ContentFile(bytes(content))

    stamp = timezone.now().strftime("%Y%m%d%H%M%S")
    name = filename or f"travel-order-{travel_order.pk}-{stamp}.pdf"
    directory = getattr(settings, "TRAVEL_ORDER_PDF_DIR", "travel-orders")

    path = default_storage.save(f"{directory}/{name}", content)
    url = default_storage.url(path)

    TravelOrder.objects.filter(pk=travel_order.pk).update(pdf_url=url, updated_at=timezone.now())
    travel_order.pdf_url = url
    return travel_order
