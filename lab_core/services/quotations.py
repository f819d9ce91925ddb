# lab_core/services/quotations.py

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from django.conf import settings
from django.db import transaction

from rest_framework import serializers
from rest_framework.exceptions import PermissionDenied, ValidationError

from lab_core.models import JobOrder, Quotation, QuotationItem, Service
from lab_core.permissions import is_staff_role, user_role
from lab_core.services.numbering import next_document_number
from lab_core.workflows.executor import execute_transition

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
DEFAULT_TAX_RATE = Decimal("0.11")

# Fields an approved edit request may change
EDITABLE_FIELDS = (
    "perdiem_name",
    "perdiem_price",
    "perdiem_qty",
    "transport_name",
    "transport_price",
    "transport_qty",
    "discount_amount",
    "use_tax",
    "notes",
)

LOCKED_STATES = {"paid", "completed"}


# ===============================================================
# Totals
# ===============================================================

class QuotationTotals(NamedTuple):
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def money(value: Any) -> Decimal:
    try:
        return Decimal(str(value if value not in (None, "") else 0)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def tax_rate() -> Decimal:
    return Decimal(str(getattr(settings, "QUOTATION_TAX_RATE", DEFAULT_TAX_RATE)))


def compute_totals(
    lines: Iterable[Tuple[Any, int]],
    *,
    perdiem_price: Any = 0,
    perdiem_qty: int = 0,
    transport_price: Any = 0,
    transport_qty: int = 0,
    discount: Any = 0,
    use_tax: bool = True,
    rate: Optional[Decimal] = None,
) -> QuotationTotals:
    """
    subtotal  = sum(price * qty) + perdiem + transport
    after     = subtotal - discount
    tax       = after * rate when use_tax (PPN)
    total     = after + tax

    lines are (price, qty) pairs. Raises ValueError on negative amounts
    or a discount larger than the subtotal.
    """
    subtotal = Decimal("0")
    for price, qty in lines:
        if int(qty) < 0:
            raise ValueError("Quantity cannot be negative.")
        subtotal += money(price) * int(qty)

    subtotal += money(perdiem_price) * int(perdiem_qty or 0)
    subtotal += money(transport_price) * int(transport_qty or 0)
    subtotal = money(subtotal)

    discount = money(discount)
    if discount < 0:
        raise ValueError("Discount cannot be negative.")
    if discount > subtotal:
        raise ValueError("Discount cannot exceed the subtotal.")

    after_discount = subtotal - discount
    tax = money(after_discount * (rate if rate is not None else tax_rate())) if use_tax else money(0)

    return QuotationTotals(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        total_amount=money(after_discount + tax),
    )


def totals_for(quotation: Quotation) -> QuotationTotals:
    return compute_totals(
        [(i.price, i.qty) for i in quotation.items.all()],
        perdiem_price=quotation.perdiem_price,
        perdiem_qty=quotation.perdiem_qty,
        transport_price=quotation.transport_price,
        transport_qty=quotation.transport_qty,
        discount=quotation.discount_amount,
        use_tax=quotation.use_tax,
    )


# ===============================================================
# Create
# ===============================================================

def _resolve_service(value) -> Service:
    if isinstance(value, Service):
        return value
    try:
        return Service.objects.get(pk=value, is_active=True)
    except (Service.DoesNotExist, ValueError, TypeError):
        raise ValidationError({"items": f"Unknown or inactive service: {value}"})


def _extra_cost(data: Optional[Dict[str, Any]]) -> Tuple[str, Decimal, int]:
    data = data or {}
    return (
        str(data.get("name") or ""),
        money(data.get("price")),
        int(data.get("qty") or 0),
    )


def create_quotation(
    *,
    client,
    items: Sequence[Dict[str, Any]],
    perdiem: Optional[Dict[str, Any]] = None,
    transport: Optional[Dict[str, Any]] = None,
    discount: Any = 0,
    use_tax: bool = True,
    notes: str = "",
    user,
) -> Quotation:
    """
    Create a draft quotation. Service prices and parameters are snapshotted
    onto the line items; totals are computed here, never taken from input.

    items: [{"service": Service|id, "qty": int, "price": optional override}]
    perdiem / transport: {"name", "price", "qty"}
    """
    if not is_staff_role(user):
        raise PermissionDenied("Only admins and operators can create quotations.")

    if user_role(client) != "CLIENT":
        raise ValidationError({"client": "Quotations can only be issued to client accounts."})

    if not items:
        raise ValidationError({"items": "At least one service is required."})

    lines: List[QuotationItem] = []
    for raw in items:
        service = _resolve_service(raw.get("service"))
        try:
            qty = int(raw.get("qty", 1))
        except (TypeError, ValueError):
            raise ValidationError({"items": f"Invalid quantity: {raw.get('qty')!r}"})
        if qty < 1:
            raise ValidationError({"items": "Quantity must be at least 1."})
        price = money(raw["price"]) if raw.get("price") not in (None, "") else money(service.price)
        lines.append(
            QuotationItem(
                service=service,
                service_name=service.name,
                qty=qty,
                price=price,
                parameter_snapshot=list(service.parameters or []),
            )
        )

    perdiem_name, perdiem_price, perdiem_qty = _extra_cost(perdiem)
    transport_name, transport_price, transport_qty = _extra_cost(transport)

    try:
        totals = compute_totals(
            [(line.price, line.qty) for line in lines],
            perdiem_price=perdiem_price,
            perdiem_qty=perdiem_qty,
            transport_price=transport_price,
            transport_qty=transport_qty,
            discount=discount,
            use_tax=use_tax,
        )
    except ValueError as e:
        raise ValidationError({"discount_amount": str(e)})

    with transaction.atomic():
        quotation = Quotation.objects.create(
            quotation_number=next_document_number("quotation"),
            client=client,
            created_by=user,
            perdiem_name=perdiem_name,
            perdiem_price=perdiem_price,
            perdiem_qty=perdiem_qty,
            transport_name=transport_name,
            transport_price=transport_price,
            transport_qty=transport_qty,
            use_tax=bool(use_tax),
            notes=notes or "",
            **totals._asdict(),
        )
        for line in lines:
            line.quotation = quotation
        QuotationItem.objects.bulk_create(lines)

    logger.info("Quotation %s created for %s (total %s)", quotation.quotation_number, client, quotation.total_amount)
    return quotation


# ===============================================================
# Workflow
# ===============================================================

def transition_quotation(quotation: Quotation, new_status: str, user, comment: str = "") -> Quotation:
    """
    Clients may only answer quotations addressed to them; every other rule
    is enforced by the workflow executor.
    """
    if user_role(user) == "CLIENT" and quotation.client_id != user.pk:
        raise PermissionDenied("This quotation is not addressed to you.")

    return execute_transition(
        instance=quotation,
        kind="quotation",
        new_status=new_status,
        user=user,
        comment=comment,
    )


# ===============================================================
# Edits (applied through approved requests)
# ===============================================================

class QuotationChangesSerializer(serializers.Serializer):
    perdiem_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    perdiem_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    perdiem_qty = serializers.IntegerField(min_value=0, required=False)
    transport_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    transport_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    transport_qty = serializers.IntegerField(min_value=0, required=False)
    discount_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    use_tax = serializers.BooleanField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


def validate_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check an edit against EDITABLE_FIELDS and coerce its values.
    Returns the typed values; raises ValidationError under "changes".
    """
    unknown = set(changes or {}) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError({"changes": f"Fields cannot be edited: {', '.join(sorted(unknown))}"})
    if not changes:
        raise ValidationError({"changes": "No changes requested."})

    serializer = QuotationChangesSerializer(data=dict(changes))
    if not serializer.is_valid():
        raise ValidationError({"changes": serializer.errors})
    return dict(serializer.validated_data)


def apply_quotation_changes(quotation: Quotation, changes: Dict[str, Any]) -> Quotation:
    """
    Apply whitelisted field edits and recompute totals.
    """
    changes = validate_changes(changes)

    with transaction.atomic():
        locked = Quotation.objects.select_for_update().get(pk=quotation.pk)
        if locked.status in LOCKED_STATES:
            raise ValidationError({"status": f"Quotation in status '{locked.status}' can no longer be edited."})

        for field, value in changes.items():
            setattr(locked, field, value)

        try:
            totals = totals_for(locked)
        except ValueError as e:
            raise ValidationError({"discount_amount": str(e)})

        for field, value in totals._asdict().items():
            setattr(locked, field, value)
        locked.save()

    return locked


def delete_quotation(quotation: Quotation) -> None:
    """
    Quotations that already spawned a job order are kept.
    """
    with transaction.atomic():
        locked = Quotation.objects.select_for_update().get(pk=quotation.pk)
        if JobOrder.objects.filter(quotation=locked).exists():
            raise ValidationError({"quotation": "Quotation has a job order and cannot be deleted."})
        number = locked.quotation_number
        locked.delete()

    logger.info("Quotation %s deleted", number)
