# lab_core/services/numbering.py
"""
Sequential document numbers: PREFIX/YYYY/MM/NNNN, restarting every month.

The counter is a DocumentSequence row per (prefix, year, month), locked with
SELECT ... FOR UPDATE while it is incremented. Each call also looks at the
last number already stored for the period and continues after it, so numbers
issued before the counter existed, or typed in later through the admin, are
never handed out again.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from lab_core.models import DocumentSequence, JobOrder, Quotation, TravelOrder

logger = logging.getLogger(__name__)

# kind -> (model, number field)
DOCUMENT_FIELDS = {
    "quotation": (Quotation, "quotation_number"),
    "job_order": (JobOrder, "tracking_code"),
    "travel_order": (TravelOrder, "document_number"),
}

DEFAULT_PREFIXES = {
    "quotation": "INV",
    "job_order": "JO",
    "travel_order": "TO",
}

_TRAILING_NUMBER = re.compile(r"(\d+)$")


def document_prefix(kind: str) -> str:
    configured = getattr(settings, "DOCUMENT_NUMBER_PREFIXES", {}) or {}
    prefix = configured.get(kind) or DEFAULT_PREFIXES.get(kind)
    if not prefix:
        raise ValueError(f"Unknown document kind: {kind}")
    return prefix


def period_prefix(prefix: str, year: int, month: int) -> str:
    return f"{prefix}/{year:04d}/{month:02d}/"


def format_document_number(prefix: str, year: int, month: int, number: int) -> str:
    return f"{period_prefix(prefix, year, month)}{number:04d}"


def parse_sequence(value: Optional[str]) -> int:
    """
    Trailing counter of an existing number, 0 when there is none.
    """
    m = _TRAILING_NUMBER.search(str(value or "").strip())
    return int(m.group(1)) if m else 0


def _last_issued(model, field: str, prefix_text: str) -> int:
    last = (
        model.objects.filter(**{f"{field}__startswith": prefix_text})
        .order_by(f"-{field}")
        .values_list(field, flat=True)
        .first()
    )
    return parse_sequence(last)


@transaction.atomic
def next_number(prefix: str, *, today: Optional[date] = None, seed_model=None, seed_field: Optional[str] = None) -> str:
    """
    Reserve and return the next number for prefix in the month of today.
    """
    if today is None:
        today = timezone.localdate()

    seq, created = DocumentSequence.objects.select_for_update().get_or_create(
        prefix=prefix,
        year=today.year,
        month=today.month,
    )

    if seed_model is not None and seed_field:
        stored = _last_issued(seed_model, seed_field, period_prefix(prefix, today.year, today.month))
        if stored > seq.last_number:
            logger.info(
                "%s %s/%04d/%02d counter at %s; continuing after stored number %s",
                "Seeding" if created else "Advancing",
                prefix, today.year, today.month, seq.last_number, stored,
            )
            seq.last_number = stored

    seq.last_number += 1
    seq.save(update_fields=["last_number"])

    return format_document_number(prefix, seq.year, seq.month, seq.last_number)


def next_document_number(kind: str, *, today: Optional[date] = None) -> str:
    """
    next_document_number("travel_order") -> "TO/2025/03/0007"
    """
    if kind not in DOCUMENT_FIELDS:
        raise ValueError(f"Unknown document kind: {kind}")
    model, field = DOCUMENT_FIELDS[kind]
    return next_number(document_prefix(kind), today=today, seed_model=model, seed_field=field)
