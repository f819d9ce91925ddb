# lab_core/documents/fields.py
"""
Plain field mappings for printable documents.

These functions turn model instances into dictionaries of ready-to-print
strings. Rendering (lab_core.documents.render) only lays them out.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.utils import timezone

from lab_core.models import COMPANY_DEFAULTS, CompanyProfile


MONTHS_ID = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)


# ===============================================================
# Formatting
# ===============================================================

def _as_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def format_date_id(value) -> str:
    """7 Maret 2025"""
    d = _as_date(value)
    if d is None:
        return "-"
    return f"{d.day} {MONTHS_ID[d.month - 1]} {d.year}"


def format_short_date_id(value) -> str:
    """7/3/2025"""
    d = _as_date(value)
    if d is None:
        return "-"
    return f"{d.day}/{d.month}/{d.year}"


def format_thousands(amount: Any) -> str:
    """1500000 -> 1.500.000 (whole rupiah)"""
    value = Decimal(str(amount or 0)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return sign + f"{abs(int(value)):,}".replace(",", ".")


def format_idr(amount: Any) -> str:
    """Rp 1.500.000"""
    text = format_thousands(amount)
    if text.startswith("-"):
        return f"-Rp {text[1:]}"
    return f"Rp {text}"


# ===============================================================
# Shared parts
# ===============================================================

def letterhead(company: Optional[CompanyProfile] = None) -> Dict[str, str]:
    """
    Company block printed on every document. Empty values fall back to
    the built-in letterhead.
    """
    company = company or CompanyProfile.current()
    out = {}
    for key, default in COMPANY_DEFAULTS.items():
        out[key] = (getattr(company, key, "") or default or "").strip()
    return out


def _person(user) -> Dict[str, str]:
    profile = getattr(user, "profile", None)
    name = (getattr(profile, "full_name", "") or user.get_full_name() or "").strip()
    return {
        "name": name,
        "company_name": (getattr(profile, "company_name", "") or "").strip(),
        "email": (user.email or "").strip(),
    }


# ===============================================================
# Travel order
# ===============================================================

def travel_order_document(travel_order, company: Optional[CompanyProfile] = None, printed_on=None) -> Dict[str, Any]:
    assignment = travel_order.assignment
    job = assignment.job_order
    officer = _person(assignment.field_officer)
    client = _person(job.quotation.client)

    customer = client["name"] or "-"
    if client["company_name"]:
        customer = f"{customer} ({client['company_name']})"

    budget_rows: List[Dict[str, str]] = []
    if travel_order.transportation_type:
        budget_rows.append(
            {"label": "Transportasi", "description": travel_order.transportation_type, "amount": "-"}
        )
    if travel_order.accommodation_type:
        budget_rows.append(
            {"label": "Akomodasi", "description": travel_order.accommodation_type, "amount": "-"}
        )
    if travel_order.daily_allowance:
        budget_rows.append(
            {"label": "Uang Harian", "description": "Per hari", "amount": format_idr(travel_order.daily_allowance)}
        )
    if travel_order.total_budget:
        budget_rows.append(
            {"label": "Total Estimasi", "description": "", "amount": format_idr(travel_order.total_budget)}
        )

    return {
        "company": letterhead(company),
        "title": "SURAT TUGAS PERJALANAN DINAS",
        "document_number": travel_order.document_number,
        "issued_on": format_date_id(travel_order.created_at or timezone.now()),
        "officer": {
            "name": officer["name"] or "-",
            "email": officer["email"] or "-",
            "position": "Petugas Lapangan",
        },
        "trip": {
            "departure_date": format_date_id(travel_order.departure_date),
            "return_date": format_date_id(travel_order.return_date),
            "destination": travel_order.destination,
            "basis": f"Sampling untuk Job Order {job.tracking_code}",
            "customer": customer,
            "purpose": travel_order.purpose,
        },
        "budget_rows": budget_rows,
        "notes": travel_order.notes or None,
        "signatures": [
            {"title": "Yang Ditugaskan,", "name": officer["name"] or "(..........................)"},
            {"title": "Mengetahui,\nKepala Laboratorium", "name": "(..........................)"},
        ],
        "footer": (
            "Dokumen ini dibuat secara elektronik dan sah tanpa tanda tangan basah."
            f" | Dicetak pada: {format_short_date_id(printed_on or timezone.now())}"
        ),
    }


# ===============================================================
# Quotation
# ===============================================================

def quotation_document(quotation, company: Optional[CompanyProfile] = None, tax_rate: Optional[Decimal] = None) -> Dict[str, Any]:
    client = _person(quotation.client)
    head = letterhead(company)

    rows = []
    for item in quotation.items.all():
        rows.append(
            {
                "name": item.service_name,
                "qty": str(item.qty),
                "price": format_thousands(item.price),
                "total": format_thousands(item.line_total),
            }
        )
    if quotation.perdiem_qty:
        rows.append(
            {
                "name": quotation.perdiem_name or "Perdiem",
                "qty": str(quotation.perdiem_qty),
                "price": format_thousands(quotation.perdiem_price),
                "total": format_thousands(quotation.perdiem_price * quotation.perdiem_qty),
            }
        )
    if quotation.transport_qty:
        rows.append(
            {
                "name": quotation.transport_name or "Transportasi",
                "qty": str(quotation.transport_qty),
                "price": format_thousands(quotation.transport_price),
                "total": format_thousands(quotation.transport_price * quotation.transport_qty),
            }
        )
    for i, row in enumerate(rows, start=1):
        row["no"] = str(i)

    summary = [{"label": "Subtotal", "amount": format_idr(quotation.subtotal)}]
    if quotation.discount_amount:
        summary.append({"label": "Diskon", "amount": f"-{format_idr(quotation.discount_amount)}"})
    if quotation.use_tax:
        if tax_rate is None:
            tax_rate = Decimal(str(getattr(settings, "QUOTATION_TAX_RATE", "0.11")))
        percent = (Decimal(tax_rate) * 100).normalize()
        summary.append({"label": f"PPN ({percent:f}%)", "amount": format_idr(quotation.tax_amount)})
    summary.append({"label": "TOTAL", "amount": format_idr(quotation.total_amount)})

    return {
        "company": head,
        "title": "PENAWARAN HARGA (QUOTATION)",
        "quotation_number": quotation.quotation_number,
        "date": format_date_id(quotation.created_at or timezone.now()),
        "client_name": client["name"] or "-",
        "company_name": client["company_name"],
        "items": rows,
        "summary": summary,
        "signatures": [
            {"title": "Hormat Kami,", "name": f"( {head['company_name']} Admin )", "role": "Administrasi"},
            {"title": "Menyetujui,", "name": "( ____________________ )", "role": "Customer"},
        ],
    }
