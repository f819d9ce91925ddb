from .fields import format_date_id, format_idr, quotation_document, travel_order_document
from .render import render_quotation_pdf, render_travel_order_pdf


def travel_order_pdf(travel_order, company=None) -> bytes:
    return render_travel_order_pdf(travel_order_document(travel_order, company=company))


def quotation_pdf(quotation, company=None) -> bytes:
    return render_quotation_pdf(quotation_document(quotation, company=company))


__all__ = [
    "format_date_id",
    "format_idr",
    "quotation_document",
    "travel_order_document",
    "render_quotation_pdf",
    "render_travel_order_pdf",
    "travel_order_pdf",
    "quotation_pdf",
]
