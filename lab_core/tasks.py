# lab_core/tasks.py
from __future__ import annotations

import logging

from celery import shared_task

from lab_core.documents import travel_order_pdf
from lab_core.models import TravelOrder
from lab_core.services.travel_orders import attach_travel_order_pdf

logger = logging.getLogger(__name__)


@shared_task
def render_travel_order_pdf(travel_order_id: int) -> str | None:
    """
    Render the travel order letter, store it and record its url.
    Returns the stored url, or None when the travel order no longer exists.
    """
    travel_order = (
        TravelOrder.objects.select_related(
            "assignment__field_officer__profile",
            "assignment__job_order__quotation__client__profile",
        )
        .filter(pk=travel_order_id)
        .first()
    )
    if travel_order is None:
        logger.warning("Travel order %s vanished before rendering", travel_order_id)
        return None

    content = travel_order_pdf(travel_order)
    attach_travel_order_pdf(travel_order, content)
    logger.info("Rendered travel order %s to %s", travel_order.document_number, travel_order.pdf_url)
    return travel_order.pdf_url
