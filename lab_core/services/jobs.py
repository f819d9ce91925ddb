# lab_core/services/jobs.py

from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from rest_framework.exceptions import PermissionDenied, ValidationError

from lab_core.models import JobOrder, Quotation, SamplingAssignment
from lab_core.permissions import is_staff_role
from lab_core.services.numbering import next_document_number
from lab_core.services.sampling import store_upload
from lab_core.workflows.executor import execute_transition
from lab_core.workflows.sampling import check_job_transition

logger = logging.getLogger(__name__)

JOB_SOURCE_STATES = {"accepted", "paid"}
CERTIFICATE_DIR = "certificates"


def create_job_order(quotation: Quotation, user, notes: str = "") -> JobOrder:
    """
    Open the job order for an accepted (or already paid) quotation.
    """
    if not is_staff_role(user):
        raise PermissionDenied("Only admins and operators can create job orders.")

    with transaction.atomic():
        locked = Quotation.objects.select_for_update().get(pk=quotation.pk)

        if locked.status not in JOB_SOURCE_STATES:
            raise ValidationError(
                {"quotation": f"Job orders need an accepted or paid quotation (status is '{locked.status}')."}
            )

        if JobOrder.objects.filter(quotation=locked).exists():
            raise ValidationError({"quotation": "This quotation already has a job order."})

        job = JobOrder.objects.create(
            quotation=locked,
            tracking_code=next_document_number("job_order"),
            notes=notes or "",
        )

    logger.info("Job order %s opened from quotation %s", job.tracking_code, locked.quotation_number)
    return job


def _check_open_sampling(job: JobOrder, target: str) -> None:
    sampling_status = (
        SamplingAssignment.objects.filter(job_order_id=job.pk)
        .values_list("status", flat=True)
        .first()
    )
    try:
        check_job_transition(job.status, target, sampling_status)
    except ValueError as e:
        raise ValidationError({"status": str(e)})


def update_job_status(job: JobOrder, new_status: str, user, notes: Optional[str] = None) -> JobOrder:
    """
    Manual job move. Open fieldwork keeps the job at "sampling"; the
    assignment moves it on when sampling completes.
    """
    extra = {"notes": notes} if notes is not None else {}
    with transaction.atomic():
        current = JobOrder.objects.select_for_update().get(pk=job.pk)
        _check_open_sampling(current, new_status)
        return execute_transition(
            instance=current,
            kind="job",
            new_status=new_status,
            user=user,
            comment=notes or "",
            **extra,
        )


def upload_certificate(job: JobOrder, user, *, url: Optional[str] = None, file=None) -> JobOrder:
    """
    Attach the analysis certificate and complete the job. A paid quotation
    behind the job is completed as well.
    """
    if not is_staff_role(user):
        raise PermissionDenied("Only admins and operators can upload certificates.")

    if file is not None:
        url = store_upload(f"{CERTIFICATE_DIR}/{job.pk}", file)["url"]

    url = (url or "").strip()
    if not url:
        raise ValidationError({"certificate_url": "A certificate url or file is required."})

    with transaction.atomic():
        current = JobOrder.objects.select_for_update().get(pk=job.pk)

        if current.status == JobOrder.Status.COMPLETED:
            JobOrder.objects.filter(pk=current.pk).update(certificate_url=url, updated_at=timezone.now())
        else:
            _check_open_sampling(current, "completed")
            execute_transition(
                instance=current,
                kind="job",
                new_status="completed",
                user=user,
                comment="Certificate uploaded",
                certificate_url=url,
            )

        quotation = Quotation.objects.select_for_update().get(pk=current.quotation_id)
        if quotation.status == Quotation.Status.PAID:
            execute_transition(
                instance=quotation,
                kind="quotation",
                new_status="completed",
                user=user,
                comment=f"Job {current.tracking_code} completed",
            )

    current.refresh_from_db()
    return current
