# lab_core/services/sampling.py
"""
Sampling assignment services.

An assignment and its job order change status together: both rows are
locked, the new pair comes from plan_sampling_transition(), and both
writes plus their timeline rows commit in one transaction.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone

from rest_framework.exceptions import PermissionDenied, ValidationError

from lab_core.models import JobOrder, SamplingAssignment
from lab_core.permissions import is_staff_role, user_role
from lab_core.workflows import normalize_state
from lab_core.workflows.executor import ensure_role, record_transition
from lab_core.workflows.sampling import plan_assignment_creation, plan_sampling_transition

logger = logging.getLogger(__name__)


# ===============================================================
# Helpers
# ===============================================================

def _actor_label(user) -> str:
    if user is None:
        return "field officer"
    return getattr(user, "email", "") or user.get_username() or "field officer"


def _append_note(existing: str, line: str) -> str:
    existing = (existing or "").rstrip()
    return f"{existing}\n{line}" if existing else line


def _ensure_owner_or_admin(assignment: SamplingAssignment, user) -> str:
    role = user_role(user)
    if role == "ADMIN":
        return role
    if role == "FIELD_OFFICER" and assignment.field_officer_id == getattr(user, "pk", None):
        return role
    raise PermissionDenied("Forbidden: this sampling assignment is not assigned to you.")


# ===============================================================
# Create
# ===============================================================

def create_sampling_assignment(
    *,
    job_order: JobOrder,
    field_officer,
    scheduled_date,
    location: str,
    notes: Optional[str] = None,
    user,
) -> SamplingAssignment:
    """
    Assign a field officer to a job order. The job moves to "sampling".
    """
    if not is_staff_role(user):
        raise PermissionDenied("Only admins and operators can assign sampling.")

    if user_role(field_officer) != "FIELD_OFFICER":
        raise ValidationError({"field_officer": "Assignee must have the field officer role."})

    with transaction.atomic():
        job = JobOrder.objects.select_for_update().get(pk=job_order.pk)

        if SamplingAssignment.objects.filter(job_order=job).exists():
            raise ValidationError({"job_order": "This job order already has a sampling assignment."})

        try:
            new_job_status = plan_assignment_creation(job.status)
        except ValueError as e:
            raise ValidationError({"job_order": str(e)})

        assignment = SamplingAssignment.objects.create(
            job_order=job,
            field_officer=field_officer,
            scheduled_date=scheduled_date,
            location=location,
            notes=notes or "",
        )

        if new_job_status != job.status:
            record_transition(
                model=JobOrder,
                pk=job.pk,
                kind="job",
                from_status=job.status,
                to_status=new_job_status,
                user=user,
                role=user_role(user),
                comment=f"Sampling assigned to {_actor_label(field_officer)}",
            )

    logger.info("Sampling assignment %s created for job %s", assignment.pk, job.tracking_code)
    assignment.job_order.refresh_from_db()
    return assignment


# ===============================================================
# Status
# ===============================================================

def update_sampling_status(
    assignment: SamplingAssignment,
    new_status: str,
    user,
    notes: Optional[str] = None,
) -> SamplingAssignment:
    """
    Move an assignment to new_status and mirror the change onto its job:
      in_progress -> job "sampling"
      completed   -> job "analysis", actual_date stamped, note appended

    Field officers act on their own assignments; admins on any;
    operators may only cancel.
    """
    target = normalize_state(new_status)

    with transaction.atomic():
        current = SamplingAssignment.objects.select_for_update().get(pk=assignment.pk)
        job = JobOrder.objects.select_for_update().get(pk=current.job_order_id)

        role = user_role(user)
        if role == "FIELD_OFFICER" and current.field_officer_id != user.pk:
            raise PermissionDenied("Forbidden: this sampling assignment is not assigned to you.")
        if role not in {"ADMIN", "OPERATOR", "FIELD_OFFICER"}:
            raise PermissionDenied("Your role cannot change sampling status.")

        try:
            plan = plan_sampling_transition(current.status, job.status, target)
        except ValueError as e:
            raise ValidationError({"status": str(e)})

        if plan.assignment_status == current.status:
            return current

        ensure_role(kind="sampling", current=current.status, target=target, user=user)

        extra = {}
        if notes:
            extra["notes"] = notes
        if plan.assignment_status == "completed":
            extra["actual_date"] = timezone.now()

        record_transition(
            model=SamplingAssignment,
            pk=current.pk,
            kind="sampling",
            from_status=current.status,
            to_status=plan.assignment_status,
            user=user,
            role=role,
            comment=notes or "",
            **extra,
        )

        if plan.job_status != job.status:
            job_extra = {}
            if plan.assignment_status == "completed":
                line = f"Sampling completed by {_actor_label(user)}"
                if notes:
                    line = f"{line} - {notes}"
                job_extra["notes"] = _append_note(job.notes, line)
            record_transition(
                model=JobOrder,
                pk=job.pk,
                kind="job",
                from_status=job.status,
                to_status=plan.job_status,
                user=user,
                role=role,
                comment=f"Sampling {plan.assignment_status}",
                **job_extra,
            )

    logger.info(
        "Sampling %s: %s -> %s (job %s: %s -> %s)",
        current.pk, current.status, plan.assignment_status,
        job.pk, job.status, plan.job_status,
    )

    current.refresh_from_db()
    return current


# ===============================================================
# Photos
# ===============================================================

def store_upload(directory: str, uploaded) -> dict:
    """
    Save an uploaded file through default storage; returns {"url", "name"}.
    """
    name = os.path.basename(getattr(uploaded, "name", "") or "upload")
    path = default_storage.save(f"{directory}/{name}", uploaded)
    return {"url": default_storage.url(path), "name": name}


def add_sampling_photos(
    assignment: SamplingAssignment,
    user,
    *,
    photos: Optional[Iterable[dict]] = None,
    files: Optional[Iterable] = None,
) -> SamplingAssignment:
    """
    Append photo entries to an assignment. Entries are {"url", "name"};
    uploaded files are stored first and appended the same way.
    """
    _ensure_owner_or_admin(assignment, user)

    entries = []
    for p in photos or []:
        url = str((p or {}).get("url") or "").strip()
        if not url:
            raise ValidationError({"photos": "Each photo needs a url."})
        entries.append({"url": url, "name": str(p.get("name") or os.path.basename(url))})

    directory = f"{getattr(settings, 'SAMPLING_PHOTO_DIR', 'sampling-photos')}/{assignment.pk}"
    for f in files or []:
        entries.append(store_upload(directory, f))

    if not entries:
        raise ValidationError({"photos": "No photos provided."})

    with transaction.atomic():
        current = SamplingAssignment.objects.select_for_update().get(pk=assignment.pk)
        current.photos = list(current.photos or []) + entries
        current.save(update_fields=["photos", "updated_at"])

    return current
