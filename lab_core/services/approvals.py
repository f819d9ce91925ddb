# lab_core/services/approvals.py
"""
Edit and delete requests for quotations.

Operators ask, admins decide. Only pending requests can be reviewed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.db import transaction
from django.utils import timezone

from rest_framework.exceptions import PermissionDenied, ValidationError

from lab_core.models import ApprovalRequest, Quotation
from lab_core.permissions import is_staff_role, user_role
from lab_core.services.quotations import apply_quotation_changes, delete_quotation, validate_changes

logger = logging.getLogger(__name__)


def create_approval_request(
    *,
    quotation: Quotation,
    request_type: str,
    reason: str,
    user,
    changes: Optional[Dict[str, Any]] = None,
) -> ApprovalRequest:
    if not is_staff_role(user):
        raise PermissionDenied("Only admins and operators can request quotation changes.")

    request_type = (request_type or "").strip().lower()
    if request_type not in ApprovalRequest.RequestType.values:
        raise ValidationError({"request_type": "Use 'edit' or 'delete'."})

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError({"reason": "A reason is required."})

    if request_type == ApprovalRequest.RequestType.EDIT:
        # stored as submitted; values are coerced again when applied
        validate_changes(changes or {})
        changes = dict(changes)
    else:
        changes = {}

    req = ApprovalRequest.objects.create(
        request_type=request_type,
        quotation=quotation,
        quotation_number=quotation.quotation_number,
        requested_by=user,
        reason=reason,
        changes=changes,
    )
    logger.info("Approval request %s (%s %s) by %s", req.pk, request_type, quotation.quotation_number, user)
    return req


def _lock_pending(request: ApprovalRequest, user) -> ApprovalRequest:
    if user_role(user) != "ADMIN":
        raise PermissionDenied("Only admins can review approval requests.")

    locked = ApprovalRequest.objects.select_for_update().get(pk=request.pk)
    if locked.status != ApprovalRequest.Status.PENDING:
        raise ValidationError({"status": f"Request was already {locked.status}."})
    return locked


def approve_request(request: ApprovalRequest, user) -> ApprovalRequest:
    """
    Approve and execute: delete the quotation, or apply the requested edit.
    """
    with transaction.atomic():
        locked = _lock_pending(request, user)

        if locked.quotation_id is None:
            raise ValidationError({"quotation": "The quotation no longer exists."})

        quotation = Quotation.objects.get(pk=locked.quotation_id)

        if locked.request_type == ApprovalRequest.RequestType.DELETE:
            delete_quotation(quotation)
        else:
            apply_quotation_changes(quotation, locked.changes)

        locked.status = ApprovalRequest.Status.APPROVED
        locked.reviewed_by = user
        locked.reviewed_at = timezone.now()
        locked.save(update_fields=["status", "reviewed_by", "reviewed_at", "updated_at"])

    logger.info("Approval request %s approved by %s", locked.pk, user)
    return locked


def reject_request(request: ApprovalRequest, user, reason: str) -> ApprovalRequest:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError({"reason": "A rejection reason is required."})

    with transaction.atomic():
        locked = _lock_pending(request, user)
        locked.status = ApprovalRequest.Status.REJECTED
        locked.reviewed_by = user
        locked.reviewed_at = timezone.now()
        locked.rejection_reason = reason
        locked.save(update_fields=["status", "reviewed_by", "reviewed_at", "rejection_reason", "updated_at"])

    logger.info("Approval request %s rejected by %s", locked.pk, user)
    return locked
