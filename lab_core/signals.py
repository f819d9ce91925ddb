# lab_core/signals.py
from __future__ import annotations

import logging
from threading import local

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from lab_core.models import (
    ApprovalRequest,
    AuditLog,
    JobOrder,
    Quotation,
    SamplingAssignment,
    Service,
    TravelOrder,
    WorkflowTransition,
)

logger = logging.getLogger(__name__)

AUDITED_MODELS = {
    Quotation,
    JobOrder,
    SamplingAssignment,
    TravelOrder,
    Service,
    ApprovalRequest,
}

# ===============================================================
# Thread-local request context
# ===============================================================
_state = local()


def set_current_request(user, ip_address=None):
    _state.user = user
    _state.ip_address = ip_address


def get_current_user():
    return getattr(_state, "user", None)


def get_current_ip():
    return getattr(_state, "ip_address", None)


# ===============================================================
# Utilities
# ===============================================================
def _log(action: str, instance, details: dict | None = None, user=None):
    user = user or get_current_user()

    try:
        with transaction.atomic():
            AuditLog.objects.create(
                user=user if user and user.is_authenticated else None,
                action=action,
                entity_type=instance.__class__.__name__,
                entity_id=str(instance.pk or ""),
                details=details or {},
                ip_address=get_current_ip(),
            )
    except Exception:
        logger.exception("Audit log write failed for %s %s", action, instance.__class__.__name__)


def _username(user) -> str:
    if not user:
        return "system"
    return user.get_username() or getattr(user, "email", "") or "user"


# ===============================================================
# CREATE / UPDATE / DELETE audit
# ===============================================================
@receiver(post_save)
def audit_create_update(sender, instance, created, **kwargs):
    if sender not in AUDITED_MODELS:
        return
    _log("CREATE" if created else "UPDATE", instance)


@receiver(post_delete)
def audit_delete(sender, instance, **kwargs):
    if sender not in AUDITED_MODELS:
        return
    _log("DELETE", instance)


# ===============================================================
# Workflow transitions
# ===============================================================
@receiver(post_save, sender=WorkflowTransition)
def audit_workflow_transition(sender, instance: WorkflowTransition, created: bool, **kwargs):
    """
    Side effects of a recorded transition:
    - audit log entry
    - optional email notification
    """
    if not created:
        return

    AuditLog.objects.create(
        user=instance.performed_by,
        action=(
            f"WORKFLOW {instance.kind.upper()} {instance.object_id}: "
            f"{instance.from_status} -> {instance.to_status}"
        ),
        entity_type=instance.kind,
        entity_id=str(instance.object_id),
        details={
            "kind": instance.kind,
            "object_id": instance.object_id,
            "from": instance.from_status,
            "to": instance.to_status,
            "role": instance.role,
        },
        ip_address=get_current_ip(),
    )

    if not getattr(settings, "WORKFLOW_EMAIL_NOTIFICATIONS", False):
        return

    recipients = getattr(settings, "WORKFLOW_NOTIFY_EMAILS", None)
    if not recipients:
        return

    subject = (
        f"[WahfaLab] {instance.kind.upper()} {instance.object_id} "
        f"{instance.from_status} -> {instance.to_status}"
    )

    body = "\n".join(
        [
            "Workflow transition recorded.",
            "",
            f"Kind: {instance.kind}",
            f"Object ID: {instance.object_id}",
            f"From: {instance.from_status}",
            f"To: {instance.to_status}",
            f"By: {_username(instance.performed_by)}",
            f"At: {instance.created_at}",
        ]
    )

    try:
        send_mail(
            subject=subject,
            message=body,
            from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
            recipient_list=list(recipients),
        )
    except Exception:
        logger.exception("Workflow notification email failed for %s %s", instance.kind, instance.object_id)
