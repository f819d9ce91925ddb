# lab_core/workflows/executor.py

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from rest_framework.exceptions import PermissionDenied, ValidationError

from lab_core.models import WorkflowTransition
from lab_core.permissions import user_role
from lab_core.workflows import (
    is_terminal,
    normalize_kind,
    normalize_state,
    required_roles,
    validate_transition,
)

logger = logging.getLogger(__name__)


def record_transition(*, model, pk: int, kind: str, from_status: str, to_status: str, user, role: str = "", comment: str = "", **extra_fields):
    """
    Write the new status and its timeline row.

    Must run inside the caller's transaction with the row already locked.
    update() skips auto_now, so updated_at is set here.
    """
    model.objects.filter(pk=pk).update(
        status=to_status,
        updated_at=timezone.now(),
        **extra_fields,
    )

    return WorkflowTransition.objects.create(
        kind=kind,
        object_id=pk,
        from_status=from_status,
        to_status=to_status,
        performed_by=user if user is not None and user.is_authenticated else None,
        role=role,
        comment=comment or "",
    )


def ensure_role(*, kind: str, current: str, target: str, user) -> str:
    """
    Raise PermissionDenied unless the user's role may perform current -> target.
    Returns the role used.
    """
    role = user_role(user)
    required = set(required_roles(kind, current, target))
    if role not in required:
        raise PermissionDenied(
            "You do not have the required role to transition "
            f"{kind} from {current} to {target}."
        )
    return role


def execute_transition(*, instance, kind: str, new_status: str, user, comment: str = "", **extra_fields):
    """
    Authoritative status change for a single workflow-controlled row.

    Locks the row, validates legality and role, then writes the status and
    a WorkflowTransition atomically. Same-state requests are a no-op.
    """
    kind = normalize_kind(kind)
    target = normalize_state(new_status)
    model = instance.__class__

    with transaction.atomic():
        locked = model.objects.select_for_update().get(pk=instance.pk)
        current = normalize_state(locked.status)

        if current == target:
            return instance

        # 1) Terminal state lock
        if is_terminal(kind, current):
            raise ValidationError(
                {"status": f"{kind.capitalize()} is in terminal state '{current}' and cannot be modified."}
            )

        # 2) Validate transition legality (must be field-shaped)
        try:
            validate_transition(kind, current, target)
        except ValueError as e:
            raise ValidationError({"status": str(e)})

        # 3) Role enforcement
        role = ensure_role(kind=kind, current=current, target=target, user=user)

        # 4) Apply transition + timeline
        record_transition(
            model=model,
            pk=instance.pk,
            kind=kind,
            from_status=current,
            to_status=target,
            user=user,
            role=role,
            comment=comment,
            **extra_fields,
        )

    logger.info("%s %s: %s -> %s by %s", kind, instance.pk, current, target, user)

    instance.status = target
    for field, value in extra_fields.items():
        setattr(instance, field, value)
    return instance
