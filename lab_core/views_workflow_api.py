# lab_core/views_workflow_api.py

from __future__ import annotations

from typing import Dict, Type

from django.shortcuts import get_object_or_404

from rest_framework.exceptions import NotAuthenticated, ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from lab_core.models import JobOrder, Quotation, SamplingAssignment, WorkflowTransition
from lab_core.permissions import scope_queryset, user_role
from lab_core.serializers import WorkflowTransitionSerializer
from lab_core.services.jobs import update_job_status
from lab_core.services.quotations import transition_quotation
from lab_core.services.sampling import update_sampling_status
from lab_core.workflows import allowed_transitions, normalize_kind, workflow_definition


# =============================================================
# Workflow model registry
# =============================================================

KIND_MODEL_MAP: Dict[str, Type] = {
    "quotation": Quotation,
    "job": JobOrder,
    "sampling": SamplingAssignment,
}


# =============================================================
# Helpers
# =============================================================

def _normalize_kind(kind: str) -> str:
    kind = normalize_kind(kind)
    if kind not in KIND_MODEL_MAP:
        raise ValidationError(
            {"kind": "Invalid workflow kind. Use 'quotation', 'job' or 'sampling'."}
        )
    return kind


def _require_auth(user) -> None:
    """
    Raise DRF's 401 instead of a login redirect under session setups.
    """
    if not user or not getattr(user, "is_authenticated", False):
        raise NotAuthenticated("Authentication credentials were not provided.")


def _visible_instance(request, kind: str, pk: int):
    model = KIND_MODEL_MAP[kind]
    return get_object_or_404(scope_queryset(model.objects.all(), request.user), pk=pk)


# =============================================================
# API: Definition
# =============================================================

class WorkflowDefinitionView(APIView):
    """
    GET /lab/workflows/<kind>/

    States, terminal states, transitions and the roles allowed per target.
    """
    permission_classes = [AllowAny]

    def get(self, request, kind: str):
        _require_auth(request.user)
        kind = _normalize_kind(kind)
        return Response(workflow_definition(kind))


# =============================================================
# API: Allowed transitions
# =============================================================

class WorkflowAllowedView(APIView):
    """
    GET /lab/workflows/<kind>/<pk>/allowed/
    """
    permission_classes = [AllowAny]

    def get(self, request, kind: str, pk: int):
        _require_auth(request.user)
        kind = _normalize_kind(kind)
        instance = _visible_instance(request, kind, pk)

        role = user_role(request.user)
        allowed = allowed_transitions(kind, instance.status, role) if role else []

        return Response(
            {
                "kind": kind,
                "object_id": instance.pk,
                "current": instance.status,
                "allowed": allowed,
                "role": role.lower(),
            }
        )


# =============================================================
# API: Execute workflow transition (AUTHORITATIVE)
# =============================================================

class WorkflowTransitionView(APIView):
    """
    POST /lab/workflows/<kind>/<pk>/transition/

    Body:
        { "to_status": "in_progress", "comment": "..." }
        or
        { "status": "in_progress" }

    Sampling moves go through the sampling service so the owning job
    order follows in the same transaction.
    """
    permission_classes = [AllowAny]

    def post(self, request, kind: str, pk: int):
        _require_auth(request.user)
        kind = _normalize_kind(kind)

        # Unscoped on purpose: ownership failures answer 403 from the services
        instance = get_object_or_404(KIND_MODEL_MAP[kind], pk=pk)

        payload = request.data or {}
        to_status = payload.get("to_status") or payload.get("status")
        if not to_status:
            raise ValidationError({"to_status": "This field is required."})
        comment = payload.get("comment") or payload.get("notes")

        if kind == "sampling":
            update_sampling_status(instance, str(to_status), request.user, notes=comment)
        elif kind == "job":
            update_job_status(instance, str(to_status), request.user, notes=comment)
        else:
            transition_quotation(instance, str(to_status), request.user, comment=comment or "")

        instance.refresh_from_db()

        return Response(
            {
                "kind": kind,
                "object_id": instance.pk,
                "current": instance.status,
            }
        )


# =============================================================
# API: History
# =============================================================

class WorkflowHistoryView(APIView):
    """
    GET /lab/workflows/<kind>/<pk>/history/
    """
    permission_classes = [AllowAny]

    def get(self, request, kind: str, pk: int):
        _require_auth(request.user)
        kind = _normalize_kind(kind)
        instance = _visible_instance(request, kind, pk)

        rows = (
            WorkflowTransition.objects.filter(kind=kind, object_id=instance.pk)
            .select_related("performed_by")
            .order_by("created_at", "id")
        )
        return Response(
            {
                "kind": kind,
                "object_id": instance.pk,
                "current": instance.status,
                "history": WorkflowTransitionSerializer(rows, many=True).data,
            }
        )
