# lab_core/views.py
from __future__ import annotations

import logging

from django.db.models import Count, Q, Sum
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from .documents import quotation_pdf, travel_order_pdf
from .filters import (
    ApprovalRequestFilter,
    AuditLogFilter,
    JobOrderFilter,
    QuotationFilter,
    SamplingAssignmentFilter,
    ServiceFilter,
    TravelOrderFilter,
)
from .middleware import client_ip
from .models import (
    ApprovalRequest,
    AuditLog,
    CompanyProfile,
    JobOrder,
    Quotation,
    SamplingAssignment,
    Service,
    ServiceCategory,
    TravelOrder,
)
from .permissions import (
    HasLabRole,
    IsAdminRole,
    IsStaffRoleOrReadOnly,
    is_staff_role,
    scope_queryset,
    user_role,
)
from .serializers import (
    ApprovalRequestSerializer,
    AuditLogSerializer,
    CertificateSerializer,
    CompanyProfileSerializer,
    JobOrderCreateSerializer,
    JobOrderSerializer,
    QuotationCreateSerializer,
    QuotationSerializer,
    RejectionSerializer,
    SamplingAssignmentSerializer,
    SamplingPhotosSerializer,
    ServiceCategorySerializer,
    ServiceSerializer,
    StatusChangeSerializer,
    TravelOrderSerializer,
    UserSlimSerializer,
)
from .services import approvals, jobs, quotations, sampling, travel_orders
from .signals import set_current_request
from .tasks import render_travel_order_pdf

logger = logging.getLogger(__name__)

ALL_ROLES = {"ADMIN", "OPERATOR", "FIELD_OFFICER", "CLIENT"}
STAFF = {"ADMIN", "OPERATOR"}


# ===============================================================
# Mixins
# ===============================================================
class AuditContextMixin:
    """
    JWT users are only known once DRF authenticates the request, after
    CurrentUserMiddleware ran. Refresh the audit context here.
    """

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        user = request.user if request.user and request.user.is_authenticated else None
        set_current_request(user, client_ip(request))


class RoleScopedQuerysetMixin:
    def get_scoped_queryset(self, base_qs):
        return scope_queryset(base_qs, getattr(self.request, "user", None))


def _pdf_response(content: bytes, filename: str, inline: bool = True) -> HttpResponse:
    response = HttpResponse(content, content_type="application/pdf")
    disposition = "inline" if inline else "attachment"
    response["Content-Disposition"] = f'{disposition}; filename="{filename}"'
    return response


def _safe_filename(number: str) -> str:
    return number.replace("/", "-") + ".pdf"


# ===============================================================
# Health / identity
# ===============================================================
class HealthCheckView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["System"])
    def get(self, request):
        return Response({"status": "ok", "service": "WahfaLab", "time": timezone.now().isoformat()})


class WhoAmIView(APIView):
    """
    Returns the currently authenticated user and their application role.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        profile = getattr(user, "profile", None)
        return Response(
            {
                "id": user.id,
                "username": user.get_username(),
                "email": user.email,
                "is_superuser": bool(user.is_superuser),
                "role": user_role(user).lower(),
                "full_name": getattr(profile, "full_name", "") or user.get_full_name(),
                "company_name": getattr(profile, "company_name", ""),
            }
        )


# ===============================================================
# Service catalog
# ===============================================================
class ServiceCategoryViewSet(AuditContextMixin, viewsets.ModelViewSet):
    queryset = ServiceCategory.objects.all()
    serializer_class = ServiceCategorySerializer
    permission_classes = [IsStaffRoleOrReadOnly]


class ServiceViewSet(AuditContextMixin, viewsets.ModelViewSet):
    serializer_class = ServiceSerializer
    permission_classes = [IsStaffRoleOrReadOnly]
    filterset_class = ServiceFilter

    def get_queryset(self):
        qs = Service.objects.select_related("category")
        if not is_staff_role(self.request.user):
            qs = qs.filter(is_active=True)
        return qs


# ===============================================================
# Quotations
# ===============================================================
class QuotationViewSet(
    AuditContextMixin,
    RoleScopedQuerysetMixin,
    mixins.CreateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    """
    Quotations are created here with server-side totals. Status moves only
    through the transition action; operators edit or delete through
    approval requests.
    """

    permission_classes = [HasLabRole]
    allowed_roles = {"ADMIN", "OPERATOR", "CLIENT"}
    write_roles = STAFF
    action_write_roles = {
        "transition": {"ADMIN", "OPERATOR", "CLIENT"},
        "partial_update": {"ADMIN"},
        "destroy": {"ADMIN"},
    }
    filterset_class = QuotationFilter

    def get_queryset(self):
        qs = Quotation.objects.select_related("client__profile", "job_order").prefetch_related("items")
        return self.get_scoped_queryset(qs)

    def get_serializer_class(self):
        if self.action == "create":
            return QuotationCreateSerializer
        return QuotationSerializer

    def get_throttles(self):
        if self.action == "create":
            self.throttle_scope = "create_quotation"
            return [ScopedRateThrottle()]
        return super().get_throttles()

    def partial_update(self, request, *args, **kwargs):
        quotation = quotations.apply_quotation_changes(self.get_object(), dict(request.data))
        quotation = self.get_queryset().get(pk=quotation.pk)
        return Response(QuotationSerializer(quotation, context=self.get_serializer_context()).data)

    def destroy(self, request, *args, **kwargs):
        quotations.delete_quotation(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], serializer_class=StatusChangeSerializer)
    def transition(self, request, pk=None):
        quotation = self.get_object()
        s = StatusChangeSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        quotations.transition_quotation(quotation, s.validated_data["status"], request.user, s.validated_data.get("notes") or "")
        quotation.refresh_from_db()
        return Response(QuotationSerializer(quotation, context=self.get_serializer_context()).data)

    @action(detail=True, methods=["post"], url_path="job-order", serializer_class=JobOrderCreateSerializer)
    def job_order(self, request, pk=None):
        quotation = self.get_object()
        job = jobs.create_job_order(quotation, request.user, notes=request.data.get("notes", ""))
        return Response(JobOrderSerializer(job, context=self.get_serializer_context()).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"])
    def pdf(self, request, pk=None):
        quotation = self.get_object()
        return _pdf_response(quotation_pdf(quotation), _safe_filename(quotation.quotation_number))


# ===============================================================
# Job orders
# ===============================================================
class JobOrderViewSet(
    AuditContextMixin,
    RoleScopedQuerysetMixin,
    mixins.CreateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    permission_classes = [HasLabRole]
    allowed_roles = ALL_ROLES
    write_roles = STAFF
    filterset_class = JobOrderFilter

    def get_queryset(self):
        qs = JobOrder.objects.select_related("quotation__client__profile", "sampling_assignment")
        return self.get_scoped_queryset(qs)

    def get_serializer_class(self):
        if self.action == "create":
            return JobOrderCreateSerializer
        return JobOrderSerializer

    def get_throttles(self):
        if self.action == "status_update":
            self.throttle_scope = "update_job_status"
            return [ScopedRateThrottle()]
        if self.action == "certificate":
            self.throttle_scope = "upload_file"
            return [ScopedRateThrottle()]
        return super().get_throttles()

    def create(self, request, *args, **kwargs):
        s = JobOrderCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        job = jobs.create_job_order(s.validated_data["quotation"], request.user, notes=s.validated_data.get("notes", ""))
        return Response(JobOrderSerializer(job, context=self.get_serializer_context()).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="status", serializer_class=StatusChangeSerializer)
    def status_update(self, request, pk=None):
        job = self.get_object()
        s = StatusChangeSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        jobs.update_job_status(job, s.validated_data["status"], request.user, notes=s.validated_data.get("notes"))
        job.refresh_from_db()
        return Response(JobOrderSerializer(job, context=self.get_serializer_context()).data)

    @action(
        detail=True,
        methods=["post"],
        serializer_class=CertificateSerializer,
        parser_classes=[JSONParser, MultiPartParser, FormParser],
    )
    def certificate(self, request, pk=None):
        job = self.get_object()
        s = CertificateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        job = jobs.upload_certificate(
            job,
            request.user,
            url=s.validated_data.get("certificate_url"),
            file=s.validated_data.get("file"),
        )
        return Response(JobOrderSerializer(job, context=self.get_serializer_context()).data)


# ===============================================================
# Sampling assignments
# ===============================================================
class SamplingAssignmentViewSet(
    AuditContextMixin,
    RoleScopedQuerysetMixin,
    mixins.CreateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    """
    Status and photo actions resolve the assignment without visibility
    scoping so that a foreign assignment answers 403 rather than 404.
    """

    serializer_class = SamplingAssignmentSerializer
    permission_classes = [HasLabRole]
    allowed_roles = {"ADMIN", "OPERATOR", "FIELD_OFFICER"}
    write_roles = STAFF
    action_write_roles = {
        "status_update": {"ADMIN", "OPERATOR", "FIELD_OFFICER"},
        "photos": {"ADMIN", "FIELD_OFFICER"},
    }
    filterset_class = SamplingAssignmentFilter

    def get_queryset(self):
        qs = SamplingAssignment.objects.select_related(
            "job_order",
            "field_officer__profile",
            "travel_order",
        )
        return self.get_scoped_queryset(qs)

    def get_throttles(self):
        if self.action == "photos":
            self.throttle_scope = "upload_file"
            return [ScopedRateThrottle()]
        return super().get_throttles()

    @action(detail=True, methods=["post"], url_path="status", serializer_class=StatusChangeSerializer)
    def status_update(self, request, pk=None):
        assignment = get_object_or_404(SamplingAssignment, pk=pk)
        s = StatusChangeSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        assignment = sampling.update_sampling_status(
            assignment,
            s.validated_data["status"],
            request.user,
            notes=s.validated_data.get("notes"),
        )
        return Response(SamplingAssignmentSerializer(assignment, context=self.get_serializer_context()).data)

    @action(
        detail=True,
        methods=["post"],
        serializer_class=SamplingPhotosSerializer,
        parser_classes=[JSONParser, MultiPartParser, FormParser],
    )
    def photos(self, request, pk=None):
        assignment = get_object_or_404(SamplingAssignment, pk=pk)
        data = request.data
        if hasattr(request, "FILES") and request.FILES:
            data = {"files": request.FILES.getlist("files")}
        s = SamplingPhotosSerializer(data=data)
        s.is_valid(raise_exception=True)
        assignment = sampling.add_sampling_photos(
            assignment,
            request.user,
            photos=s.validated_data.get("photos"),
            files=s.validated_data.get("files"),
        )
        return Response(SamplingAssignmentSerializer(assignment, context=self.get_serializer_context()).data)


# ===============================================================
# Travel orders
# ===============================================================
class TravelOrderViewSet(AuditContextMixin, RoleScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = TravelOrderSerializer
    permission_classes = [HasLabRole]
    allowed_roles = {"ADMIN", "OPERATOR", "FIELD_OFFICER"}
    write_roles = STAFF
    filterset_class = TravelOrderFilter

    def get_queryset(self):
        qs = TravelOrder.objects.select_related(
            "assignment__field_officer__profile",
            "assignment__job_order__quotation__client__profile",
        )
        return self.get_scoped_queryset(qs)

    def perform_destroy(self, instance):
        travel_orders.delete_travel_order(instance, self.request.user)

    @action(detail=True, methods=["get"])
    def pdf(self, request, pk=None):
        travel_order = self.get_object()
        return _pdf_response(travel_order_pdf(travel_order), _safe_filename(travel_order.document_number))

    @action(detail=True, methods=["post"], url_path="render")
    def render_pdf(self, request, pk=None):
        travel_order = self.get_object()
        result = render_travel_order_pdf.delay(travel_order.pk)
        return Response(
            {"task_id": result.id, "travel_order": travel_order.pk},
            status=status.HTTP_202_ACCEPTED,
        )


# ===============================================================
# Approval requests
# ===============================================================
class ApprovalRequestViewSet(
    AuditContextMixin,
    mixins.CreateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    serializer_class = ApprovalRequestSerializer
    permission_classes = [HasLabRole]
    allowed_roles = STAFF
    action_write_roles = {"approve": {"ADMIN"}, "reject": {"ADMIN"}}
    filterset_class = ApprovalRequestFilter

    def get_queryset(self):
        qs = ApprovalRequest.objects.select_related("requested_by__profile", "reviewed_by__profile")
        if user_role(self.request.user) != "ADMIN":
            qs = qs.filter(requested_by=self.request.user)
        return qs

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        req = approvals.approve_request(self.get_object(), request.user)
        return Response(self.get_serializer(req).data)

    @action(detail=True, methods=["post"], serializer_class=RejectionSerializer)
    def reject(self, request, pk=None):
        s = RejectionSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        req = approvals.reject_request(self.get_object(), request.user, s.validated_data["reason"])
        return Response(ApprovalRequestSerializer(req, context=self.get_serializer_context()).data)


# ===============================================================
# Audit logs
# ===============================================================
class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.select_related("user")
    serializer_class = AuditLogSerializer
    permission_classes = [IsAdminRole]
    filterset_class = AuditLogFilter


# ===============================================================
# Company profile
# ===============================================================
class CompanyProfileView(AuditContextMixin, APIView):
    """
    GET: letterhead data (defaults when none stored)
    PUT/PATCH: admin only
    """

    def get_permissions(self):
        if self.request.method in ("GET", "HEAD", "OPTIONS"):
            return [IsAuthenticated()]
        return [IsAdminRole()]

    def get(self, request):
        return Response(CompanyProfileSerializer(CompanyProfile.current()).data)

    def put(self, request):
        return self._save(request, partial=False)

    def patch(self, request):
        return self._save(request, partial=True)

    def _save(self, request, partial: bool):
        company = CompanyProfile.current()
        s = CompanyProfileSerializer(company, data=request.data, partial=partial)
        s.is_valid(raise_exception=True)
        s.save()
        return Response(s.data)


# ===============================================================
# Dashboard
# ===============================================================
def _counts(qs, field: str = "status") -> dict:
    return {row[field]: row["n"] for row in qs.values(field).annotate(n=Count("id")).order_by(field)}


class DashboardView(APIView):
    """
    Role-specific summary for the landing page.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        role = user_role(user)

        if role in STAFF:
            revenue = Quotation.objects.filter(status__in=["paid", "completed"]).aggregate(total=Sum("total_amount"))["total"]
            payload = {
                "quotations": _counts(Quotation.objects.all()),
                "job_orders": _counts(JobOrder.objects.all()),
                "sampling_assignments": _counts(SamplingAssignment.objects.all()),
                "travel_orders": TravelOrder.objects.count(),
                "pending_approvals": ApprovalRequest.objects.filter(status="pending").count(),
                "revenue": str(revenue or 0),
            }
        elif role == "FIELD_OFFICER":
            mine = SamplingAssignment.objects.filter(field_officer=user)
            upcoming = mine.filter(status__in=["pending", "in_progress"]).select_related("job_order").order_by("scheduled_date")[:5]
            payload = {
                "sampling_assignments": _counts(mine),
                "upcoming": [
                    {
                        "id": a.pk,
                        "tracking_code": a.job_order.tracking_code,
                        "status": a.status,
                        "scheduled_date": a.scheduled_date,
                        "location": a.location,
                    }
                    for a in upcoming
                ],
                "travel_orders": TravelOrder.objects.filter(assignment__field_officer=user).count(),
            }
        elif role == "CLIENT":
            payload = {
                "quotations": _counts(Quotation.objects.filter(client=user)),
                "job_orders": _counts(JobOrder.objects.filter(quotation__client=user)),
                "awaiting_response": Quotation.objects.filter(client=user, status="sent").count(),
            }
        else:
            raise ValidationError({"role": "Your account has no role assigned."})

        payload["role"] = role.lower()
        payload["user"] = UserSlimSerializer(user).data
        return Response(payload)
