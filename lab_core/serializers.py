from __future__ import annotations

from typing import Any, Dict

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import (
    ApprovalRequest,
    AuditLog,
    CompanyProfile,
    JobOrder,
    Quotation,
    QuotationItem,
    SamplingAssignment,
    Service,
    ServiceCategory,
    TravelOrder,
    WorkflowTransition,
)
from .permissions import user_role
from .services import approvals, quotations, sampling, travel_orders
from .workflows import allowed_transitions

User = get_user_model()


# ===============================================================
# Helpers
# ===============================================================

class ImmutableFieldsMixin:
    """
    Blocks updates to selected fields if they appear in incoming validated data.
    """
    immutable_fields: tuple[str, ...] = ()

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if self.instance is not None and self.immutable_fields:
            for field in self.immutable_fields:
                if field in attrs:
                    raise serializers.ValidationError(
                        {field: "This field is immutable."}
                    )
        return super().validate(attrs)


def _request_user(serializer):
    request = serializer.context.get("request")
    return getattr(request, "user", None)


class UserSlimSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()
    role = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ("id", "username", "email", "full_name", "role")
        read_only_fields = fields

    def get_full_name(self, obj) -> str:
        profile = getattr(obj, "profile", None)
        return getattr(profile, "full_name", "") or obj.get_full_name()

    def get_role(self, obj) -> str:
        return user_role(obj).lower()


class AllowedNextMixin(serializers.Serializer):
    """
    Adds the role-aware next states for the requesting user.
    """
    workflow_kind = ""

    allowed_next = serializers.SerializerMethodField()

    def get_allowed_next(self, obj) -> list[str]:
        role = user_role(_request_user(self))
        if not role:
            return []
        return allowed_transitions(self.workflow_kind, obj.status, role)


# ===============================================================
# Catalog
# ===============================================================

class ServiceCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceCategory
        fields = ("id", "name", "description", "created_at", "updated_at")
        read_only_fields = ("id", "created_at", "updated_at")


class ServiceSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True, default="")

    class Meta:
        model = Service
        fields = (
            "id",
            "category",
            "category_name",
            "name",
            "unit",
            "price",
            "parameters",
            "is_active",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "category_name", "created_at", "updated_at")

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Price cannot be negative.")
        return value


# ===============================================================
# Quotations
# ===============================================================

class QuotationItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = QuotationItem
        fields = ("id", "service", "service_name", "qty", "price", "parameter_snapshot", "line_total")
        read_only_fields = fields


class QuotationSerializer(AllowedNextMixin, serializers.ModelSerializer):
    workflow_kind = "quotation"

    client = UserSlimSerializer(read_only=True)
    items = QuotationItemSerializer(many=True, read_only=True)
    job_order_id = serializers.SerializerMethodField()

    class Meta:
        model = Quotation
        fields = (
            "id",
            "quotation_number",
            "client",
            "status",
            "allowed_next",
            "items",
            "perdiem_name",
            "perdiem_price",
            "perdiem_qty",
            "transport_name",
            "transport_price",
            "transport_qty",
            "subtotal",
            "discount_amount",
            "use_tax",
            "tax_amount",
            "total_amount",
            "notes",
            "job_order_id",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_job_order_id(self, obj):
        job = getattr(obj, "job_order", None)
        return job.pk if job else None


class QuotationItemInputSerializer(serializers.Serializer):
    service = serializers.PrimaryKeyRelatedField(queryset=Service.objects.filter(is_active=True))
    qty = serializers.IntegerField(min_value=1, default=1)
    price = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, min_value=0)


class ExtraCostSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, default="")
    price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, default=0)
    qty = serializers.IntegerField(min_value=0, default=0)


class QuotationCreateSerializer(serializers.Serializer):
    client = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    items = QuotationItemInputSerializer(many=True, allow_empty=False)
    perdiem = ExtraCostSerializer(required=False)
    transport = ExtraCostSerializer(required=False)
    discount_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, default=0)
    use_tax = serializers.BooleanField(default=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def create(self, validated_data):
        return quotations.create_quotation(
            client=validated_data["client"],
            items=validated_data["items"],
            perdiem=validated_data.get("perdiem"),
            transport=validated_data.get("transport"),
            discount=validated_data["discount_amount"],
            use_tax=validated_data["use_tax"],
            notes=validated_data.get("notes", ""),
            user=_request_user(self),
        )

    def to_representation(self, instance):
        return QuotationSerializer(instance, context=self.context).data


# ===============================================================
# Job orders
# ===============================================================

class JobOrderSerializer(AllowedNextMixin, serializers.ModelSerializer):
    workflow_kind = "job"

    quotation_number = serializers.CharField(source="quotation.quotation_number", read_only=True)
    client = UserSlimSerializer(source="quotation.client", read_only=True)
    sampling_assignment_id = serializers.SerializerMethodField()

    class Meta:
        model = JobOrder
        fields = (
            "id",
            "tracking_code",
            "quotation",
            "quotation_number",
            "client",
            "status",
            "allowed_next",
            "notes",
            "certificate_url",
            "sampling_assignment_id",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_sampling_assignment_id(self, obj):
        assignment = getattr(obj, "sampling_assignment", None)
        return assignment.pk if assignment else None


class JobOrderCreateSerializer(serializers.Serializer):
    quotation = serializers.PrimaryKeyRelatedField(queryset=Quotation.objects.all())
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class CertificateSerializer(serializers.Serializer):
    certificate_url = serializers.CharField(required=False, allow_blank=True, max_length=500)
    file = serializers.FileField(required=False)

    def validate(self, attrs):
        if not attrs.get("certificate_url") and not attrs.get("file"):
            raise serializers.ValidationError({"certificate_url": "Provide a certificate url or upload a file."})
        return attrs


# ===============================================================
# Sampling
# ===============================================================

class SamplingAssignmentSerializer(AllowedNextMixin, serializers.ModelSerializer):
    workflow_kind = "sampling"

    job_order = serializers.PrimaryKeyRelatedField(queryset=JobOrder.objects.all())
    field_officer = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    field_officer_detail = UserSlimSerializer(source="field_officer", read_only=True)
    tracking_code = serializers.CharField(source="job_order.tracking_code", read_only=True)
    job_status = serializers.CharField(source="job_order.status", read_only=True)
    travel_order_id = serializers.SerializerMethodField()

    class Meta:
        model = SamplingAssignment
        fields = (
            "id",
            "job_order",
            "tracking_code",
            "job_status",
            "field_officer",
            "field_officer_detail",
            "status",
            "allowed_next",
            "scheduled_date",
            "actual_date",
            "location",
            "notes",
            "photos",
            "travel_order_id",
            "created_at",
            "updated_at",
        )
        read_only_fields = (
            "id",
            "tracking_code",
            "job_status",
            "field_officer_detail",
            "status",
            "allowed_next",
            "actual_date",
            "photos",
            "travel_order_id",
            "created_at",
            "updated_at",
        )

    def get_travel_order_id(self, obj):
        travel_order = getattr(obj, "travel_order", None)
        return travel_order.pk if travel_order else None

    def create(self, validated_data):
        return sampling.create_sampling_assignment(
            job_order=validated_data["job_order"],
            field_officer=validated_data["field_officer"],
            scheduled_date=validated_data["scheduled_date"],
            location=validated_data["location"],
            notes=validated_data.get("notes"),
            user=_request_user(self),
        )


class PhotoEntrySerializer(serializers.Serializer):
    url = serializers.CharField(max_length=500)
    name = serializers.CharField(required=False, allow_blank=True, default="")


class SamplingPhotosSerializer(serializers.Serializer):
    photos = PhotoEntrySerializer(many=True, required=False)
    files = serializers.ListField(child=serializers.FileField(), required=False)

    def validate(self, attrs):
        if not attrs.get("photos") and not attrs.get("files"):
            raise serializers.ValidationError({"photos": "No photos provided."})
        return attrs


# ===============================================================
# Travel orders
# ===============================================================

class TravelOrderSerializer(ImmutableFieldsMixin, serializers.ModelSerializer):
    tracking_code = serializers.CharField(source="assignment.job_order.tracking_code", read_only=True)
    field_officer = UserSlimSerializer(source="assignment.field_officer", read_only=True)

    immutable_fields = ("assignment",)

    class Meta:
        model = TravelOrder
        fields = (
            "id",
            "assignment",
            "document_number",
            "tracking_code",
            "field_officer",
            "departure_date",
            "return_date",
            "destination",
            "purpose",
            "transportation_type",
            "accommodation_type",
            "daily_allowance",
            "total_budget",
            "notes",
            "pdf_url",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "document_number", "tracking_code", "field_officer", "pdf_url", "created_at", "updated_at")
        # The unique assignment check lives in the service so it runs under the row lock
        validators = []
        extra_kwargs = {
            "assignment": {"validators": []},
        }

    def validate(self, attrs):
        attrs = super().validate(attrs)
        departure = attrs.get("departure_date", getattr(self.instance, "departure_date", None))
        ret = attrs.get("return_date", getattr(self.instance, "return_date", None))
        if departure and ret and ret < departure:
            raise serializers.ValidationError({"return_date": "Return date cannot be before departure date."})
        return attrs

    def create(self, validated_data):
        return travel_orders.create_travel_order(user=_request_user(self), **validated_data)

    def update(self, instance, validated_data):
        return travel_orders.update_travel_order(instance, _request_user(self), **validated_data)


# ===============================================================
# Approvals
# ===============================================================

class ApprovalRequestSerializer(serializers.ModelSerializer):
    requested_by = UserSlimSerializer(read_only=True)
    reviewed_by = UserSlimSerializer(read_only=True)
    quotation = serializers.PrimaryKeyRelatedField(queryset=Quotation.objects.all())

    class Meta:
        model = ApprovalRequest
        fields = (
            "id",
            "request_type",
            "quotation",
            "quotation_number",
            "requested_by",
            "reason",
            "changes",
            "status",
            "reviewed_by",
            "reviewed_at",
            "rejection_reason",
            "created_at",
        )
        read_only_fields = (
            "id",
            "quotation_number",
            "requested_by",
            "status",
            "reviewed_by",
            "reviewed_at",
            "rejection_reason",
            "created_at",
        )

    def create(self, validated_data):
        return approvals.create_approval_request(
            quotation=validated_data["quotation"],
            request_type=validated_data["request_type"],
            reason=validated_data["reason"],
            changes=validated_data.get("changes"),
            user=_request_user(self),
        )


class RejectionSerializer(serializers.Serializer):
    reason = serializers.CharField()


# ===============================================================
# Audit / company / timeline
# ===============================================================

class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSlimSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ("id", "user", "action", "entity_type", "entity_id", "details", "ip_address", "created_at")
        read_only_fields = fields


class CompanyProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = CompanyProfile
        fields = (
            "company_name",
            "address",
            "phone",
            "whatsapp",
            "email",
            "website",
            "tagline",
            "npwp",
            "logo_url",
            "updated_at",
        )
        read_only_fields = ("updated_at",)


class WorkflowTransitionSerializer(serializers.ModelSerializer):
    performed_by = serializers.CharField(source="performed_by.username", read_only=True, default=None)

    class Meta:
        model = WorkflowTransition
        fields = ("id", "kind", "object_id", "from_status", "to_status", "performed_by", "role", "comment", "created_at")
        read_only_fields = fields
