# lab_core/filters.py
import django_filters as df

from .models import ApprovalRequest, AuditLog, JobOrder, Quotation, SamplingAssignment, Service, TravelOrder


class QuotationFilter(df.FilterSet):
    quotation_number = df.CharFilter(field_name="quotation_number", lookup_expr="icontains")
    client = df.NumberFilter(field_name="client_id")
    created_at = df.DateFromToRangeFilter()

    class Meta:
        model = Quotation
        fields = ["status", "quotation_number", "client", "created_at"]


class JobOrderFilter(df.FilterSet):
    tracking_code = df.CharFilter(field_name="tracking_code", lookup_expr="icontains")
    client = df.NumberFilter(field_name="quotation__client_id")

    class Meta:
        model = JobOrder
        fields = ["status", "tracking_code", "client"]


class SamplingAssignmentFilter(df.FilterSet):
    field_officer = df.NumberFilter(field_name="field_officer_id")
    job_order = df.NumberFilter(field_name="job_order_id")
    scheduled_date = df.DateFromToRangeFilter()

    class Meta:
        model = SamplingAssignment
        fields = ["status", "field_officer", "job_order", "scheduled_date"]


class TravelOrderFilter(df.FilterSet):
    document_number = df.CharFilter(field_name="document_number", lookup_expr="icontains")
    destination = df.CharFilter(field_name="destination", lookup_expr="icontains")
    departure_date = df.DateFromToRangeFilter()

    class Meta:
        model = TravelOrder
        fields = ["assignment", "document_number", "destination", "departure_date"]


class ServiceFilter(df.FilterSet):
    name = df.CharFilter(field_name="name", lookup_expr="icontains")

    class Meta:
        model = Service
        fields = ["category", "name", "is_active"]


class ApprovalRequestFilter(df.FilterSet):
    class Meta:
        model = ApprovalRequest
        fields = ["status", "request_type", "quotation"]


class AuditLogFilter(df.FilterSet):
    action = df.CharFilter(field_name="action", lookup_expr="icontains")
    created_at = df.DateFromToRangeFilter()

    class Meta:
        model = AuditLog
        fields = ["user", "entity_type", "entity_id", "action", "created_at"]
