# lab_core/admin.py

from django.contrib import admin

from .models import (
    ApprovalRequest,
    AuditLog,
    CompanyProfile,
    DocumentSequence,
    JobOrder,
    Profile,
    Quotation,
    QuotationItem,
    SamplingAssignment,
    Service,
    ServiceCategory,
    TravelOrder,
    WorkflowTransition,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =============================================================
# Workflow transitions (READ-ONLY AUDIT LOG)
# =============================================================

@admin.register(WorkflowTransition)
class WorkflowTransitionAdmin(ReadOnlyAdmin):
    list_display = ("kind", "object_id", "from_status", "to_status", "performed_by", "role", "created_at")
    list_filter = ("kind", "from_status", "to_status")
    search_fields = ("object_id", "performed_by__username")
    ordering = ("-created_at",)
    readonly_fields = [f.name for f in WorkflowTransition._meta.fields]


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = ("action", "entity_type", "entity_id", "user", "ip_address", "created_at")
    list_filter = ("entity_type",)
    search_fields = ("action", "entity_id", "user__username")
    ordering = ("-created_at",)
    readonly_fields = [f.name for f in AuditLog._meta.fields]


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(admin.ModelAdmin):
    list_display = ("prefix", "year", "month", "last_number")
    list_filter = ("prefix", "year")


# =============================================================
# Accounts / company
# =============================================================

@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "full_name", "company_name", "phone")
    list_filter = ("role",)
    search_fields = ("user__username", "user__email", "full_name", "company_name")


@admin.register(CompanyProfile)
class CompanyProfileAdmin(admin.ModelAdmin):
    list_display = ("company_name", "email", "phone", "updated_at")


# =============================================================
# Service catalog
# =============================================================

@admin.register(ServiceCategory)
class ServiceCategoryAdmin(admin.ModelAdmin):
    list_display = ("name",)
    search_fields = ("name",)


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "unit", "price", "is_active")
    list_filter = ("category", "is_active")
    search_fields = ("name",)


# =============================================================
# Orders
# Status is workflow-controlled and therefore read-only here.
# =============================================================

class QuotationItemInline(admin.TabularInline):
    model = QuotationItem
    extra = 0
    readonly_fields = ("service", "service_name", "qty", "price", "parameter_snapshot")


@admin.register(Quotation)
class QuotationAdmin(admin.ModelAdmin):
    list_display = ("quotation_number", "client", "status", "total_amount", "created_at")
    list_filter = ("status", "use_tax")
    search_fields = ("quotation_number", "client__username", "client__email")
    readonly_fields = ("quotation_number", "status", "subtotal", "tax_amount", "total_amount", "created_at", "updated_at")
    inlines = [QuotationItemInline]


@admin.register(JobOrder)
class JobOrderAdmin(admin.ModelAdmin):
    list_display = ("tracking_code", "quotation", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("tracking_code", "quotation__quotation_number")
    readonly_fields = ("tracking_code", "status", "certificate_url", "created_at", "updated_at")


@admin.register(SamplingAssignment)
class SamplingAssignmentAdmin(admin.ModelAdmin):
    list_display = ("job_order", "field_officer", "status", "scheduled_date", "actual_date")
    list_filter = ("status",)
    search_fields = ("job_order__tracking_code", "field_officer__username", "location")
    readonly_fields = ("status", "actual_date", "created_at", "updated_at")


@admin.register(TravelOrder)
class TravelOrderAdmin(admin.ModelAdmin):
    list_display = ("document_number", "assignment", "destination", "departure_date", "return_date")
    search_fields = ("document_number", "destination")
    readonly_fields = ("document_number", "pdf_url", "created_at", "updated_at")


@admin.register(ApprovalRequest)
class ApprovalRequestAdmin(admin.ModelAdmin):
    list_display = ("request_type", "quotation_number", "requested_by", "status", "reviewed_by", "created_at")
    list_filter = ("request_type", "status")
    search_fields = ("quotation_number", "requested_by__username")
    readonly_fields = ("reviewed_by", "reviewed_at", "created_at", "updated_at")
