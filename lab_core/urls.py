# lab_core/urls.py

from django.urls import path, include
from rest_framework.routers import DefaultRouter

# -------------------------------------------------
# Core API ViewSets and views
# -------------------------------------------------
from .views import (
    ApprovalRequestViewSet,
    AuditLogViewSet,
    CompanyProfileView,
    DashboardView,
    HealthCheckView,
    JobOrderViewSet,
    QuotationViewSet,
    SamplingAssignmentViewSet,
    ServiceCategoryViewSet,
    ServiceViewSet,
    TravelOrderViewSet,
    WhoAmIView,
)

# -------------------------------------------------
# Role-aware workflow APIs
# -------------------------------------------------
from .views_workflow_api import (
    WorkflowAllowedView,
    WorkflowDefinitionView,
    WorkflowHistoryView,
    WorkflowTransitionView,
)


app_name = "lab_core"

# -------------------------------------------------
# Router (CRUD APIs)
# -------------------------------------------------
router = DefaultRouter()
router.register(r"service-categories", ServiceCategoryViewSet, basename="service-category")
router.register(r"services", ServiceViewSet, basename="service")
router.register(r"quotations", QuotationViewSet, basename="quotation")
router.register(r"job-orders", JobOrderViewSet, basename="job-order")
router.register(r"sampling-assignments", SamplingAssignmentViewSet, basename="sampling-assignment")
router.register(r"travel-orders", TravelOrderViewSet, basename="travel-order")
router.register(r"approval-requests", ApprovalRequestViewSet, basename="approval-request")
router.register(r"audit-logs", AuditLogViewSet, basename="auditlog")


urlpatterns = [
    # ============================================================
    # Core CRUD API
    # ============================================================
    path("", include(router.urls)),

    # ============================================================
    # System / identity
    # ============================================================
    path("health/", HealthCheckView.as_view(), name="health_check"),
    path("whoami/", WhoAmIView.as_view(), name="whoami"),
    path("dashboard/", DashboardView.as_view(), name="dashboard"),
    path("company-profile/", CompanyProfileView.as_view(), name="company-profile"),

    # ============================================================
    # Workflows
    # ============================================================
    path("workflows/<str:kind>/", WorkflowDefinitionView.as_view(), name="workflow-definition"),
    path("workflows/<str:kind>/<int:pk>/allowed/", WorkflowAllowedView.as_view(), name="workflow-allowed"),
    path("workflows/<str:kind>/<int:pk>/transition/", WorkflowTransitionView.as_view(), name="workflow-transition"),
    path("workflows/<str:kind>/<int:pk>/history/", WorkflowHistoryView.as_view(), name="workflow-history"),
]
