# lab_core/models/orders.py

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from lab_core.workflows.guards import WorkflowWriteGuardMixin

from .core import Service, TimeStampedModel


# ============================================================
# Quotation
# ============================================================
class Quotation(WorkflowWriteGuardMixin, TimeStampedModel):
    WORKFLOW_FIELDS = ("status",)

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        ACCEPTED = "accepted", "Accepted"
        REJECTED = "rejected", "Rejected"
        PAID = "paid", "Paid"
        COMPLETED = "completed", "Completed"

    quotation_number = models.CharField(max_length=64, unique=True)
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="quotations",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="quotations_created",
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        editable=False,
        db_index=True,
    )

    perdiem_name = models.CharField(max_length=255, blank=True)
    perdiem_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    perdiem_qty = models.PositiveIntegerField(default=0)

    transport_name = models.CharField(max_length=255, blank=True)
    transport_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    transport_qty = models.PositiveIntegerField(default=0)

    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    discount_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    use_tax = models.BooleanField(default=True)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))

    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.quotation_number


class QuotationItem(models.Model):
    quotation = models.ForeignKey(
        Quotation,
        on_delete=models.CASCADE,
        related_name="items",
    )
    service = models.ForeignKey(
        Service,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="quotation_items",
    )
    # Snapshots: later catalog edits must not change issued quotations
    service_name = models.CharField(max_length=255)
    qty = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=14, decimal_places=2)
    parameter_snapshot = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["id"]

    @property
    def line_total(self) -> Decimal:
        return self.price * self.qty

    def __str__(self):
        return f"{self.service_name} x{self.qty}"


# ============================================================
# Job order
# ============================================================
class JobOrder(WorkflowWriteGuardMixin, TimeStampedModel):
    WORKFLOW_FIELDS = ("status", "certificate_url")

    class Status(models.TextChoices):
        SCHEDULED = "scheduled", "Scheduled"
        SAMPLING = "sampling", "Sampling"
        ANALYSIS = "analysis", "Analysis"
        REPORTING = "reporting", "Reporting"
        COMPLETED = "completed", "Completed"

    quotation = models.OneToOneField(
        Quotation,
        on_delete=models.CASCADE,
        related_name="job_order",
    )
    tracking_code = models.CharField(max_length=64, unique=True)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.SCHEDULED,
        editable=False,
        db_index=True,
    )

    notes = models.TextField(blank=True)
    certificate_url = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.tracking_code


# ============================================================
# Sampling assignment
# ============================================================
class SamplingAssignment(WorkflowWriteGuardMixin, TimeStampedModel):
    WORKFLOW_FIELDS = ("status", "actual_date")

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        IN_PROGRESS = "in_progress", "In progress"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    job_order = models.OneToOneField(
        JobOrder,
        on_delete=models.CASCADE,
        related_name="sampling_assignment",
    )
    field_officer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sampling_assignments",
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        editable=False,
        db_index=True,
    )

    scheduled_date = models.DateTimeField()
    actual_date = models.DateTimeField(null=True, blank=True)
    location = models.CharField(max_length=500)
    notes = models.TextField(blank=True)
    # [{"url": ..., "name": ...}]
    photos = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-scheduled_date", "-id"]

    def __str__(self):
        return f"{self.job_order.tracking_code} / {self.field_officer}"


# ============================================================
# Travel order
# ============================================================
class TravelOrder(TimeStampedModel):
    assignment = models.OneToOneField(
        SamplingAssignment,
        on_delete=models.CASCADE,
        related_name="travel_order",
    )
    document_number = models.CharField(max_length=64, unique=True)

    departure_date = models.DateField()
    return_date = models.DateField()
    destination = models.CharField(max_length=500)
    purpose = models.TextField()
    transportation_type = models.CharField(max_length=100, blank=True)
    accommodation_type = models.CharField(max_length=100, blank=True)
    daily_allowance = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    total_budget = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True)
    pdf_url = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                name="travel_order_return_after_departure",
                condition=Q(return_date__gte=F("departure_date")),
            ),
        ]

    def __str__(self):
        return self.document_number
