# lab_core/models/approvals.py

from django.conf import settings
from django.db import models

from .core import TimeStampedModel
from .orders import Quotation


class ApprovalRequest(TimeStampedModel):
    """
    Operator request to edit or delete a quotation, reviewed by an admin.
    """

    class RequestType(models.TextChoices):
        EDIT = "edit", "Edit"
        DELETE = "delete", "Delete"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    request_type = models.CharField(max_length=10, choices=RequestType.choices)
    quotation = models.ForeignKey(
        Quotation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approval_requests",
    )
    # Kept so the request stays readable after an approved delete
    quotation_number = models.CharField(max_length=64, blank=True)

    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="approval_requests",
    )
    reason = models.TextField()
    changes = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approval_reviews",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.request_type} {self.quotation_number} ({self.status})"
