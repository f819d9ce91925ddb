# lab_core/models/core.py

from decimal import Decimal

from django.conf import settings
from django.db import models


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# Profile
# ============================================================
class Profile(TimeStampedModel):
    """Application role and contact data for a user."""

    class Role(models.TextChoices):
        ADMIN = "admin", "Admin"
        OPERATOR = "operator", "Operator"
        FIELD_OFFICER = "field_officer", "Field officer"
        CLIENT = "client", "Client"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.CLIENT, db_index=True)
    full_name = models.CharField(max_length=255, blank=True)
    company_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=50, blank=True)
    address = models.TextField(blank=True)

    def __str__(self):
        return f"{self.full_name or self.user.get_username()} ({self.role})"


# ============================================================
# Company profile (letterhead)
# ============================================================
COMPANY_DEFAULTS = {
    "company_name": "WahfaLab",
    "address": "Jl. Laboratorium No. 123, Jakarta",
    "phone": "(021) 1234-5678",
    "whatsapp": "",
    "email": "info@wahfalab.com",
    "website": "",
    "tagline": "Laboratorium Analisis & Kalibrasi",
    "npwp": "",
    "logo_url": "",
}


class CompanyProfile(TimeStampedModel):
    company_name = models.CharField(max_length=255, default=COMPANY_DEFAULTS["company_name"])
    address = models.TextField(default=COMPANY_DEFAULTS["address"])
    phone = models.CharField(max_length=50, default=COMPANY_DEFAULTS["phone"])
    whatsapp = models.CharField(max_length=50, blank=True)
    email = models.EmailField(default=COMPANY_DEFAULTS["email"])
    website = models.CharField(max_length=255, blank=True)
    tagline = models.CharField(max_length=255, blank=True, default=COMPANY_DEFAULTS["tagline"])
    npwp = models.CharField("NPWP", max_length=50, blank=True)
    logo_url = models.CharField(max_length=500, blank=True)

    @classmethod
    def current(cls) -> "CompanyProfile":
        """
        The stored letterhead, or an unsaved instance carrying the defaults.
        """
        return cls.objects.order_by("id").first() or cls(**COMPANY_DEFAULTS)

    def __str__(self):
        return self.company_name


# ============================================================
# Service catalog
# ============================================================
class ServiceCategory(TimeStampedModel):
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "service categories"

    def __str__(self):
        return self.name


class Service(TimeStampedModel):
    category = models.ForeignKey(
        ServiceCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="services",
    )
    name = models.CharField(max_length=255)
    unit = models.CharField(max_length=50, blank=True, default="sampel")
    price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    parameters = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


# ============================================================
# Audit log
# ============================================================
class AuditLog(TimeStampedModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    action = models.CharField(max_length=255)
    entity_type = models.CharField(max_length=64, blank=True)
    entity_id = models.CharField(max_length=64, blank=True)
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.action


# ============================================================
# Document sequence
# ============================================================
class DocumentSequence(models.Model):
    """
    Counter backing PREFIX/YYYY/MM/NNNN numbers. One row per period.
    Only lab_core.services.numbering touches it.
    """

    prefix = models.CharField(max_length=16)
    year = models.PositiveSmallIntegerField()
    month = models.PositiveSmallIntegerField()
    last_number = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["prefix", "year", "month"],
                name="document_sequence_period_unique",
            ),
        ]

    def __str__(self):
        return f"{self.prefix}/{self.year:04d}/{self.month:02d} #{self.last_number}"
