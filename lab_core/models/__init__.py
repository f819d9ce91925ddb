from .core import (
    COMPANY_DEFAULTS,
    AuditLog,
    CompanyProfile,
    DocumentSequence,
    Profile,
    Service,
    ServiceCategory,
    TimeStampedModel,
)
from .orders import (
    JobOrder,
    Quotation,
    QuotationItem,
    SamplingAssignment,
    TravelOrder,
)
from .workflow import WorkflowTransition
from .approvals import ApprovalRequest

__all__ = [
    "COMPANY_DEFAULTS",
    "AuditLog",
    "CompanyProfile",
    "DocumentSequence",
    "Profile",
    "Service",
    "ServiceCategory",
    "TimeStampedModel",
    "JobOrder",
    "Quotation",
    "QuotationItem",
    "SamplingAssignment",
    "TravelOrder",
    "WorkflowTransition",
    "ApprovalRequest",
]
