from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

class Role(str, Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"

class Actor(str, Enum):
    """Who performs a status write. SYSTEM is used for payment settlement."""
    ADMIN = "admin"
    CUSTOMER = "customer"
    SYSTEM = "system"

class ProjectCategory(str, Enum):
    AI_SERVICES = "AI Services"
    WEBSITES_APPS = "Websites & Apps"
    AUTOMATIONS = "Automations"

class ProjectStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    CUSTOMER_REVIEW = "Customer Review"
    ACCEPTED = "Accepted"
    REWORK_REQUESTED = "Rework Requested"
    PAID = "Paid"
    COMPLETED = "Completed"

class PaymentStatus(str, Enum):
    PENDING_VERIFICATION = "Pending Verification"
    VERIFIED = "Verified"
    REJECTED = "Rejected"

class Bucket(str, Enum):
    ATTACHMENTS = "attachments"
    BRAND_ASSETS = "brand-assets"
    PAYMENT_PROOFS = "payment-proofs"

# A project in one of these is settled and drops out of active/billing views
SETTLED_STATUSES: frozenset["ProjectStatus"] = frozenset(
    {ProjectStatus.PAID, ProjectStatus.COMPLETED}
)

# Statuses that need admin attention
ACTION_PIPELINE_STATUSES: frozenset["ProjectStatus"] = frozenset(
    {ProjectStatus.PENDING, ProjectStatus.IN_PROGRESS, ProjectStatus.REWORK_REQUESTED}
)


class ProfileSummary(BaseModel):
    """Customer fields joined onto project and payment reads."""
    id: UUID
    email: str
    brand_name: Optional[str] = None
    contact_email: Optional[str] = None
    phone_number: Optional[str] = None

    model_config = {"from_attributes": True}
