"""Billing and payment schemas shared between server and clients."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, UUID4

from .common import PaymentStatus, ProfileSummary, ProjectStatus


class PaymentRead(BaseModel):
    id: UUID4
    customer_id: UUID4
    project_ids: List[UUID4] = Field(default_factory=list)
    project_numbers: List[int] = Field(default_factory=list)
    amount: Decimal
    proof_url: Optional[str] = None
    proof_public_url: Optional[str] = None
    status: PaymentStatus
    reviewed_by: Optional[UUID4] = None
    reviewed_at: Optional[datetime] = None
    customer: Optional[ProfileSummary] = None
    created_at: datetime
    updated_at: datetime


class OutstandingProject(BaseModel):
    id: UUID4
    project_number: int
    project_name: Optional[str] = None
    status: ProjectStatus
    bill_amount: Decimal
    has_pending_payment: bool = False


class OutstandingBalance(BaseModel):
    """Unsettled, billed projects and their total."""
    projects: List[OutstandingProject] = Field(default_factory=list)
    total: Decimal = Decimal("0")
