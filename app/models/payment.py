"""Payment model: a customer's claimed settlement of one or more projects."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONList, Money, TimestampMixin, UUIDMixin


class Payment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "payments"

    customer_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False, index=True)
    project_ids: List[str] = Field(default_factory=list, sa_type=JSONList, nullable=False)  # stringified UUIDs
    amount: Decimal = Field(default=Decimal("0"), sa_type=Money, nullable=False)
    proof_url: Optional[str] = None  # storage path in payment-proofs
    status: str = Field(default="Pending Verification", nullable=False, index=True)
    reviewed_by: Optional[uuid.UUID] = Field(default=None, foreign_key="profiles.id")
    reviewed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
