"""Project model."""

from decimal import Decimal
from typing import List, Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import JSONList, Money, TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    project_number: int = Field(unique=True, index=True, nullable=False)
    customer_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False, index=True)
    category: str = Field(nullable=False, index=True)  # AI Services | Websites & Apps | Automations
    status: str = Field(default="Pending", nullable=False, index=True)
    project_name: Optional[str] = None
    description: str = Field(nullable=False)

    spec_style_number: Optional[str] = None
    spec_colors: Optional[str] = None
    spec_sizes: Optional[str] = None
    spec_apparel_type: Optional[str] = None
    spec_gender: Optional[str] = None
    spec_age_group: Optional[str] = None

    wants_new_style: bool = Field(default=False, nullable=False)
    wants_tag_creation: bool = Field(default=False, nullable=False)
    wants_color_variations: bool = Field(default=False, nullable=False)
    wants_style_variations: bool = Field(default=False, nullable=False)
    wants_marketing_poster: bool = Field(default=False, nullable=False)

    admin_response: Optional[str] = None
    rework_feedback: Optional[str] = None
    bill_amount: Decimal = Field(default=Decimal("0"), sa_type=Money, nullable=False)

    attachments: List[str] = Field(default_factory=list, sa_type=JSONList, nullable=False)
    admin_attachments: List[str] = Field(default_factory=list, sa_type=JSONList, nullable=False)
