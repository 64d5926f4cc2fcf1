"""Profile model: identity, role and brand metadata."""

from typing import List, Optional

from sqlmodel import Field, SQLModel

from .base import JSONList, TimestampMixin, UUIDMixin


class Profile(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "profiles"

    email: str = Field(unique=True, index=True, nullable=False)
    password_hash: Optional[str] = Field(default=None)  # bcrypt hash
    role: str = Field(default="customer", nullable=False, index=True)  # admin | customer
    brand_name: Optional[str] = None
    tagline: Optional[str] = None
    description: Optional[str] = None
    contact_email: Optional[str] = None
    phone_number: Optional[str] = None
    brand_assets: List[str] = Field(default_factory=list, sa_type=JSONList, nullable=False)

    @property
    def notification_address(self) -> str:
        return self.contact_email or self.email
