"""Profile and brand settings schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, UUID4

from .common import Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class ProfileUpdateRequest(BaseModel):
    """Update brand metadata on the caller's own profile."""
    brand_name: Optional[str] = Field(default=None, max_length=200)
    tagline: Optional[str] = Field(default=None, max_length=300)
    description: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(default=None, max_length=50)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ProfileResponse(BaseModel):
    id: UUID4
    email: str
    role: Role
    brand_name: Optional[str] = None
    tagline: Optional[str] = None
    description: Optional[str] = None
    contact_email: Optional[str] = None
    phone_number: Optional[str] = None
    brand_assets: List[str] = Field(default_factory=list)
    brand_asset_urls: List[str] = Field(default_factory=list)
    created_at: datetime


class ProfileListResponse(BaseModel):
    data: List[ProfileResponse]


class UploadResponse(BaseModel):
    """A stored object: its storage path and public URL."""
    bucket: str
    path: str
    url: str
