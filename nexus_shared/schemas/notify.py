"""Mail relay request/response schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

# Literal recipient token resolved to the operator's address
ADMIN_RECIPIENT = "admin"


class NotifyRequest(BaseModel):
    """Body of POST /api/notify.

    Fields are optional at the schema level so the relay can answer missing
    values with its own `{error, details}` shape.
    """
    to: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None


class NotifySuccess(BaseModel):
    success: bool = True
    recipient: str
    messageId: str


class NotifyFailure(BaseModel):
    success: bool = False
    error: str
    details: Optional[str] = None
    smtp_code: Optional[int] = None
