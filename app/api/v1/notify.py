"""
Outbound mail relay: POST /api/notify with ``{to, subject, body}``.

``to`` is either the literal ``"admin"`` or an email address. Only admins may
address arbitrary recipients.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_user
from app.core.database import get_session
from app.core.errors import RecipientError, TransportError
from app.core.mailer import Mailer, get_mailer
from nexus_shared.schemas.notify import (
    ADMIN_RECIPIENT,
    NotifyFailure,
    NotifyRequest,
    NotifySuccess,
)

log = structlog.get_logger()
router = APIRouter()


@router.post(
    "",
    response_model=NotifySuccess,
    responses={500: {"model": NotifyFailure}},
)
async def send_notification(
    body: NotifyRequest,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    """Relay one plain-text email."""
    mailer.ensure_configured()

    if not auth.is_admin and (body.to or "").strip() != ADMIN_RECIPIENT:
        raise HTTPException(
            status_code=403, detail=f"Only admins may address recipients other than '{ADMIN_RECIPIENT}'"
        )

    missing = [f for f in ("to", "subject", "body") if not (getattr(body, f) or "").strip()]
    if missing:
        raise RecipientError("Missing required fields.", f"Provide: {', '.join(missing)}.")

    recipient = await mailer.resolve_recipient(body.to, session)

    try:
        sent = await mailer.send(recipient, body.subject, body.body)
    except TransportError as exc:
        failure = NotifyFailure(error=exc.error, details=exc.details, smtp_code=exc.provider_code)
        return JSONResponse(status_code=500, content=failure.model_dump())

    return NotifySuccess(recipient=sent.recipient, messageId=sent.message_id)


@router.api_route("", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def notify_method_not_allowed(request: Request):
    return JSONResponse(
        status_code=405,
        content={"error": f"Method {request.method} Not Allowed"},
        headers={"Allow": "POST"},
    )
