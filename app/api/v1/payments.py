"""
Payment endpoints: outstanding balance, proof submission, admin verification.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.uploads import read_upload
from app.core.auth import AuthenticatedUser, require_admin, require_user
from app.core.database import get_session
from app.core.mailer import Mailer, get_mailer
from app.core.storage import LocalObjectStorage, get_storage
from app.models.profile import Profile
from app.services import notifications
from app.services.payments import (
    enrich_payment,
    enrich_payments,
    get_payment_or_404,
    list_payments,
    outstanding_balance,
    reject_payment,
    submit_payment,
    verify_payment,
)
from nexus_shared.schemas.common import PaymentStatus
from nexus_shared.schemas.payments import OutstandingBalance, PaymentRead

router = APIRouter()


@router.get("/outstanding", response_model=OutstandingBalance)
async def outstanding_endpoint(
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Billed, unsettled projects and the total due."""
    return await outstanding_balance(session, auth)


@router.get("/", response_model=List[PaymentRead])
async def list_payments_endpoint(
    status: Optional[PaymentStatus] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100),
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    payments = await list_payments(session, auth, status=status, page=page, per_page=per_page)
    return await enrich_payments(session, payments, auth)


@router.post("/", response_model=PaymentRead, status_code=201)
async def submit_payment_endpoint(
    project_ids: List[uuid.UUID] = Form(...),
    proof: UploadFile = File(...),
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    storage: LocalObjectStorage = Depends(get_storage),
    mailer: Mailer = Depends(get_mailer),
):
    """Upload a proof of payment covering one or more projects."""
    data = await read_upload(proof)
    payment, projects = await submit_payment(
        session, project_ids, proof.filename, data, auth, storage
    )
    await session.commit()
    await session.refresh(payment)

    await notifications.payment_submitted(
        mailer, session, payment, auth.profile, [p.project_number for p in projects]
    )
    return await enrich_payment(session, payment, auth)


@router.get("/{payment_id}", response_model=PaymentRead)
async def get_payment_endpoint(
    payment_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    payment = await get_payment_or_404(session, payment_id, auth)
    return await enrich_payment(session, payment, auth)


@router.post("/{payment_id}/verify", response_model=PaymentRead)
async def verify_payment_endpoint(
    payment_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    """Verify the payment and complete every project it covers."""
    payment = await get_payment_or_404(session, payment_id, auth)
    payment, projects = await verify_payment(session, payment, auth)
    await session.commit()
    await session.refresh(payment)

    customer = await session.get(Profile, payment.customer_id)
    if customer:
        await notifications.payment_resolved(
            mailer, session, payment, customer, [p.project_number for p in projects]
        )
    return await enrich_payment(session, payment, auth)


@router.post("/{payment_id}/reject", response_model=PaymentRead)
async def reject_payment_endpoint(
    payment_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    payment = await get_payment_or_404(session, payment_id, auth)
    payment, projects = await reject_payment(session, payment, auth)
    await session.commit()
    await session.refresh(payment)

    customer = await session.get(Profile, payment.customer_id)
    if customer:
        await notifications.payment_resolved(
            mailer, session, payment, customer, [p.project_number for p in projects]
        )
    return await enrich_payment(session, payment, auth)
