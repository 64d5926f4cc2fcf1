"""
Payment service layer: outstanding balances, proof submission and verification.

A Payment covers one or more billed projects of a single customer. Verifying
it completes those projects in the same transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import AuthenticatedUser
from app.core.storage import LocalObjectStorage, get_storage
from app.models.payment import Payment
from app.models.profile import Profile
from app.models.project import Project
from app.services.projects import apply_status
from nexus_shared.schemas.common import (
    SETTLED_STATUSES,
    Actor,
    Bucket,
    PaymentStatus,
    ProfileSummary,
    ProjectStatus,
)
from nexus_shared.schemas.payments import (
    OutstandingBalance,
    OutstandingProject,
    PaymentRead,
)

log = structlog.get_logger()

_SETTLED_VALUES = [s.value for s in SETTLED_STATUSES]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_payment_or_404(
    session: AsyncSession, payment_id: uuid.UUID, auth: AuthenticatedUser
) -> Payment:
    payment = await session.get(Payment, payment_id)
    if not payment or (not auth.is_admin and payment.customer_id != auth.profile_id):
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


async def pending_project_ids(
    session: AsyncSession, customer_id: Optional[uuid.UUID] = None
) -> set[str]:
    """Project ids covered by a payment still awaiting verification."""
    stmt = select(Payment).where(Payment.status == PaymentStatus.PENDING_VERIFICATION.value)
    if customer_id:
        stmt = stmt.where(Payment.customer_id == customer_id)
    result = await session.execute(stmt)
    return {pid for payment in result.scalars().all() for pid in payment.project_ids or []}


async def _projects_for(session: AsyncSession, payment: Payment) -> list[Project]:
    ids = [uuid.UUID(pid) for pid in payment.project_ids or []]
    if not ids:
        return []
    result = await session.execute(select(Project).where(Project.id.in_(ids)))
    return list(result.scalars().all())


async def enrich_payments(
    session: AsyncSession,
    payments: Sequence[Payment],
    auth: AuthenticatedUser,
    storage: Optional[LocalObjectStorage] = None,
) -> list[PaymentRead]:
    """Convert Payment rows to PaymentRead with project numbers and proof URLs."""
    storage = storage or get_storage()

    all_ids = {uuid.UUID(pid) for p in payments for pid in p.project_ids or []}
    numbers: dict[str, int] = {}
    if all_ids:
        result = await session.execute(
            select(Project.id, Project.project_number).where(Project.id.in_(all_ids))
        )
        numbers = {str(row[0]): row[1] for row in result.all()}

    customers: dict[uuid.UUID, Profile] = {}
    if auth.is_admin and payments:
        result = await session.execute(
            select(Profile).where(Profile.id.in_({p.customer_id for p in payments}))
        )
        customers = {c.id: c for c in result.scalars().all()}

    reads = []
    for payment in payments:
        customer = customers.get(payment.customer_id)
        reads.append(
            PaymentRead(
                **payment.model_dump(),
                project_numbers=[
                    numbers[pid] for pid in payment.project_ids or [] if pid in numbers
                ],
                proof_public_url=(
                    storage.public_url(Bucket.PAYMENT_PROOFS, payment.proof_url)
                    if payment.proof_url
                    else None
                ),
                customer=ProfileSummary.model_validate(customer) if customer else None,
            )
        )
    return reads


async def enrich_payment(
    session: AsyncSession, payment: Payment, auth: AuthenticatedUser
) -> PaymentRead:
    return (await enrich_payments(session, [payment], auth))[0]


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------


async def outstanding_balance(
    session: AsyncSession, auth: AuthenticatedUser
) -> OutstandingBalance:
    """Billed projects that are not yet settled, with their total."""
    stmt = select(Project).where(
        Project.status.not_in(_SETTLED_VALUES),
        Project.bill_amount > 0,
    )
    if not auth.is_admin:
        stmt = stmt.where(Project.customer_id == auth.profile_id)
    result = await session.execute(stmt.order_by(Project.project_number))
    projects = result.scalars().all()

    pending = await pending_project_ids(
        session, None if auth.is_admin else auth.profile_id
    )
    items = [
        OutstandingProject(
            id=p.id,
            project_number=p.project_number,
            project_name=p.project_name,
            status=p.status,
            bill_amount=p.bill_amount,
            has_pending_payment=str(p.id) in pending,
        )
        for p in projects
    ]
    return OutstandingBalance(
        projects=items,
        total=sum((i.bill_amount for i in items), Decimal("0")),
    )


async def validate_payment_selection(
    session: AsyncSession,
    project_ids: Sequence[uuid.UUID],
    auth: AuthenticatedUser,
) -> list[Project]:
    """Check a selection before any proof is stored.

    Every project must exist, belong to the caller, be unsettled, carry a
    bill, and not already be covered by a payment awaiting verification.
    """
    unique_ids = list(dict.fromkeys(project_ids))
    if not unique_ids:
        raise HTTPException(status_code=422, detail="Select at least one project")

    result = await session.execute(select(Project).where(Project.id.in_(unique_ids)))
    found = {p.id: p for p in result.scalars().all() if p.customer_id == auth.profile_id}

    missing = [str(pid) for pid in unique_ids if pid not in found]
    if missing:
        raise HTTPException(status_code=422, detail=f"Unknown projects: {', '.join(missing)}")

    projects = [found[pid] for pid in unique_ids]
    settled = [p.project_number for p in projects if p.status in _SETTLED_VALUES]
    if settled:
        raise HTTPException(
            status_code=422,
            detail=f"Projects already settled: {', '.join(f'#{n}' for n in settled)}",
        )

    unbilled = [p.project_number for p in projects if (p.bill_amount or 0) <= 0]
    if unbilled:
        raise HTTPException(
            status_code=422,
            detail=f"Projects have not been billed: {', '.join(f'#{n}' for n in unbilled)}",
        )

    pending = await pending_project_ids(session, auth.profile_id)
    covered = [p.project_number for p in projects if str(p.id) in pending]
    if covered:
        raise HTTPException(
            status_code=409,
            detail=(
                "Projects already have a payment awaiting verification: "
                f"{', '.join(f'#{n}' for n in covered)}"
            ),
        )
    return projects


async def submit_payment(
    session: AsyncSession,
    project_ids: Sequence[uuid.UUID],
    proof_filename: str,
    proof_data: bytes,
    auth: AuthenticatedUser,
    storage: Optional[LocalObjectStorage] = None,
) -> tuple[Payment, list[Project]]:
    """Store the proof and record one Payment covering the selected projects."""
    projects = await validate_payment_selection(session, project_ids, auth)
    storage = storage or get_storage()

    proof_path = await storage.upload(Bucket.PAYMENT_PROOFS, proof_filename, proof_data)

    payment = Payment(
        customer_id=auth.profile_id,
        project_ids=[str(p.id) for p in projects],
        amount=sum((Decimal(p.bill_amount) for p in projects), Decimal("0")),
        proof_url=proof_path,
        status=PaymentStatus.PENDING_VERIFICATION.value,
    )
    session.add(payment)
    await session.flush()
    log.info(
        "payment.submitted",
        payment_id=str(payment.id),
        amount=str(payment.amount),
        projects=len(projects),
    )
    return payment, projects


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


def _ensure_unresolved(payment: Payment) -> None:
    if payment.status != PaymentStatus.PENDING_VERIFICATION.value:
        raise HTTPException(
            status_code=409, detail=f"Payment has already been resolved ({payment.status})"
        )


def _mark_reviewed(payment: Payment, status: PaymentStatus, auth: AuthenticatedUser) -> None:
    payment.status = status.value
    payment.reviewed_by = auth.profile_id
    payment.reviewed_at = datetime.now(timezone.utc)


async def verify_payment(
    session: AsyncSession, payment: Payment, auth: AuthenticatedUser
) -> tuple[Payment, list[Project]]:
    """Mark the payment Verified and complete every covered project.

    Both writes are flushed here and committed together by the caller.
    """
    _ensure_unresolved(payment)
    projects = await _projects_for(session, payment)

    _mark_reviewed(payment, PaymentStatus.VERIFIED, auth)
    session.add(payment)
    for project in projects:
        if project.status != ProjectStatus.COMPLETED.value:
            apply_status(project, ProjectStatus.COMPLETED, Actor.SYSTEM)
            session.add(project)

    await session.flush()
    log.info(
        "payment.verified",
        payment_id=str(payment.id),
        amount=str(payment.amount),
        completed=[p.project_number for p in projects],
    )
    return payment, projects


async def reject_payment(
    session: AsyncSession, payment: Payment, auth: AuthenticatedUser
) -> tuple[Payment, list[Project]]:
    _ensure_unresolved(payment)
    _mark_reviewed(payment, PaymentStatus.REJECTED, auth)
    session.add(payment)
    await session.flush()
    log.info("payment.rejected", payment_id=str(payment.id))
    return payment, await _projects_for(session, payment)


async def list_payments(
    session: AsyncSession,
    auth: AuthenticatedUser,
    *,
    status: Optional[PaymentStatus] = None,
    page: int = 1,
    per_page: int = 25,
) -> list[Payment]:
    stmt = select(Payment)
    if not auth.is_admin:
        stmt = stmt.where(Payment.customer_id == auth.profile_id)
    if status:
        stmt = stmt.where(Payment.status == status.value)
    stmt = stmt.order_by(Payment.created_at.desc()).offset((page - 1) * per_page).limit(per_page)
    result = await session.execute(stmt)
    return list(result.scalars().all())
