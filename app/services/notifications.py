"""
Notification templates and best-effort dispatch.

Every call site runs after its record has been committed. A mail failure is
logged and swallowed so it never fails the action that triggered it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NexusError
from app.core.mailer import Mailer, SentMessage
from app.models.payment import Payment
from app.models.profile import Profile
from app.models.project import Project
from nexus_shared.schemas.notify import ADMIN_RECIPIENT

log = structlog.get_logger()


async def dispatch(
    mailer: Mailer,
    to: str,
    subject: str,
    body: str,
    *,
    session: Optional[AsyncSession] = None,
    event: str,
) -> Optional[SentMessage]:
    """Resolve and send; returns None instead of raising on mail errors."""
    try:
        recipient = await mailer.resolve_recipient(to, session)
        return await mailer.send(recipient, subject, body)
    except NexusError as exc:
        log.warning(
            "notification.failed",
            notification=event,
            to=to,
            error=exc.error,
            details=exc.details,
        )
        return None


def _money(value: Decimal) -> str:
    return f"${Decimal(value):,.2f}"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


async def project_submitted(
    mailer: Mailer, session: AsyncSession, project: Project, customer: Profile
) -> None:
    subject = f"NEW {project.category.upper()} ORDER: #{project.project_number}"
    body = (
        f"Customer {customer.email} has submitted a new {project.category} project.\n\n"
        f"Project: {project.project_name or '(untitled)'}\n"
        f"Brief: {project.description}"
    )
    await dispatch(mailer, ADMIN_RECIPIENT, subject, body, session=session, event="project.submitted")


async def solution_delivered(
    mailer: Mailer, session: AsyncSession, project: Project, customer: Profile
) -> None:
    subject = f"Order Update: Build Dispatch #{project.project_number}"
    body = (
        f"Hello, your order for project #{project.project_number} has been finalized "
        "and dispatched by our experts.\n\n"
        "Please log in to your Nexus dashboard to review the deliverables and "
        "settle the invoice.\n\n"
        f"Amount due: {_money(project.bill_amount)}\n"
        f"Expert Comments: {project.admin_response or ''}"
    )
    await dispatch(
        mailer, customer.notification_address, subject, body,
        session=session, event="project.solution_delivered",
    )


async def review_submitted(
    mailer: Mailer, session: AsyncSession, project: Project, customer: Profile
) -> None:
    subject = f"UPDATE: Project #{project.project_number} -> {project.status}"
    if project.rework_feedback and project.status == "Rework Requested":
        detail = f"Changes: {project.rework_feedback}"
    else:
        detail = "The customer approved the delivery."
    body = (
        f"Customer {customer.email} updated project #{project.project_number} "
        f'to "{project.status}".\n\n{detail}'
    )
    await dispatch(mailer, ADMIN_RECIPIENT, subject, body, session=session, event="project.reviewed")


async def payment_submitted(
    mailer: Mailer,
    session: AsyncSession,
    payment: Payment,
    customer: Profile,
    project_numbers: Iterable[int],
) -> None:
    numbers = ", ".join(f"#{n}" for n in project_numbers)
    subject = f"PAYMENT ALERT: Settlement Proof Uploaded ({_money(payment.amount)})"
    body = (
        f"Customer {customer.email} has uploaded a proof of payment for the "
        f"following projects: {numbers}.\n\n"
        f"Total Amount: {_money(payment.amount)}\n"
        f"Status: {payment.status}"
    )
    await dispatch(mailer, ADMIN_RECIPIENT, subject, body, session=session, event="payment.submitted")


async def payment_resolved(
    mailer: Mailer,
    session: AsyncSession,
    payment: Payment,
    customer: Profile,
    project_numbers: Iterable[int],
) -> None:
    numbers = ", ".join(f"#{n}" for n in project_numbers)
    subject = f"Payment {payment.status}: {_money(payment.amount)}"
    if payment.status == "Verified":
        detail = f"Your payment has been verified. Projects {numbers} are now completed."
    else:
        detail = (
            f"Your payment for projects {numbers} could not be verified. "
            "Please upload a new proof of payment from the billing page."
        )
    body = f"Hello,\n\n{detail}"
    await dispatch(
        mailer, customer.notification_address, subject, body,
        session=session, event="payment.resolved",
    )
