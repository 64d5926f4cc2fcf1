"""
Project service layer: intake, fulfilment and the status lifecycle.

Handles:
- Project submission with sequential project numbers
- Intake edits gated by status and role
- Admin delivery (response, bill, attachments) and customer review
- Status transitions checked against the allowed-transition table
- Listing with scope/search filters, overview counts, and read enrichment
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import sqlalchemy as sa
import structlog
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import AuthenticatedUser
from app.core.storage import get_storage
from app.models.profile import Profile
from app.models.project import Project
from nexus_shared.schemas.common import (
    ACTION_PIPELINE_STATUSES,
    SETTLED_STATUSES,
    Actor,
    Bucket,
    ProfileSummary,
    ProjectCategory,
    ProjectStatus,
    Role,
)
from nexus_shared.schemas.projects import (
    AdminResponse,
    CustomerReview,
    ProjectCreate,
    ProjectRead,
    ProjectScope,
    ProjectStats,
    ProjectUpdate,
    ReviewDecision,
    allowed_transitions,
    validate_transition,
)

log = structlog.get_logger()

PROJECT_NUMBER_BASE = 1000
# Concurrent submissions can race for the same number
PROJECT_NUMBER_ATTEMPTS = 3

_SETTLED_VALUES = [s.value for s in SETTLED_STATUSES]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_project_or_404(
    session: AsyncSession, project_id: uuid.UUID, auth: AuthenticatedUser
) -> Project:
    """Admins see every project; customers only their own (others are 404)."""
    project = await session.get(Project, project_id)
    if not project or (not auth.is_admin and project.customer_id != auth.profile_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def next_project_number(session: AsyncSession) -> int:
    result = await session.execute(select(sa.func.max(Project.project_number)))
    current = result.scalar_one_or_none()
    return (current or PROJECT_NUMBER_BASE) + 1


def apply_status(project: Project, target: ProjectStatus, actor: Actor) -> ProjectStatus:
    """Move `project` to `target` if the table allows it for `actor`.

    Returns the previous status. Raises 422 and leaves the row untouched otherwise.
    """
    current = ProjectStatus(project.status)
    is_valid, error_msg = validate_transition(current, target, actor)
    if not is_valid:
        raise HTTPException(status_code=422, detail=error_msg)
    project.status = target.value
    return current


def is_response_stale(project: Project) -> bool:
    """The last delivery was sent back for rework and not yet replaced."""
    return bool(project.admin_response) and project.status == ProjectStatus.REWORK_REQUESTED.value


def enrich_project(
    project: Project,
    auth: AuthenticatedUser,
    customer: Optional[Profile] = None,
) -> ProjectRead:
    """Convert a Project row to a ProjectRead for the caller."""
    storage = get_storage()
    return ProjectRead(
        **project.model_dump(),
        admin_response_stale=is_response_stale(project),
        attachment_urls=storage.public_urls(Bucket.ATTACHMENTS, project.attachments or []),
        admin_attachment_urls=storage.public_urls(
            Bucket.ATTACHMENTS, project.admin_attachments or []
        ),
        allowed_transitions=allowed_transitions(ProjectStatus(project.status), auth.actor),
        customer=ProfileSummary.model_validate(customer) if customer and auth.is_admin else None,
    )


async def enrich_projects(
    session: AsyncSession, projects: Sequence[Project], auth: AuthenticatedUser
) -> list[ProjectRead]:
    """Enrich a page of projects, joining customer summaries in one query."""
    customers: dict[uuid.UUID, Profile] = {}
    if auth.is_admin and projects:
        ids = {p.customer_id for p in projects}
        result = await session.execute(select(Profile).where(Profile.id.in_(ids)))
        customers = {c.id: c for c in result.scalars().all()}
    return [enrich_project(p, auth, customers.get(p.customer_id)) for p in projects]


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


async def create_project(
    session: AsyncSession,
    project_in: ProjectCreate,
    auth: AuthenticatedUser,
) -> Project:
    for attempt in range(1, PROJECT_NUMBER_ATTEMPTS + 1):
        number = await next_project_number(session)
        project = Project(
            **project_in.model_dump(exclude={"category"}),
            category=project_in.category.value,
            customer_id=auth.profile_id,
            project_number=number,
            status=ProjectStatus.PENDING.value,
        )
        try:
            # Savepoint: a lost race undoes only this insert
            async with session.begin_nested():
                session.add(project)
        except IntegrityError:
            log.warning("project.number_taken", project_number=number, attempt=attempt)
            continue
        break
    else:
        raise HTTPException(
            status_code=409, detail="Could not allocate a project number, please retry"
        )

    log.info(
        "project.created",
        project_id=str(project.id),
        project_number=project.project_number,
        category=project.category,
    )
    return project


async def update_project(
    session: AsyncSession,
    project: Project,
    project_in: ProjectUpdate,
    auth: AuthenticatedUser,
) -> Project:
    """Edit intake fields: owner while Pending, admin until Completed."""
    status = ProjectStatus(project.status)
    if auth.is_admin:
        if status == ProjectStatus.COMPLETED:
            raise HTTPException(status_code=409, detail="Completed projects cannot be edited")
    elif status != ProjectStatus.PENDING:
        raise HTTPException(
            status_code=409, detail="Projects can only be edited while Pending"
        )

    update_data = project_in.model_dump(exclude_unset=True)
    if "description" in update_data and not (update_data["description"] or "").strip():
        raise HTTPException(status_code=422, detail="description must not be blank")
    for field, value in update_data.items():
        setattr(project, field, value)

    session.add(project)
    await session.flush()
    log.info("project.updated", project_id=str(project.id), fields=sorted(update_data))
    return project


# ---------------------------------------------------------------------------
# Fulfilment
# ---------------------------------------------------------------------------


async def respond_to_project(
    session: AsyncSession,
    project: Project,
    response_in: AdminResponse,
    auth: AuthenticatedUser,
) -> Project:
    """Admin delivers a solution and bill, moving the project to Customer Review."""
    if project.status != ProjectStatus.CUSTOMER_REVIEW.value:
        apply_status(project, ProjectStatus.CUSTOMER_REVIEW, auth.actor)

    project.admin_response = response_in.admin_response
    project.bill_amount = response_in.bill_amount
    project.admin_attachments = [
        *(project.admin_attachments or []),
        *response_in.admin_attachments,
    ]
    project.rework_feedback = None

    session.add(project)
    await session.flush()
    log.info(
        "project.responded",
        project_id=str(project.id),
        bill_amount=str(project.bill_amount),
        attachments=len(response_in.admin_attachments),
    )
    return project


async def review_project(
    session: AsyncSession,
    project: Project,
    review_in: CustomerReview,
    auth: AuthenticatedUser,
) -> Project:
    """Owner accepts the delivery or sends it back with feedback."""
    if project.customer_id != auth.profile_id:
        raise HTTPException(status_code=403, detail="Only the project owner can review it")

    if review_in.decision == ReviewDecision.ACCEPT:
        apply_status(project, ProjectStatus.ACCEPTED, Actor.CUSTOMER)
    else:
        feedback = (review_in.feedback or "").strip()
        if not feedback:
            raise HTTPException(status_code=422, detail="Rework feedback is required")
        apply_status(project, ProjectStatus.REWORK_REQUESTED, Actor.CUSTOMER)
        project.rework_feedback = feedback

    session.add(project)
    await session.flush()
    log.info("project.reviewed", project_id=str(project.id), decision=review_in.decision.value)
    return project


async def transition_project(
    session: AsyncSession,
    project: Project,
    to_status: ProjectStatus,
    auth: AuthenticatedUser,
) -> Project:
    """Generic status change validated against the caller's role."""
    if to_status == ProjectStatus.REWORK_REQUESTED:
        raise HTTPException(
            status_code=422,
            detail="Rework requests need feedback; use the review endpoint",
        )

    old_status = apply_status(project, to_status, auth.actor)
    session.add(project)
    await session.flush()
    log.info(
        "project.transitioned",
        project_id=str(project.id),
        from_status=old_status.value,
        to_status=to_status.value,
        actor=auth.actor.value,
    )
    return project


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_projects(
    session: AsyncSession,
    auth: AuthenticatedUser,
    *,
    category: Optional[ProjectCategory] = None,
    status: Optional[ProjectStatus] = None,
    scope: ProjectScope = ProjectScope.ALL,
    q: Optional[str] = None,
    page: int = 1,
    per_page: int = 25,
) -> list[Project]:
    stmt = select(Project)

    if not auth.is_admin:
        stmt = stmt.where(Project.customer_id == auth.profile_id)
    if category:
        stmt = stmt.where(Project.category == category.value)
    if status:
        stmt = stmt.where(Project.status == status.value)
    if scope == ProjectScope.ACTIVE:
        stmt = stmt.where(Project.status.not_in(_SETTLED_VALUES))
    elif scope == ProjectScope.ARCHIVE:
        stmt = stmt.where(Project.status.in_(_SETTLED_VALUES))

    if q and q.strip():
        term = f"%{q.strip()}%"
        stmt = stmt.join(Profile, Profile.id == Project.customer_id).where(
            sa.or_(
                sa.cast(Project.project_number, sa.String).ilike(term),
                Project.project_name.ilike(term),
                Profile.brand_name.ilike(term),
            )
        )

    stmt = (
        stmt.order_by(Project.created_at.desc(), Project.project_number.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def project_stats(session: AsyncSession) -> ProjectStats:
    """Overview counts across all customers."""
    result = await session.execute(
        select(Project.status, sa.func.count()).group_by(Project.status)
    )
    by_status = {row[0]: row[1] for row in result.all()}

    customers = await session.execute(
        select(sa.func.count()).select_from(Profile).where(Profile.role == Role.CUSTOMER.value)
    )

    return ProjectStats(
        total=sum(by_status.values()),
        action_pipeline=sum(by_status.get(s.value, 0) for s in ACTION_PIPELINE_STATUSES),
        awaiting_review=by_status.get(ProjectStatus.CUSTOMER_REVIEW.value, 0),
        completed=sum(by_status.get(s.value, 0) for s in SETTLED_STATUSES),
        customers=customers.scalar_one(),
    )
