"""
Project endpoints: intake, admin delivery, customer review, transitions.

Lifecycle: Pending → In Progress → Customer Review → Accepted/Rework Requested → Paid → Completed
- Every status write is checked against the allowed-transition table for the caller's role.
- Customers only ever see their own projects.
- Mail notifications go out after commit and never fail the request.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_admin, require_user
from app.core.database import get_session
from app.core.mailer import Mailer, get_mailer
from app.models.profile import Profile
from app.services import notifications
from app.services.projects import (
    create_project,
    enrich_project,
    enrich_projects,
    get_project_or_404,
    list_projects,
    project_stats,
    respond_to_project,
    review_project,
    transition_project,
    update_project,
)
from nexus_shared.schemas.common import ProjectCategory, ProjectStatus
from nexus_shared.schemas.projects import (
    AdminResponse,
    CustomerReview,
    ProjectCreate,
    ProjectRead,
    ProjectScope,
    ProjectStats,
    ProjectTransition,
    ProjectUpdate,
)

router = APIRouter()


async def _read(session: AsyncSession, project, auth: AuthenticatedUser) -> ProjectRead:
    customer = await session.get(Profile, project.customer_id) if auth.is_admin else None
    return enrich_project(project, auth, customer)


# ---------------------------------------------------------------------------
# Project CRUD
# ---------------------------------------------------------------------------


@router.get("/", response_model=List[ProjectRead])
async def list_projects_endpoint(
    category: Optional[ProjectCategory] = None,
    status: Optional[ProjectStatus] = None,
    scope: ProjectScope = ProjectScope.ALL,
    q: Optional[str] = Query(None, description="Search project number, name or brand"),
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100),
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """List projects with optional category, status, scope and search filters."""
    projects = await list_projects(
        session,
        auth,
        category=category,
        status=status,
        scope=scope,
        q=q,
        page=page,
        per_page=per_page,
    )
    return await enrich_projects(session, projects, auth)


@router.post("/", response_model=ProjectRead, status_code=201)
async def create_project_endpoint(
    project_in: ProjectCreate,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    """Submit a new project request."""
    project = await create_project(session, project_in, auth)
    await session.commit()
    await session.refresh(project)

    await notifications.project_submitted(mailer, session, project, auth.profile)
    return await _read(session, project, auth)


@router.get("/stats", response_model=ProjectStats)
async def project_stats_endpoint(
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Overview counts for the admin dashboard."""
    return await project_stats(session)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project_endpoint(
    project_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    project = await get_project_or_404(session, project_id, auth)
    return await _read(session, project, auth)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project_endpoint(
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Edit intake fields."""
    project = await get_project_or_404(session, project_id, auth)
    project = await update_project(session, project, project_in, auth)
    await session.commit()
    await session.refresh(project)
    return await _read(session, project, auth)


# ---------------------------------------------------------------------------
# Delivery & review
# ---------------------------------------------------------------------------


@router.post("/{project_id}/respond", response_model=ProjectRead)
async def respond_endpoint(
    project_id: uuid.UUID,
    response_in: AdminResponse,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    """Deliver a solution and bill to the customer."""
    project = await get_project_or_404(session, project_id, auth)
    project = await respond_to_project(session, project, response_in, auth)
    await session.commit()
    await session.refresh(project)

    customer = await session.get(Profile, project.customer_id)
    if customer:
        await notifications.solution_delivered(mailer, session, project, customer)
    return enrich_project(project, auth, customer)


@router.post("/{project_id}/review", response_model=ProjectRead)
async def review_endpoint(
    project_id: uuid.UUID,
    review_in: CustomerReview,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    """Accept the delivery or request rework."""
    project = await get_project_or_404(session, project_id, auth)
    project = await review_project(session, project, review_in, auth)
    await session.commit()
    await session.refresh(project)

    await notifications.review_submitted(mailer, session, project, auth.profile)
    return await _read(session, project, auth)


@router.post("/{project_id}/transition", response_model=ProjectRead)
async def transition_endpoint(
    project_id: uuid.UUID,
    body: ProjectTransition,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Move a project to another status."""
    project = await get_project_or_404(session, project_id, auth)
    project = await transition_project(session, project, body.to_status, auth)
    await session.commit()
    await session.refresh(project)
    return await _read(session, project, auth)
