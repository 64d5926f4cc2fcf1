"""
Profile endpoints: own brand settings, brand assets, admin role management.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.uploads import store_files
from app.core.auth import AuthenticatedUser, require_admin, require_user
from app.core.database import get_session
from app.core.storage import BRAND_PREFIX, LocalObjectStorage, get_storage
from app.services.profiles import (
    add_brand_assets,
    list_profiles,
    remove_brand_asset,
    to_response,
    toggle_role,
    update_profile,
)
from nexus_shared.schemas.common import Bucket, Role
from nexus_shared.schemas.profiles import (
    ProfileListResponse,
    ProfileResponse,
    ProfileUpdateRequest,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(auth: AuthenticatedUser = Depends(require_user)):
    return to_response(auth.profile)


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    req: ProfileUpdateRequest,
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    """Update brand name, tagline, description and contact details."""
    profile = await update_profile(session, auth.profile, req)
    await session.commit()
    await session.refresh(profile)
    return to_response(profile)


@router.post("/me/brand-assets", response_model=ProfileResponse, status_code=201)
async def upload_brand_assets(
    files: List[UploadFile] = File(...),
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    storage: LocalObjectStorage = Depends(get_storage),
):
    """Store logos/brand files and append them to the profile."""
    stored = await store_files(storage, Bucket.BRAND_ASSETS, files, BRAND_PREFIX)
    profile = await add_brand_assets(session, auth.profile, [s.path for s in stored])
    await session.commit()
    await session.refresh(profile)
    return to_response(profile)


@router.delete("/me/brand-assets", response_model=ProfileResponse)
async def delete_brand_asset(
    path: str = Query(..., min_length=1),
    auth: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    profile = await remove_brand_asset(session, auth.profile, path)
    await session.commit()
    await session.refresh(profile)
    return to_response(profile)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/", response_model=ProfileListResponse)
async def list_profiles_endpoint(
    q: Optional[str] = None,
    role: Optional[Role] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """List profiles, optionally searching email and brand name."""
    profiles = await list_profiles(session, q=q, role=role, page=page, per_page=per_page)
    return ProfileListResponse(data=[to_response(p) for p in profiles])


@router.post("/{profile_id}/toggle-role", response_model=ProfileResponse)
async def toggle_role_endpoint(
    profile_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Switch a profile between admin and customer."""
    profile = await toggle_role(session, profile_id, auth)
    await session.commit()
    await session.refresh(profile)
    return to_response(profile)
