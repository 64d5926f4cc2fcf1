"""
Profile service: accounts, brand settings, brand assets and roles.
"""

from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import AuthenticatedUser, hash_password
from app.core.storage import get_storage
from app.models.profile import Profile
from nexus_shared.schemas.common import Bucket, Role
from nexus_shared.schemas.profiles import ProfileResponse, ProfileUpdateRequest

log = structlog.get_logger()

MIN_PASSWORD_LENGTH = 8


def to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        **profile.model_dump(exclude={"password_hash"}),
        brand_asset_urls=get_storage().public_urls(Bucket.BRAND_ASSETS, profile.brand_assets or []),
    )


async def get_profile_by_email(session: AsyncSession, email: str) -> Optional[Profile]:
    result = await session.execute(
        select(Profile).where(sa.func.lower(Profile.email) == email.lower())
    )
    return result.scalar_one_or_none()


async def create_profile(
    session: AsyncSession,
    email: str,
    password: str,
    *,
    role: Optional[Role] = None,
) -> Profile:
    """Create an account. Without an explicit role the first profile is admin."""
    if await get_profile_by_email(session, email):
        raise HTTPException(status_code=409, detail="Email already registered")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )

    if role is None:
        result = await session.execute(
            select(Profile.id).where(Profile.role == Role.ADMIN.value).limit(1)
        )
        role = Role.CUSTOMER if result.first() else Role.ADMIN

    profile = Profile(
        email=email,
        password_hash=hash_password(password),
        role=role.value,
    )
    session.add(profile)
    await session.flush()
    log.info("profile.created", profile_id=str(profile.id), role=profile.role)
    return profile


async def update_profile(
    session: AsyncSession, profile: Profile, req: ProfileUpdateRequest
) -> Profile:
    update_data = req.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(profile, field, value)
    session.add(profile)
    await session.flush()
    log.info("profile.updated", profile_id=str(profile.id), fields=sorted(update_data))
    return profile


# ---------------------------------------------------------------------------
# Brand assets
# ---------------------------------------------------------------------------


async def add_brand_assets(
    session: AsyncSession, profile: Profile, paths: list[str]
) -> Profile:
    profile.brand_assets = [*(profile.brand_assets or []), *paths]
    session.add(profile)
    await session.flush()
    log.info("profile.brand_assets_added", profile_id=str(profile.id), count=len(paths))
    return profile


async def remove_brand_asset(
    session: AsyncSession, profile: Profile, path: str
) -> Profile:
    """Drop `path` from the profile's list. The stored object is left in place."""
    assets = profile.brand_assets or []
    if path not in assets:
        raise HTTPException(status_code=404, detail="Brand asset not found")
    profile.brand_assets = [a for a in assets if a != path]
    session.add(profile)
    await session.flush()
    log.info("profile.brand_asset_removed", profile_id=str(profile.id), path=path)
    return profile


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


async def list_profiles(
    session: AsyncSession,
    *,
    q: Optional[str] = None,
    role: Optional[Role] = None,
    page: int = 1,
    per_page: int = 50,
) -> list[Profile]:
    stmt = select(Profile)
    if role:
        stmt = stmt.where(Profile.role == role.value)
    if q and q.strip():
        term = f"%{q.strip()}%"
        stmt = stmt.where(sa.or_(Profile.email.ilike(term), Profile.brand_name.ilike(term)))
    stmt = stmt.order_by(Profile.created_at.desc()).offset((page - 1) * per_page).limit(per_page)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def toggle_role(
    session: AsyncSession, profile_id: uuid.UUID, auth: AuthenticatedUser
) -> Profile:
    """Flip a profile between admin and customer."""
    if profile_id == auth.profile_id:
        raise HTTPException(status_code=400, detail="You cannot change your own role")

    profile = await session.get(Profile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")

    old_role = profile.role
    profile.role = Role.CUSTOMER.value if old_role == Role.ADMIN.value else Role.ADMIN.value
    session.add(profile)
    await session.flush()
    log.info(
        "profile.role_changed",
        profile_id=str(profile.id),
        from_role=old_role,
        to_role=profile.role,
        changed_by=str(auth.profile_id),
    )
    return profile
