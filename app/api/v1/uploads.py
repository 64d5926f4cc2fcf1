"""
Attachment uploads.

Files go to the attachments bucket and the returned paths are then passed in
a project's ``attachments`` (customer) or ``admin_attachments`` (admin) list.
Admin uploads are prefixed ``solution-``.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from app.core.auth import AuthenticatedUser, require_user
from app.core.config import get_settings
from app.core.storage import SOLUTION_PREFIX, LocalObjectStorage, get_storage
from nexus_shared.schemas.common import Bucket
from nexus_shared.schemas.profiles import UploadResponse

router = APIRouter()


async def read_upload(file: UploadFile) -> bytes:
    """Read an uploaded file, enforcing the configured size limit."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail=f"File {file.filename} is empty")
    limit = get_settings().max_upload_bytes
    if len(data) > limit:
        raise HTTPException(
            status_code=413, detail=f"File {file.filename} exceeds {limit} bytes"
        )
    return data


async def store_files(
    storage: LocalObjectStorage,
    bucket: Bucket,
    files: List[UploadFile],
    prefix: str = "",
) -> list[UploadResponse]:
    # Validate every file before the first write
    payloads = [(f.filename, await read_upload(f)) for f in files]
    stored = []
    for filename, data in payloads:
        path = await storage.upload(bucket, filename, data, prefix=prefix)
        stored.append(
            UploadResponse(bucket=bucket.value, path=path, url=storage.public_url(bucket, path))
        )
    return stored


@router.post("/", response_model=List[UploadResponse], status_code=201)
async def upload_attachments(
    files: List[UploadFile] = File(...),
    auth: AuthenticatedUser = Depends(require_user),
    storage: LocalObjectStorage = Depends(get_storage),
):
    """Upload one or more project attachments."""
    prefix = SOLUTION_PREFIX if auth.is_admin else ""
    return await store_files(storage, Bucket.ATTACHMENTS, files, prefix)
