"""
Bucketed object storage on the local filesystem.

Objects live at ``<storage_root>/<bucket>/<name>`` and are served read-only
under ``storage_public_url``. Names are generated here; callers never choose
the final path.
"""

from __future__ import annotations

import os
import re
import time
from pathlib import Path
from typing import Optional

import structlog
from starlette.concurrency import run_in_threadpool

from app.core.config import get_settings
from app.core.errors import StorageError
from nexus_shared.schemas.common import Bucket

log = structlog.get_logger()

_UNSAFE = re.compile(r"[^a-zA-Z0-9]")

# Name prefixes by upload origin
SOLUTION_PREFIX = "solution-"
BRAND_PREFIX = "brand-"

# Same-millisecond collisions move the stamp forward this many times at most
MAX_NAME_ATTEMPTS = 50


def sanitize_filename(filename: str) -> str:
    """Replace every non-alphanumeric character of the base name with ``_``.

    The extension (text after the last dot) is kept, sanitized the same way.
    """
    filename = os.path.basename(filename or "") or "file"
    base, dot, ext = filename.rpartition(".")
    if not dot or not base:
        return _UNSAFE.sub("_", filename)
    clean_ext = _UNSAFE.sub("_", ext)
    return f"{_UNSAFE.sub('_', base)}.{clean_ext}"


def build_object_name(
    filename: str, prefix: str = "", now: Optional[float] = None, *, offset_ms: int = 0
) -> str:
    """``<prefix><epoch-millis>-<sanitized name>``."""
    millis = int((time.time() if now is None else now) * 1000) + offset_ms
    return f"{prefix}{millis}-{sanitize_filename(filename)}"


class LocalObjectStorage:
    def __init__(self, root: str, public_url: str):
        self.root = Path(root)
        self.public_base = public_url.rstrip("/")

    def _bucket_dir(self, bucket: Bucket) -> Path:
        return self.root / Bucket(bucket).value

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        # "x" mode: an existing object is never replaced
        with open(target, "xb") as fh:
            fh.write(data)

    async def upload(
        self,
        bucket: Bucket,
        filename: str,
        data: bytes,
        *,
        prefix: str = "",
    ) -> str:
        """Store `data` and return its path within the bucket.

        A name already taken (same file in the same millisecond) is retried
        with the stamp moved forward; existing objects are never replaced.
        """
        now = time.time()
        for attempt in range(MAX_NAME_ATTEMPTS):
            name = build_object_name(filename, prefix, now, offset_ms=attempt)
            target = self._bucket_dir(bucket) / name
            try:
                await run_in_threadpool(self._write, target, data)
            except FileExistsError:
                log.debug("storage.name_taken", bucket=Bucket(bucket).value, path=name)
                continue
            except OSError as exc:
                log.error("storage.write_failed", bucket=Bucket(bucket).value, error=str(exc))
                raise StorageError("Storage Upload Error", str(exc))

            log.info("storage.uploaded", bucket=Bucket(bucket).value, path=name, size=len(data))
            return name

        log.warning("storage.conflict", bucket=Bucket(bucket).value, filename=filename)
        raise StorageError("Storage Upload Error", f"No free object name for {filename}")

    def public_url(self, bucket: Bucket, path: str) -> str:
        """Resolve a stored path to a URL. Absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.public_base}/{Bucket(bucket).value}/{path.lstrip('/')}"

    def public_urls(self, bucket: Bucket, paths: list[str]) -> list[str]:
        return [self.public_url(bucket, p) for p in paths]


_storage: LocalObjectStorage | None = None


def get_storage() -> LocalObjectStorage:
    """Shared storage instance; also usable as a FastAPI dependency."""
    global _storage
    if _storage is None:
        settings = get_settings()
        _storage = LocalObjectStorage(settings.storage_root, settings.storage_public_url)
    return _storage
