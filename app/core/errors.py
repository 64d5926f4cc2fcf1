"""
Error taxonomy and JSON error handlers.

- ConfigurationError: required server configuration missing. Fail closed.
- RecipientError / validation: bad caller input detected before any side effect.
- TransportError: mail or storage provider failed. Carries the provider detail.

Business-rule violations inside services raise FastAPI's HTTPException directly.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

log = structlog.get_logger()


class NexusError(Exception):
    """Base class for errors rendered as `{error, details}`."""

    status_code = 500

    def __init__(self, error: str, details: Optional[str] = None):
        super().__init__(error)
        self.error = error
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.error, "details": self.details}


class ConfigurationError(NexusError):
    status_code = 500


class RecipientError(NexusError):
    status_code = 400


class TransportError(NexusError):
    status_code = 500

    def __init__(
        self,
        error: str,
        details: Optional[str] = None,
        provider_code: Optional[int] = None,
    ):
        super().__init__(error, details)
        self.provider_code = provider_code


class StorageError(TransportError):
    status_code = 502


def register_error_handlers(app: FastAPI) -> None:
    """Render NexusError subclasses as JSON."""

    @app.exception_handler(NexusError)
    async def handle_nexus_error(request: Request, exc: NexusError) -> JSONResponse:
        log.error(
            "request.failed",
            path=request.url.path,
            error=exc.error,
            details=exc.details,
            kind=type(exc).__name__,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
