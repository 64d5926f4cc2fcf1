"""
Nexus Hub API Server

Entry point for the FastAPI application.
"""

from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.core.config import get_settings
from app.core.database import check_db, init_db
from app.core.errors import register_error_handlers
from app.core.logging_config import configure_logging
from app.core.middleware import CSRFMiddleware, RequestContextMiddleware, SecurityHeadersMiddleware
from app.core.redis import close_redis
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router
from app.api.v1.notify import router as notify_router

settings = get_settings()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("nexus.starting", auto_create_tables=settings.auto_create_tables)
    if settings.auto_create_tables:
        await init_db()
    yield
    log.info("nexus.shutting_down")
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Nexus Hub",
        description="Client portal and admin dashboard for project intake, delivery and billing.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware (last added runs first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
    )
    app.add_middleware(RequestContextMiddleware)

    register_error_handlers(app)

    # Auth routes
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])

    # Mail relay
    app.include_router(notify_router, prefix="/api/notify", tags=["Notifications"])

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    # Stored objects, served read-only (an absolute public URL means an external host)
    if settings.storage_public_url.startswith("/"):
        storage_root = Path(settings.storage_root)
        storage_root.mkdir(parents=True, exist_ok=True)
        app.mount(
            settings.storage_public_url.rstrip("/") or "/storage",
            StaticFiles(directory=storage_root),
            name="storage",
        )

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: the database must answer."""
        if not await check_db():
            return JSONResponse(status_code=503, content={"status": "unavailable", "database": "down"})
        return {"status": "ready", "database": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)
