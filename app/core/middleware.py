"""
Security middleware: CSRF protection, security headers, request log context.
"""

from __future__ import annotations

import secrets
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.core.auth import CSRF_COOKIE, SESSION_COOKIE

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}

# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "img-src 'self' data: blob:; "
        "style-src 'self' 'unsafe-inline'; "
        "frame-ancestors 'none';"
    ),
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
}

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

# ---------------------------------------------------------------------------
# CSRF (double-submit cookie)
# ---------------------------------------------------------------------------

# Endpoints that issue a session cannot expect one to exist yet.
CSRF_EXEMPT_PATHS = {"/auth/login", "/auth/register"}

def _csrf_ok(request: Request) -> bool:
    if request.method in SAFE_METHODS or request.url.path in CSRF_EXEMPT_PATHS:
        return True
    # Bearer clients and anonymous callers carry no ambient credentials
    if request.headers.get("Authorization") or SESSION_COOKIE not in request.cookies:
        return True
    cookie_token = request.cookies.get(CSRF_COOKIE, "")
    header_token = request.headers.get("X-CSRF-Token", "")
    return bool(cookie_token) and secrets.compare_digest(cookie_token.encode(), header_token.encode())

class CSRFMiddleware(BaseHTTPMiddleware):
    """Reject cookie-authenticated writes whose X-CSRF-Token header does not echo the nx_csrf cookie."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if _csrf_ok(request):
            return await call_next(request)
        structlog.get_logger().warning("csrf.rejected", path=request.url.path)
        return JSONResponse(
            status_code=403,
            content={"error": "CSRF validation failed.", "details": "Send the nx_csrf cookie value as X-CSRF-Token."},
        )

# ---------------------------------------------------------------------------
# Request log context
# ---------------------------------------------------------------------------

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id, method and path to structlog for the request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
