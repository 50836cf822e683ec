from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from nebula.config import get_settings

settings = get_settings()

# Shared rate limiter, applied per route
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        response.headers["Referrer-Policy"] = "no-referrer"

        # JSON, PNG and PDF only; nothing here should load sub-resources
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Tickets and tokens must not sit in shared caches
        response.headers.setdefault("Cache-Control", "no-store")

        return response


def setup_security_middleware(
    app: FastAPI,
    allowed_hosts: list[str] = None,
    cors_origins: list[str] = None
):
    """Configure security middleware and the rate limiter for the application."""
    app.state.limiter = limiter

    app.add_middleware(SecurityHeadersMiddleware)

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    # Trusted host validation (prevents host header attacks)
    if allowed_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)
