"""Authentication middleware: every /api route needs the staff cookie except public paths."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from oms.config import get_settings
from oms.services import auth_service

# Paths that never require the cookie; cron and webhook routes check their own secrets
PUBLIC_PREFIXES = (
    "/api/auth",
    "/api/webhook/stripe",
    "/api/cron",
    "/api/admin",
    "/health",
    "/robots.txt",
    "/docs",
    "/openapi.json",
    "/redoc",
)


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if not path.startswith("/api/") or any(path.startswith(p) for p in PUBLIC_PREFIXES):
            return await call_next(request)

        cookie = request.cookies.get(get_settings().auth_cookie_name)
        if auth_service.is_authenticated_cookie(cookie):
            return await call_next(request)

        return JSONResponse(
            status_code=401,
            content={"success": False, "error": "Not authenticated"},
        )
