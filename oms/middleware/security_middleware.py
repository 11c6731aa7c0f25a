"""Security middleware: anti-crawl and cache-control headers on every response."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)

        # Staff tool: keep it out of search engines
        response.headers["X-Robots-Tag"] = "noindex, nofollow"

        # Order data changes constantly; browsers must revalidate
        if "application/json" in response.headers.get("content-type", ""):
            response.headers["Cache-Control"] = "private, no-cache"

        return response
