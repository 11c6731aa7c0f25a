"""
Order Management System
Main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware
from contextlib import asynccontextmanager

from oms.config import get_settings
from oms.exceptions import OMSError
from oms.utils.logger import log
from oms.utils.response_cache import TTLCache
from oms import __version__

# Import routers
from oms.api import auth, customers, cron, feature_requests, health, labels, order_packs, orders, returns, shipping_methods, webhooks
from oms.middleware.auth_middleware import AuthMiddleware
from oms.middleware.security_middleware import SecurityMiddleware

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from oms.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    # Nightly delivery status poll
    scheduler_started = False
    if settings.enable_scheduler:
        try:
            from oms.scheduler import start_scheduler
            start_scheduler()
            scheduler_started = True
            log.info("Scheduler started successfully")
        except Exception as e:
            log.error(f"Scheduler startup error: {str(e)}")

    yield

    # Shutdown
    if scheduler_started:
        from oms.scheduler import stop_scheduler
        stop_scheduler()
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Order Management System

    Staff back office for orders:
    - Order list with computed shipping instructions
    - SendCloud outbound, return and upgrade labels
    - Nightly delivery status polling
    - Stripe webhook for customers, invoices and checkouts
    - HubSpot owner lookup for customers
    """,
    lifespan=lifespan
)

# Shipping methods response cache, shared by all requests of this process
app.state.shipping_methods_cache = TTLCache(default_ttl=settings.shipping_methods_cache_ttl)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# X-Robots-Tag, Cache-Control
app.add_middleware(SecurityMiddleware)

# Shared-password cookie gate
app.add_middleware(AuthMiddleware)

app.add_middleware(GZipMiddleware, minimum_size=500)


# ── Error handlers ───────────────────────────────────────

@app.exception_handler(OMSError)
async def oms_error_handler(request: Request, exc: OMSError):
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Missing or invalid fields: {', '.join(fields)}", "fields": fields},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


# Include routers
app.include_router(auth.router)
app.include_router(health.router, tags=["health"])
app.include_router(orders.router)
app.include_router(returns.router)
app.include_router(labels.router)
app.include_router(shipping_methods.router)
app.include_router(customers.router)
app.include_router(feature_requests.router)
app.include_router(order_packs.router)
app.include_router(webhooks.router)
app.include_router(cron.router)


@app.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    """Block all crawlers"""
    return "User-agent: *\nDisallow: /\n"


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "oms.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
