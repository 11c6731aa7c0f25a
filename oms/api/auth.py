"""Authentication API: shared staff password, cookie login and logout."""
from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from oms.config import get_settings
from oms.services import auth_service
from oms.utils.logger import log

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ── Schemas ──────────────────────────────────────────────

class LoginRequest(BaseModel):
    password: str | None = None


# ── Auth endpoints ───────────────────────────────────────

@router.post("")
async def login(body: LoginRequest):
    """Check the shared password and set the session cookie."""
    try:
        valid = auth_service.verify_password(body.password)
    except auth_service.AuthNotConfigured as e:
        log.error(str(e))
        raise HTTPException(status_code=500, detail="Authentication not configured")

    if not valid:
        raise HTTPException(status_code=401, detail="Invalid password")

    settings = get_settings()
    response = JSONResponse(content={"success": True})
    response.set_cookie(
        key=settings.auth_cookie_name,
        value="true",
        httponly=True,
        secure=settings.environment != "development",
        samesite="lax",
        max_age=60 * 60 * 24 * settings.auth_cookie_max_age_days,
        path="/",
    )
    return response


@router.post("/logout")
async def logout():
    """Clear the session cookie."""
    response = JSONResponse(content={"success": True})
    response.delete_cookie(get_settings().auth_cookie_name, path="/")
    return response
