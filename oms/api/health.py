"""
Health check and status endpoints
"""
from fastapi import APIRouter, Depends
from datetime import datetime
from oms.api.deps import get_carrier, get_crm, get_stripe
from oms.config import get_settings
from oms import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/api/status")
async def get_status(carrier=Depends(get_carrier), stripe_client=Depends(get_stripe), crm=Depends(get_crm)):
    """Get system status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "connectors": {
            "sendcloud": carrier.is_configured(),
            "stripe": stripe_client.is_configured(),
            "hubspot": crm.is_configured(),
        },
        "scheduler": settings.enable_scheduler,
        "timestamp": datetime.utcnow().isoformat()
    }
