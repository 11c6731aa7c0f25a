"""
Shipping methods catalog endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from oms.api.deps import get_carrier, get_shipping_methods_cache
from oms.models.base import get_db
from oms.services import auth_service
from oms.services.shipping_method_service import ShippingMethodService
from oms.utils.response_cache import TTLCache

router = APIRouter(tags=["shipping-methods"])


@router.get("/api/shipping-methods")
async def list_shipping_methods(
    to_country: Optional[str] = Query(None, description="Destination country, name or code"),
    bypass_cache: bool = Query(False),
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_shipping_methods_cache),
):
    """Methods usable for a destination; the static default list when the catalog is unavailable"""
    result = ShippingMethodService(db, cache).list_methods(to_country, bypass_cache=bypass_cache)
    return {"success": True, **result}


@router.post("/api/admin/sync-shipping-methods")
async def sync_shipping_methods(
    x_admin_secret: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_shipping_methods_cache),
    carrier=Depends(get_carrier),
):
    if not auth_service.verify_admin_secret(x_admin_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
    counts = await ShippingMethodService(db, cache, carrier).sync_from_carrier()
    return {"success": True, "data": counts}
