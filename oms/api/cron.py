"""Cron-triggered routes, guarded by the CRON_SECRET bearer token"""
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from oms.api.deps import get_carrier
from oms.config import get_settings
from oms.models.base import get_db
from oms.services import auth_service
from oms.services.delivery_status_service import DeliveryStatusService
from oms.utils.logger import log

router = APIRouter(prefix="/api/cron", tags=["cron"])


@router.get("/check-sendcloud-status")
async def check_sendcloud_status(
    limit: Optional[int] = Query(None, ge=1, le=500),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    carrier=Depends(get_carrier),
):
    """Poll SendCloud for undelivered orders not checked recently"""
    if not auth_service.verify_cron_authorization(authorization):
        raise HTTPException(status_code=401, detail="Unauthorized")

    stale_after = timedelta(hours=get_settings().delivery_status_recheck_hours)
    batch = await DeliveryStatusService(db, carrier).refresh_batch(limit=limit, stale_after=stale_after)
    summary = batch.to_dict()
    log.info(f"Cron delivery status check: {summary['total_processed']} processed, {summary['updated']} updated")
    return {"success": True, **summary}
