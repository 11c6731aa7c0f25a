"""
Stripe webhook endpoint

Always acknowledges with 200 once the signature verifies; processing
failures are stored on the stripe_events row instead.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from oms.api.deps import get_stripe
from oms.connectors.stripe_connector import InvalidSignature
from oms.models.base import get_db
from oms.services.webhook_service import WebhookService
from oms.utils.logger import log

router = APIRouter(prefix="/api/webhook", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    stripe_client=Depends(get_stripe),
):
    payload = await request.body()
    try:
        result = WebhookService(db, stripe_client).handle(payload, stripe_signature)
    except InvalidSignature as e:
        log.warning(f"Rejected Stripe webhook: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return {"received": True, "result": result}
