"""Return labels (customer -> warehouse) and their status"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from oms.api.deps import get_carrier
from oms.models.base import get_db
from oms.services.shipping_label_service import ShippingLabelService

router = APIRouter(prefix="/api/returns", tags=["returns"])


# ── Schemas ──────────────────────────────────────────────

class ReturnLabelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId")
    from_address: Optional[Dict[str, Any]] = Field(default=None, alias="returnFromAddress")
    to_address: Optional[Dict[str, Any]] = Field(default=None, alias="returnToAddress")
    parcel_weight: Optional[Any] = Field(default=None, alias="parcelWeight")
    return_reason: Optional[str] = Field(default=None, alias="returnReason")
    items: Optional[List[Dict[str, Any]]] = None


class ReturnStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId")


# ── Endpoints ────────────────────────────────────────────

@router.post("/create-label")
async def create_return_label(body: ReturnLabelRequest, db: Session = Depends(get_db), carrier=Depends(get_carrier)):
    """
    Create a SendCloud return for an order.

    Validation runs first; a request missing any field fails with the full
    list of missing fields and nothing is sent to SendCloud.
    """
    result = await ShippingLabelService(db, carrier).create_return_label(
        body.order_id,
        from_address=body.from_address,
        to_address=body.to_address,
        parcel_weight=body.parcel_weight,
        return_reason=body.return_reason,
        items=body.items,
    )
    return result.to_dict()


@router.post("/get-status")
async def get_return_status(body: ReturnStatusRequest, db: Session = Depends(get_db), carrier=Depends(get_carrier)):
    status = await ShippingLabelService(db, carrier).refresh_return_status(body.order_id)
    return {"success": True, "order_id": body.order_id, "status": status}
