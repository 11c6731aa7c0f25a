"""
Order endpoints: CRUD, staff toggles, shipping labels and delivery status
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from oms.api.deps import get_carrier
from oms.api.serializers import activity_out, order_out
from oms.exceptions import OMSError, ValidationError
from oms.models.base import get_db
from oms.services.delivery_status_service import DeliveryStatusService
from oms.services.instructions import Instruction
from oms.services.order_service import OrderService
from oms.services.shipping_label_service import ShippingLabelService
from oms.utils.logger import log

router = APIRouter(prefix="/api/orders", tags=["orders"])


# ── Schemas ──────────────────────────────────────────────

class OrderCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    shipping_address_line1: Optional[str] = None
    shipping_address_line2: Optional[str] = None
    house_number: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    paid: bool = False
    ok_to_ship: bool = False
    important: bool = False
    customer_id: Optional[int] = None
    order_pack_list_id: Optional[int] = None
    order_pack_quantity: int = 1
    shipping_method: Optional[int] = None
    reason_for_shipment: str = "new order"


class OrderUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    shipping_address_line1: Optional[str] = None
    shipping_address_line2: Optional[str] = None
    house_number: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    paid: Optional[bool] = None
    ok_to_ship: Optional[bool] = None
    important: Optional[bool] = None
    delivery_status: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_link: Optional[str] = None
    reason_for_shipment: Optional[str] = None


class PackUpdate(BaseModel):
    order_pack_list_id: int
    quantity: int = 1
    weight: Optional[str] = None


class ShippingMethodUpdate(BaseModel):
    shipping_method: int


class BulkDeleteRequest(BaseModel):
    order_ids: List[str]


class OrderAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId")


class LabelRequest(OrderAction):
    shipping_method_id: Optional[int] = Field(default=None, alias="shippingMethodId")


class UpgradeRequest(OrderAction):
    pack_id: Optional[int] = Field(default=None, alias="packId")
    weight: Optional[Any] = None
    quantity: Any = 1
    shipping_method_id: Optional[int] = Field(default=None, alias="shippingMethodId")


class DeliveryStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: Optional[str] = Field(default=None, alias="orderId")
    limit: Optional[int] = Field(default=None, ge=1, le=500)


# ── Listing and CRUD ─────────────────────────────────────

@router.get("")
async def list_orders(
    country: Optional[str] = Query(None),
    paid: Optional[bool] = Query(None),
    ok_to_ship: Optional[bool] = Query(None),
    important: Optional[bool] = Query(None),
    instruction: Optional[str] = Query(None, description="e.g. TO SHIP, SHIPPED"),
    search: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Orders, newest first, each with its computed instruction"""
    try:
        wanted = None
        if instruction:
            try:
                wanted = Instruction(instruction.upper())
            except ValueError:
                raise ValidationError(f"Unknown instruction {instruction!r}", fields=["instruction"])
        orders = OrderService(db).list_orders(
            country=country,
            paid=paid,
            ok_to_ship=ok_to_ship,
            important=important,
            instruction=wanted,
            search=search,
            limit=limit,
            offset=offset,
        )
        return {"success": True, "data": [order_out(o) for o in orders], "count": len(orders)}
    except (HTTPException, OMSError):
        raise
    except Exception as e:
        log.error(f"Error listing orders: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("")
async def create_order(body: OrderCreate, db: Session = Depends(get_db)):
    order = OrderService(db).create(body.model_dump(exclude_none=True))
    return {"success": True, "data": order_out(order)}


@router.post("/bulk-delete")
async def bulk_delete(body: BulkDeleteRequest, db: Session = Depends(get_db)):
    """Hard-delete orders (and their activity log)"""
    deleted = OrderService(db).bulk_delete(body.order_ids)
    return {"success": True, "deleted": deleted}


@router.get("/{order_id}")
async def get_order(order_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": order_out(OrderService(db).get(order_id))}


@router.patch("/{order_id}")
async def update_order(order_id: str, body: OrderUpdate, db: Session = Depends(get_db)):
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationError("No fields to update")
    order = OrderService(db).update(order_id, updates)
    return {"success": True, "data": order_out(order)}


@router.post("/{order_id}/toggle/{field_name}")
async def toggle_flag(order_id: str, field_name: str, db: Session = Depends(get_db)):
    """Flip paid, ok_to_ship or important"""
    order = OrderService(db).toggle(order_id, field_name)
    return {"success": True, "data": order_out(order)}


@router.put("/{order_id}/pack")
async def update_pack(order_id: str, body: PackUpdate, db: Session = Depends(get_db)):
    order = OrderService(db).update_pack(order_id, body.order_pack_list_id, body.quantity, body.weight)
    return {"success": True, "data": order_out(order)}


@router.put("/{order_id}/shipping-method")
async def update_shipping_method(order_id: str, body: ShippingMethodUpdate, db: Session = Depends(get_db)):
    order = OrderService(db).update_shipping_method(order_id, body.shipping_method)
    return {"success": True, "data": order_out(order)}


@router.post("/{order_id}/mark-delivered")
async def mark_delivered(order_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": order_out(OrderService(db).mark_delivered(order_id))}


@router.post("/{order_id}/remove-shipping")
async def remove_shipping(order_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": order_out(OrderService(db).remove_shipping(order_id))}


@router.get("/{order_id}/activities")
async def order_activities(order_id: str, db: Session = Depends(get_db)):
    activities = OrderService(db).activities(order_id)
    return {"success": True, "data": [activity_out(a) for a in activities]}


# ── Carrier actions ──────────────────────────────────────

@router.post("/create-shipping-label")
async def create_shipping_label(body: LabelRequest, db: Session = Depends(get_db), carrier=Depends(get_carrier)):
    """
    Create the outbound SendCloud parcel for an order.

    A label that exists at SendCloud is always reported as success; if the
    order could not be updated afterwards the response carries a warning.
    """
    result = await ShippingLabelService(db, carrier).create_label(body.order_id, body.shipping_method_id)
    return result.to_dict()


@router.post("/upgrade")
async def create_upgrade(body: UpgradeRequest, db: Session = Depends(get_db), carrier=Depends(get_carrier)):
    result = await ShippingLabelService(db, carrier).create_upgrade_label(
        body.order_id,
        pack_id=body.pack_id,
        weight=body.weight,
        quantity=body.quantity,
        shipping_method_id=body.shipping_method_id,
    )
    return result.to_dict()


@router.post("/fetch-tracking-link")
async def fetch_tracking_link(body: OrderAction, db: Session = Depends(get_db), carrier=Depends(get_carrier)):
    order = await ShippingLabelService(db, carrier).refresh_tracking_link(body.order_id)
    return {"success": True, "tracking_link": order.tracking_link, "data": order_out(order)}


@router.post("/update-delivery-status")
async def update_delivery_status(
    body: DeliveryStatusRequest,
    db: Session = Depends(get_db),
    carrier=Depends(get_carrier),
):
    """Refresh one order when orderId is given, otherwise run a batch"""
    service = DeliveryStatusService(db, carrier)
    if body.order_id:
        refresh = await service.refresh_status(body.order_id)
        return {"success": True, "data": refresh.to_dict()}
    batch = await service.refresh_batch(limit=body.limit)
    return {"success": True, "data": batch.to_dict()}
