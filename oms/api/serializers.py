"""Row -> JSON dicts shared by the routers"""
from datetime import date, datetime
from typing import Any, Optional

from oms.models.activity import OrderActivity
from oms.models.customer import Customer
from oms.models.feature_request import FeatureRequest
from oms.models.order import Order
from oms.models.order_pack import OrderPack
from oms.services.instructions import compute_instruction


def _iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def order_out(o: Order) -> dict:
    return {
        "id": o.id,
        "customer_id": o.customer_id,
        "name": o.name,
        "email": o.email,
        "phone": o.phone,
        "shipping_address_line1": o.shipping_address_line1,
        "shipping_address_line2": o.shipping_address_line2,
        "house_number": o.house_number,
        "city": o.city,
        "postal_code": o.postal_code,
        "country": o.country,
        "paid": bool(o.paid),
        "ok_to_ship": bool(o.ok_to_ship),
        "important": bool(o.important),
        "order_pack_list_id": o.order_pack_list_id,
        "order_pack": o.order_pack,
        "order_pack_label": o.order_pack_label,
        "order_pack_quantity": o.order_pack_quantity,
        "weight": o.weight,
        "reason_for_shipment": o.reason_for_shipment,
        "shipping_method": o.shipping_method,
        "shipping_id": o.shipping_id,
        "tracking_number": o.tracking_number,
        "tracking_link": o.tracking_link,
        "label_url": o.label_url,
        "delivery_status": o.delivery_status,
        "last_delivery_status_check": _iso(o.last_delivery_status_check),
        "expected_delivery_date": _iso(o.expected_delivery_date),
        "sendcloud_return_id": o.sendcloud_return_id,
        "sendcloud_return_parcel_id": o.sendcloud_return_parcel_id,
        "sendcloud_return_label_url": o.sendcloud_return_label_url,
        "sendcloud_return_reason": o.sendcloud_return_reason,
        "sendcloud_return_status": o.sendcloud_return_status,
        "stripe_customer_id": o.stripe_customer_id,
        "stripe_invoice_id": o.stripe_invoice_id,
        "instruction": compute_instruction(o).value,
        "created_at": _iso(o.created_at),
        "updated_at": _iso(o.updated_at),
    }


def activity_out(a: OrderActivity) -> dict:
    return {
        "id": a.id,
        "order_id": a.order_id,
        "action_type": a.action_type,
        "changes": a.changes,
        "created_at": _iso(a.created_at),
    }


def customer_out(c: Customer, include_orders: bool = False) -> dict:
    data = {
        "id": c.id,
        "stripe_customer_id": c.stripe_customer_id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "address_line1": c.address_line1,
        "address_line2": c.address_line2,
        "address_house_number": c.address_house_number,
        "address_city": c.address_city,
        "address_state": c.address_state,
        "address_postal_code": c.address_postal_code,
        "address_country": c.address_country,
        "metadata": c.extra_metadata or {},
        "hubspot_owner_id": c.hubspot_owner_id,
        "hubspot_owner_name": c.hubspot_owner_name,
        "created_at": _iso(c.created_at),
        "updated_at": _iso(c.updated_at),
    }
    if include_orders:
        data["orders"] = [order_out(o) for o in c.orders]
    return data


def pack_out(p: OrderPack) -> dict:
    return {
        "id": p.id,
        "value": p.value,
        "label": p.label,
        "weight": p.weight,
        "height": p.height,
        "width": p.width,
        "length": p.length,
    }


def feature_request_out(r: FeatureRequest) -> dict:
    return {
        "id": r.id,
        "description": r.description,
        "author": r.author,
        "link_url": r.link_url,
        "status": r.status,
        "created_at": _iso(r.created_at),
    }
