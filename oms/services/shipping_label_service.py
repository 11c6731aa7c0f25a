"""
Shipping Label Service

Orchestrates label creation against SendCloud:
  1. load the order
  2. validate every field the carrier needs (no network call on failure)
  3. create the parcel / return at SendCloud
  4. persist carrier ids, tracking and label urls on the order
  5. append an order_activities row

Once step 3 succeeded the label exists (and is billed) upstream, so a
failure in steps 4-5 is reported as success with a warning rather than
as an error.
"""
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from oms.config import get_settings
from oms.connectors.sendcloud_connector import (
    SendcloudConnector,
    build_parcel_payload,
    build_return_payload,
    format_weight,
    return_status,
)
from oms.exceptions import NotFoundError, UpstreamError, ValidationError
from oms.models.base import commit
from oms.models.order import Order
from oms.models.order_pack import OrderPack
from oms.services.order_service import CARRIER_FIELDS, apply_changes, record_activity
from oms.services.validation_service import (
    ReturnReason,
    requires_customs,
    validate_label_order,
    validate_return_request,
    validate_upgrade_request,
)
from oms.utils.country import normalize_country
from oms.utils.logger import log

settings = get_settings()

READY_TO_SEND = "Ready to send"
DEFAULT_PARCEL_WEIGHT = Decimal("1.000")
PERSISTENCE_WARNING = "Shipping label created but failed to update order"


@dataclass
class LabelResult:
    """Outcome of an outbound label request"""
    order_id: str
    shipping_id: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_link: Optional[str] = None
    label_url: Optional[str] = None
    persisted: bool = True
    warnings: List[str] = field(default_factory=list)

    @property
    def warning(self) -> Optional[str]:
        return "; ".join(self.warnings) if self.warnings else None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["success"] = True
        data["warning"] = self.warning
        return data


@dataclass
class ReturnResult:
    """Outcome of a return label request"""
    order_id: str
    return_id: Optional[str] = None
    parcel_id: Optional[str] = None
    label_url: Optional[str] = None
    reason: Optional[str] = None
    persisted: bool = True
    warnings: List[str] = field(default_factory=list)

    @property
    def warning(self) -> Optional[str]:
        return "; ".join(self.warnings) if self.warnings else None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["success"] = True
        data["warning"] = self.warning
        return data


def warehouse_address() -> Dict[str, Any]:
    """Configured destination of customer returns."""
    return {
        "name": settings.warehouse_name,
        "company_name": settings.warehouse_company,
        "line1": settings.warehouse_address_line1,
        "line2": "",
        "house_number": settings.warehouse_house_number,
        "city": settings.warehouse_city,
        "postal_code": settings.warehouse_postal_code,
        "country": settings.warehouse_country,
        "phone": settings.warehouse_phone,
        "email": settings.warehouse_email,
    }


def customer_return_address(order: Order) -> Dict[str, Any]:
    """The order's shipping address, shaped as a return origin."""
    return {
        "name": order.name,
        "company_name": "",
        "line1": order.shipping_address_line1,
        "line2": order.shipping_address_line2 or "",
        "house_number": order.house_number,
        "city": order.city,
        "postal_code": order.postal_code,
        "country": order.country,
        "phone": order.phone,
        "email": order.email,
    }


def _normalized_address(address: Optional[Mapping]) -> Optional[Dict[str, Any]]:
    if not isinstance(address, Mapping):
        return address
    return {**address, "country": normalize_country(address.get("country"))}


class ShippingLabelService:
    """Outbound, return and upgrade labels for orders"""

    def __init__(self, db: Session, carrier: Optional[SendcloudConnector] = None):
        self.db = db
        self.carrier = carrier or SendcloudConnector()

    def _get_order(self, order_id: str) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def _parcel_weight(self, order: Order) -> Decimal:
        """Weight snapshot on the order, else pack weight x quantity, else 1 kg."""
        if order.weight:
            try:
                weight = Decimal(str(order.weight))
                if weight > 0:
                    return weight
            except ArithmeticError:
                log.warning(f"Order {order.id} has unparseable weight {order.weight!r}")
        if order.pack and order.pack.weight:
            return Decimal(str(order.pack.weight)) * (order.order_pack_quantity or 1)
        return DEFAULT_PARCEL_WEIGHT

    def _persist(self, order_id: str, updates: Dict[str, Any], action_type: str, extra: Dict[str, Any]) -> Optional[str]:
        """Write carrier results. Returns an error message instead of raising."""
        try:
            order = self._get_order(order_id)
            changes = apply_changes(order, updates)
            record_activity(self.db, order.id, action_type, {**extra, "changes": changes})
            commit(self.db)
            return None
        except Exception as e:
            self.db.rollback()
            log.error(f"Carrier call for order {order_id} succeeded but saving failed: {e}")
            return str(e)

    async def create_label(self, order_id: str, shipping_method_id: Optional[int] = None) -> LabelResult:
        order = self._get_order(order_id)
        method_id = shipping_method_id or order.shipping_method

        validation = validate_label_order(order, method_id)
        validation.raise_if_invalid("Order is not ready for a shipping label")

        country = normalize_country(order.country)
        weight = self._parcel_weight(order)
        payload = build_parcel_payload(order, method_id, weight)
        payload["parcel"]["country"] = country

        parcel = await self.carrier.create_parcel(payload)

        label = parcel.get("label") or {}
        result = LabelResult(
            order_id=order_id,
            shipping_id=str(parcel.get("id")),
            tracking_number=parcel.get("tracking_number"),
            tracking_link=parcel.get("tracking_url"),
            label_url=label.get("label_printer") or label.get("normal_printer"),
            warnings=list(validation.warnings),
        )
        log.info(f"Label created for order {order_id}: parcel {result.shipping_id}, tracking {result.tracking_number}")

        error = self._persist(
            order_id,
            {
                "country": country,
                "shipping_method": int(method_id),
                "shipping_id": result.shipping_id,
                "tracking_number": result.tracking_number,
                "tracking_link": result.tracking_link,
                "label_url": result.label_url,
                "delivery_status": READY_TO_SEND,
                "weight": format_weight(weight),
            },
            "label_created",
            {"shipping_id": result.shipping_id, "tracking_number": result.tracking_number},
        )
        if error:
            result.persisted = False
            result.warnings.append(PERSISTENCE_WARNING)
        return result

    async def create_return_label(
        self,
        order_id: str,
        from_address: Optional[Mapping] = None,
        to_address: Optional[Mapping] = None,
        parcel_weight: Any = None,
        return_reason: Any = None,
        items: Optional[Sequence[Mapping]] = None,
    ) -> ReturnResult:
        """
        Create a return from the customer to the warehouse.

        from_address defaults to the order's shipping address and
        to_address to the configured warehouse.
        """
        order = self._get_order(order_id)
        from_address = _normalized_address(from_address if from_address is not None else customer_return_address(order))
        to_address = _normalized_address(to_address if to_address is not None else warehouse_address())

        validation = validate_return_request(from_address, to_address, parcel_weight, return_reason, items)
        validation.raise_if_invalid("Return request is incomplete")

        reason = ReturnReason(return_reason.value if isinstance(return_reason, ReturnReason) else return_reason)
        customs_items = list(items) if items and requires_customs(from_address["country"], to_address["country"]) else None
        payload = build_return_payload(from_address, to_address, parcel_weight, customs_items, order_number=order.id)

        created = await self.carrier.create_return(payload)
        result = ReturnResult(
            order_id=order_id,
            return_id=str(created["return_id"]),
            parcel_id=str(created["parcel_id"]),
            reason=reason.value,
            warnings=list(validation.warnings),
        )
        log.info(f"Return {result.return_id} created for order {order_id} ({reason.value})")

        try:
            parcel = await self.carrier.get_parcel(result.parcel_id)
            result.label_url = (parcel.get("label") or {}).get("normal_printer")
        except UpstreamError as e:
            log.warning(f"Return label URL not available yet for parcel {result.parcel_id}: {e.message}")
        if not result.label_url:
            result.warnings.append("Return created but the label URL is not available yet")

        error = self._persist(
            order_id,
            {
                "sendcloud_return_id": result.return_id,
                "sendcloud_return_parcel_id": result.parcel_id,
                "sendcloud_return_label_url": result.label_url,
                "sendcloud_return_reason": result.reason,
            },
            "return_created",
            {"return_id": result.return_id, "parcel_id": result.parcel_id},
        )
        if error:
            result.persisted = False
            result.warnings.append("Return label created but failed to update order")
        return result

    async def create_upgrade_label(
        self,
        order_id: str,
        pack_id: Any,
        weight: Any,
        quantity: Any = 1,
        shipping_method_id: Optional[int] = None,
    ) -> LabelResult:
        """Swap the order onto a new pack and ship it as an upgrade."""
        validate_upgrade_request(pack_id, weight, quantity).raise_if_invalid("Upgrade request is incomplete")

        order = self._get_order(order_id)
        pack = self.db.query(OrderPack).filter(OrderPack.id == pack_id).first()
        if not pack:
            raise NotFoundError(f"Order pack {pack_id} not found")

        updates = {
            "order_pack_list_id": pack.id,
            "order_pack": pack.value,
            "order_pack_label": pack.label,
            "order_pack_quantity": int(Decimal(str(quantity))),
            "weight": format_weight(weight),
            "reason_for_shipment": "upgrade",
            "delivery_status": None,
        }
        updates.update({name: None for name in CARRIER_FIELDS})
        if shipping_method_id:
            updates["shipping_method"] = int(shipping_method_id)
        changes = apply_changes(order, updates)
        readiness = validate_label_order(order, shipping_method_id or order.shipping_method)
        if not readiness.valid:
            self.db.rollback()
            readiness.raise_if_invalid("Order is not ready for a shipping label")
        record_activity(self.db, order.id, "upgrade", changes)
        commit(self.db)

        return await self.create_label(order_id, shipping_method_id)

    async def refresh_tracking_link(self, order_id: str) -> Order:
        """Copy the carrier's tracking url (and number) onto the order."""
        order = self._get_order(order_id)
        if not order.shipping_id:
            raise ValidationError("Order has no SendCloud parcel", fields=["shipping_id"])
        parcel = await self.carrier.get_parcel(order.shipping_id)
        updates = {}
        if parcel.get("tracking_url"):
            updates["tracking_link"] = parcel["tracking_url"]
        if parcel.get("tracking_number"):
            updates["tracking_number"] = parcel["tracking_number"]
        changes = apply_changes(order, updates)
        if changes:
            record_activity(self.db, order.id, "order_update", changes)
            commit(self.db)
        return order

    async def refresh_return_status(self, order_id: str) -> Optional[str]:
        order = self._get_order(order_id)
        if not order.sendcloud_return_id:
            raise ValidationError("Order has no return", fields=["sendcloud_return_id"])
        data = await self.carrier.get_return(order.sendcloud_return_id)
        status = return_status(data)
        changes = apply_changes(order, {"sendcloud_return_status": status})
        if changes:
            record_activity(self.db, order.id, "return_status", changes)
            commit(self.db)
        return status

    async def get_label_pdf(self, parcel_id: Any) -> bytes:
        return await self.carrier.download_label(parcel_id)
