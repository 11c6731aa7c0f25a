"""
Order Service

Staff-facing order operations. Every mutation stamps updated_at and
writes one order_activities row describing what changed.
"""
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from oms.exceptions import NotFoundError, ValidationError
from oms.models.base import commit
from oms.models.activity import OrderActivity
from oms.models.customer import Customer
from oms.models.order import Order
from oms.models.order_pack import OrderPack
from oms.models.shipping_method import ShippingMethod
from oms.services.instructions import Instruction, compute_instruction
from oms.services.validation_service import validate_upgrade_request, MAX_PACK_QUANTITY
from oms.utils.country import normalize_country
from oms.utils.logger import log

# Fields staff may set through the generic update endpoint
EDITABLE_FIELDS = (
    "name",
    "email",
    "phone",
    "shipping_address_line1",
    "shipping_address_line2",
    "house_number",
    "city",
    "postal_code",
    "country",
    "paid",
    "ok_to_ship",
    "important",
    "delivery_status",
    "tracking_number",
    "tracking_link",
    "reason_for_shipment",
)

CREATE_FIELDS = EDITABLE_FIELDS + (
    "customer_id",
    "order_pack_list_id",
    "order_pack_quantity",
    "shipping_method",
    "stripe_customer_id",
    "stripe_invoice_id",
)

TOGGLE_FIELDS = ("paid", "ok_to_ship", "important")

CARRIER_FIELDS = ("shipping_id", "tracking_number", "tracking_link", "label_url")

MANUAL_DELIVERED_STATUS = "Delivered"


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def record_activity(db: Session, order_id: str, action_type: str, changes: Dict[str, Any]) -> OrderActivity:
    """Queue an activity row on the session; the caller commits."""
    activity = OrderActivity(order_id=order_id, action_type=action_type, changes=changes)
    db.add(activity)
    return activity


def apply_changes(order: Order, updates: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Set attributes on the order and return {field: {old_value, new_value}}
    for the fields whose value actually changed.
    """
    changes = {}
    for field_name, new_value in updates.items():
        old_value = getattr(order, field_name)
        if old_value == new_value:
            continue
        setattr(order, field_name, new_value)
        changes[field_name] = {"old_value": _jsonable(old_value), "new_value": _jsonable(new_value)}
    if changes:
        order.updated_at = datetime.utcnow()
    return changes


class OrderService:
    """Order CRUD and field-level staff actions"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, order_id: str) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def list_orders(
        self,
        country: Optional[str] = None,
        paid: Optional[bool] = None,
        ok_to_ship: Optional[bool] = None,
        important: Optional[bool] = None,
        instruction: Optional[Instruction] = None,
        search: Optional[str] = None,
        limit: int = 200,
        offset: int = 0,
    ) -> List[Order]:
        """Newest first. The instruction filter is applied after loading."""
        query = self.db.query(Order)
        if country:
            query = query.filter(Order.country == normalize_country(country))
        if paid is not None:
            query = query.filter(Order.paid == paid)
        if ok_to_ship is not None:
            query = query.filter(Order.ok_to_ship == ok_to_ship)
        if important is not None:
            query = query.filter(Order.important == important)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Order.name.ilike(pattern),
                Order.email.ilike(pattern),
                Order.id.ilike(pattern),
                Order.tracking_number.ilike(pattern),
            ))
        query = query.order_by(Order.created_at.desc())

        if instruction is None:
            return query.offset(offset).limit(limit).all()
        matching = [o for o in query.all() if compute_instruction(o) == instruction]
        return matching[offset:offset + limit]

    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order from the staff form, linking or creating the customer by email."""
        fields = {k: v for k, v in data.items() if k in CREATE_FIELDS}
        if not fields.get("name") and not fields.get("email"):
            raise ValidationError("An order needs at least a name or an email", fields=["name", "email"])
        fields["country"] = normalize_country(fields.get("country"))

        order = Order(**fields)
        if not order.customer_id and order.email:
            order.customer_id = self._find_or_create_customer(order).id
        if order.order_pack_list_id:
            self._snapshot_pack(order, self._get_pack(order.order_pack_list_id), order.order_pack_quantity or 1)

        self.db.add(order)
        self.db.flush()
        record_activity(self.db, order.id, "order_created", {"source": "staff"})
        commit(self.db)
        self.db.refresh(order)
        log.info(f"Order {order.id} created for {order.email or order.name}")
        return order

    def _find_or_create_customer(self, order: Order) -> Customer:
        customer = self.db.query(Customer).filter(Customer.email == order.email).first()
        if customer:
            return customer
        customer = Customer(
            name=order.name,
            email=order.email,
            phone=order.phone,
            address_line1=order.shipping_address_line1,
            address_line2=order.shipping_address_line2,
            address_house_number=order.house_number,
            address_city=order.city,
            address_postal_code=order.postal_code,
            address_country=order.country,
        )
        self.db.add(customer)
        self.db.flush()
        return customer

    def update(self, order_id: str, updates: Dict[str, Any], action_type: str = "order_update") -> Order:
        order = self.get(order_id)
        unknown = [k for k in updates if k not in EDITABLE_FIELDS]
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(unknown)}", fields=unknown)
        if "country" in updates:
            updates = {**updates, "country": normalize_country(updates["country"])}

        changes = apply_changes(order, updates)
        if changes:
            record_activity(self.db, order.id, action_type, changes)
            commit(self.db)
            log.info(f"Order {order_id} updated: {', '.join(changes)}")
        return order

    def toggle(self, order_id: str, field_name: str) -> Order:
        if field_name not in TOGGLE_FIELDS:
            raise ValidationError(f"Cannot toggle {field_name}", fields=[field_name])
        order = self.get(order_id)
        return self.update(order.id, {field_name: not bool(getattr(order, field_name))})

    def _get_pack(self, pack_id: Any) -> OrderPack:
        pack = self.db.query(OrderPack).filter(OrderPack.id == pack_id).first()
        if not pack:
            raise NotFoundError(f"Order pack {pack_id} not found")
        return pack

    @staticmethod
    def _snapshot_pack(order: Order, pack: OrderPack, quantity: int, weight: Any = None) -> Dict[str, Any]:
        if weight is None and pack.weight:
            weight = pack.weight * quantity
        updates = {
            "order_pack_list_id": pack.id,
            "order_pack": pack.value,
            "order_pack_label": pack.label,
            "order_pack_quantity": quantity,
        }
        if weight is not None:
            updates["weight"] = f"{float(weight):.3f}"
        return apply_changes(order, updates)

    def update_pack(self, order_id: str, pack_id: Any, quantity: int = 1, weight: Any = None) -> Order:
        """Change the pack and refresh the weight snapshot."""
        if not 1 <= int(quantity) <= MAX_PACK_QUANTITY:
            raise ValidationError(f"Quantity must be between 1 and {MAX_PACK_QUANTITY}", fields=["quantity"])
        if weight is not None:
            validate_upgrade_request(pack_id, weight, quantity).raise_if_invalid()
        order = self.get(order_id)
        changes = self._snapshot_pack(order, self._get_pack(pack_id), int(quantity), weight)
        if changes:
            record_activity(self.db, order.id, "order_update", changes)
            commit(self.db)
        return order

    def update_shipping_method(self, order_id: str, method_id: int) -> Order:
        order = self.get(order_id)
        method = self.db.query(ShippingMethod).filter(ShippingMethod.id == method_id).first()
        if not method:
            raise NotFoundError(f"Shipping method {method_id} not found")
        changes = apply_changes(order, {"shipping_method": method.id})
        if changes:
            record_activity(self.db, order.id, "order_update", changes)
            commit(self.db)
        return order

    def mark_delivered(self, order_id: str) -> Order:
        """Staff override when the carrier never reported delivery."""
        order = self.update(order_id, {"delivery_status": MANUAL_DELIVERED_STATUS}, action_type="manual_delivered")
        log.info(f"Order {order_id} manually marked delivered")
        return order

    def remove_shipping(self, order_id: str) -> Order:
        """Forget the carrier parcel so a new label can be created."""
        order = self.get(order_id)
        updates = {name: None for name in CARRIER_FIELDS}
        updates["delivery_status"] = None
        changes = apply_changes(order, updates)
        if changes:
            record_activity(self.db, order.id, "order_update", changes)
            commit(self.db)
            log.info(f"Shipping removed from order {order_id}")
        return order

    def bulk_delete(self, order_ids: Iterable[str]) -> int:
        ids = [i for i in order_ids if i]
        if not ids:
            raise ValidationError("No order ids given", fields=["order_ids"])
        orders = self.db.query(Order).filter(Order.id.in_(ids)).all()
        for order in orders:
            self.db.delete(order)
        commit(self.db)
        log.warning(f"Bulk-deleted {len(orders)} orders")
        return len(orders)

    def activities(self, order_id: str) -> List[OrderActivity]:
        self.get(order_id)
        return (
            self.db.query(OrderActivity)
            .filter(OrderActivity.order_id == order_id)
            .order_by(OrderActivity.created_at.desc(), OrderActivity.id.desc())
            .all()
        )
