"""
Stripe webhook handling.

Flow per delivery:
  1. verify the signature (the only failure the caller sees, as a 400)
  2. store the raw event in stripe_events before doing anything else
  3. dispatch on an explicit allow-list of event types
  4. mark the event processed whatever the handler outcome

Stripe retries anything that is not a 2xx, so handler failures are
recorded on the event row and acknowledged instead of raised.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from oms.config import get_settings
from oms.connectors.stripe_connector import StripeConnector
from oms.models.base import commit
from oms.models.customer import Customer
from oms.models.order import Order
from oms.models.stripe_event import StripeEvent
from oms.services.customer_service import CustomerService
from oms.services.order_service import apply_changes, record_activity
from oms.utils.country import normalize_country, split_house_number
from oms.utils.logger import log

settings = get_settings()

HANDLED_EVENT_TYPES = (
    "customer.created",
    "customer.updated",
    "invoice.paid",
    "checkout.session.completed",
)


@dataclass
class WebhookResult:
    event_id: Optional[str]
    event_type: Optional[str]
    status: str = "processed"  # processed | ignored | duplicate | failed
    message: Optional[str] = None
    order_ids: List[str] = field(default_factory=list)
    customer_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def invoice_amount(invoice: Mapping) -> float:
    """amount_paid in major units (Stripe sends cents)."""
    return (invoice.get("amount_paid") or 0) / 100


class WebhookService:

    def __init__(self, db: Session, stripe_client: Optional[StripeConnector] = None, min_order_amount: Optional[float] = None):
        self.db = db
        self.stripe = stripe_client or StripeConnector()
        self.min_order_amount = settings.stripe_min_order_amount if min_order_amount is None else min_order_amount
        self.customers = CustomerService(db, stripe_client=self.stripe)

    def handle(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify, store, dispatch and acknowledge one delivery.

        Raises:
            InvalidSignature: the delivery could not be verified
        """
        event = self.stripe.construct_event(payload, signature)
        event_id, event_type = event.get("id"), event.get("type")
        log.info(f"Stripe event {event_id} ({event_type}) received")

        record = self._store_event(event)
        if record is not None and record.processed:
            log.info(f"Stripe event {event_id} already processed, acknowledging")
            return WebhookResult(event_id, event_type, status="duplicate").to_dict()

        try:
            result = self.dispatch(event)
        except Exception as e:
            self.db.rollback()
            log.error(f"Stripe event {event_id} ({event_type}) handler failed: {e}")
            result = WebhookResult(event_id, event_type, status="failed", message=str(e))

        self._mark_processed(event_id, result)
        return result.to_dict()

    def _store_event(self, event: Mapping) -> Optional[StripeEvent]:
        data_object = (event.get("data") or {}).get("object")
        try:
            record = StripeEvent(
                event_id=event.get("id"),
                event_type=event.get("type"),
                event_data=data_object,
                processed=False,
            )
            self.db.add(record)
            commit(self.db)
            return record
        except IntegrityError:
            return self.db.query(StripeEvent).filter(StripeEvent.event_id == event.get("id")).first()
        except Exception as e:
            self.db.rollback()
            log.error(f"Could not store Stripe event {event.get('id')}: {e}")
            return None

    def _mark_processed(self, event_id: Optional[str], result: WebhookResult) -> None:
        try:
            record = self.db.query(StripeEvent).filter(StripeEvent.event_id == event_id).first()
            if record is None:
                return
            record.processed = True
            record.processed_at = datetime.utcnow()
            record.error = result.message if result.status == "failed" else None
            commit(self.db)
        except Exception as e:
            self.db.rollback()
            log.error(f"Could not mark Stripe event {event_id} processed: {e}")

    def dispatch(self, event: Mapping) -> WebhookResult:
        event_id, event_type = event.get("id"), event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type not in HANDLED_EVENT_TYPES:
            log.info(f"Ignoring unhandled Stripe event type {event_type}")
            return WebhookResult(event_id, event_type, status="ignored", message="Unhandled event type")

        if event_type == "invoice.paid":
            return self._handle_invoice_paid(event_id, obj)
        if event_type == "checkout.session.completed":
            return self._handle_checkout_completed(event_id, obj)
        return self._handle_customer(event_id, event_type, obj)

    # ── Handlers ─────────────────────────────────────────

    def _handle_customer(self, event_id: str, event_type: str, stripe_customer: Mapping) -> WebhookResult:
        customer, _ = self.customers.upsert_from_stripe(stripe_customer)
        result = WebhookResult(event_id, event_type, customer_id=customer.id)
        if event_type != "customer.created":
            return result

        eligible = None
        for invoice in self.stripe.list_paid_invoices(stripe_customer.get("id")):
            if invoice_amount(invoice) > self.min_order_amount:
                eligible = invoice
                break
        if eligible is None:
            result.message = f"No paid invoice above {self.min_order_amount:g}"
            return result
        if self._orders_for_invoice(eligible.get("id")):
            result.message = f"Invoice {eligible.get('id')} already has an order"
            return result

        order = self._create_order(
            event_id,
            customer=customer,
            paid=True,
            stripe_invoice_id=eligible.get("id"),
        )
        result.order_ids.append(order.id)
        return result

    def _handle_invoice_paid(self, event_id: str, invoice: Mapping) -> WebhookResult:
        result = WebhookResult(event_id, "invoice.paid")
        invoice_id = invoice.get("id")
        stripe_customer_id = invoice.get("customer")

        orders = self._orders_for_invoice(invoice_id)
        if not orders and stripe_customer_id:
            latest = (
                self.db.query(Order)
                .filter(Order.stripe_customer_id == stripe_customer_id, Order.paid.is_(False))
                .order_by(Order.created_at.desc())
                .first()
            )
            if latest:
                orders = [latest]

        if orders:
            for order in orders:
                changes = apply_changes(order, {"paid": True, "stripe_invoice_id": invoice_id})
                if changes:
                    record_activity(self.db, order.id, "payment_update", {**changes, "event_id": event_id})
                result.order_ids.append(order.id)
            commit(self.db)
            log.info(f"Invoice {invoice_id} marked {len(orders)} order(s) paid")
            return result

        amount = invoice_amount(invoice)
        if amount <= self.min_order_amount:
            result.status = "ignored"
            result.message = f"Invoice amount ({amount:g}) is not greater than {self.min_order_amount:g}"
            return result

        customer = None
        if stripe_customer_id:
            customer = self.db.query(Customer).filter(Customer.stripe_customer_id == stripe_customer_id).first()
        address = (invoice.get("customer_shipping") or {}).get("address") or invoice.get("customer_address") or {}
        order = self._create_order(
            event_id,
            customer=customer,
            paid=True,
            stripe_invoice_id=invoice_id,
            stripe_customer_id=stripe_customer_id,
            name=invoice.get("customer_name"),
            email=invoice.get("customer_email"),
            phone=invoice.get("customer_phone"),
            address=address,
        )
        result.order_ids.append(order.id)
        if customer:
            result.customer_id = customer.id
        return result

    def _handle_checkout_completed(self, event_id: str, session: Mapping) -> WebhookResult:
        result = WebhookResult(event_id, "checkout.session.completed")
        invoice_id = session.get("invoice")
        if invoice_id and self._orders_for_invoice(invoice_id):
            result.status = "ignored"
            result.message = f"Invoice {invoice_id} already has an order"
            return result

        details = session.get("customer_details") or {}
        shipping = (
            session.get("shipping_details")
            or (session.get("collected_information") or {}).get("shipping_details")
            or {}
        )
        stripe_customer_id = session.get("customer")
        customer = None
        if stripe_customer_id:
            customer = self.db.query(Customer).filter(Customer.stripe_customer_id == stripe_customer_id).first()

        order = self._create_order(
            event_id,
            customer=customer,
            paid=session.get("payment_status") == "paid",
            stripe_invoice_id=invoice_id,
            stripe_customer_id=stripe_customer_id,
            name=shipping.get("name") or details.get("name"),
            email=details.get("email"),
            phone=details.get("phone"),
            address=shipping.get("address") or details.get("address") or {},
        )
        result.order_ids.append(order.id)
        return result

    # ── Helpers ──────────────────────────────────────────

    def _orders_for_invoice(self, invoice_id: Optional[str]) -> List[Order]:
        if not invoice_id:
            return []
        return self.db.query(Order).filter(Order.stripe_invoice_id == invoice_id).all()

    def _create_order(
        self,
        event_id: str,
        customer: Optional[Customer] = None,
        paid: bool = False,
        stripe_invoice_id: Optional[str] = None,
        stripe_customer_id: Optional[str] = None,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[Mapping] = None,
    ) -> Order:
        """New order from Stripe data; missing contact/address fields come from the customer row."""
        address = address or {}
        house_number, street = split_house_number(address.get("line1"))
        order = Order(
            customer_id=customer.id if customer else None,
            name=name or (customer.name if customer else None),
            email=email or (customer.email if customer else None),
            phone=phone or (customer.phone if customer else None),
            shipping_address_line1=street or (customer.address_line1 if customer else None),
            shipping_address_line2=address.get("line2") or (customer.address_line2 if customer else None),
            house_number=house_number or (customer.address_house_number if customer else None),
            city=address.get("city") or (customer.address_city if customer else None),
            postal_code=address.get("postal_code") or (customer.address_postal_code if customer else None),
            country=normalize_country(address.get("country") or (customer.address_country if customer else None)),
            paid=paid,
            ok_to_ship=False,
            stripe_invoice_id=stripe_invoice_id,
            stripe_customer_id=stripe_customer_id or (customer.stripe_customer_id if customer else None),
            reason_for_shipment="new order",
        )
        self.db.add(order)
        self.db.flush()
        record_activity(self.db, order.id, "order_created", {"source": "stripe", "event_id": event_id})
        commit(self.db)
        log.info(f"Order {order.id} created from Stripe event {event_id}")
        return order
