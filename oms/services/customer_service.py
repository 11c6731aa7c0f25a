"""
Customer Service

Customer records, imported from Stripe (webhook or staff-triggered
refresh) and enriched with the HubSpot contact owner.
"""
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from oms.connectors.hubspot_connector import HubspotConnector
from oms.connectors.stripe_connector import StripeConnector
from oms.exceptions import NotFoundError, ValidationError
from oms.models.base import commit
from oms.models.customer import Customer
from oms.utils.country import normalize_country, split_house_number
from oms.utils.logger import log

EDITABLE_FIELDS = (
    "name",
    "email",
    "phone",
    "address_line1",
    "address_line2",
    "address_house_number",
    "address_city",
    "address_state",
    "address_postal_code",
    "address_country",
)

ADDRESS_KEYS = ("line1", "line2", "city", "state", "postal_code", "country")


def customer_fields_from_stripe(stripe_customer: Mapping) -> Dict[str, Any]:
    """
    Column values for a Stripe customer object.

    The shipping address wins over the billing address field by field, and
    a house number at either end of line1 is split off into its own column.
    """
    billing = stripe_customer.get("address") or {}
    shipping = (stripe_customer.get("shipping") or {}).get("address") or {}
    address = {key: shipping.get(key) or billing.get(key) or None for key in ADDRESS_KEYS}

    house_number, street = split_house_number(address["line1"])
    return {
        "stripe_customer_id": stripe_customer.get("id"),
        "name": stripe_customer.get("name") or (stripe_customer.get("shipping") or {}).get("name") or "New Customer",
        "email": stripe_customer.get("email") or None,
        "phone": stripe_customer.get("phone") or (stripe_customer.get("shipping") or {}).get("phone") or None,
        "address_line1": street,
        "address_line2": address["line2"],
        "address_house_number": house_number,
        "address_city": address["city"],
        "address_state": address["state"],
        "address_postal_code": address["postal_code"],
        "address_country": normalize_country(address["country"]),
        "extra_metadata": dict(stripe_customer.get("metadata") or {}),
    }


class CustomerService:

    def __init__(
        self,
        db: Session,
        stripe_client: Optional[StripeConnector] = None,
        crm: Optional[HubspotConnector] = None,
    ):
        self.db = db
        self.stripe = stripe_client
        self.crm = crm

    def get(self, customer_id: int) -> Customer:
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")
        return customer

    def list_customers(self, search: Optional[str] = None, limit: int = 200, offset: int = 0) -> List[Customer]:
        query = self.db.query(Customer)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Customer.name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.stripe_customer_id.ilike(pattern),
            ))
        return query.order_by(Customer.created_at.desc()).offset(offset).limit(limit).all()

    def update(self, customer_id: int, updates: Dict[str, Any]) -> Customer:
        customer = self.get(customer_id)
        unknown = [k for k in updates if k not in EDITABLE_FIELDS]
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(unknown)}", fields=unknown)
        for key, value in updates.items():
            if key == "address_country":
                value = normalize_country(value)
            setattr(customer, key, value)
        customer.updated_at = datetime.utcnow()
        commit(self.db)
        return customer

    def upsert_from_stripe(self, stripe_customer: Mapping, autocommit: bool = True) -> Tuple[Customer, bool]:
        """Create or refresh the row for a Stripe customer. Returns (customer, created)."""
        fields = customer_fields_from_stripe(stripe_customer)
        if not fields["stripe_customer_id"]:
            raise ValidationError("Stripe customer has no id", fields=["id"])

        customer = (
            self.db.query(Customer)
            .filter(Customer.stripe_customer_id == fields["stripe_customer_id"])
            .first()
        )
        created = customer is None
        if created:
            customer = Customer()
            self.db.add(customer)
        for key, value in fields.items():
            setattr(customer, key, value)
        customer.updated_at = datetime.utcnow()

        self.db.flush()
        if autocommit:
            commit(self.db)
        log.info(f"{'Created' if created else 'Updated'} customer {customer.id} from Stripe {fields['stripe_customer_id']}")
        return customer, created

    def import_from_stripe(self, stripe_customer_id: str) -> Tuple[Customer, bool]:
        if not stripe_customer_id:
            raise ValidationError("Customer ID is required", fields=["stripe_customer_id"])
        stripe_client = self.stripe or StripeConnector()
        return self.upsert_from_stripe(stripe_client.retrieve_customer(stripe_customer_id))

    async def fetch_crm_owner(self, customer_id: int) -> Customer:
        """Look up the HubSpot owner by the customer's email and store it."""
        customer = self.get(customer_id)
        if not customer.email:
            raise ValidationError("Customer has no email", fields=["email"])
        crm = self.crm or HubspotConnector()
        owner = await crm.find_owner_by_email(customer.email)
        customer.hubspot_owner_id = owner["id"]
        customer.hubspot_owner_name = owner["name"] or owner.get("email")
        customer.updated_at = datetime.utcnow()
        commit(self.db)
        return customer

    def trial_end(self, stripe_customer_id: str) -> Dict[str, Any]:
        """Latest subscription's trial end. Missing customer or subscription is not an error."""
        stripe_client = self.stripe or StripeConnector()
        try:
            stripe_client.retrieve_customer(stripe_customer_id)
        except NotFoundError:
            return {"trial_end": None, "status": None, "message": "Customer not found or invalid mode"}

        subscription = stripe_client.latest_subscription(stripe_customer_id)
        if not subscription:
            return {"trial_end": None, "status": None, "message": "No subscription found"}
        return {
            "trial_end": subscription.get("trial_end"),
            "status": subscription.get("status"),
            "subscription_id": subscription.get("id"),
            "link": f"https://dashboard.stripe.com/subscriptions/{subscription.get('id')}",
            "message": "Subscription found",
        }
