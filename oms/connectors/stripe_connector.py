"""
Stripe connector.

Wraps the stripe SDK calls the backend needs: webhook verification,
customer lookup, paid invoices and subscription trial end.
"""
from typing import Any, Dict, List, Optional
import json

import stripe

from oms.config import get_settings
from oms.exceptions import UpstreamError, NotFoundError
from oms.utils.logger import log

settings = get_settings()


class InvalidSignature(Exception):
    """Webhook payload or signature did not verify"""


class StripeConnector:
    """Thin wrapper over the stripe SDK. Calls are synchronous."""

    name = "Stripe"

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook delivery and return the event as plain dicts.

        Raises:
            InvalidSignature: missing/bad signature or unparseable payload
        """
        if not signature:
            raise InvalidSignature("No Stripe signature found")
        if not self.webhook_secret:
            raise InvalidSignature("Stripe webhook secret not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise InvalidSignature(f"Invalid payload: {e}") from e
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(f"Invalid signature: {e}") from e
        return json.loads(payload)

    def _require_key(self):
        if not self.api_key:
            raise UpstreamError("Stripe API key not configured", service=self.name)

    def retrieve_customer(self, customer_id: str) -> Dict[str, Any]:
        self._require_key()
        try:
            customer = stripe.Customer.retrieve(customer_id, api_key=self.api_key)
        except stripe.InvalidRequestError as e:
            if getattr(e, "http_status", None) == 404:
                raise NotFoundError(f"Stripe customer {customer_id} not found") from e
            raise UpstreamError(e.user_message or str(e), service=self.name) from e
        except stripe.StripeError as e:
            log.error(f"Stripe customer lookup failed for {customer_id}: {e}")
            raise UpstreamError(e.user_message or str(e), service=self.name) from e
        if customer.get("deleted"):
            raise NotFoundError(f"Stripe customer {customer_id} was deleted")
        return customer

    def list_paid_invoices(self, customer_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        self._require_key()
        try:
            invoices = stripe.Invoice.list(customer=customer_id, status="paid", limit=limit, api_key=self.api_key)
        except stripe.StripeError as e:
            log.error(f"Stripe invoice listing failed for {customer_id}: {e}")
            raise UpstreamError(e.user_message or str(e), service=self.name) from e
        return list(invoices.data)

    def latest_subscription(self, customer_id: str) -> Optional[Dict[str, Any]]:
        self._require_key()
        try:
            subscriptions = stripe.Subscription.list(
                customer=customer_id, status="all", limit=1, api_key=self.api_key
            )
        except stripe.StripeError as e:
            log.error(f"Stripe subscription lookup failed for {customer_id}: {e}")
            raise UpstreamError(e.user_message or str(e), service=self.name) from e
        return subscriptions.data[0] if subscriptions.data else None
