"""FastAPI dependencies for the external clients and the shared cache"""
from fastapi import Request

from oms.connectors.hubspot_connector import HubspotConnector
from oms.connectors.sendcloud_connector import SendcloudConnector
from oms.connectors.stripe_connector import StripeConnector
from oms.utils.response_cache import TTLCache


def get_carrier() -> SendcloudConnector:
    return SendcloudConnector()


def get_stripe() -> StripeConnector:
    return StripeConnector()


def get_crm() -> HubspotConnector:
    return HubspotConnector()


def get_shipping_methods_cache(request: Request) -> TTLCache:
    return request.app.state.shipping_methods_cache
