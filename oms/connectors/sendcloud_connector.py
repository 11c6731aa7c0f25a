"""
SendCloud carrier connector.

API structure (HTTP Basic auth, key:secret):
  - POST /v2/parcels                      create parcel + label
  - GET  /v2/parcels/{id}                 parcel details (status, label urls)
  - GET  /v2/tracking/{tracking_number}   tracking history
  - POST /v3/returns                      create return (returns return_id, parcel_id)
  - GET  /v3/returns/{id}                 return details and status history
  - GET  /v2/shipping_methods             methods available to the account
  - GET  /v2/labels/normal_printer/{id}   label PDF
"""
from typing import Any, Dict, List, Mapping, Optional
from decimal import Decimal

import aiohttp

from oms.connectors.base_connector import BaseConnector
from oms.config import get_settings
from oms.exceptions import UpstreamError
from oms.utils.logger import log

settings = get_settings()


def format_weight(weight: Any) -> str:
    """SendCloud wants kilograms as a string with three decimals."""
    return f"{Decimal(str(weight)):.3f}"


def build_parcel_payload(order: Any, shipping_method_id: int, weight: Any) -> Dict[str, Any]:
    """Body of POST /v2/parcels for an order (ORM row or mapping)."""
    def value(name):
        if isinstance(order, Mapping):
            return order.get(name)
        return getattr(order, name, None)

    parcel = {
        "name": value("name"),
        "address": value("shipping_address_line1"),
        "address_2": value("shipping_address_line2") or "",
        "house_number": value("house_number") or "",
        "city": value("city"),
        "postal_code": value("postal_code"),
        "country": value("country"),
        "email": value("email") or "",
        "telephone": value("phone") or "",
        "order_number": str(value("id") or ""),
        "weight": format_weight(weight),
        "request_label": True,
        "shipment": {"id": int(shipping_method_id)},
    }
    return {"parcel": parcel}


def _return_address(address: Mapping) -> Dict[str, Any]:
    return {
        "name": address.get("name"),
        "company_name": address.get("company_name") or "",
        "address_line_1": address.get("line1"),
        "address_line_2": address.get("line2") or "",
        "house_number": address.get("house_number") or "",
        "city": address.get("city"),
        "postal_code": address.get("postal_code"),
        "country_code": address.get("country"),
        "phone_number": address.get("phone") or "",
        "email": address.get("email") or "",
    }


def build_return_payload(
    from_address: Mapping,
    to_address: Mapping,
    parcel_weight: Any,
    items: Optional[List[Mapping]] = None,
    order_number: Optional[str] = None,
) -> Dict[str, Any]:
    """Body of POST /v3/returns. Addresses must already carry 2-letter country codes."""
    ship_with: Dict[str, Any] = {
        "shipping_product_code": settings.sendcloud_return_product_code,
        "functionalities": {
            "carrier_insurance": False,
            "labelless": False,
            "direct_contract_only": True,
            "first_mile": "pickup_dropoff",
        },
    }
    if settings.sendcloud_return_contract_id:
        ship_with["contract"] = settings.sendcloud_return_contract_id

    payload: Dict[str, Any] = {
        "from_address": _return_address(from_address),
        "to_address": _return_address(to_address),
        "weight": {"value": float(parcel_weight), "unit": "kg"},
        "ship_with": ship_with,
    }
    if order_number:
        payload["order_number"] = str(order_number)
    if items:
        payload["parcel_items"] = [
            {
                "description": item.get("description"),
                "quantity": int(Decimal(str(item.get("quantity")))),
                "weight": {"value": float(item.get("weight")), "unit": "kg"},
                "price": {"value": float(item.get("value")), "currency": item.get("currency") or "EUR"},
                "hs_code": item.get("hs_code"),
                "origin_country": item.get("origin_country"),
            }
            for item in items
        ]
    return payload


def latest_tracking_status(tracking: Mapping) -> Optional[str]:
    """Latest status text from a /v2/tracking response."""
    statuses = tracking.get("statuses") or []
    if not statuses:
        return None
    latest = statuses[-1]
    return latest.get("carrier_message") or latest.get("parent_status") or None


class SendcloudConnector(BaseConnector):
    """Connector for the SendCloud shipping platform."""

    def __init__(self, api_key: Optional[str] = None, api_secret: Optional[str] = None, base_url: Optional[str] = None):
        super().__init__("SendCloud")
        self.api_key = api_key if api_key is not None else settings.sendcloud_api_key
        self.api_secret = api_secret if api_secret is not None else settings.sendcloud_api_secret
        self.base_url = (base_url or settings.sendcloud_base_url).rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def _auth(self) -> aiohttp.BasicAuth:
        return aiohttp.BasicAuth(self.api_key, self.api_secret)

    async def create_parcel(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a parcel with a label. Returns the parcel object."""
        order_number = payload.get("parcel", {}).get("order_number")
        log.info(f"Creating SendCloud parcel for order {order_number}")
        data = await self._request("POST", f"{self.base_url}/v2/parcels", json=payload)
        parcel = (data or {}).get("parcel")
        if not parcel or not parcel.get("id"):
            raise UpstreamError("SendCloud response missing parcel", service=self.name)
        return parcel

    async def get_parcel(self, parcel_id: Any) -> Dict[str, Any]:
        data = await self._request(
            "GET",
            f"{self.base_url}/v2/parcels/{parcel_id}",
            not_found_message=f"Parcel {parcel_id} not found at SendCloud",
        )
        parcel = (data or {}).get("parcel")
        if not parcel:
            raise UpstreamError(f"No parcel found with id {parcel_id}", service=self.name)
        return parcel

    async def get_tracking(self, tracking_number: str) -> Dict[str, Any]:
        """Tracking history; raises CarrierNotFound on 404."""
        return await self._request(
            "GET",
            f"{self.base_url}/v2/tracking/{tracking_number}",
            not_found_message=f"Tracking number {tracking_number} not found at SendCloud",
        )

    async def create_return(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a return. Returns {"return_id", "parcel_id"}."""
        log.info(f"Creating SendCloud return for order {payload.get('order_number')}")
        data = await self._request("POST", f"{self.base_url}/v3/returns", json=payload)
        if not data or not data.get("return_id") or not data.get("parcel_id"):
            raise UpstreamError("SendCloud response missing IDs after return creation", service=self.name)
        return {"return_id": data["return_id"], "parcel_id": data["parcel_id"]}

    async def get_return(self, return_id: Any) -> Dict[str, Any]:
        data = await self._request(
            "GET",
            f"{self.base_url}/v3/returns/{return_id}",
            not_found_message=f"Return {return_id} not found at SendCloud",
        )
        return (data or {}).get("data", data) or {}

    async def list_shipping_methods(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"{self.base_url}/v2/shipping_methods")
        methods = (data or {}).get("shipping_methods") or []
        log.info(f"Fetched {len(methods)} shipping methods from SendCloud")
        return methods

    async def download_label(self, parcel_id: Any) -> bytes:
        """Label PDF in A4 (normal printer) format."""
        return await self._request(
            "GET",
            f"{self.base_url}/v2/labels/normal_printer/{parcel_id}",
            params={"start_from": 0},
            raw=True,
            not_found_message=f"Label for parcel {parcel_id} not found at SendCloud",
        )


def return_status(return_data: Mapping) -> Optional[str]:
    """Latest status of a /v3/returns/{id} response."""
    history = return_data.get("status_history") or []
    if history:
        latest = history[-1]
        if isinstance(latest, Mapping):
            return latest.get("status") or latest.get("message")
        return str(latest)
    return return_data.get("status")
