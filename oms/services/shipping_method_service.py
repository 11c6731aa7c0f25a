"""
Shipping methods catalog.

Methods are synced from SendCloud into the shipping_methods table and
served from there, filtered by destination country. Reads go through a
TTL cache owned by the application; any failure falls back to a static
default list so the order screens keep working.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from oms.connectors.sendcloud_connector import SendcloudConnector
from oms.models.base import commit
from oms.models.shipping_method import ShippingMethod
from oms.utils.country import normalize_country
from oms.utils.logger import log
from oms.utils.response_cache import TTLCache

CACHE_PREFIX = "shipping_methods:"

DOMESTIC_METHOD = "DHL Express Domestic 0-70kg"
WORLDWIDE_METHOD = "DHL Express Worldwide 0-70kg - incoterm DAP"
ECONOMY_METHOD = "DHL Express Economy Select 0-70kg"

# Destination -> the one method staff may use; everything else gets ECONOMY_METHOD
COUNTRY_METHODS = {
    "FR": DOMESTIC_METHOD,
    "CH": WORLDWIDE_METHOD,
    "GB": WORLDWIDE_METHOD,
    "US": WORLDWIDE_METHOD,
}

DEFAULT_SHIPPING_METHODS = [
    {"id": 1, "code": "standard", "name": "Standard", "display_order": 1, "active": True},
    {"id": 2, "code": "express", "name": "Express", "display_order": 2, "active": True},
    {"id": 3, "code": "priority", "name": "Priority", "display_order": 3, "active": True},
    {"id": 4, "code": "economy", "name": "Economy", "display_order": 4, "active": True},
]


def method_name_for_country(country: Optional[str]) -> Optional[str]:
    """Method name allowed for a destination; None means no filtering."""
    if not country or not country.strip():
        return None
    return COUNTRY_METHODS.get(normalize_country(country).upper(), ECONOMY_METHOD)


def method_out(method: ShippingMethod) -> Dict[str, Any]:
    return {
        "id": method.id,
        "name": method.name,
        "carrier": method.carrier,
        "min_weight": method.min_weight,
        "max_weight": method.max_weight,
        "service_point_input": method.service_point_input,
        "active": method.active,
    }


class ShippingMethodService:

    def __init__(self, db: Session, cache: TTLCache, carrier: Optional[SendcloudConnector] = None):
        self.db = db
        self.cache = cache
        self.carrier = carrier

    def _load(self, to_country: Optional[str]) -> List[Dict[str, Any]]:
        query = self.db.query(ShippingMethod).filter(ShippingMethod.active.is_(True))
        name = method_name_for_country(to_country)
        if name:
            query = query.filter(ShippingMethod.name == name)
        return [method_out(m) for m in query.order_by(ShippingMethod.name.asc()).all()]

    def list_methods(self, to_country: Optional[str] = None, bypass_cache: bool = False) -> Dict[str, Any]:
        """
        Returns:
            {"source": "database" | "default", "cached": bool, "data": [...]}
        """
        key = f"{CACHE_PREFIX}{normalize_country(to_country) if to_country else 'ALL'}"
        if not bypass_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return {**cached, "cached": True}

        try:
            methods = self._load(to_country)
        except Exception as e:
            log.error(f"Failed to load shipping methods, using defaults: {e}")
            return {"source": "default", "cached": False, "data": list(DEFAULT_SHIPPING_METHODS)}

        if not methods and not self.db.query(ShippingMethod.id).first():
            log.warning("Shipping methods catalog is empty, using defaults")
            return {"source": "default", "cached": False, "data": list(DEFAULT_SHIPPING_METHODS)}

        result = {"source": "database", "data": methods}
        self.cache.set(key, result)
        return {**result, "cached": False}

    async def sync_from_carrier(self) -> Dict[str, int]:
        """Upsert SendCloud's methods; methods it no longer returns are deactivated."""
        carrier = self.carrier or SendcloudConnector()
        remote = await carrier.list_shipping_methods()

        created = updated = 0
        seen = set()
        for item in remote:
            if item.get("id") is None:
                continue
            method_id = int(item["id"])
            if method_id in seen:
                continue
            seen.add(method_id)
            method = self.db.get(ShippingMethod, method_id)
            if method is None:
                method = ShippingMethod(id=method_id)
                self.db.add(method)
                created += 1
            else:
                updated += 1
            method.name = item.get("name") or f"Method {method_id}"
            method.carrier = item.get("carrier")
            method.min_weight = _float(item.get("min_weight"))
            method.max_weight = _float(item.get("max_weight"))
            method.service_point_input = item.get("service_point_input")
            method.active = True
            method.raw_data = item
            method.synced_at = datetime.utcnow()

        deactivated = 0
        for method in self.db.query(ShippingMethod).filter(ShippingMethod.active.is_(True)).all():
            if method.id not in seen:
                method.active = False
                deactivated += 1

        commit(self.db)
        self.cache.invalidate(CACHE_PREFIX)
        log.info(f"Shipping methods synced: {created} created, {updated} updated, {deactivated} deactivated")
        return {"synced": len(seen), "created": created, "updated": updated, "deactivated": deactivated}


def _float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
