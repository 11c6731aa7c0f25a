"""
HubSpot CRM connector.

Only the owner lookup is used:
  1. POST /crm/v3/objects/contacts/search  (filter email EQ, property hubspot_owner_id)
  2. GET  /crm/v3/owners/{owner_id}
"""
from typing import Any, Dict, Optional

from oms.connectors.base_connector import BaseConnector
from oms.config import get_settings
from oms.exceptions import NotFoundError
from oms.utils.logger import log

settings = get_settings()


class HubspotConnector(BaseConnector):
    """Connector for HubSpot contact owners."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        super().__init__("HubSpot")
        self.api_key = api_key if api_key is not None else settings.hubspot_api_key
        self.base_url = (base_url or settings.hubspot_base_url).rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def find_owner_by_email(self, email: str) -> Dict[str, Any]:
        """
        Owner of the contact with this email.

        Returns:
            {"id", "name", "email", "user_id"}

        Raises:
            NotFoundError: no contact, or the contact has no owner
        """
        search = {
            "filterGroups": [{
                "filters": [{"propertyName": "email", "operator": "EQ", "value": email}]
            }],
            "properties": ["hubspot_owner_id"],
        }
        data = await self._request("POST", f"{self.base_url}/crm/v3/objects/contacts/search", json=search)
        results = (data or {}).get("results") or []
        if not results:
            raise NotFoundError("Contact not found in HubSpot")

        owner_id = (results[0].get("properties") or {}).get("hubspot_owner_id")
        if not owner_id:
            raise NotFoundError("No owner assigned to this contact")

        owner = await self._request("GET", f"{self.base_url}/crm/v3/owners/{owner_id}")
        name = f"{owner.get('firstName') or ''} {owner.get('lastName') or ''}".strip()
        log.info(f"HubSpot owner for {email}: {owner_id}")
        return {
            "id": str(owner.get("id") or owner_id),
            "name": name,
            "email": owner.get("email"),
            "user_id": owner.get("userId"),
        }
