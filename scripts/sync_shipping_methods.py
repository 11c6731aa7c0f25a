"""
Sync the SendCloud shipping methods catalog into the database.
Runs directly (not through the API), e.g. from a deploy hook.

Usage: python scripts/sync_shipping_methods.py
"""
import asyncio
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from oms.connectors.sendcloud_connector import SendcloudConnector
from oms.models.base import SessionLocal, init_db
from oms.services.shipping_method_service import ShippingMethodService
from oms.utils.response_cache import TTLCache


async def sync():
    init_db()
    db = SessionLocal()
    try:
        # The API process keeps its own cache; entries there expire on their TTL
        service = ShippingMethodService(db, TTLCache(), SendcloudConnector())
        counts = await service.sync_from_carrier()
    finally:
        db.close()

    print(f"Synced {counts['synced']} shipping methods: "
          f"{counts['created']} created, {counts['updated']} updated, {counts['deactivated']} deactivated")


if __name__ == "__main__":
    asyncio.run(sync())
