"""
Run one delivery status batch against SendCloud.
Same work as the cron route, without the HTTP timeout.

Usage: python scripts/refresh_delivery_status.py [--limit 50] [--stale-hours 12]
"""
import asyncio
import argparse
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import timedelta

from oms.connectors.sendcloud_connector import SendcloudConnector
from oms.models.base import SessionLocal
from oms.services.delivery_status_service import DeliveryStatusService
from oms.config import get_settings

settings = get_settings()


async def refresh(limit: int, stale_hours: int):
    db = SessionLocal()
    try:
        service = DeliveryStatusService(db, SendcloudConnector())
        stale_after = timedelta(hours=stale_hours) if stale_hours > 0 else None
        batch = await service.refresh_batch(limit=limit, stale_after=stale_after)
    finally:
        db.close()

    summary = batch.to_dict()
    for result in summary["results"]:
        line = f"  {result['order_id']}: {result['outcome']}"
        if result["status"]:
            line += f" ({result['status']})"
        if result["error"]:
            line += f" error={result['error']}"
        print(line)
    print(f"Processed {summary['total_processed']}: {summary['updated']} updated, "
          f"{summary['not_found']} not found, {summary['failed']} failed")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Refresh SendCloud delivery statuses")
    parser.add_argument("--limit", type=int, default=settings.delivery_status_batch_limit)
    parser.add_argument("--stale-hours", type=int, default=0,
                        help="Only orders not checked in this many hours (0 = all)")
    args = parser.parse_args()
    asyncio.run(refresh(args.limit, args.stale_hours))
