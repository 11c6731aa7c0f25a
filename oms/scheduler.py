"""
Scheduler for the nightly delivery status poll

Uses APScheduler; the cron expression comes from DELIVERY_STATUS_CRON
(Europe/Paris time, where the warehouse ships from).
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from datetime import timedelta
from zoneinfo import ZoneInfo
import time

from oms.connectors.sendcloud_connector import SendcloudConnector
from oms.models.base import SessionLocal
from oms.services.delivery_status_service import DeliveryStatusService
from oms.config import get_settings
from oms.utils.logger import log

PARIS_TZ = ZoneInfo("Europe/Paris")

settings = get_settings()
scheduler = AsyncIOScheduler()


async def refresh_delivery_statuses():
    """Poll SendCloud for undelivered orders not checked in the recheck window"""
    start = time.time()
    db = SessionLocal()
    try:
        log.info("Starting scheduled delivery status refresh...")
        service = DeliveryStatusService(db, SendcloudConnector())
        batch = await service.refresh_batch(
            limit=settings.delivery_status_batch_limit,
            stale_after=timedelta(hours=settings.delivery_status_recheck_hours),
        )
        summary = batch.to_dict()
        log.info(
            f"Scheduled delivery status refresh done in {time.time() - start:.1f}s: "
            f"{summary['total_processed']} processed, {summary['updated']} updated, {summary['failed']} failed"
        )
    except Exception as e:
        log.error(f"Scheduled delivery status refresh error: {str(e)}")
    finally:
        db.close()


def setup_scheduler():
    """Register jobs. Delivery status: DELIVERY_STATUS_CRON, default daily 3:00am."""
    scheduler.add_job(
        refresh_delivery_statuses,
        trigger=CronTrigger.from_crontab(settings.delivery_status_cron, timezone=PARIS_TZ),
        id='delivery_status_refresh',
        name='SendCloud Delivery Status Refresh',
        replace_existing=True,
        max_instances=1
    )


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    scheduler.shutdown()
    log.info("Scheduler stopped")
