"""
Delivery status polling against SendCloud tracking.

Single-order refresh backs the "refresh" button; the batch variant runs
from the cron route and the nightly scheduler job. The batch is
sequential, one carrier call at a time.
"""
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from oms.config import get_settings
from oms.connectors.sendcloud_connector import SendcloudConnector, latest_tracking_status
from oms.exceptions import CarrierNotFound, NotFoundError, ValidationError
from oms.models.base import commit
from oms.models.order import Order
from oms.services.instructions import DELIVERED_MARKERS, NEGATED_MARKERS, is_delivered
from oms.services.order_service import apply_changes, record_activity
from oms.utils.logger import log

settings = get_settings()


class RefreshOutcome(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"            # carrier has no record; last check still stamped
    NOT_APPLICABLE = "not_applicable"  # no tracking number yet
    FAILED = "failed"                  # batch only


@dataclass
class StatusRefresh:
    order_id: str
    outcome: RefreshOutcome
    status: Optional[str] = None
    previous_status: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["outcome"] = self.outcome.value
        if self.expected_delivery_date:
            data["expected_delivery_date"] = self.expected_delivery_date.isoformat()
        return data


@dataclass
class BatchRefresh:
    results: List[StatusRefresh] = field(default_factory=list)

    def count(self, outcome: RefreshOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_processed": len(self.results),
            "updated": self.count(RefreshOutcome.UPDATED),
            "unchanged": self.count(RefreshOutcome.UNCHANGED),
            "not_found": self.count(RefreshOutcome.NOT_FOUND),
            "not_applicable": self.count(RefreshOutcome.NOT_APPLICABLE),
            "failed": self.count(RefreshOutcome.FAILED),
            "results": [r.to_dict() for r in self.results],
        }


def parse_expected_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        log.debug(f"Unparseable expected delivery date {value!r}")
        return None


class DeliveryStatusService:
    """Pulls carrier tracking status onto orders"""

    def __init__(
        self,
        db: Session,
        carrier: Optional[SendcloudConnector] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.carrier = carrier or SendcloudConnector()
        self.clock = clock

    async def refresh_status(self, order_id: str) -> StatusRefresh:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return await self._refresh(order)

    async def _refresh(self, order: Order) -> StatusRefresh:
        previous = order.delivery_status
        if not order.tracking_number:
            return StatusRefresh(order.id, RefreshOutcome.NOT_APPLICABLE, previous_status=previous)

        now = self.clock()
        try:
            tracking = await self.carrier.get_tracking(order.tracking_number)
        except CarrierNotFound:
            # Cancelled or never-scanned parcels keep their status; only the check time moves
            order.last_delivery_status_check = now
            commit(self.db)
            return StatusRefresh(order.id, RefreshOutcome.NOT_FOUND, status=previous, previous_status=previous)

        status = latest_tracking_status(tracking)
        expected = parse_expected_date(tracking.get("expected_delivery_date"))
        order.last_delivery_status_check = now
        order.expected_delivery_date = expected
        order.sendcloud_tracking_history = tracking.get("statuses") or []

        outcome = RefreshOutcome.UNCHANGED
        if status and status != previous:
            changes = apply_changes(order, {"delivery_status": status})
            record_activity(self.db, order.id, "delivery_status_update", changes)
            outcome = RefreshOutcome.UPDATED
            log.info(f"Order {order.id} delivery status: {previous!r} -> {status!r}")
        commit(self.db)
        return StatusRefresh(
            order.id,
            outcome,
            status=status or previous,
            previous_status=previous,
            expected_delivery_date=expected,
        )

    def candidate_query(self, stale_after: Optional[timedelta] = None):
        """
        Orders with a tracking link whose status does not read as delivered,
        least recently checked first (never-checked first of all).
        """
        status = func.lower(Order.delivery_status)
        query = self.db.query(Order).filter(
            Order.tracking_link.isnot(None),
            or_(
                Order.delivery_status.is_(None),
                ~or_(*[status.like(f"%{marker}%") for marker in DELIVERED_MARKERS]),
                *[status.like(f"%{marker}%") for marker in NEGATED_MARKERS],
            ),
        )
        if stale_after is not None:
            threshold = self.clock() - stale_after
            query = query.filter(
                (Order.last_delivery_status_check.is_(None))
                | (Order.last_delivery_status_check < threshold)
            )
        return query.order_by(
            Order.last_delivery_status_check.asc().nulls_first(),
            Order.created_at.asc(),
        )

    def select_batch(self, limit: int, stale_after: Optional[timedelta] = None) -> List[Order]:
        # SQL lower() may fold non-ASCII statuses differently from Python
        selected = []
        for order in self.candidate_query(stale_after).limit(limit):
            if is_delivered(order.delivery_status):
                continue
            selected.append(order)
            if len(selected) >= limit:
                break
        return selected

    async def refresh_batch(self, limit: Optional[int] = None, stale_after: Optional[timedelta] = None) -> BatchRefresh:
        if limit is None:
            limit = settings.delivery_status_batch_limit
        if limit < 1:
            raise ValidationError("Batch limit must be at least 1", fields=["limit"])
        orders = self.select_batch(limit, stale_after)
        log.info(f"Refreshing delivery status for {len(orders)} orders (limit {limit})")

        batch = BatchRefresh()
        for order in orders:
            order_id = order.id
            try:
                batch.results.append(await self._refresh(order))
            except Exception as e:
                self.db.rollback()
                log.error(f"Delivery status refresh failed for order {order_id}: {e}")
                batch.results.append(StatusRefresh(order_id, RefreshOutcome.FAILED, error=str(e)))

        log.info(
            f"Delivery status batch done: {batch.count(RefreshOutcome.UPDATED)} updated, "
            f"{batch.count(RefreshOutcome.FAILED)} failed"
        )
        return batch
