"""
Delivery status polling tests.

Guards against:
1. Batch runs exceeding the requested limit
2. Delivered orders being polled again
3. A parcel unknown to SendCloud failing forever instead of being stamped as checked
"""
import asyncio
from datetime import date, datetime, timedelta

import pytest

from oms.exceptions import NotFoundError, ValidationError
from oms.models.activity import OrderActivity
from oms.services.delivery_status_service import DeliveryStatusService, RefreshOutcome

NOW = datetime(2026, 3, 2, 3, 0, 0)


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


def _service(db, carrier):
    return DeliveryStatusService(db, carrier, clock=lambda: NOW)


def _shipped(make_order, n, **overrides):
    fields = {
        "tracking_number": f"3SABCD{n}",
        "tracking_link": f"https://tracking.sendcloud.sc/forward?code=3SABCD{n}",
        "delivery_status": "Ready to send",
    }
    fields.update(overrides)
    return make_order(**fields)


# ────────────────────────────────────────────
# Single order
# ────────────────────────────────────────────

class TestRefreshStatus:

    def test_no_tracking_number_is_not_applicable(self, db, carrier, make_order):
        order = make_order(tracking_number=None)
        result = _run(_service(db, carrier).refresh_status(order.id))

        assert result.outcome == RefreshOutcome.NOT_APPLICABLE
        assert carrier.calls == []

    def test_latest_status_is_written(self, db, carrier, make_order):
        order = _shipped(make_order, 1)
        carrier.tracking["3SABCD1"] = {
            "expected_delivery_date": "2026-03-04",
            "statuses": [
                {"parent_status": "announced", "carrier_message": "Parcel announced"},
                {"parent_status": "en-route", "carrier_message": "Arrived at sorting center"},
            ],
        }

        result = _run(_service(db, carrier).refresh_status(order.id))

        db.refresh(order)
        assert result.outcome == RefreshOutcome.UPDATED
        assert result.previous_status == "Ready to send"
        assert order.delivery_status == "Arrived at sorting center"
        assert order.expected_delivery_date == date(2026, 3, 4)
        assert order.last_delivery_status_check == NOW
        assert len(order.sendcloud_tracking_history) == 2

        activity = db.query(OrderActivity).filter(OrderActivity.order_id == order.id).one()
        assert activity.action_type == "delivery_status_update"
        assert activity.changes["delivery_status"] == {
            "old_value": "Ready to send",
            "new_value": "Arrived at sorting center",
        }

    def test_parent_status_used_without_carrier_message(self, db, carrier, make_order):
        order = _shipped(make_order, 2)
        carrier.tracking["3SABCD2"] = {"statuses": [{"parent_status": "delivered", "carrier_message": ""}]}

        _run(_service(db, carrier).refresh_status(order.id))

        db.refresh(order)
        assert order.delivery_status == "delivered"

    def test_same_status_is_unchanged(self, db, carrier, make_order):
        order = _shipped(make_order, 3)
        carrier.tracking["3SABCD3"] = {"statuses": [{"carrier_message": "Ready to send"}]}

        result = _run(_service(db, carrier).refresh_status(order.id))

        assert result.outcome == RefreshOutcome.UNCHANGED
        assert db.query(OrderActivity).count() == 0

    def test_not_found_keeps_status_and_stamps_check(self, db, carrier, make_order):
        order = _shipped(make_order, 4)
        carrier.missing_tracking.add("3SABCD4")

        result = _run(_service(db, carrier).refresh_status(order.id))

        db.refresh(order)
        assert result.outcome == RefreshOutcome.NOT_FOUND
        assert order.delivery_status == "Ready to send"
        assert order.last_delivery_status_check == NOW

    def test_unknown_order(self, db, carrier):
        with pytest.raises(NotFoundError):
            _run(_service(db, carrier).refresh_status("missing"))


# ────────────────────────────────────────────
# Batch
# ────────────────────────────────────────────

class TestRefreshBatch:

    def test_respects_limit(self, db, carrier, make_order):
        for n in range(5):
            _shipped(make_order, n)

        batch = _run(_service(db, carrier).refresh_batch(limit=3))

        assert len(batch.results) == 3
        assert len(carrier.call_names()) == 3

    def test_never_touches_delivered_orders(self, db, carrier, make_order):
        delivered = _shipped(make_order, 10, delivery_status="Delivered")
        collected = _shipped(make_order, 11, delivery_status="Shipment collected by customer")
        pending = _shipped(make_order, 12)

        batch = _run(_service(db, carrier).refresh_batch(limit=50))

        polled = [value for name, value in carrier.calls if name == "get_tracking"]
        assert polled == [pending.tracking_number]
        assert {r.order_id for r in batch.results} == {pending.id}
        assert delivered.id not in {r.order_id for r in batch.results}
        assert collected.id not in {r.order_id for r in batch.results}

    def test_delivered_orders_are_filtered_in_the_query(self, db, carrier, make_order):
        _shipped(make_order, 13, delivery_status="DELIVERED")
        _shipped(make_order, 14, delivery_status="Shipment collected by customer")
        not_delivered = _shipped(make_order, 15, delivery_status="Not delivered: address unknown")
        undelivered = _shipped(make_order, 16, delivery_status="Undelivered")
        pending = _shipped(make_order, 17)
        unset = _shipped(make_order, 18, delivery_status=None)

        candidates = _service(db, carrier).candidate_query().all()

        assert {o.id for o in candidates} == {not_delivered.id, undelivered.id, pending.id, unset.id}

    def test_negated_statuses_are_still_polled(self, db, carrier, make_order):
        failed = _shipped(make_order, 19, delivery_status="Not delivered")

        batch = _run(_service(db, carrier).refresh_batch(limit=50))

        assert [r.order_id for r in batch.results] == [failed.id]

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_rejected(self, db, carrier, make_order, limit):
        _shipped(make_order, 60)
        with pytest.raises(ValidationError) as exc_info:
            _run(_service(db, carrier).refresh_batch(limit=limit))
        assert exc_info.value.fields == ["limit"]
        assert carrier.calls == []

    def test_skips_orders_without_tracking_link(self, db, carrier, make_order):
        make_order(tracking_number="3SABCD20", tracking_link=None)
        batch = _run(_service(db, carrier).refresh_batch(limit=50))
        assert batch.results == []

    def test_least_recently_checked_first(self, db, carrier, make_order):
        recent = _shipped(make_order, 30, last_delivery_status_check=NOW - timedelta(hours=1))
        old = _shipped(make_order, 31, last_delivery_status_check=NOW - timedelta(days=3))
        never = _shipped(make_order, 32)

        _run(_service(db, carrier).refresh_batch(limit=2))

        polled = [value for name, value in carrier.calls if name == "get_tracking"]
        assert polled == [never.tracking_number, old.tracking_number]
        assert recent.tracking_number not in polled

    def test_stale_after_skips_recent_checks(self, db, carrier, make_order):
        _shipped(make_order, 40, last_delivery_status_check=NOW - timedelta(hours=2))
        stale = _shipped(make_order, 41, last_delivery_status_check=NOW - timedelta(hours=13))

        batch = _run(_service(db, carrier).refresh_batch(limit=50, stale_after=timedelta(hours=12)))

        assert [r.order_id for r in batch.results] == [stale.id]

    def test_one_failure_does_not_stop_the_batch(self, db, carrier, make_order):
        first = _shipped(make_order, 50, last_delivery_status_check=NOW - timedelta(days=2))
        second = _shipped(make_order, 51, last_delivery_status_check=NOW - timedelta(days=1))
        carrier.tracking["3SABCD51"] = {"statuses": [{"carrier_message": "Out for delivery"}]}

        original = carrier.get_tracking

        async def flaky(tracking_number):
            if tracking_number == first.tracking_number:
                raise RuntimeError("connection reset")
            return await original(tracking_number)

        carrier.get_tracking = flaky
        batch = _run(_service(db, carrier).refresh_batch(limit=50))

        outcomes = {r.order_id: r.outcome for r in batch.results}
        assert outcomes[first.id] == RefreshOutcome.FAILED
        assert outcomes[second.id] == RefreshOutcome.UPDATED
        summary = batch.to_dict()
        assert summary["failed"] == 1
        assert summary["updated"] == 1
        assert summary["total_processed"] == 2
