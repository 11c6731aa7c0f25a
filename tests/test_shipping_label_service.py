"""
Shipping label orchestration tests.

Guards against:
1. Carrier calls made for orders that fail validation
2. A paid SendCloud label being reported as a failure because saving the order failed
3. Return requests to customs countries going out without line items
"""
import asyncio

import pytest

from oms.exceptions import NotFoundError, ValidationError
from oms.models.activity import OrderActivity
from oms.models.order import Order
from oms.models.order_pack import OrderPack
from oms.services.instructions import Instruction, compute_instruction
from oms.services.shipping_label_service import (
    PERSISTENCE_WARNING,
    READY_TO_SEND,
    ShippingLabelService,
)


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


def _activities(db, order_id, action_type):
    return (
        db.query(OrderActivity)
        .filter(OrderActivity.order_id == order_id, OrderActivity.action_type == action_type)
        .all()
    )


def _address(country, **overrides):
    address = {
        "name": "Jeanne Martin",
        "email": "jeanne@example.com",
        "phone": "+441234567890",
        "line1": "Baker Street",
        "house_number": "221B",
        "city": "London",
        "postal_code": "NW1 6XE",
        "country": country,
    }
    address.update(overrides)
    return address


# ────────────────────────────────────────────
# Outbound label
# ────────────────────────────────────────────

class TestCreateLabel:

    def test_to_ship_becomes_shipped(self, db, carrier, make_order):
        order = make_order(tracking_number=None)
        assert compute_instruction(order) == Instruction.TO_SHIP

        result = _run(ShippingLabelService(db, carrier).create_label(order.id))

        db.refresh(order)
        assert result.persisted
        assert result.warning is None
        assert order.tracking_number == result.tracking_number
        assert order.tracking_number is not None
        assert order.delivery_status == READY_TO_SEND
        assert order.shipping_id == result.shipping_id
        assert order.label_url == result.label_url
        assert compute_instruction(order) == Instruction.SHIPPED

    def test_activity_records_carrier_ids(self, db, carrier, make_order):
        order = make_order()
        result = _run(ShippingLabelService(db, carrier).create_label(order.id))

        activities = _activities(db, order.id, "label_created")
        assert len(activities) == 1
        assert activities[0].changes["shipping_id"] == result.shipping_id
        assert activities[0].changes["tracking_number"] == result.tracking_number

    def test_payload_uses_pack_weight_and_method(self, db, carrier, make_order):
        order = make_order(order_pack_quantity=2, shipping_method=8)
        _run(ShippingLabelService(db, carrier).create_label(order.id))

        name, payload = carrier.calls[0]
        assert name == "create_parcel"
        assert payload["parcel"]["weight"] == "2.500"
        assert payload["parcel"]["shipment"] == {"id": 8}
        assert payload["parcel"]["country"] == "FR"

    def test_explicit_method_overrides_stored_one(self, db, carrier, make_order):
        order = make_order(shipping_method=None)
        _run(ShippingLabelService(db, carrier).create_label(order.id, shipping_method_id=1234))

        assert carrier.calls[0][1]["parcel"]["shipment"] == {"id": 1234}
        db.refresh(order)
        assert order.shipping_method == 1234

    def test_country_name_is_normalized(self, db, carrier, make_order):
        order = make_order(country="France")
        result = _run(ShippingLabelService(db, carrier).create_label(order.id))

        assert carrier.calls[0][1]["parcel"]["country"] == "FR"
        assert result.warning is None
        db.refresh(order)
        assert order.country == "FR"

    def test_unmapped_country_warns_but_ships(self, db, carrier, make_order):
        order = make_order(country="Atlantis")
        result = _run(ShippingLabelService(db, carrier).create_label(order.id))

        assert carrier.call_names() == ["create_parcel"]
        assert "Atlantis" in result.warning

    @pytest.mark.parametrize("field_name", [
        "shipping_address_line1",
        "city",
        "postal_code",
        "country",
        "order_pack_list_id",
        "name",
        "email",
        "phone",
        "shipping_method",
    ])
    def test_missing_field_rejected_without_network(self, db, carrier, make_order, field_name):
        order = make_order(**{field_name: None})

        with pytest.raises(ValidationError) as exc_info:
            _run(ShippingLabelService(db, carrier).create_label(order.id))

        assert field_name in exc_info.value.fields
        assert carrier.calls == []

    def test_unpaid_order_rejected(self, db, carrier, make_order):
        order = make_order(paid=False)
        with pytest.raises(ValidationError):
            _run(ShippingLabelService(db, carrier).create_label(order.id))
        assert carrier.calls == []

    def test_unknown_order(self, db, carrier):
        with pytest.raises(NotFoundError):
            _run(ShippingLabelService(db, carrier).create_label("missing"))

    def test_persistence_failure_still_reports_success(self, db, carrier, make_order, monkeypatch):
        order = make_order()
        service = ShippingLabelService(db, carrier)

        def failing_commit(session):
            raise RuntimeError("database is locked")

        monkeypatch.setattr("oms.services.shipping_label_service.commit", failing_commit)
        result = _run(service.create_label(order.id))

        assert result.to_dict()["success"] is True
        assert result.persisted is False
        assert result.tracking_number is not None
        assert PERSISTENCE_WARNING in result.warning


# ────────────────────────────────────────────
# Return label
# ────────────────────────────────────────────

class TestCreateReturnLabel:

    def test_gb_return_without_items_rejected_without_network(self, db, carrier, make_order):
        order = make_order(country="GB")

        with pytest.raises(ValidationError) as exc_info:
            _run(ShippingLabelService(db, carrier).create_return_label(
                order.id,
                from_address=_address("GB"),
                parcel_weight="1.000",
                return_reason="defective",
                items=[],
            ))

        assert exc_info.value.fields == ["items"]
        assert carrier.calls == []

    def test_fr_return_does_not_require_items(self, db, carrier, make_order):
        order = make_order()

        result = _run(ShippingLabelService(db, carrier).create_return_label(
            order.id,
            from_address=_address("FR", city="Lyon", postal_code="69001"),
            parcel_weight="1.000",
            return_reason="defective",
            items=[],
        ))

        assert result.return_id == "777"
        assert result.parcel_id == "888"
        assert carrier.call_names() == ["create_return", "get_parcel"]
        payload = carrier.calls[0][1]
        assert "parcel_items" not in payload
        assert payload["to_address"]["country_code"] == "FR"

        db.refresh(order)
        assert order.sendcloud_return_id == "777"
        assert order.sendcloud_return_parcel_id == "888"
        assert order.sendcloud_return_reason == "defective"
        assert order.sendcloud_return_label_url.endswith("/888")
        assert compute_instruction(order) == Instruction.RETURN_INITIATED
        assert len(_activities(db, order.id, "return_created")) == 1

    def test_gb_return_with_items_sends_customs_lines(self, db, carrier, make_order):
        order = make_order(country="GB")
        items = [{
            "description": "Starter pack",
            "quantity": 1,
            "value": 49,
            "weight": 0.5,
            "hs_code": "852351",
            "origin_country": "FR",
        }]

        _run(ShippingLabelService(db, carrier).create_return_label(
            order.id,
            from_address=_address("United Kingdom"),
            parcel_weight="0.800",
            return_reason="upgrade",
            items=items,
        ))

        payload = carrier.calls[0][1]
        assert payload["from_address"]["country_code"] == "GB"
        assert payload["parcel_items"][0]["hs_code"] == "852351"

    def test_decimal_string_item_quantity_is_sent_as_integer(self, db, carrier, make_order):
        order = make_order(country="GB")
        items = [{
            "description": "Starter pack",
            "quantity": "1.0",
            "value": "49",
            "weight": "0.5",
            "hs_code": "852351",
            "origin_country": "FR",
        }]

        result = _run(ShippingLabelService(db, carrier).create_return_label(
            order.id,
            from_address=_address("GB"),
            parcel_weight="0.800",
            return_reason="defective",
            items=items,
        ))

        assert result.return_id is not None
        assert carrier.calls[0][1]["parcel_items"][0]["quantity"] == 1

    def test_defaults_to_order_address_and_warehouse(self, db, carrier, make_order):
        order = make_order()
        _run(ShippingLabelService(db, carrier).create_return_label(
            order.id, parcel_weight="1", return_reason="other",
        ))

        payload = carrier.calls[0][1]
        assert payload["from_address"]["city"] == "Paris"
        assert payload["to_address"]["city"] == "Vannes"
        assert payload["order_number"] == order.id


# ────────────────────────────────────────────
# Upgrade and carrier lookups
# ────────────────────────────────────────────

class TestUpgradeAndLookups:

    def test_upgrade_swaps_pack_and_creates_label(self, db, carrier, make_order):
        order = make_order(tracking_number="OLD123", shipping_id="1", label_url="https://old")
        bigger = OrderPack(value="pro-1", label="Pro pack", weight=3.0)
        db.add(bigger)
        db.commit()

        result = _run(ShippingLabelService(db, carrier).create_upgrade_label(order.id, bigger.id, "3.2", 1))

        db.refresh(order)
        assert order.order_pack == "pro-1"
        assert order.reason_for_shipment == "upgrade"
        assert order.weight == "3.200"
        assert order.tracking_number == result.tracking_number != "OLD123"
        assert carrier.calls[0][1]["parcel"]["weight"] == "3.200"
        assert len(_activities(db, order.id, "upgrade")) == 1

    def test_upgrade_accepts_decimal_string_quantity(self, db, carrier, make_order):
        order = make_order()
        bigger = OrderPack(value="pro-2", label="Pro pack x2", weight=1.5)
        db.add(bigger)
        db.commit()

        result = _run(ShippingLabelService(db, carrier).create_upgrade_label(order.id, bigger.id, "1.5", "2.0"))

        db.refresh(order)
        assert result.tracking_number is not None
        assert order.order_pack_quantity == 2

    def test_upgrade_validation_before_anything(self, db, carrier, make_order):
        order = make_order()
        with pytest.raises(ValidationError) as exc_info:
            _run(ShippingLabelService(db, carrier).create_upgrade_label(order.id, None, "0", 0))
        assert exc_info.value.fields == ["order_pack_list_id", "weight", "quantity"]
        assert carrier.calls == []

    def test_refresh_tracking_link(self, db, carrier, make_order):
        order = make_order(shipping_id="4242")
        _run(ShippingLabelService(db, carrier).refresh_tracking_link(order.id))

        db.refresh(order)
        assert order.tracking_link.endswith("3SABCD4242")
        assert order.tracking_number == "3SABCD4242"

    def test_refresh_tracking_link_requires_parcel(self, db, carrier, make_order):
        order = make_order(shipping_id=None)
        with pytest.raises(ValidationError):
            _run(ShippingLabelService(db, carrier).refresh_tracking_link(order.id))

    def test_refresh_return_status(self, db, carrier, make_order):
        order = make_order(sendcloud_return_id="777")
        carrier.return_statuses["777"] = {"status_history": [{"status": "announced"}, {"status": "in_transit"}]}

        status = _run(ShippingLabelService(db, carrier).refresh_return_status(order.id))

        db.refresh(order)
        assert status == "in_transit"
        assert order.sendcloud_return_status == "in_transit"


def test_order_row_survives_rollback_of_failed_save(db, carrier, make_order, monkeypatch):
    """After a failed save the session is usable and the order still exists."""
    order = make_order()
    order_id = order.id

    def failing_commit(session):
        raise RuntimeError("boom")

    monkeypatch.setattr("oms.services.shipping_label_service.commit", failing_commit)
    _run(ShippingLabelService(db, carrier).create_label(order_id))

    assert db.query(Order).filter(Order.id == order_id).count() == 1
