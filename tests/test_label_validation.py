"""
Validation gate tests.

Guards against:
1. A label request reaching SendCloud with a required field missing
2. Return requests to customs countries going out without line items
3. Missing fields being reported one at a time instead of all at once
"""
import pytest

from oms.exceptions import ValidationError
from oms.services.validation_service import (
    ReturnReason,
    requires_customs,
    validate_label_order,
    validate_return_request,
    validate_upgrade_request,
)

READY_ORDER = {
    "name": "Jeanne Martin",
    "email": "jeanne@example.com",
    "phone": "+33612345678",
    "shipping_address_line1": "Rue de la Paix",
    "city": "Paris",
    "postal_code": "75002",
    "country": "FR",
    "order_pack_list_id": 1,
    "paid": True,
    "ok_to_ship": True,
}


def _address(country="FR", **overrides):
    address = {
        "name": "Jeanne Martin",
        "email": "jeanne@example.com",
        "phone": "+33612345678",
        "line1": "Rue de la Paix",
        "house_number": "12",
        "city": "Paris",
        "postal_code": "75002",
        "country": country,
    }
    address.update(overrides)
    return address


def _item(**overrides):
    item = {
        "description": "Starter pack",
        "quantity": 1,
        "value": 49.0,
        "weight": 0.5,
        "hs_code": "852351",
        "origin_country": "FR",
    }
    item.update(overrides)
    return item


# ────────────────────────────────────────────
# Outbound label
# ────────────────────────────────────────────

class TestLabelGate:

    def test_ready_order_passes(self):
        result = validate_label_order(READY_ORDER, 8)
        assert result.valid
        assert result.warnings == []

    @pytest.mark.parametrize("field_name", [
        "shipping_address_line1",
        "city",
        "postal_code",
        "country",
        "order_pack_list_id",
        "name",
        "email",
        "phone",
    ])
    def test_single_missing_field_is_named(self, field_name):
        order = {**READY_ORDER, field_name: None}
        result = validate_label_order(order, 8)
        assert result.missing == [field_name]

    def test_missing_shipping_method(self):
        assert validate_label_order(READY_ORDER, None).missing == ["shipping_method"]

    def test_blank_string_counts_as_missing(self):
        order = {**READY_ORDER, "city": "   "}
        assert validate_label_order(order, 8).missing == ["city"]

    def test_unpaid_and_not_ok_to_ship(self):
        order = {**READY_ORDER, "paid": False, "ok_to_ship": False}
        assert validate_label_order(order, 8).missing == ["paid", "ok_to_ship"]

    def test_all_missing_fields_reported_together(self):
        order = {**READY_ORDER, "city": None, "phone": "", "postal_code": None}
        result = validate_label_order(order, None)
        assert set(result.missing) == {"city", "phone", "postal_code", "shipping_method"}

    def test_unmapped_country_warns_without_blocking(self):
        result = validate_label_order({**READY_ORDER, "country": "Atlantis"}, 8)
        assert result.valid
        assert len(result.warnings) == 1
        assert "Atlantis" in result.warnings[0]

    def test_country_name_is_normalized_before_warning(self):
        assert validate_label_order({**READY_ORDER, "country": "France"}, 8).warnings == []

    def test_raise_if_invalid_carries_fields(self):
        result = validate_label_order({**READY_ORDER, "email": None}, 8)
        with pytest.raises(ValidationError) as exc_info:
            result.raise_if_invalid()
        assert exc_info.value.fields == ["email"]
        assert exc_info.value.status_code == 400


# ────────────────────────────────────────────
# Return label
# ────────────────────────────────────────────

class TestReturnGate:

    def test_domestic_return_without_items_passes(self):
        result = validate_return_request(_address("FR"), _address("FR"), "1.000", "defective", [])
        assert result.valid

    def test_gb_return_without_items_rejected(self):
        result = validate_return_request(_address("GB"), _address("FR"), "1.000", "defective", [])
        assert result.missing == ["items"]

    def test_customs_applies_to_destination_too(self):
        result = validate_return_request(_address("FR"), _address("Switzerland"), "1.000", "other", None)
        assert result.missing == ["items"]

    @pytest.mark.parametrize("country", ["GB", "CH", "US", "CA", "AU", "NO", "United Kingdom"])
    def test_customs_countries(self, country):
        assert requires_customs(country)

    @pytest.mark.parametrize("country", ["FR", "DE", "NL", None, ""])
    def test_non_customs_countries(self, country):
        assert not requires_customs(country)

    def test_valid_customs_items_pass(self):
        result = validate_return_request(_address("GB"), _address("FR"), "2.5", ReturnReason.UPGRADE, [_item()])
        assert result.valid

    @pytest.mark.parametrize("overrides,field_name", [
        ({"description": ""}, "items[0].description"),
        ({"quantity": 0}, "items[0].quantity"),
        ({"quantity": 1.5}, "items[0].quantity"),
        ({"value": -1}, "items[0].value"),
        ({"weight": 0}, "items[0].weight"),
        ({"hs_code": None}, "items[0].hs_code"),
        ({"origin_country": "FRA"}, "items[0].origin_country"),
    ])
    def test_bad_item_field_named(self, overrides, field_name):
        result = validate_return_request(_address("US"), _address("FR"), "1", "other", [_item(**overrides)])
        assert result.missing == [field_name]

    def test_zero_value_item_is_allowed(self):
        result = validate_return_request(_address("US"), _address("FR"), "1", "other", [_item(value=0)])
        assert result.valid

    @pytest.mark.parametrize("weight", [None, "", "0", "0.000", "-1", "abc", "1,5"])
    def test_bad_parcel_weight(self, weight):
        result = validate_return_request(_address(), _address(), weight, "other")
        assert result.missing == ["parcel_weight"]

    @pytest.mark.parametrize("reason", [None, "", "changed my mind"])
    def test_bad_return_reason(self, reason):
        result = validate_return_request(_address(), _address(), "1.000", reason)
        assert result.missing == ["return_reason"]

    def test_address_fields_are_prefixed_and_aggregated(self):
        result = validate_return_request(
            _address(city=None),
            _address(house_number="", postal_code=None),
            "1.000",
            "defective",
        )
        assert result.missing == ["from_address.city", "to_address.house_number", "to_address.postal_code"]

    def test_missing_address_object(self):
        result = validate_return_request(None, _address(), "1.000", "defective")
        assert "from_address" in result.missing


# ────────────────────────────────────────────
# Upgrade
# ────────────────────────────────────────────

class TestUpgradeGate:

    def test_valid(self):
        assert validate_upgrade_request(3, "2.5", 2).valid

    def test_everything_missing(self):
        result = validate_upgrade_request(None, None, None)
        assert result.missing == ["order_pack_list_id", "weight", "quantity"]

    @pytest.mark.parametrize("quantity", [0, 101, "abc", 2.5])
    def test_quantity_bounds(self, quantity):
        assert validate_upgrade_request(3, 1, quantity).missing == ["quantity"]

    @pytest.mark.parametrize("quantity", [1, 100, "7"])
    def test_quantity_accepted(self, quantity):
        assert validate_upgrade_request(3, 1, quantity).valid
