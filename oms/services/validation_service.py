"""
Validation gates for carrier calls.

Every gate collects all missing or malformed field names before failing,
so staff see the whole list at once. Nothing here touches the network.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence
import re

from oms.exceptions import ValidationError
from oms.utils.country import normalize_country, is_country_code

# Destination/origin countries that need a customs declaration on returns
CUSTOMS_COUNTRIES = frozenset({"GB", "CH", "US", "CA", "AU", "NO"})

LABEL_REQUIRED_FIELDS = (
    "name",
    "email",
    "phone",
    "shipping_address_line1",
    "city",
    "postal_code",
    "country",
    "order_pack_list_id",
)

ADDRESS_REQUIRED_FIELDS = (
    "name",
    "email",
    "phone",
    "line1",
    "house_number",
    "city",
    "postal_code",
    "country",
)

CUSTOMS_ITEM_REQUIRED_FIELDS = ("description", "hs_code", "origin_country")

MAX_PACK_QUANTITY = 100

_WEIGHT_RE = re.compile(r"^\d*\.?\d+$")


class ReturnReason(str, Enum):
    UPGRADE = "upgrade"
    DEFECTIVE = "defective"
    WRONG_ITEM = "wrong_item"
    NOT_AS_EXPECTED = "not_as_expected"
    NO_LONGER_NEEDED = "no_longer_needed"
    OTHER = "other"


@dataclass
class ValidationResult:
    """Outcome of a gate: blocking field names plus non-blocking warnings"""
    missing: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.missing

    def raise_if_invalid(self, message: str = "Validation failed") -> None:
        if self.missing:
            raise ValidationError(message, fields=self.missing)


def _value(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _number(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def is_positive_weight(value: Any) -> bool:
    """Decimal string like "1.000" (numbers are accepted too), strictly positive."""
    if value is None or isinstance(value, bool):
        return False
    text = str(value).strip()
    if not _WEIGHT_RE.match(text):
        return False
    return Decimal(text) > 0


def country_warning(country: Optional[str]) -> Optional[str]:
    """Non-blocking data-quality warning for a country the table could not map."""
    if country and not is_country_code(country):
        return f"Country '{country}' is not a 2-letter ISO code; the carrier may reject it"
    return None


def validate_label_order(order: Any, shipping_method_id: Any) -> ValidationResult:
    """
    Gate for creating an outbound label.

    Rules:
    - order must be paid and ok_to_ship
    - contact, address and pack fields non-empty
    - a shipping method chosen
    """
    result = ValidationResult()
    if not _value(order, "paid"):
        result.missing.append("paid")
    if not _value(order, "ok_to_ship"):
        result.missing.append("ok_to_ship")
    for name in LABEL_REQUIRED_FIELDS:
        if _blank(_value(order, name)):
            result.missing.append(name)
    if _blank(shipping_method_id):
        result.missing.append("shipping_method")

    warning = country_warning(normalize_country(_value(order, "country")))
    if warning:
        result.warnings.append(warning)
    return result


def _validate_address(prefix: str, address: Optional[Mapping], result: ValidationResult) -> Optional[str]:
    if not isinstance(address, Mapping):
        result.missing.append(prefix)
        return None
    for name in ADDRESS_REQUIRED_FIELDS:
        if _blank(address.get(name)):
            result.missing.append(f"{prefix}.{name}")
    country = normalize_country(address.get("country"))
    warning = country_warning(country)
    if warning:
        result.warnings.append(f"{prefix}: {warning}")
    return country


def _validate_item(index: int, item: Any, result: ValidationResult) -> None:
    prefix = f"items[{index}]"
    if not isinstance(item, Mapping):
        result.missing.append(prefix)
        return
    for name in CUSTOMS_ITEM_REQUIRED_FIELDS:
        if _blank(item.get(name)):
            result.missing.append(f"{prefix}.{name}")

    quantity = _number(item.get("quantity"))
    if quantity is None or quantity < 1 or quantity != quantity.to_integral_value():
        result.missing.append(f"{prefix}.quantity")
    value = _number(item.get("value"))
    if value is None or value < 0:
        result.missing.append(f"{prefix}.value")
    weight = _number(item.get("weight"))
    if weight is None or weight <= 0:
        result.missing.append(f"{prefix}.weight")

    origin = item.get("origin_country")
    if not _blank(origin) and not is_country_code(normalize_country(origin)):
        result.missing.append(f"{prefix}.origin_country")


def requires_customs(*countries: Optional[str]) -> bool:
    return any(normalize_country(c) in CUSTOMS_COUNTRIES for c in countries if c)


def validate_return_request(
    from_address: Optional[Mapping],
    to_address: Optional[Mapping],
    parcel_weight: Any,
    return_reason: Any,
    items: Optional[Sequence[Any]] = None,
) -> ValidationResult:
    """
    Gate for creating a return label.

    Customs items are required when either end of the return is in
    CUSTOMS_COUNTRIES. An empty list in that case is reported as "items".
    """
    result = ValidationResult()
    from_country = _validate_address("from_address", from_address, result)
    to_country = _validate_address("to_address", to_address, result)

    if not is_positive_weight(parcel_weight):
        result.missing.append("parcel_weight")

    reason = return_reason.value if isinstance(return_reason, ReturnReason) else return_reason
    if _blank(reason) or reason not in {r.value for r in ReturnReason}:
        result.missing.append("return_reason")

    if requires_customs(from_country, to_country):
        if not items:
            result.missing.append("items")
        else:
            for index, item in enumerate(items):
                _validate_item(index, item, result)
    return result


def validate_upgrade_request(pack_id: Any, weight: Any, quantity: Any) -> ValidationResult:
    """Pack present, weight > 0, 1 <= quantity <= MAX_PACK_QUANTITY."""
    result = ValidationResult()
    if _blank(pack_id):
        result.missing.append("order_pack_list_id")
    parsed_weight = _number(weight)
    if parsed_weight is None or parsed_weight <= 0:
        result.missing.append("weight")
    parsed_quantity = _number(quantity)
    if (
        parsed_quantity is None
        or parsed_quantity != parsed_quantity.to_integral_value()
        or not 1 <= parsed_quantity <= MAX_PACK_QUANTITY
    ):
        result.missing.append("quantity")
    return result
