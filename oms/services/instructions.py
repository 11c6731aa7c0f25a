"""
Order instruction rules.

The instruction is what staff should do next with an order. It is derived
from the order's flags on every read and never stored, so the list view,
the detail view and the API all agree.

Priority (first match wins):
  1. return initiated      -> RETURN INITIATED
  2. carrier says delivered -> DELIVERED
  3. tracking number       -> SHIPPED
  4. paid and ok to ship   -> TO SHIP
  5. anything else         -> ACTION REQUIRED
"""
from enum import Enum
from typing import Any, Mapping, Optional

# Substrings of carrier status messages that mean the parcel arrived
DELIVERED_MARKERS = ("delivered", "shipment collected by customer")
NEGATED_MARKERS = ("not delivered", "undelivered", "non delivered")


class Instruction(str, Enum):
    RETURN_INITIATED = "RETURN INITIATED"
    DELIVERED = "DELIVERED"
    SHIPPED = "SHIPPED"
    TO_SHIP = "TO SHIP"
    ACTION_REQUIRED = "ACTION REQUIRED"


def is_delivered(delivery_status: Optional[str]) -> bool:
    """Whether a free-text carrier status means the parcel was delivered."""
    if not delivery_status:
        return False
    status = delivery_status.strip().lower()
    if any(neg in status for neg in NEGATED_MARKERS):
        return False
    return any(marker in status for marker in DELIVERED_MARKERS)


def _field(order: Any, name: str) -> Any:
    if isinstance(order, Mapping):
        return order.get(name)
    return getattr(order, name, None)


def compute_instruction(order: Any) -> Instruction:
    """Instruction for an Order row or a plain mapping with the same keys."""
    if _field(order, "sendcloud_return_id"):
        return Instruction.RETURN_INITIATED
    if is_delivered(_field(order, "delivery_status")):
        return Instruction.DELIVERED
    if _field(order, "tracking_number"):
        return Instruction.SHIPPED
    if _field(order, "paid") and _field(order, "ok_to_ship"):
        return Instruction.TO_SHIP
    return Instruction.ACTION_REQUIRED
