"""
Order data model

An order moves through staff actions (pack choice, payment and shipping
toggles, label creation, status refresh). The carrier fields are only
written after a successful SendCloud call.
"""
import uuid
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Date, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from oms.models.base import Base


def _new_order_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_order_id)

    # Customer linkage (denormalized contact kept on the order)
    customer_id = Column(Integer, ForeignKey("customers.id"), index=True, nullable=True)
    name = Column(String, nullable=True)
    email = Column(String, index=True, nullable=True)
    phone = Column(String, nullable=True)

    # Shipping address
    shipping_address_line1 = Column(String, nullable=True)
    shipping_address_line2 = Column(String, nullable=True)
    house_number = Column(String, nullable=True)
    city = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    country = Column(String, index=True, nullable=True)

    # Fulfillment flags
    paid = Column(Boolean, default=False, nullable=False)
    ok_to_ship = Column(Boolean, default=False, nullable=False)
    important = Column(Boolean, default=False, nullable=False)

    # Pack selection + snapshot
    order_pack_list_id = Column(Integer, ForeignKey("order_pack_lists.id"), nullable=True)
    order_pack = Column(String, nullable=True)
    order_pack_label = Column(String, nullable=True)
    order_pack_quantity = Column(Integer, default=1)
    weight = Column(String, nullable=True)  # decimal string, kg
    reason_for_shipment = Column(String, default="new order")

    # Carrier state
    shipping_method = Column(Integer, nullable=True)
    shipping_id = Column(String, index=True, nullable=True)
    tracking_number = Column(String, index=True, nullable=True)
    tracking_link = Column(String, nullable=True)
    label_url = Column(String, nullable=True)
    delivery_status = Column(String, nullable=True)
    last_delivery_status_check = Column(DateTime, nullable=True)
    expected_delivery_date = Column(Date, nullable=True)
    sendcloud_tracking_history = Column(JSON, nullable=True)

    # Return state
    sendcloud_return_id = Column(String, nullable=True)
    sendcloud_return_parcel_id = Column(String, nullable=True)
    sendcloud_return_label_url = Column(String, nullable=True)
    sendcloud_return_reason = Column(String, nullable=True)
    sendcloud_return_status = Column(String, nullable=True)

    # Stripe linkage
    stripe_customer_id = Column(String, index=True, nullable=True)
    stripe_invoice_id = Column(String, index=True, nullable=True)

    # Timestamps (set by the application on every mutation)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer", back_populates="orders")
    pack = relationship("OrderPack")
    activities = relationship(
        "OrderActivity",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderActivity.created_at",
    )
