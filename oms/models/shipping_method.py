"""
Carrier shipping methods, synced from SendCloud
"""
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, JSON
from datetime import datetime
from oms.models.base import Base


class ShippingMethod(Base):
    """
    SendCloud shipping method.

    Synced from SendCloud API: GET /v2/shipping_methods
    The primary key is the carrier's own method id.
    """
    __tablename__ = "shipping_methods"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String, index=True, nullable=False)
    carrier = Column(String, nullable=True)
    min_weight = Column(Float, nullable=True)
    max_weight = Column(Float, nullable=True)
    service_point_input = Column(String, nullable=True)
    active = Column(Boolean, default=True)

    raw_data = Column(JSON, nullable=True)
    synced_at = Column(DateTime, default=datetime.utcnow)
