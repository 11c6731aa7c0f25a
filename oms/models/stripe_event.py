"""
Raw Stripe webhook events, stored for audit before dispatch
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, Text
from datetime import datetime
from oms.models.base import Base


class StripeEvent(Base):
    __tablename__ = "stripe_events"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String, unique=True, index=True, nullable=False)
    event_type = Column(String, index=True, nullable=False)
    event_data = Column(JSON, nullable=True)

    processed = Column(Boolean, default=False)
    processed_at = Column(DateTime, nullable=True)
    error = Column(Text, nullable=True)  # handler failure, event still acknowledged

    created_at = Column(DateTime, default=datetime.utcnow)
