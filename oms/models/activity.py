"""
Audit trail of staff and system changes to orders
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from oms.models.base import Base


class OrderActivity(Base):
    """
    One change to an order.

    changes is a mapping {field: {"old_value": ..., "new_value": ...}}, or
    carrier ids for label/return actions.
    """
    __tablename__ = "order_activities"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    action_type = Column(String, nullable=False)  # order_update, label_created, return_created, ...
    changes = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    order = relationship("Order", back_populates="activities")
