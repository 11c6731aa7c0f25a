"""
Customer records, mirrored from Stripe customers or created by staff
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from oms.models.base import Base


class Customer(Base):
    """A buyer. Linked to Stripe by stripe_customer_id when it came from a webhook."""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    stripe_customer_id = Column(String, unique=True, index=True, nullable=True)

    name = Column(String, nullable=True)
    email = Column(String, index=True, nullable=True)
    phone = Column(String, nullable=True)

    # Address (shipping preferred over billing when imported)
    address_line1 = Column(String, nullable=True)
    address_line2 = Column(String, nullable=True)
    address_house_number = Column(String, nullable=True)
    address_city = Column(String, nullable=True)
    address_state = Column(String, nullable=True)
    address_postal_code = Column(String, nullable=True)
    address_country = Column(String, nullable=True)

    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", JSON, nullable=True)

    # CRM owner
    hubspot_owner_id = Column(String, nullable=True)
    hubspot_owner_name = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    orders = relationship("Order", back_populates="customer")
