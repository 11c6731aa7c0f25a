"""
Pack catalog: reusable boxes and envelopes selectable per order
"""
from sqlalchemy import Column, Integer, String, Float
from oms.models.base import Base


class OrderPack(Base):
    __tablename__ = "order_pack_lists"

    id = Column(Integer, primary_key=True, index=True)
    value = Column(String, unique=True, nullable=False)  # pack code, e.g. "starter-1"
    label = Column(String, nullable=False)

    # kg / cm
    weight = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    width = Column(Float, nullable=True)
    length = Column(Float, nullable=True)
