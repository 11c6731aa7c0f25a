"""
Feature requests submitted by staff
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime
from oms.models.base import Base


class FeatureRequest(Base):
    __tablename__ = "feature_requests"

    id = Column(Integer, primary_key=True, index=True)
    description = Column(Text, nullable=False)
    author = Column(String, nullable=False)
    link_url = Column(String, nullable=True)
    status = Column(String, default="Open", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
