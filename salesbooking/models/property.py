"""Listings: sales properties that accept viewings and finance questionnaires."""
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from salesbooking.database import Base

PROPERTY_STATUS_AVAILABLE = "available"


class Property(Base):
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    property_code = Column(String(64), unique=True, nullable=False, index=True)  # e.g. 077-NP12345

    # Free text from the back office: sell / prodej / sale / rent / pronájem ...
    business_type = Column(String(50), nullable=True)
    # Mutated externally; only "available" accepts bookings and finance submissions
    status = Column(String(30), nullable=False, default=PROPERTY_STATUS_AVAILABLE)

    address = Column(String(500), nullable=True)
    property_configuration = Column(String(100), nullable=True)  # 2+kk, 3+1, ...
    docs_link = Column(Text, nullable=True)
    video_link = Column(Text, nullable=True)
    advert_link = Column(Text, nullable=True)
    map_link = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
