"""Viewing slots and the opaque booking tokens that authorize booking them."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from salesbooking.database import Base

SLOT_AVAILABLE = "available"
SLOT_BOOKED = "booked"
SLOT_CANCELLED = "cancelled"  # set by the back office only; terminal here


class ViewingToken(Base):
    """Opaque bearer token -> one (applicant, property) pair. Issued elsewhere, never regenerated here."""
    __tablename__ = "viewing_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(256), unique=True, nullable=False, index=True)
    applicant_id = Column(Integer, ForeignKey("applicants.id"), nullable=False)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False)
    # Read but not enforced: a token may be reused to move a booking to another slot
    used = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Viewing(Base):
    """A pre-created, fixed-time slot. At most one booked slot per (applicant, property),
    enforced by the booking service rather than by a constraint."""
    __tablename__ = "viewings"
    __table_args__ = (
        Index("ix_viewings_property_status", "property_id", "status"),
        Index("ix_viewings_applicant_property", "applicant_id", "property_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False)
    slot_start = Column(DateTime(timezone=True), nullable=False)
    slot_end = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=SLOT_AVAILABLE)
    applicant_id = Column(Integer, ForeignKey("applicants.id"), nullable=True)  # set only while booked

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
