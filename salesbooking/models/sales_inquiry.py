"""One inquiry per (applicant, property): booked viewing time plus finance questionnaire answers."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from salesbooking.database import Base


class SalesInquiry(Base):
    __tablename__ = "sales_inquiries"
    __table_args__ = (UniqueConstraint("applicant_id", "property_id", name="uq_sales_inquiries_applicant_property"),)

    id = Column(Integer, primary_key=True, index=True)
    applicant_id = Column(Integer, ForeignKey("applicants.id"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)

    # Copy of the booked slot's start, for "you already have a viewing" banners
    viewing_time = Column(DateTime(timezone=True), nullable=True)
    viewing_time_text = Column(String(100), nullable=True)  # optional display override from the back office

    financing_method = Column(String(100), nullable=True)
    own_funds_pct = Column(Float, nullable=True)
    mortgage_pct = Column(Float, nullable=True)
    has_advisor = Column(String(200), nullable=True)
    mortgage_progress = Column(String(200), nullable=True)
    tied_to_sale = Column(Boolean, nullable=True)
    buyer_notes = Column(Text, nullable=True)
    form_submitted_at = Column(DateTime(timezone=True), nullable=True)

    source = Column(String(50), nullable=True)  # booking_token | finance_form
    utm_source = Column(String(200), nullable=True)
    utm_medium = Column(String(200), nullable=True)
    utm_campaign = Column(String(200), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
