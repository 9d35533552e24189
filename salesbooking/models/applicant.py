"""Applicants (prospective buyers) and the log of their identity changes."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from salesbooking.database import Base


class Applicant(Base):
    __tablename__ = "applicants"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(200), nullable=True)
    email = Column(String(254), nullable=True, index=True)
    phone = Column(String(40), nullable=True)
    agreed_to_gdpr = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class ApplicantIdentityChange(Base):
    """Written before any overwrite of full_name/email/phone. Never updated."""
    __tablename__ = "applicant_identity_changes"

    id = Column(Integer, primary_key=True, index=True)
    applicant_id = Column(Integer, ForeignKey("applicants.id"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True)
    changed_by = Column(String(50), nullable=False)  # e.g. buyer_form

    old_full_name = Column(String(200), nullable=True)
    old_email = Column(String(254), nullable=True)
    old_phone = Column(String(40), nullable=True)
    new_full_name = Column(String(200), nullable=True)
    new_email = Column(String(254), nullable=True)
    new_phone = Column(String(40), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
