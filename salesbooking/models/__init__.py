"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table; no migration scripts needed for fresh installs.
"""
from salesbooking.models.property import Property
from salesbooking.models.applicant import Applicant, ApplicantIdentityChange
from salesbooking.models.viewing import Viewing, ViewingToken
from salesbooking.models.sales_inquiry import SalesInquiry
from salesbooking.models.audit_event import AuditEvent

__all__ = [
    "Property",
    "Applicant",
    "ApplicantIdentityChange",
    "Viewing",
    "ViewingToken",
    "SalesInquiry",
    "AuditEvent",
]
