"""Finance questionnaire schemas."""
import math
from typing import Any
from pydantic import BaseModel, field_validator


def _number_or_null(v: Any) -> float | None:
    """Blank or non-numeric input counts as "not answered"."""
    if v is None or v == "" or isinstance(v, bool):
        return None
    try:
        n = float(v)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


class FinanceSubmission(BaseModel):
    property_code: str | None = None
    # Accepted for compatibility with older forms; identity always comes from the token
    applicant_id: Any = None

    finance_token: str | None = None
    booking_token: str | None = None

    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    gdpr_consent: Any = None  # must be literally true

    financing_method: str | None = None
    own_funds_pct: float | None = None
    mortgage_pct: float | None = None
    has_advisor: str | None = None
    mortgage_progress: str | None = None
    tied_to_sale: bool | None = None
    buyer_notes: str | None = None

    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None

    @field_validator("own_funds_pct", "mortgage_pct", mode="before")
    @classmethod
    def pct_number(cls, v):
        return _number_or_null(v)

    class Config:
        extra = "ignore"


class ApplicantContext(BaseModel):
    id: int
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None

    class Config:
        from_attributes = True


class PropertyContext(BaseModel):
    id: int
    property_code: str
    address: str | None = None
    property_configuration: str | None = None
    business_type: str | None = None
    status: str

    class Config:
        from_attributes = True


class FinanceSubmissionResponse(BaseModel):
    property_id: int
    applicant_id: int
    sales_inquiry_id: int
    identity_changed: bool
    created_new_applicant: bool = False
