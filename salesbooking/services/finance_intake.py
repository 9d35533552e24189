"""Finance questionnaire intake: validates answers, refreshes the applicant's identity
(logging every change first) and upserts the (applicant, property) sales inquiry."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from salesbooking.errors import BadRequest, NotFound
from salesbooking.models.applicant import Applicant, ApplicantIdentityChange
from salesbooking.schemas.finance import FinanceSubmission
from salesbooking.services.inquiries import upsert_inquiry
from salesbooking.services.token_resolver import VerifiedContext

logger = logging.getLogger("uvicorn.error")

MAX_FULL_NAME_LEN = 200
MAX_EMAIL_LEN = 254
MAX_PHONE_LEN = 40

# Free-text answers; longer input is rejected rather than truncated
OPTIONAL_TEXT_LIMITS = {
    "financing_method": 100,
    "has_advisor": 200,
    "mortgage_progress": 200,
    "buyer_notes": 5000,
    "utm_source": 200,
    "utm_medium": 200,
    "utm_campaign": 200,
}

CHANGED_BY_BUYER_FORM = "buyer_form"
INQUIRY_SOURCE_FINANCE = "finance_form"


@dataclass
class Identity:
    full_name: str
    email: str
    phone: str


@dataclass
class InquiryResult:
    property_id: int
    applicant_id: int
    sales_inquiry_id: int
    identity_changed: bool
    created_new_applicant: bool = False


def validate_submission(data: FinanceSubmission) -> Identity:
    """Shape checks done before any storage access. Returns the trimmed identity."""
    full_name = (data.full_name or "").strip()
    if not full_name:
        raise BadRequest("full_name_required")
    if len(full_name) > MAX_FULL_NAME_LEN:
        raise BadRequest("full_name_too_long")
    email = (data.email or "").strip()
    phone = (data.phone or "").strip()
    if not email or not phone:
        raise BadRequest("email_and_phone_required")
    if len(email) > MAX_EMAIL_LEN or len(phone) > MAX_PHONE_LEN:
        raise BadRequest("invalid_email_or_phone")
    if data.gdpr_consent is not True:
        raise BadRequest("gdpr_consent_required")

    own, mort = data.own_funds_pct, data.mortgage_pct
    if own is not None and not 0 <= own <= 100:
        raise BadRequest("own_funds_pct_out_of_range")
    if mort is not None and not 0 <= mort <= 100:
        raise BadRequest("mortgage_pct_out_of_range")
    if own is not None and mort is not None and own + mort > 100:
        raise BadRequest("pct_sum_exceeds_100")

    for name, limit in OPTIONAL_TEXT_LIMITS.items():
        value = getattr(data, name)
        if value is not None and len(value) > limit:
            raise BadRequest(f"{name}_too_long")
    return Identity(full_name=full_name, email=email, phone=phone)


def _norm(v: str | None) -> str:
    # Trim only: "Jan@Example.cz" and "jan@example.cz" count as different
    return (v or "").strip()


def identity_differs(applicant: Applicant, identity: Identity) -> bool:
    return (
        _norm(applicant.full_name) != _norm(identity.full_name)
        or _norm(applicant.email) != _norm(identity.email)
        or _norm(applicant.phone) != _norm(identity.phone)
    )


def submit(db: Session, ctx: VerifiedContext, data: FinanceSubmission, identity: Identity) -> InquiryResult:
    """Apply a validated submission for the token's applicant (never the payload's applicant_id)."""
    applicant = db.query(Applicant).filter(Applicant.id == ctx.applicant_id).first()
    if not applicant:
        raise NotFound("applicant_not_found")

    changed = identity_differs(applicant, identity)
    if changed:
        db.add(
            ApplicantIdentityChange(
                applicant_id=applicant.id,
                property_id=ctx.property_id,
                changed_by=CHANGED_BY_BUYER_FORM,
                old_full_name=applicant.full_name,
                old_email=applicant.email,
                old_phone=applicant.phone,
                new_full_name=identity.full_name,
                new_email=identity.email,
                new_phone=identity.phone,
            )
        )
        db.flush()
        logger.info("[Finance] identity change recorded for applicant=%s", applicant.id)

    applicant.full_name = identity.full_name
    applicant.email = identity.email
    applicant.phone = identity.phone
    applicant.agreed_to_gdpr = True
    db.commit()

    inquiry, _ = upsert_inquiry(
        db,
        ctx.applicant_id,
        ctx.property_id,
        {
            "financing_method": data.financing_method,
            "own_funds_pct": data.own_funds_pct,
            "mortgage_pct": data.mortgage_pct,
            "has_advisor": data.has_advisor,
            "mortgage_progress": data.mortgage_progress,
            "tied_to_sale": data.tied_to_sale,
            "buyer_notes": data.buyer_notes,
            "form_submitted_at": datetime.now(timezone.utc),
            "utm_source": data.utm_source,
            "utm_medium": data.utm_medium,
            "utm_campaign": data.utm_campaign,
        },
        insert_only={"source": INQUIRY_SOURCE_FINANCE},
    )
    return InquiryResult(
        property_id=ctx.property_id,
        applicant_id=ctx.applicant_id,
        sales_inquiry_id=inquiry.id,
        identity_changed=changed,
    )
