"""Token resolution: turns a booking token or a finance token into a verified
(applicant, property) context bound to an eligible listing.

Both schemes end the same way: the caller-supplied property code must match the
listing the token is bound to, and the listing must pass the eligibility check.
Nothing here is cached; every request re-reads the token and the listing.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salesbooking.errors import BadRequest, NotFound, Unauthorized
from salesbooking.models.property import Property
from salesbooking.models.viewing import ViewingToken
from salesbooking.services.eligibility import ensure_eligible
from salesbooking.services.finance_token import FINANCE_TOKEN_PURPOSE, decode_finance_token_with_error

logger = logging.getLogger("uvicorn.error")

MAX_TOKEN_LEN = 256
MAX_PROPERTY_CODE_LEN = 64

SCHEME_BOOKING = "booking_token"
SCHEME_FINANCE = "finance_token"


@dataclass(frozen=True)
class BookingTokenAuth:
    token: str
    scheme = SCHEME_BOOKING


@dataclass(frozen=True)
class FinanceTokenAuth:
    token: str
    scheme = SCHEME_FINANCE


AuthContext = BookingTokenAuth | FinanceTokenAuth


@dataclass
class VerifiedContext:
    applicant_id: int
    property_id: int
    property: Property
    scheme: str
    viewing_token_id: int | None = None

    @property
    def property_code(self) -> str:
        return (self.property.property_code or "").strip()


def clean_token(value: str | None) -> str:
    token = (value or "").strip()
    if len(token) > MAX_TOKEN_LEN:
        raise BadRequest("token_too_long")
    return token


def clean_property_code(value: str | None) -> str:
    code = (value or "").strip()
    if not code:
        raise BadRequest("missing_property_code")
    if len(code) > MAX_PROPERTY_CODE_LEN:
        raise BadRequest("property_code_too_long")
    return code


def auth_from_tokens(finance_token: str | None = None, booking_token: str | None = None) -> AuthContext:
    """Pick the scheme for a request. The finance token wins when a client sends both."""
    finance = clean_token(finance_token)
    booking = clean_token(booking_token)
    if finance:
        return FinanceTokenAuth(finance)
    if booking:
        return BookingTokenAuth(booking)
    raise Unauthorized("missing_token")


def resolve(db: Session, auth: AuthContext, property_code: str | None) -> VerifiedContext:
    """Verify `auth` and bind it to an eligible listing.

    `property_code` is the code the caller claims to be acting on; None skips the
    comparison (only the book-slot endpoint, whose clients may omit it).
    """
    if isinstance(auth, FinanceTokenAuth):
        ctx, bound_code = _resolve_finance(db, auth.token)
    else:
        ctx, bound_code = _resolve_booking(db, auth.token)

    if property_code is not None:
        supplied = property_code.strip()
        if supplied != bound_code or supplied != ctx.property_code:
            raise Unauthorized("token_property_mismatch")

    ensure_eligible(ctx.property)
    return ctx


def _resolve_booking(db: Session, token: str) -> tuple[VerifiedContext, str]:
    try:
        vt = db.query(ViewingToken).filter(ViewingToken.token == token).first()
    except SQLAlchemyError as e:
        logger.warning("[Token] booking token lookup failed: %s", type(e).__name__)
        raise Unauthorized("invalid_token") from e
    if not vt or not vt.applicant_id or not vt.property_id:
        raise Unauthorized("invalid_token")
    prop = db.query(Property).filter(Property.id == vt.property_id).first()
    if not prop:
        raise Unauthorized("invalid_token")
    ctx = VerifiedContext(
        applicant_id=vt.applicant_id,
        property_id=vt.property_id,
        property=prop,
        scheme=SCHEME_BOOKING,
        viewing_token_id=vt.id,
    )
    return ctx, ctx.property_code


def _resolve_finance(db: Session, token: str) -> tuple[VerifiedContext, str]:
    claims, err = decode_finance_token_with_error(token)
    if not claims:
        logger.info("[Token] finance token rejected: %s", err)
        raise Unauthorized("invalid_or_expired_token")
    if claims.get("purpose") != FINANCE_TOKEN_PURPOSE:
        raise Unauthorized("invalid_token_purpose")
    if not claims.get("applicant_id") or not claims.get("property_id") or not claims.get("property_code"):
        raise Unauthorized("incomplete_token")
    try:
        applicant_id = int(claims["applicant_id"])
        property_id = int(claims["property_id"])
    except (TypeError, ValueError):
        raise Unauthorized("incomplete_token")
    prop = db.query(Property).filter(Property.id == property_id).first()
    if not prop:
        raise NotFound("property_not_found")
    ctx = VerifiedContext(
        applicant_id=applicant_id,
        property_id=property_id,
        property=prop,
        scheme=SCHEME_FINANCE,
    )
    return ctx, str(claims["property_code"]).strip()
