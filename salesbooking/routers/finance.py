"""Finance questionnaire: prefill context and submission. Accepts a finance token or a booking token."""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from salesbooking.config import get_settings
from salesbooking.database import get_db
from salesbooking.dependencies import check_rate_limit, get_client_ip, get_user_agent, json_body
from salesbooking.errors import NotFound
from salesbooking.models.applicant import Applicant
from salesbooking.responses import NO_STORE, ok
from salesbooking.schemas.finance import ApplicantContext, FinanceSubmission, FinanceSubmissionResponse, PropertyContext
from salesbooking.services.audit_log import audited, EVENT_FINANCE_CONTEXT_RESOLVED, EVENT_FINANCE_SUBMITTED
from salesbooking.services.finance_intake import submit, validate_submission
from salesbooking.services.rate_limit import RateLimiter, get_rate_limiter
from salesbooking.services.token_resolver import auth_from_tokens, clean_property_code, clean_token, resolve

settings = get_settings()
router = APIRouter(prefix="/finance", tags=["finance"])


@router.get("/context")
def resolve_finance_context(
    request: Request,
    property_code: str | None = Query(None),
    token: str | None = Query(None, description="Finance token from the emailed form link"),
    booking_token: str | None = Query(None),
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    code = clean_property_code(property_code)
    finance_token = clean_token(token)
    booking = clean_token(booking_token)
    ip = get_client_ip(request)
    with audited(
        db,
        EVENT_FINANCE_CONTEXT_RESOLVED,
        client_ip=ip,
        user_agent=get_user_agent(request),
        token=finance_token or booking,
        property_code=code,
    ) as audit:
        rl = check_rate_limit(request, limiter, "finance_context", settings.rl_finance_context_ip, ip=ip)
        auth = auth_from_tokens(finance_token, booking)
        audit.meta["scheme"] = auth.scheme
        check_rate_limit(request, limiter, "finance_context", settings.rl_finance_context_token, token=auth.token)
        ctx = resolve(db, auth, code)
        audit.bind(ctx)
        applicant = db.query(Applicant).filter(Applicant.id == ctx.applicant_id).first()
        if not applicant:
            raise NotFound("applicant_not_found")
        body = {
            "applicant": ApplicantContext.model_validate(applicant).model_dump(mode="json"),
            "property": PropertyContext.model_validate(ctx.property).model_dump(mode="json"),
        }
    return ok(body, {**rl.headers(), **NO_STORE})


@router.post("/submissions")
def capture_finance_submission(
    request: Request,
    data: FinanceSubmission = Depends(json_body(FinanceSubmission, settings.finance_max_body_bytes)),
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Store questionnaire answers for the token's applicant and listing."""
    code = clean_property_code(data.property_code)
    identity = validate_submission(data)
    finance_token = clean_token(data.finance_token)
    booking = clean_token(data.booking_token)
    ip = get_client_ip(request)
    with audited(
        db,
        EVENT_FINANCE_SUBMITTED,
        client_ip=ip,
        user_agent=get_user_agent(request),
        token=finance_token or booking,
        property_code=code,
    ) as audit:
        rl = check_rate_limit(request, limiter, "finance_submit", settings.rl_finance_submit_ip, ip=ip)
        auth = auth_from_tokens(finance_token, booking)
        audit.meta["scheme"] = auth.scheme
        check_rate_limit(request, limiter, "finance_submit", settings.rl_finance_submit_token, token=auth.token)
        ctx = resolve(db, auth, code)
        audit.bind(ctx)
        result = submit(db, ctx, data, identity)
        audit.meta["sales_inquiry_id"] = result.sales_inquiry_id
        audit.meta["identity_changed"] = result.identity_changed
        body = FinanceSubmissionResponse(
            property_id=result.property_id,
            applicant_id=result.applicant_id,
            sales_inquiry_id=result.sales_inquiry_id,
            identity_changed=result.identity_changed,
            created_new_applicant=result.created_new_applicant,
        )
    return ok(body.model_dump(mode="json"), rl.headers())
