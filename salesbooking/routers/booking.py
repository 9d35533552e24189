"""Booking flow: token resolution, booking page data, slot booking."""
from datetime import datetime, timezone
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from salesbooking.config import get_settings
from salesbooking.database import get_db
from salesbooking.dependencies import check_rate_limit, get_client_ip, get_user_agent, json_body
from salesbooking.errors import BadRequest
from salesbooking.responses import NO_STORE, ok
from salesbooking.schemas.booking import BookSlotRequest, BookingPageResponse, ResolvedTokenResponse, SlotResponse
from salesbooking.services.audit_log import (
    audited,
    EVENT_BOOKING_PAGE_LOADED,
    EVENT_BOOKING_SLOT_BOOKED,
    EVENT_BOOKING_TOKEN_RESOLVED,
)
from salesbooking.services.booking import book_slot, confirmation_details, list_open_slots, send_booking_confirmation
from salesbooking.services.inquiries import find_inquiry
from salesbooking.services.rate_limit import RateLimiter, get_rate_limiter
from salesbooking.services.token_resolver import BookingTokenAuth, clean_property_code, clean_token, resolve

settings = get_settings()
router = APIRouter(prefix="/booking", tags=["booking"])


def _require_token(value: str | None) -> str:
    token = clean_token(value)
    if not token:
        raise BadRequest("missing_token")
    return token


@router.get("/resolve-token")
def resolve_booking_token(
    request: Request,
    token: str | None = Query(None),
    property_code: str | None = Query(None),
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Exchange a booking link's token for ids. Never echoes the token or applicant PII."""
    token = _require_token(token)
    code = clean_property_code(property_code)
    ip = get_client_ip(request)
    with audited(db, EVENT_BOOKING_TOKEN_RESOLVED, client_ip=ip, user_agent=get_user_agent(request), token=token, property_code=code) as audit:
        rl = check_rate_limit(request, limiter, "resolve_booking_token", settings.rl_resolve_token_ip, ip=ip)
        check_rate_limit(request, limiter, "resolve_booking_token", settings.rl_resolve_token_token, token=token)
        ctx = resolve(db, BookingTokenAuth(token), code)
        audit.bind(ctx)
        body = ResolvedTokenResponse(
            token_id=ctx.viewing_token_id,
            applicant_id=ctx.applicant_id,
            property_id=ctx.property_id,
            property_code=ctx.property_code,
        )
    return ok(body.model_dump(mode="json"), {**rl.headers(), **NO_STORE})


@router.get("/page-data")
def get_booking_page_data(
    request: Request,
    token: str | None = Query(None),
    property_code: str | None = Query(None),
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Existing booking banner plus the listing's future available slots."""
    token = _require_token(token)
    code = clean_property_code(property_code)
    ip = get_client_ip(request)
    with audited(db, EVENT_BOOKING_PAGE_LOADED, client_ip=ip, user_agent=get_user_agent(request), token=token, property_code=code) as audit:
        rl = check_rate_limit(request, limiter, "booking_page_data", settings.rl_page_data_ip, ip=ip)
        check_rate_limit(request, limiter, "booking_page_data", settings.rl_page_data_token, token=token)
        ctx = resolve(db, BookingTokenAuth(token), code)
        audit.bind(ctx)

        existing = None
        inquiry = find_inquiry(db, ctx.applicant_id, ctx.property_id)
        if inquiry is not None:
            if inquiry.viewing_time_text:
                existing = inquiry.viewing_time_text
            elif inquiry.viewing_time is not None:
                existing = inquiry.viewing_time.isoformat()

        slots = list_open_slots(db, ctx.property_id, now=datetime.now(timezone.utc))
        body = BookingPageResponse(
            existing_viewing_time=existing,
            slots=[SlotResponse.model_validate(s) for s in slots],
        )
        audit.meta["slot_count"] = len(slots)
    return ok(body.model_dump(mode="json"), {**rl.headers(), **NO_STORE})


@router.post("/book-slot")
def book_viewing_slot(
    request: Request,
    background_tasks: BackgroundTasks,
    data: BookSlotRequest = Depends(json_body(BookSlotRequest, settings.book_slot_max_body_bytes)),
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Book a slot for the token's applicant, moving any existing booking on the same listing.
    The confirmation email (with a finance-form link when one can be issued) goes out after the response."""
    token = _require_token(data.token)
    code = clean_property_code(data.property_code) if data.property_code is not None else None
    ip = get_client_ip(request)
    with audited(db, EVENT_BOOKING_SLOT_BOOKED, client_ip=ip, user_agent=get_user_agent(request), token=token, property_code=code) as audit:
        audit.meta["slot_id"] = data.slotId
        rl = check_rate_limit(request, limiter, "book_slot", settings.rl_book_slot_ip, ip=ip)
        check_rate_limit(request, limiter, "book_slot", settings.rl_book_slot_token, token=token)
        ctx = resolve(db, BookingTokenAuth(token), code)
        audit.bind(ctx)
        result = book_slot(db, data.slotId, ctx)
        if result.released_slot_ids:
            audit.meta["released_slot_ids"] = result.released_slot_ids
        to_email, listing = confirmation_details(db, ctx)
    background_tasks.add_task(send_booking_confirmation, ctx.applicant_id, to_email, listing, result.slot_start)
    return ok(None, rl.headers())
