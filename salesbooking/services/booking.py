"""Slot booking: release the applicant's current viewing for the listing, then claim the new slot.

Slot states: available <-> booked here; booked -> cancelled happens in the back office.

The claim is a conditional UPDATE (status must still be "available"), so two applicants
racing for one slot get exactly one winner. The release is a separate write: if the claim
then fails, the applicant is left with no booking, and two simultaneous requests from the
same applicant can both pass the release step and end up holding two slots. That gap is
accepted; the one-booking rule holds for sequential requests only.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from salesbooking.errors import Conflict, NotFound, Unauthorized
from salesbooking.models.applicant import Applicant
from salesbooking.models.viewing import Viewing, SLOT_AVAILABLE, SLOT_BOOKED
from salesbooking.services.finance_link import request_finance_link
from salesbooking.services.inquiries import upsert_inquiry
from salesbooking.services.notifications import send_viewing_confirmation
from salesbooking.services.token_resolver import VerifiedContext

logger = logging.getLogger("uvicorn.error")

INQUIRY_SOURCE_BOOKING = "booking_token"


@dataclass
class BookingResult:
    slot_id: int
    slot_start: datetime
    inquiry_id: int
    released_slot_ids: list[int] = field(default_factory=list)


def release_prior_bookings(db: Session, applicant_id: int, property_id: int) -> list[int]:
    """booked -> available for every slot the applicant holds on this listing. Commits."""
    held = (
        db.query(Viewing)
        .filter(
            Viewing.applicant_id == applicant_id,
            Viewing.property_id == property_id,
            Viewing.status == SLOT_BOOKED,
        )
        .all()
    )
    for slot in held:
        slot.status = SLOT_AVAILABLE
        slot.applicant_id = None
    db.commit()
    return [s.id for s in held]


def claim_slot(db: Session, slot_id: int, applicant_id: int) -> bool:
    """available -> booked, only if the row is still available at write time. Commits."""
    updated = (
        db.query(Viewing)
        .filter(Viewing.id == slot_id, Viewing.status == SLOT_AVAILABLE)
        .update({Viewing.status: SLOT_BOOKED, Viewing.applicant_id: applicant_id}, synchronize_session=False)
    )
    db.commit()
    return updated == 1


def book_slot(db: Session, slot_id: int, ctx: VerifiedContext) -> BookingResult:
    slot = db.query(Viewing).filter(Viewing.id == slot_id).first()
    if not slot:
        raise NotFound("slot_not_found")
    if slot.property_id != ctx.property_id:
        raise Unauthorized("slot_cross_property")

    # Stale read; only saves the applicant's current booking when the target is visibly gone.
    # The conditional update below is what actually decides.
    held_by_caller = slot.status == SLOT_BOOKED and slot.applicant_id == ctx.applicant_id
    if slot.status != SLOT_AVAILABLE and not held_by_caller:
        raise Conflict("slot_not_available_anymore")

    released = release_prior_bookings(db, ctx.applicant_id, ctx.property_id)
    if released:
        logger.info("[Booking] applicant=%s released slot(s) %s on property=%s", ctx.applicant_id, released, ctx.property_id)

    if not claim_slot(db, slot_id, ctx.applicant_id):
        raise Conflict("slot_not_available_anymore")

    db.refresh(slot)
    inquiry, _ = upsert_inquiry(
        db,
        ctx.applicant_id,
        ctx.property_id,
        {"viewing_time": slot.slot_start},
        insert_only={"source": INQUIRY_SOURCE_BOOKING},
    )
    logger.info("[Booking] applicant=%s booked slot=%s property=%s", ctx.applicant_id, slot_id, ctx.property_id)
    return BookingResult(
        slot_id=slot.id,
        slot_start=slot.slot_start,
        inquiry_id=inquiry.id,
        released_slot_ids=[i for i in released if i != slot_id],
    )


def list_open_slots(db: Session, property_id: int, now: datetime) -> list[Viewing]:
    """Available slots starting at or after `now`, earliest first."""
    return (
        db.query(Viewing)
        .filter(
            Viewing.property_id == property_id,
            Viewing.status == SLOT_AVAILABLE,
            Viewing.slot_start >= now,
        )
        .order_by(Viewing.slot_start.asc())
        .all()
    )


def confirmation_details(db: Session, ctx: VerifiedContext) -> tuple[str | None, dict]:
    """(recipient email, listing fields for the email), read while the session is open."""
    applicant = db.query(Applicant).filter(Applicant.id == ctx.applicant_id).first()
    prop = ctx.property
    listing = {
        "property_code": prop.property_code,
        "address": prop.address,
        "property_configuration": prop.property_configuration,
        "map_link": prop.map_link,
        "docs_link": prop.docs_link,
        "video_link": prop.video_link,
        "advert_link": prop.advert_link,
    }
    return (applicant.email if applicant else None), listing


def send_booking_confirmation(applicant_id: int, to_email: str | None, listing: dict, slot_start: datetime) -> None:
    """Background task after a successful booking: finance link (optional), then the email."""
    try:
        finance_url = request_finance_link(applicant_id, listing.get("property_code"))
        if not to_email:
            logger.warning("[Booking] applicant=%s has no email; confirmation skipped", applicant_id)
            return
        sent = send_viewing_confirmation(to_email, listing, slot_start, finance_url)
        logger.info("[Booking] confirmation for applicant=%s sent=%s finance_link=%s", applicant_id, sent, bool(finance_url))
    except Exception:
        logger.exception("[Booking] confirmation for applicant=%s failed", applicant_id)
