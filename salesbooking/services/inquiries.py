"""Sales inquiry upsert, one row per (applicant, property)."""
import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from salesbooking.models.sales_inquiry import SalesInquiry

logger = logging.getLogger("uvicorn.error")


def find_inquiry(db: Session, applicant_id: int, property_id: int) -> SalesInquiry | None:
    return (
        db.query(SalesInquiry)
        .filter(SalesInquiry.applicant_id == applicant_id, SalesInquiry.property_id == property_id)
        .first()
    )


def upsert_inquiry(
    db: Session,
    applicant_id: int,
    property_id: int,
    values: dict[str, Any],
    *,
    insert_only: dict[str, Any] | None = None,
) -> tuple[SalesInquiry, bool]:
    """Update the pair's inquiry with `values`, or insert it (with `insert_only` extras).
    Commits; returns (row, created).

    Find-then-insert; a concurrent first insert for the same pair trips the unique
    constraint, in which case the winner's row is updated instead.
    """
    inquiry = find_inquiry(db, applicant_id, property_id)
    if inquiry is not None:
        _apply(inquiry, values)
        db.commit()
        return inquiry, False

    inquiry = SalesInquiry(applicant_id=applicant_id, property_id=property_id, **(insert_only or {}))
    _apply(inquiry, values)
    db.add(inquiry)
    try:
        db.commit()
        return inquiry, True
    except IntegrityError:
        db.rollback()
        logger.info("[Inquiry] concurrent insert for applicant=%s property=%s, updating instead", applicant_id, property_id)
    inquiry = find_inquiry(db, applicant_id, property_id)
    if inquiry is None:
        raise RuntimeError("sales inquiry vanished after unique-constraint conflict")
    _apply(inquiry, values)
    db.commit()
    return inquiry, False


def _apply(inquiry: SalesInquiry, values: dict[str, Any]) -> None:
    for key, value in values.items():
        setattr(inquiry, key, value)
