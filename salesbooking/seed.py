"""Demo data: one sales listing with an applicant, a booking token and three future slots."""
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from salesbooking.models.applicant import Applicant
from salesbooking.models.property import Property, PROPERTY_STATUS_AVAILABLE
from salesbooking.models.viewing import Viewing, ViewingToken, SLOT_AVAILABLE

DEMO_PROPERTY_CODE = "077-NP00001"


def seed_demo_listing(db: Session) -> ViewingToken | None:
    """Insert the demo rows into an empty database. Returns the booking token, or None if
    properties already exist."""
    if db.query(Property).count() > 0:
        return None
    prop = Property(
        property_code=DEMO_PROPERTY_CODE,
        business_type="prodej",
        status=PROPERTY_STATUS_AVAILABLE,
        address="Vinohradská 12, Praha 2",
        property_configuration="3+kk",
        map_link="https://maps.example.com/?q=Vinohradska+12",
    )
    applicant = Applicant(full_name="Demo Buyer", email="buyer@example.com", phone="+420700000000")
    db.add_all([prop, applicant])
    db.flush()

    token = ViewingToken(token=secrets.token_urlsafe(24), applicant_id=applicant.id, property_id=prop.id)
    db.add(token)

    first = (datetime.now(timezone.utc) + timedelta(days=2)).replace(hour=15, minute=0, second=0, microsecond=0)
    for i in range(3):
        start = first + timedelta(minutes=30 * i)
        db.add(Viewing(property_id=prop.id, slot_start=start, slot_end=start + timedelta(minutes=30), status=SLOT_AVAILABLE))
    db.commit()
    db.refresh(token)
    return token
