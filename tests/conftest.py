"""
Test configuration and fixtures.

Provides:
- SQLite in-memory engine shared by the app (via get_db override) and the test session
- Fresh in-memory rate limiter per test
- Factories for listings, applicants, booking tokens and slots
"""
import os

# Settings are read once; configure before the app is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FINANCE_LINK_SECRET"] = "test-finance-secret"
os.environ["FINANCE_LINK_SERVICE_URL"] = ""
os.environ["FINANCE_FORM_BASE_URL"] = ""
os.environ["MAILGUN_API_KEY"] = ""
os.environ["MAILGUN_DOMAIN"] = ""
os.environ["SENDGRID_API_KEY"] = ""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from salesbooking.database import Base, get_db
from salesbooking.main import app
from salesbooking.models import Applicant, Property, Viewing, ViewingToken
from salesbooking.services.rate_limit import InMemoryRateLimiter, get_rate_limiter


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def limiter() -> InMemoryRateLimiter:
    return InMemoryRateLimiter()


@pytest.fixture
def client(session_factory, limiter) -> Generator[TestClient, None, None]:
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================

def make_listing(db: Session, code: str = "077-NP1", business_type: str = "prodej", status: str = "available") -> Property:
    prop = Property(
        property_code=code,
        business_type=business_type,
        status=status,
        address="Vinohradská 12, Praha 2",
        property_configuration="3+kk",
    )
    db.add(prop)
    db.commit()
    return prop


def make_applicant(db: Session, full_name: str = "Jana Nováková", email: str = "jana@example.com", phone: str = "+420777111222") -> Applicant:
    applicant = Applicant(full_name=full_name, email=email, phone=phone)
    db.add(applicant)
    db.commit()
    return applicant


def make_token(db: Session, applicant: Applicant, prop: Property, token: str) -> ViewingToken:
    vt = ViewingToken(token=token, applicant_id=applicant.id, property_id=prop.id)
    db.add(vt)
    db.commit()
    return vt


def make_slot(db: Session, prop: Property, hours_from_now: float = 48, status: str = "available", applicant_id: int | None = None) -> Viewing:
    start = datetime.now(timezone.utc) + timedelta(hours=hours_from_now)
    slot = Viewing(
        property_id=prop.id,
        slot_start=start,
        slot_end=start + timedelta(minutes=30),
        status=status,
        applicant_id=applicant_id,
    )
    db.add(slot)
    db.commit()
    return slot


@dataclass
class Scenario:
    listing: Property
    applicant: Applicant
    token: ViewingToken
    s1: Viewing
    s2: Viewing


@pytest.fixture
def scenario(db) -> Scenario:
    """Token T1 bound to (A1, P1 "077-NP1"); two future available slots on P1."""
    listing = make_listing(db)
    applicant = make_applicant(db)
    token = make_token(db, applicant, listing, "T1-booking-token")
    s1 = make_slot(db, listing, hours_from_now=48)
    s2 = make_slot(db, listing, hours_from_now=72)
    return Scenario(listing=listing, applicant=applicant, token=token, s1=s1, s2=s2)
