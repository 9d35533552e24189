"""
Database connection and session.

Schema source of truth: salesbooking.models. On startup, Base.metadata.create_all(bind=engine)
creates all tables from the current models. Slots, listings, applicants and booking tokens
are created by the back office; this service only reads them and moves slots between
available and booked.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from salesbooking.config import get_settings

settings = get_settings()
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
