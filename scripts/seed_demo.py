"""
Create all tables and insert the demo listing (skipped when properties already exist).
Run from project root: python scripts/seed_demo.py
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from salesbooking.database import Base, SessionLocal, engine
from salesbooking import models  # noqa: F401
from salesbooking.seed import DEMO_PROPERTY_CODE, seed_demo_listing


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        token = seed_demo_listing(db)
    finally:
        db.close()
    if token is None:
        print("  skip: properties already exist")
        return
    print(f"  created demo listing {DEMO_PROPERTY_CODE}")
    print(f"  booking page: /booking/page-data?property_code={DEMO_PROPERTY_CODE}&token={token.token}")
    print("Done.")


if __name__ == "__main__":
    main()
