"""
Print a finance-form token (and form URL if FINANCE_FORM_BASE_URL is set) for an applicant/listing pair.
Uses FINANCE_LINK_SECRET from .env. For support use when the issuance service is down.

  python scripts/mint_finance_token.py --applicant-id 12 --property-code 077-NP00001 [--days 7]
"""
import argparse
import os
import sys
from urllib.parse import urlencode

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from salesbooking.config import get_settings
from salesbooking.database import SessionLocal
from salesbooking.models.applicant import Applicant
from salesbooking.models.property import Property
from salesbooking.services.finance_token import create_finance_token


def main():
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--applicant-id", type=int, required=True)
    parser.add_argument("--property-code", required=True)
    parser.add_argument("--days", type=int, default=None, help="Expiry in days (default: FINANCE_TOKEN_EXPIRE_DAYS)")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        prop = db.query(Property).filter(Property.property_code == args.property_code.strip()).first()
        if not prop:
            sys.exit(f"Property {args.property_code} not found")
        if not db.query(Applicant).filter(Applicant.id == args.applicant_id).first():
            sys.exit(f"Applicant {args.applicant_id} not found")
        token = create_finance_token(args.applicant_id, prop.id, prop.property_code, expires_in_days=args.days)
    finally:
        db.close()

    print(token)
    base = get_settings().finance_form_base_url
    if base:
        print(f"{base.rstrip('/')}/{prop.property_code}?{urlencode({'token': token})}")


if __name__ == "__main__":
    main()
