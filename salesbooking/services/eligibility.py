"""Listing eligibility: only for-sale listings with status "available" take viewings and finance forms."""
from salesbooking.errors import Conflict
from salesbooking.models.property import Property, PROPERTY_STATUS_AVAILABLE

SALES_BUSINESS_TYPES = frozenset({"sell", "prodej", "sale"})


def is_sales_listing(prop: Property) -> bool:
    # Case-insensitive, no trimming: back-office values are stored clean
    return (prop.business_type or "").lower() in SALES_BUSINESS_TYPES


def is_available(prop: Property) -> bool:
    return (prop.status or "") == PROPERTY_STATUS_AVAILABLE


def is_eligible(prop: Property) -> bool:
    return is_sales_listing(prop) and is_available(prop)


def ensure_eligible(prop: Property) -> None:
    """Raise Conflict naming the first failed check. Re-run on every request: status changes
    between page load and booking."""
    if is_eligible(prop):
        return
    if not is_sales_listing(prop):
        raise Conflict("not_a_sales_listing")
    raise Conflict("not_available")
