"""Client for the external finance-link issuance service. A missing link never fails a booking."""
import logging

import httpx

from salesbooking.config import get_settings

logger = logging.getLogger("uvicorn.error")


def request_finance_link(applicant_id: int, property_code: str | None) -> str | None:
    """POST {applicant_id, property_code, base_url}; returns the signed form URL or None."""
    settings = get_settings()
    if not settings.finance_link_service_url or not settings.finance_form_base_url:
        logger.warning(
            "[FinanceLink] FINANCE_LINK_SERVICE_URL and/or FINANCE_FORM_BASE_URL not set; email goes without finance link"
        )
        return None
    if not property_code:
        return None
    try:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(
                settings.finance_link_service_url,
                json={
                    "applicant_id": applicant_id,
                    "property_code": property_code,
                    "base_url": settings.finance_form_base_url,
                },
            )
    except httpx.HTTPError as e:
        logger.warning("[FinanceLink] request failed: %s: %s", type(e).__name__, e)
        return None
    try:
        data = r.json() if r.content else None
    except ValueError:
        data = None
    if not (200 <= r.status_code < 300) or not isinstance(data, dict) or not data.get("ok") or not data.get("url"):
        logger.warning("[FinanceLink] issuance failed: status=%s body=%s", r.status_code, r.text[:300])
        return None
    return str(data["url"])
