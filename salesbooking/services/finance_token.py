"""Finance-form tokens: HS256-signed, expiring claim sets binding an applicant to a property."""
from datetime import datetime, timedelta, timezone
import jwt
from salesbooking.config import get_settings
from salesbooking.errors import Internal

FINANCE_TOKEN_PURPOSE = "finance_form_v1"


def _secret() -> str:
    secret = get_settings().finance_link_secret
    if not secret:
        raise Internal("finance_secret_missing")
    return secret


def create_finance_token(
    applicant_id: int,
    property_id: int,
    property_code: str,
    expires_in_days: int | None = None,
) -> str:
    settings = get_settings()
    days = expires_in_days if expires_in_days is not None else settings.finance_token_expire_days
    now = datetime.now(timezone.utc)
    payload = {
        "purpose": FINANCE_TOKEN_PURPOSE,
        "applicant_id": applicant_id,
        "property_id": property_id,
        "property_code": property_code,
        "iat": now,
        "exp": now + timedelta(days=days),
    }
    raw = jwt.encode(payload, _secret(), algorithm=settings.finance_token_algorithm)
    return raw if isinstance(raw, str) else raw.decode("utf-8")


def decode_finance_token_with_error(token: str) -> tuple[dict | None, str | None]:
    """Verify signature and expiry; returns (claims, error_message).
    Raises Internal when no secret is configured."""
    secret = _secret()
    if not token or not isinstance(token, str):
        return None, "empty token"
    try:
        claims = jwt.decode(
            token.strip(),
            secret,
            algorithms=[get_settings().finance_token_algorithm],
            options={"require": ["exp"]},
        )
        return claims, None
    except jwt.ExpiredSignatureError as e:
        return None, str(e)
    except jwt.PyJWTError as e:
        return None, str(e)
