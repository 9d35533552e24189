"""Append-only funnel audit events. Best effort: a failed write is logged and dropped,
never raised into the request that produced it."""
from __future__ import annotations

import enum
import hashlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterator

from sqlalchemy.orm import Session

from salesbooking.errors import ApiError
from salesbooking.models.audit_event import AuditEvent

logger = logging.getLogger("uvicorn.error")

EVENT_BOOKING_TOKEN_RESOLVED = "booking_token_resolved"
EVENT_BOOKING_PAGE_LOADED = "booking_page_loaded"
EVENT_BOOKING_SLOT_BOOKED = "booking_slot_booked"
EVENT_FINANCE_CONTEXT_RESOLVED = "finance_context_resolved"
EVENT_FINANCE_SUBMITTED = "finance_submitted"

# Column limits (match model)
_EVENT_TYPE_LEN = 64
_IP_LEN = 64
_USER_AGENT_LEN = 300
TOKEN_HASH_PREFIX_BYTES = 10  # 20 hex chars


def token_hash_prefix(token: str | None) -> str | None:
    """Short, non-reversible correlation handle for a bearer token."""
    if not token or not token.strip():
        return None
    digest = hashlib.sha256(token.strip().encode("utf-8")).hexdigest()
    return digest[: TOKEN_HASH_PREFIX_BYTES * 2]


def _sanitize_meta_value(v: Any) -> Any:
    """Convert to JSON-serializable value so meta never raises on INSERT."""
    if v is None:
        return None
    if isinstance(v, (str, int, float, bool)):
        return v
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, enum.Enum):
        return getattr(v, "value", str(v))
    if isinstance(v, dict):
        return {str(k): _sanitize_meta_value(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_sanitize_meta_value(x) for x in v]
    return str(v)


def _sanitize_meta(meta: dict[str, Any] | None) -> dict[str, Any] | None:
    if meta is None:
        return None
    try:
        return {str(k): _sanitize_meta_value(v) for k, v in meta.items()}
    except Exception:
        return {"_error": "meta_serialization", "raw_keys": list(meta.keys())[:10]}


def record_event(
    db: Session,
    event_type: str,
    *,
    applicant_id: int | None = None,
    property_id: int | None = None,
    viewing_token_id: int | None = None,
    token: str | None = None,
    client_ip: str | None = None,
    user_agent: str | None = None,
    meta: dict[str, Any] | None = None,
) -> AuditEvent | None:
    """Append one audit event and commit it. Only the hash prefix of `token` is stored.
    Returns None (after logging) if the write fails."""
    try:
        entry = AuditEvent(
            event_type=(event_type or "")[:_EVENT_TYPE_LEN],
            applicant_id=applicant_id,
            property_id=property_id,
            viewing_token_id=viewing_token_id,
            client_ip=(client_ip[:_IP_LEN] if client_ip else None) or None,
            user_agent=(str(user_agent)[:_USER_AGENT_LEN] if user_agent else None) or None,
            token_hash_prefix=token_hash_prefix(token),
            meta=_sanitize_meta(meta),
        )
        db.add(entry)
        db.commit()
        return entry
    except Exception as e:
        logger.warning("[Audit] %s insert failed: %s: %s", event_type, type(e).__name__, e)
        _rollback(db)
        return None


@dataclass
class AuditScope:
    """What the request learned so far; written once when the scope closes."""
    event_type: str
    token: str | None = None
    applicant_id: int | None = None
    property_id: int | None = None
    viewing_token_id: int | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def bind(self, ctx) -> None:
        """Copy ids from a VerifiedContext."""
        self.applicant_id = ctx.applicant_id
        self.property_id = ctx.property_id
        self.viewing_token_id = ctx.viewing_token_id


@contextmanager
def audited(
    db: Session,
    event_type: str,
    *,
    client_ip: str | None,
    user_agent: str | None,
    token: str | None = None,
    property_code: str | None = None,
) -> Iterator[AuditScope]:
    """Record exactly one terminal event for the enclosed block: ok=true on normal exit,
    ok=false with the error reason when it raises. The exception is re-raised unchanged."""
    scope = AuditScope(event_type=event_type, token=token)
    if property_code:
        scope.meta["property_code"] = property_code
    try:
        yield scope
    except ApiError as e:
        _rollback(db)
        _write(db, scope, client_ip, user_agent, {"ok": False, "reason": e.reason})
        raise
    except Exception:
        _rollback(db)
        _write(db, scope, client_ip, user_agent, {"ok": False, "reason": "internal_error"})
        raise
    else:
        _write(db, scope, client_ip, user_agent, {"ok": True})


def _write(db: Session, scope: AuditScope, client_ip, user_agent, outcome: dict[str, Any]) -> None:
    record_event(
        db,
        scope.event_type,
        applicant_id=scope.applicant_id,
        property_id=scope.property_id,
        viewing_token_id=scope.viewing_token_id,
        token=scope.token,
        client_ip=client_ip,
        user_agent=user_agent,
        meta={**scope.meta, **outcome},
    )


def _rollback(db: Session) -> None:
    try:
        db.rollback()
    except Exception:
        logger.warning("[Audit] session rollback failed", exc_info=True)
