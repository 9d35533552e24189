"""Append-only funnel audit trail. No updates or deletes; raw tokens are never stored."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from salesbooking.database import Base


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    event_type = Column(String(64), nullable=False, index=True)

    # ON DELETE SET NULL so the trail outlives the rows it points at
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True, index=True)
    applicant_id = Column(Integer, ForeignKey("applicants.id", ondelete="SET NULL"), nullable=True, index=True)
    viewing_token_id = Column(Integer, ForeignKey("viewing_tokens.id", ondelete="SET NULL"), nullable=True)

    client_ip = Column(String(64), nullable=True)
    user_agent = Column(String(300), nullable=True)
    # Short sha256 prefix of the bearer token, for correlation only
    token_hash_prefix = Column(String(20), nullable=True)

    # JSONB on Postgres, plain JSON elsewhere (tests run on SQLite)
    meta = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
