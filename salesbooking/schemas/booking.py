"""Booking endpoint schemas."""
from datetime import datetime
from pydantic import BaseModel, field_validator


class BookSlotRequest(BaseModel):
    slotId: int
    token: str
    property_code: str | None = None  # optional; checked against the token's listing when sent

    @field_validator("slotId", mode="before")
    @classmethod
    def slot_id_short(cls, v):
        if isinstance(v, str) and len(v) > 64:
            raise ValueError("slotId too long")
        return v


class ResolvedTokenResponse(BaseModel):
    token_id: int
    applicant_id: int
    property_id: int
    property_code: str


class SlotResponse(BaseModel):
    id: int
    slot_start: datetime
    slot_end: datetime | None = None

    class Config:
        from_attributes = True


class BookingPageResponse(BaseModel):
    existing_viewing_time: str | None = None
    slots: list[SlotResponse]
