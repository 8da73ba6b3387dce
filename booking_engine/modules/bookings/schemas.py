# booking_engine/modules/bookings/schemas.py
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    StringConstraints,
    field_serializer,
    field_validator,
    model_validator,
)

from booking_engine.core.times import MINUTES_PER_DAY, coerce_minutes, to_hhmm
from booking_engine.modules.bookings.models import BookingStatus

NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
PhoneStr = Annotated[str, StringConstraints(pattern=r"^\+?[1-9]\d{1,14}$")]  # E.164 simple


class BookingCandidate(BaseModel):
    """
    A booking request as seen by the validator.
    - start_time accepts "HH:MM" or minute-of-day.
    - end_time is derived from start_time + duration_minutes; if sent it must agree.
    - id is set only when an already-stored booking is re-validated.
    """
    id: Optional[UUID] = None
    resource_id: str = Field(..., min_length=1, max_length=64)
    service_id: str = Field(..., min_length=1, max_length=64)
    service_name: str = ""
    date: dt.date
    start_time: int
    end_time: Optional[int] = None
    duration_minutes: int = Field(..., gt=0)
    client_name: NameStr
    client_email: EmailStr
    client_phone: Optional[PhoneStr] = None
    notes: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _coerce_time(cls, v):
        if v is None:
            return v
        return coerce_minutes(v)

    @field_validator("client_email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def _derive_end(self):
        end = self.start_time + self.duration_minutes
        if self.end_time is not None and self.end_time != end:
            raise ValueError("end_time must equal start_time + duration_minutes")
        if end > MINUTES_PER_DAY:
            raise ValueError("booking must end on the same day")
        self.end_time = end
        return self

    @field_serializer("start_time", "end_time")
    def _ser_time(self, v: Optional[int]) -> Optional[str]:
        return None if v is None else to_hhmm(v)


class BookingPublic(BookingCandidate):
    """
    DTO for a stored booking.
    """
    id: UUID
    status: BookingStatus = BookingStatus.PENDING
    reminder_sent: bool = False
    confirmation_sent: bool = False
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    # Stored rows may predate stricter input rules
    client_email: str
    client_phone: Optional[str] = None

    class Config:
        from_attributes = True


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingListPage(BaseModel):
    """
    Page of bookings (with pagination).
    """
    items: List[BookingPublic]
    total: int
    limit: int
    offset: int
    has_next: bool
