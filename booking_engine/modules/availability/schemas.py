# booking_engine/modules/availability/schemas.py
from __future__ import annotations

from datetime import date
from typing import List, Optional, Set
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from booking_engine.core.times import coerce_minutes, to_hhmm, weekday_index


class AvailabilityRuleIn(BaseModel):
    """
    One weekly window. Times accept "HH:MM" or minute-of-day integers.
    """
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: int
    end_time: int
    slot_duration: int = Field(..., gt=0, description="minutes")
    buffer_time: int = Field(default=0, ge=0, description="minutes between slots")
    max_concurrent: int = Field(default=1, ge=1)
    is_active: bool = True
    exceptions: Set[date] = Field(default_factory=set)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _coerce_time(cls, v):
        return coerce_minutes(v)

    @field_validator("end_time")
    @classmethod
    def _end_after_start(cls, v, info):
        start = info.data.get("start_time")
        if start is not None and v <= start:
            raise ValueError("end_time must be after start_time")
        return v


class AvailabilityRulePublic(AvailabilityRuleIn):
    """
    Stored rule as read by SlotGenerator and ConflictValidator.
    """
    id: Optional[UUID] = None
    resource_id: str

    @field_validator("exceptions", mode="before")
    @classmethod
    def _parse_exceptions(cls, v):
        # JSON column holds ISO strings
        if v is None:
            return set()
        return {date.fromisoformat(d) if isinstance(d, str) else d for d in v}

    @field_serializer("start_time", "end_time")
    def _ser_time(self, v: int) -> str:
        return to_hhmm(v)

    def applies_on(self, day: date) -> bool:
        return (
            self.is_active
            and self.day_of_week == weekday_index(day)
            and day not in self.exceptions
        )

    def slot_starts(self, day: date) -> List[int]:
        """
        Candidate start minutes for `day`, ascending. Steps by
        slot_duration + buffer_time; a slot must end by end_time.
        """
        if not self.applies_on(day):
            return []
        step = self.slot_duration + self.buffer_time
        return [
            m
            for m in range(self.start_time, self.end_time, step)
            if m + self.slot_duration <= self.end_time
        ]

    class Config:
        from_attributes = True


class AvailabilityReplaceRequest(BaseModel):
    rules: List[AvailabilityRuleIn]


class TimeSlot(BaseModel):
    """
    Derived candidate start time for a day. Never persisted.
    """
    time: int
    available: bool
    conflict_reason: Optional[str] = None
    remaining_capacity: int

    @field_serializer("time")
    def _ser_time(self, v: int) -> str:
        return to_hhmm(v)
