# booking_engine/modules/validation/schemas.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from booking_engine.modules.bookings.schemas import BookingPublic


class ConflictType(str, Enum):
    TIME_OVERLAP = "time_overlap"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    AVAILABILITY_MISMATCH = "availability_mismatch"
    DUPLICATE_BOOKING = "duplicate_booking"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class WarningType(str, Enum):
    CLOSE_TO_DEADLINE = "close_to_deadline"
    BUSY_PERIOD = "busy_period"
    FIRST_TIME_CLIENT = "first_time_client"


class SuggestionType(str, Enum):
    ALTERNATIVE_TIME = "alternative_time"


class ValidationConfig(BaseModel):
    """
    Per-resource validation policy (read-only to the engine).
    Defaults mirror a freshly created resource.
    """
    allow_overlapping: bool = False
    require_buffer_time: bool = True
    buffer_time_minutes: int = Field(default=15, ge=0)
    max_bookings_per_day: int = Field(default=20, ge=1)
    max_bookings_per_slot: int = Field(default=1, ge=1)
    prevent_last_minute_bookings: bool = True
    last_minute_threshold_hours: int = Field(default=2, ge=0)

    # Real-time supervision
    enable_real_time_checks: bool = True
    notify_on_conflict: bool = True
    notify_on_warning: bool = True
    notify_on_suggestion: bool = False

    class Config:
        from_attributes = True


class BookingConflict(BaseModel):
    type: ConflictType
    severity: Severity = Severity.CRITICAL
    message: str
    conflicting_booking: Optional[BookingPublic] = None
    suggested_alternatives: List[str] = Field(default_factory=list)


class BookingWarning(BaseModel):
    type: WarningType
    message: str
    recommendation: Optional[str] = None


class BookingSuggestion(BaseModel):
    type: SuggestionType
    message: str
    action_data: Dict[str, Any] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    is_valid: bool
    conflicts: List[BookingConflict] = Field(default_factory=list)
    warnings: List[BookingWarning] = Field(default_factory=list)
    suggestions: List[BookingSuggestion] = Field(default_factory=list)

    @property
    def blocking(self) -> List[BookingConflict]:
        return [c for c in self.conflicts if c.severity == Severity.CRITICAL]


class BookingAccepted(BaseModel):
    """
    Committed booking plus the advisories found while admitting it.
    """
    booking: BookingPublic
    warnings: List[BookingWarning] = Field(default_factory=list)
    suggestions: List[BookingSuggestion] = Field(default_factory=list)
