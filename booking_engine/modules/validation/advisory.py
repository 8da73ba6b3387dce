# booking_engine/modules/validation/advisory.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from booking_engine.core.times import at_minute, to_hhmm
from booking_engine.modules.availability.schemas import TimeSlot
from booking_engine.modules.bookings.schemas import BookingCandidate, BookingPublic
from booking_engine.modules.validation.schemas import (
    BookingSuggestion,
    BookingWarning,
    SuggestionType,
    ValidationConfig,
    WarningType,
)

BUSY_RATIO = 0.8
MAX_ALTERNATIVES = 3


def is_last_minute(
    candidate: BookingCandidate, config: ValidationConfig, now: datetime
) -> bool:
    starts_at = at_minute(candidate.date, candidate.start_time)
    return starts_at - now < timedelta(hours=config.last_minute_threshold_hours)


def is_busy_day(siblings: Sequence[BookingPublic], config: ValidationConfig) -> bool:
    return len(siblings) >= config.max_bookings_per_day * BUSY_RATIO


def is_first_time_client(candidate: BookingCandidate, history: Iterable[BookingPublic]) -> bool:
    email = candidate.client_email.lower()
    return not any(
        h.resource_id == candidate.resource_id and h.client_email.lower() == email
        for h in history
    )


def analyze(
    candidate: BookingCandidate,
    siblings: Sequence[BookingPublic],
    config: ValidationConfig,
    *,
    slots: Sequence[TimeSlot] = (),
    history: Iterable[BookingPublic] = (),
    now: Optional[datetime] = None,
) -> Tuple[List[BookingWarning], List[BookingSuggestion]]:
    """
    Non-blocking findings for a candidate that already passed conflict checks.
    Never changes the accept/reject decision.
    """
    now = now or datetime.now()
    warnings: List[BookingWarning] = []
    suggestions: List[BookingSuggestion] = []

    if config.prevent_last_minute_bookings and is_last_minute(candidate, config, now):
        warnings.append(
            BookingWarning(
                type=WarningType.CLOSE_TO_DEADLINE,
                message=(
                    f"Booking starts in less than {config.last_minute_threshold_hours} hours"
                ),
                recommendation="Confirm availability manually",
            )
        )

    if is_busy_day(siblings, config):
        warnings.append(
            BookingWarning(
                type=WarningType.BUSY_PERIOD,
                message="High demand on this day",
                recommendation="Consider offering the client another day",
            )
        )

    if is_first_time_client(candidate, history):
        warnings.append(
            BookingWarning(
                type=WarningType.FIRST_TIME_CLIENT,
                message="New client, first booking",
                recommendation="Send additional information about the service",
            )
        )

    available = [s for s in slots if s.available]
    if len(available) >= 2:
        alternatives = [
            to_hhmm(s.time) for s in available if s.time != candidate.start_time
        ][:MAX_ALTERNATIVES]
        if alternatives:
            suggestions.append(
                BookingSuggestion(
                    type=SuggestionType.ALTERNATIVE_TIME,
                    message=f"{len(available) - 1} alternative times available",
                    action_data={"alternative_slots": alternatives},
                )
            )

    return warnings, suggestions
