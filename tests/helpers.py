"""Builders for booking engine test data."""

import uuid
from datetime import date, datetime

from booking_engine.modules.availability.schemas import AvailabilityRulePublic
from booking_engine.modules.bookings.models import BookingStatus
from booking_engine.modules.bookings.schemas import BookingCandidate, BookingPublic

RESOURCE = "card-1"
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
# Well before MONDAY so last-minute warnings stay quiet unless a test wants them
EARLY = datetime(2029, 12, 1, 8, 0)


def make_candidate(**overrides) -> BookingCandidate:
    data = dict(
        resource_id=RESOURCE,
        service_id="haircut",
        service_name="Haircut",
        date=MONDAY,
        start_time="09:00",
        duration_minutes=30,
        client_name="Ana Lopez",
        client_email="ana@example.com",
        price="25.00",
    )
    data.update(overrides)
    return BookingCandidate(**data)


def make_booking(**overrides) -> BookingPublic:
    status = overrides.pop("status", BookingStatus.PENDING)
    booking_id = overrides.pop("id", None) or uuid.uuid4()
    candidate = make_candidate(**overrides)
    return BookingPublic(
        **candidate.model_dump(exclude={"id", "start_time", "end_time"}),
        start_time=candidate.start_time,
        id=booking_id,
        status=status,
    )


def make_rule(**overrides) -> AvailabilityRulePublic:
    data = dict(
        resource_id=RESOURCE,
        day_of_week=1,
        start_time="09:00",
        end_time="12:00",
        slot_duration=30,
        buffer_time=0,
        max_concurrent=1,
    )
    data.update(overrides)
    return AvailabilityRulePublic(**data)
