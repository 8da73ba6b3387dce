# booking_engine/modules/bookings/lifecycle.py
"""
Booking status state machine.

    pending   -> confirmed | cancelled
    confirmed -> completed | cancelled | no_show
    completed, cancelled, no_show are terminal.

Re-applying the current status is a no-op so that retried drivers
(confirmation jobs, double clicks) do not fail.
"""
from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional

from booking_engine.core.times import at_minute
from booking_engine.modules.bookings.models import BookingStatus

TRANSITIONS: Mapping[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

TERMINAL = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# Only reachable once the appointment has started
_AFTER_START = frozenset({BookingStatus.COMPLETED, BookingStatus.NO_SHOW})


class InvalidTransition(Exception):
    """
    Requested status change is not allowed from the current status.
    """

    def __init__(self, current: BookingStatus, target: BookingStatus, reason: str = ""):
        self.current = current
        self.target = target
        super().__init__(reason or f"cannot_transition_{current.value}_to_{target.value}")


def is_terminal(status: BookingStatus | str) -> bool:
    return BookingStatus(status) in TERMINAL


def check_transition(
    booking,
    target: BookingStatus | str,
    *,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether `booking` may move to `target`.

    Returns False when the booking is already in `target` (nothing to do),
    True when the change must be written, and raises InvalidTransition otherwise.
    `booking` needs .status, .date and .start_time.
    """
    current = BookingStatus(booking.status)
    target = BookingStatus(target)

    if current == target:
        return False
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(current, target)
    if target in _AFTER_START:
        now = now or datetime.now()
        if now < at_minute(booking.date, booking.start_time):
            raise InvalidTransition(
                current, target, f"appointment_not_started_{target.value}"
            )
    return True
