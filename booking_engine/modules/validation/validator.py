# booking_engine/modules/validation/validator.py
"""
Conflict validation for booking candidates.

Everything here is pure: callers pass a consistent snapshot of the
resource's bookings for the day and get a ValidationResult back.
No I/O, no exceptions escape `validate`.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from booking_engine.core.times import overlaps, to_hhmm
from booking_engine.modules.availability.schemas import AvailabilityRulePublic
from booking_engine.modules.bookings.models import ACTIVE_STATUSES
from booking_engine.modules.bookings.schemas import BookingCandidate, BookingPublic
from booking_engine.modules.validation.advisory import analyze
from booking_engine.modules.validation.schemas import (
    BookingConflict,
    ConflictType,
    Severity,
    ValidationConfig,
    ValidationResult,
)

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3

# Fallback grid for alternatives when the resource has no rule for the day
_FALLBACK_GRID = tuple(range(9 * 60, 17 * 60 + 31, 30))


def active_siblings(
    candidate: BookingCandidate, existing: Iterable[BookingPublic]
) -> List[BookingPublic]:
    """
    Bookings that hold capacity against `candidate`: same resource and day,
    pending/confirmed, and not the candidate itself.
    """
    return [
        b
        for b in existing
        if b.resource_id == candidate.resource_id
        and b.date == candidate.date
        and b.status in ACTIVE_STATUSES
        and (candidate.id is None or b.id != candidate.id)
    ]


def probe_slot(
    start: int, end: int, existing: Sequence[BookingPublic], capacity: int
) -> Tuple[List[BookingPublic], int]:
    """
    Probe mode: which active bookings intersect [start, end) and how much
    capacity is left. Nothing is mutated.
    """
    hits = [
        b
        for b in existing
        if b.status in ACTIVE_STATUSES and overlaps(start, end, b.start_time, b.end_time)
    ]
    return hits, max(capacity - len(hits), 0)


def buffer_minutes(config: ValidationConfig) -> int:
    return config.buffer_time_minutes if config.require_buffer_time else 0


def suggest_alternatives(
    candidate: BookingCandidate,
    siblings: Sequence[BookingPublic],
    config: ValidationConfig,
    rule: Optional[AvailabilityRulePublic] = None,
    limit: int = MAX_ALTERNATIVES,
) -> List[str]:
    """
    Up to `limit` start times ("HH:MM") on the same day where a booking of the
    candidate's duration would pass the overlap and capacity checks.
    """
    starts = rule.slot_starts(candidate.date) if rule is not None else list(_FALLBACK_GRID)
    out: List[str] = []
    for start in starts:
        if start == candidate.start_time:
            continue
        end = start + candidate.duration_minutes
        if rule is not None and end > rule.end_time:
            continue
        remaining, _ = slot_state(start, end, siblings, config, rule)
        if remaining > 0:
            out.append(to_hhmm(start))
            if len(out) >= limit:
                break
    return out


def check_time_overlaps(
    candidate: BookingCandidate,
    siblings: Sequence[BookingPublic],
    config: ValidationConfig,
    rule: Optional[AvailabilityRulePublic] = None,
) -> List[BookingConflict]:
    if config.allow_overlapping:
        return []

    pad = buffer_minutes(config)
    clashing = [
        b
        for b in siblings
        if overlaps(candidate.start_time, candidate.end_time, b.start_time - pad, b.end_time + pad)
    ]
    if not clashing:
        return []

    alternatives = suggest_alternatives(candidate, siblings, config, rule)
    return [
        BookingConflict(
            type=ConflictType.TIME_OVERLAP,
            severity=Severity.CRITICAL,
            message=(
                f"Time overlaps booking of {b.client_name} "
                f"({to_hhmm(b.start_time)}-{to_hhmm(b.end_time)})"
                + (f" including {pad} min buffer" if pad else "")
            ),
            conflicting_booking=b,
            suggested_alternatives=alternatives,
        )
        for b in clashing
    ]


def slot_capacity(config: ValidationConfig, rule: Optional[AvailabilityRulePublic]) -> int:
    """Per-slot capacity: the stricter of policy and rule."""
    if rule is None:
        return config.max_bookings_per_slot
    return min(config.max_bookings_per_slot, rule.max_concurrent)


def slot_state(
    start: int,
    end: int,
    existing: Sequence[BookingPublic],
    config: ValidationConfig,
    rule: Optional[AvailabilityRulePublic] = None,
) -> Tuple[int, Optional[str]]:
    """
    Remaining capacity of [start, end) under the policy and rule, and the
    reason when it is zero. Zero here means a candidate on that window fails
    time_overlap or capacity_exceeded in `validate`.
    """
    active = [b for b in existing if b.status in ACTIVE_STATUSES]
    if len(active) >= config.max_bookings_per_day:
        return 0, f"Daily limit of {config.max_bookings_per_day} bookings reached"

    if not config.allow_overlapping:
        pad = buffer_minutes(config)
        if any(overlaps(start, end, b.start_time - pad, b.end_time + pad) for b in active):
            if pad:
                return 0, f"Within {pad} min of another booking"
            return 0, "No capacity left at this time"

    _, remaining = probe_slot(start, end, active, slot_capacity(config, rule))
    return remaining, None if remaining else "No capacity left at this time"


def check_capacity_limits(
    candidate: BookingCandidate,
    siblings: Sequence[BookingPublic],
    config: ValidationConfig,
    rule: Optional[AvailabilityRulePublic] = None,
) -> List[BookingConflict]:
    conflicts: List[BookingConflict] = []

    if len(siblings) >= config.max_bookings_per_day:
        conflicts.append(
            BookingConflict(
                type=ConflictType.CAPACITY_EXCEEDED,
                severity=Severity.CRITICAL,
                message=f"Daily limit of {config.max_bookings_per_day} bookings reached",
            )
        )

    capacity = slot_capacity(config, rule)
    hits, _ = probe_slot(candidate.start_time, candidate.end_time, siblings, capacity)
    if len(hits) >= capacity:
        conflicts.append(
            BookingConflict(
                type=ConflictType.CAPACITY_EXCEEDED,
                severity=Severity.CRITICAL,
                message=f"No capacity left at this time ({capacity} simultaneous bookings max)",
                suggested_alternatives=suggest_alternatives(candidate, siblings, config, rule),
            )
        )
    return conflicts


def check_duplicate_bookings(
    candidate: BookingCandidate, siblings: Sequence[BookingPublic]
) -> List[BookingConflict]:
    email = candidate.client_email.lower()
    for b in siblings:
        if (
            b.client_email.lower() == email
            and b.date == candidate.date
            and b.start_time == candidate.start_time
        ):
            return [
                BookingConflict(
                    type=ConflictType.DUPLICATE_BOOKING,
                    severity=Severity.CRITICAL,
                    message="This client already has a booking at the same date and time",
                    conflicting_booking=b,
                )
            ]
    return []


def check_availability_match(
    candidate: BookingCandidate, rule: Optional[AvailabilityRulePublic]
) -> List[BookingConflict]:
    starts = rule.slot_starts(candidate.date) if rule is not None else []
    if candidate.start_time in starts:
        return []
    if rule is None or not rule.applies_on(candidate.date):
        message = "The resource is not available on this date"
    else:
        message = "Requested time is not one of the configured slots"
    return [
        BookingConflict(
            type=ConflictType.AVAILABILITY_MISMATCH,
            severity=Severity.CRITICAL,
            message=message,
        )
    ]


def validate(
    candidate: BookingCandidate,
    existing: Iterable[BookingPublic],
    config: ValidationConfig,
    *,
    rule: Optional[AvailabilityRulePublic] = None,
    history: Iterable[BookingPublic] = (),
    now: Optional[datetime] = None,
) -> ValidationResult:
    """
    Run every conflict check (no short-circuit) and, when nothing critical
    was found, attach advisory warnings and suggestions.

    - existing: snapshot of the resource's bookings for candidate.date
    - rule: availability rule for the date's weekday (None => not bookable)
    - history: the client's earlier bookings with this resource, any status
    """
    try:
        siblings = active_siblings(candidate, existing)

        conflicts: List[BookingConflict] = []
        conflicts.extend(check_time_overlaps(candidate, siblings, config, rule))
        conflicts.extend(check_capacity_limits(candidate, siblings, config, rule))
        conflicts.extend(check_duplicate_bookings(candidate, siblings))
        conflicts.extend(check_availability_match(candidate, rule))

        is_valid = not any(c.severity == Severity.CRITICAL for c in conflicts)
        if not is_valid:
            return ValidationResult(is_valid=False, conflicts=conflicts)

        # Lazy import to avoid circular import (slots -> validator)
        from booking_engine.modules.availability.slots import build_slots

        slots = build_slots(rule, candidate.date, siblings, config) if rule is not None else []
        warnings, suggestions = analyze(
            candidate,
            siblings,
            config,
            slots=slots,
            history=[h for h in history if candidate.id is None or h.id != candidate.id],
            now=now,
        )
        return ValidationResult(
            is_valid=True,
            conflicts=conflicts,
            warnings=warnings,
            suggestions=suggestions,
        )
    except Exception:
        logger.exception("Validation of booking candidate failed")
        return ValidationResult(
            is_valid=False,
            conflicts=[
                BookingConflict(
                    type=ConflictType.AVAILABILITY_MISMATCH,
                    severity=Severity.CRITICAL,
                    message="Could not validate the booking. Please try again.",
                )
            ],
        )
