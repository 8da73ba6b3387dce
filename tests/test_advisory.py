"""Tests for advisory warnings and suggestions."""

from datetime import date, datetime

from booking_engine.modules.availability.slots import build_slots
from booking_engine.modules.validation.advisory import analyze, is_busy_day, is_last_minute
from booking_engine.modules.validation.schemas import (
    SuggestionType,
    ValidationConfig,
    WarningType,
)

from helpers import EARLY, MONDAY, make_booking, make_candidate, make_rule


def warning_types(warnings):
    return [w.type for w in warnings]


class TestWarnings:
    """Warning rules."""

    def test_close_to_deadline(self):
        """Bookings starting within the threshold are flagged."""
        config = ValidationConfig(last_minute_threshold_hours=2)
        now = datetime(2030, 1, 7, 7, 30)

        warnings, _ = analyze(make_candidate(start_time="09:00"), [], config, now=now)

        assert WarningType.CLOSE_TO_DEADLINE in warning_types(warnings)

    def test_deadline_boundary(self):
        """Exactly the threshold away is not last-minute."""
        config = ValidationConfig(last_minute_threshold_hours=2)

        assert is_last_minute(make_candidate(), config, datetime(2030, 1, 7, 7, 0)) is False
        assert is_last_minute(make_candidate(), config, datetime(2030, 1, 7, 7, 1)) is True

    def test_deadline_check_disabled(self):
        """prevent_last_minute_bookings=False silences the warning."""
        config = ValidationConfig(prevent_last_minute_bookings=False)
        now = datetime(2030, 1, 7, 8, 45)

        warnings, _ = analyze(make_candidate(), [], config, now=now)

        assert WarningType.CLOSE_TO_DEADLINE not in warning_types(warnings)

    def test_busy_period(self):
        """Four of five daily bookings taken is a busy day."""
        config = ValidationConfig(max_bookings_per_day=5)
        siblings = [
            make_booking(start_time=t, client_email=f"c{i}@example.com")
            for i, t in enumerate(["09:00", "09:30", "10:00", "10:30"])
        ]

        assert is_busy_day(siblings, config) is True
        assert is_busy_day(siblings[:3], config) is False

        warnings, _ = analyze(make_candidate(start_time="11:00"), siblings, config, now=EARLY)
        assert WarningType.BUSY_PERIOD in warning_types(warnings)

    def test_first_time_client(self):
        """A client with no history for the resource is new."""
        warnings, _ = analyze(make_candidate(), [], ValidationConfig(), now=EARLY)

        assert warning_types(warnings) == [WarningType.FIRST_TIME_CLIENT]

    def test_returning_client(self):
        """Any earlier booking with the resource counts, whatever its status."""
        history = [make_booking(date=date(2029, 11, 5), status="completed")]

        warnings, _ = analyze(make_candidate(), [], ValidationConfig(), history=history, now=EARLY)

        assert warnings == []

    def test_history_other_resource_ignored(self):
        """History with another resource does not make a returning client."""
        history = [make_booking(resource_id="card-2")]

        warnings, _ = analyze(make_candidate(), [], ValidationConfig(), history=history, now=EARLY)

        assert warning_types(warnings) == [WarningType.FIRST_TIME_CLIENT]


class TestSuggestions:
    """alternative_time suggestions."""

    def test_alternatives_listed(self):
        """Up to three other open slots are offered."""
        rule = make_rule()
        slots = build_slots(rule, MONDAY, [])

        _, suggestions = analyze(make_candidate(), [], ValidationConfig(), slots=slots, now=EARLY)

        assert len(suggestions) == 1
        assert suggestions[0].type == SuggestionType.ALTERNATIVE_TIME
        assert suggestions[0].action_data == {"alternative_slots": ["09:30", "10:00", "10:30"]}

    def test_needs_two_open_slots(self):
        """With a single open slot there is nothing to suggest."""
        rule = make_rule(end_time="10:00")
        booked = [make_booking(start_time="09:30", client_email="b@example.com")]
        slots = build_slots(rule, MONDAY, booked)

        _, suggestions = analyze(
            make_candidate(), booked, ValidationConfig(), slots=slots, now=EARLY
        )

        assert suggestions == []

    def test_no_slots_no_suggestion(self):
        """No slot information, no suggestion."""
        _, suggestions = analyze(make_candidate(), [], ValidationConfig(), now=EARLY)

        assert suggestions == []
