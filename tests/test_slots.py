"""Tests for slot derivation and the time helpers it relies on."""

import asyncio
from datetime import date

import pytest
from pydantic import ValidationError

from booking_engine.core.cache import ScheduleCache
from booking_engine.core.times import coerce_minutes, overlaps, parse_hhmm, to_hhmm, weekday_index
from booking_engine.modules.availability.schemas import AvailabilityRuleIn
from booking_engine.modules.availability.service import update_validation_config_svc
from booking_engine.modules.availability.slots import SlotGenerator, build_slots, pick_rule
from booking_engine.modules.bookings import repository as booking_repo
from booking_engine.modules.bookings.models import BookingStatus
from booking_engine.modules.bookings.repository import RepositoryError
from booking_engine.modules.bookings.service import create_booking_svc
from booking_engine.modules.validation.schemas import ValidationConfig
from booking_engine.modules.validation.validator import validate

from helpers import EARLY, MONDAY, RESOURCE, TUESDAY, make_booking, make_candidate, make_rule


class TestTimes:
    """HH:MM parsing and interval helpers."""

    def test_parse_and_format(self):
        """HH:MM converts to minutes of day and back."""
        assert parse_hhmm("09:30") == 570
        assert parse_hhmm("24:00") == 1440
        assert to_hhmm(570) == "09:30"

    @pytest.mark.parametrize("bad", ["9.30", "25:00", "10:60", "", "ab:cd"])
    def test_parse_rejects_malformed(self, bad):
        """Malformed or out of range values raise ValueError."""
        with pytest.raises(ValueError):
            parse_hhmm(bad)

    def test_coerce_rejects_bool(self):
        """Booleans are not minute counts."""
        with pytest.raises(ValueError):
            coerce_minutes(True)

    def test_overlaps_half_open(self):
        """Touching intervals do not overlap."""
        assert overlaps(600, 630, 615, 645) is True
        assert overlaps(600, 630, 630, 660) is False

    def test_weekday_index_sunday_first(self):
        """Sunday is 0, Monday is 1."""
        assert weekday_index(date(2030, 1, 6)) == 0
        assert weekday_index(MONDAY) == 1


class TestRuleSchema:
    """AvailabilityRuleIn validation."""

    def test_end_must_follow_start(self):
        """A window that ends before it starts is rejected."""
        with pytest.raises(ValidationError):
            AvailabilityRuleIn(
                day_of_week=1, start_time="12:00", end_time="09:00", slot_duration=30
            )

    def test_day_of_week_range(self):
        """Weekday must be 0..6."""
        with pytest.raises(ValidationError):
            AvailabilityRuleIn(
                day_of_week=7, start_time="09:00", end_time="12:00", slot_duration=30
            )


class TestBuildSlots:
    """build_slots over a rule and a booking snapshot."""

    def test_open_day(self, monday_rule):
        """Six half-hour slots between 09:00 and 12:00."""
        slots = build_slots(monday_rule, MONDAY, [])

        assert [to_hhmm(s.time) for s in slots] == [
            "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
        ]
        assert all(s.available and s.remaining_capacity == 1 for s in slots)

    def test_booked_slot_unavailable(self, monday_rule):
        """A booking consumes the only seat of its slot."""
        existing = [make_booking(start_time="10:00")]

        slots = {to_hhmm(s.time): s for s in build_slots(monday_rule, MONDAY, existing)}

        assert slots["10:00"].available is False
        assert slots["10:00"].remaining_capacity == 0
        assert slots["10:00"].conflict_reason
        assert slots["10:30"].available is True

    def test_cancelled_booking_frees_slot(self, monday_rule):
        """Inactive bookings are ignored."""
        existing = [make_booking(start_time="10:00", status=BookingStatus.CANCELLED)]

        slots = {to_hhmm(s.time): s for s in build_slots(monday_rule, MONDAY, existing)}

        assert slots["10:00"].available is True

    def test_remaining_capacity(self):
        """With three seats, one booking leaves two."""
        rule = make_rule(max_concurrent=3)
        existing = [make_booking(start_time="09:00")]

        slots = build_slots(rule, MONDAY, existing)

        assert slots[0].remaining_capacity == 2
        assert slots[0].available is True

    def test_buffer_widens_step(self):
        """Slots step by duration plus buffer and must end by closing time."""
        rule = make_rule(slot_duration=45, buffer_time=15)

        slots = build_slots(rule, MONDAY, [])

        assert [to_hhmm(s.time) for s in slots] == ["09:00", "10:00", "11:00"]

    def test_last_slot_must_fit(self):
        """A slot that would run past closing time is not offered."""
        rule = make_rule(end_time="10:15", slot_duration=30)

        slots = build_slots(rule, MONDAY, [])

        assert [to_hhmm(s.time) for s in slots] == ["09:00", "09:30"]

    def test_exception_date_empty(self):
        """An exception date yields no slots."""
        rule = make_rule(exceptions={MONDAY})

        assert build_slots(rule, MONDAY, []) == []

    def test_other_weekday_empty(self, monday_rule):
        """A Monday rule yields nothing on Tuesday."""
        assert build_slots(monday_rule, TUESDAY, []) == []

    def test_inactive_rule_empty(self):
        """Inactive rules yield nothing."""
        assert build_slots(make_rule(is_active=False), MONDAY, []) == []

    def test_deterministic(self, monday_rule):
        """Same inputs, same output."""
        existing = [make_booking(start_time="09:30")]

        assert build_slots(monday_rule, MONDAY, existing) == build_slots(
            monday_rule, MONDAY, existing
        )

    def test_policy_buffer_blocks_neighbours(self, monday_rule):
        """Under a 15 min buffer the slots touching a booking are not offered."""
        existing = [make_booking(start_time="10:00")]

        slots = {
            to_hhmm(s.time): s
            for s in build_slots(monday_rule, MONDAY, existing, ValidationConfig())
        }

        assert [t for t, s in slots.items() if not s.available] == ["09:30", "10:00", "10:30"]
        assert slots["09:30"].remaining_capacity == 0
        assert "15 min" in slots["09:30"].conflict_reason
        assert slots["11:00"].remaining_capacity == 1

    def test_available_slots_pass_validation(self, monday_rule):
        """A slot is offered exactly when a booking there would be accepted."""
        config = ValidationConfig()
        existing = [make_booking(start_time="10:00", client_email="a@example.com")]

        for slot in build_slots(monday_rule, MONDAY, existing, config):
            candidate = make_candidate(start_time=to_hhmm(slot.time), client_email="b@example.com")
            result = validate(candidate, existing, config, rule=monday_rule, now=EARLY)
            assert result.is_valid is slot.available, to_hhmm(slot.time)

    def test_daily_limit_closes_day(self, monday_rule, relaxed_config):
        """Once the daily limit is reached no slot is offered."""
        config = relaxed_config.model_copy(update={"max_bookings_per_day": 1})
        existing = [make_booking(start_time="09:00")]

        slots = build_slots(monday_rule, MONDAY, existing, config)

        assert not any(s.available for s in slots)
        assert all(s.remaining_capacity == 0 for s in slots)
        assert "Daily limit" in slots[-1].conflict_reason

    def test_policy_capacity_caps_rule(self):
        """Remaining capacity uses the stricter of policy and rule."""
        rule = make_rule(max_concurrent=3)
        config = ValidationConfig(
            allow_overlapping=True, require_buffer_time=False, max_bookings_per_slot=2
        )
        existing = [make_booking(start_time="09:00")]

        slots = build_slots(rule, MONDAY, existing, config)

        assert slots[0].remaining_capacity == 1
        assert slots[1].remaining_capacity == 2

    def test_pick_rule(self, monday_rule):
        """pick_rule matches the weekday and skips inactive rules."""
        inactive = make_rule(is_active=False)
        tuesday = make_rule(day_of_week=2)

        assert pick_rule([inactive, tuesday, monday_rule], MONDAY) is monday_rule
        assert pick_rule([monday_rule], TUESDAY) is None


class TestSlotGenerator:
    """SlotGenerator against the database."""

    @pytest.mark.asyncio
    async def test_generate_from_store(self, seeded, services):
        """Stored rule produces the Monday grid."""
        slots = await services.slots.generate_slots(seeded, MONDAY)

        assert len(slots) == 6
        assert slots[0].time == 540

    @pytest.mark.asyncio
    async def test_unknown_resource(self, services):
        """No rule, no slots."""
        assert await services.slots.generate_slots("nobody", MONDAY) == []

    @pytest.mark.asyncio
    async def test_rules_cached(self, seeded, services):
        """Rules are served from the cache after the first load."""
        await services.slots.generate_slots(seeded, MONDAY)

        assert services.cache.get_rules(RESOURCE) is not None
        assert services.cache.get_day(RESOURCE, MONDAY) == []

    @pytest.mark.asyncio
    async def test_store_failure_raises_repository_error(self, sessionmaker, engine):
        """A broken store surfaces as RepositoryError."""
        generator = SlotGenerator(sessionmaker, ScheduleCache(ttl=60))
        async with engine.begin() as conn:
            await conn.exec_driver_sql("DROP TABLE availability_rules")

        with pytest.raises(RepositoryError):
            await generator.generate_slots(RESOURCE, MONDAY)

    @pytest.mark.asyncio
    async def test_stored_policy_applied(self, seeded, sessionmaker, services):
        """Generated slots follow the resource's stored buffer policy."""
        async with sessionmaker() as s:
            await update_validation_config_svc(s, RESOURCE, ValidationConfig())
            await booking_repo.insert_booking(s, make_candidate(start_time="10:00"))
            await s.commit()

        slots = {
            to_hhmm(s.time): s for s in await services.slots.generate_slots(RESOURCE, MONDAY)
        }

        assert slots["09:30"].available is False
        assert slots["10:30"].available is False
        assert slots["11:00"].available is True

    @pytest.mark.asyncio
    async def test_slow_read_does_not_cache_stale_day(
        self, seeded, sessionmaker, services, monkeypatch
    ):
        """A day read that straddles a booking write is not cached."""
        real_list_for_day = booking_repo.list_for_day
        read_done = asyncio.Event()
        release = asyncio.Event()
        calls = {"n": 0}

        async def slow_list_for_day(session, **kwargs):
            calls["n"] += 1
            rows = await real_list_for_day(session, **kwargs)
            if calls["n"] == 1:
                read_done.set()
                await release.wait()
            return rows

        monkeypatch.setattr(booking_repo, "list_for_day", slow_list_for_day)
        reader = asyncio.create_task(services.slots.generate_slots(RESOURCE, MONDAY))
        await asyncio.wait_for(read_done.wait(), 2)

        async with sessionmaker() as s:
            await create_booking_svc(s, make_candidate(), services=services, now=EARLY)
        release.set()
        before = await reader

        assert before[0].available is True
        assert services.cache.get_day(RESOURCE, MONDAY) is None
        after = await services.slots.generate_slots(RESOURCE, MONDAY)
        assert after[0].available is False
