# booking_engine/modules/availability/slots.py
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_engine.core.cache import ScheduleCache
from booking_engine.core.times import weekday_index
from booking_engine.modules.availability import repository as availability_repo
from booking_engine.modules.availability.schemas import AvailabilityRulePublic, TimeSlot
from booking_engine.modules.availability.service import get_validation_config_svc
from booking_engine.modules.bookings import repository as booking_repo
from booking_engine.modules.bookings.schemas import BookingPublic
from booking_engine.modules.validation.schemas import ValidationConfig
from booking_engine.modules.validation.validator import probe_slot, slot_state

logger = logging.getLogger(__name__)


def build_slots(
    rule: Optional[AvailabilityRulePublic],
    day: date,
    existing: Sequence[BookingPublic],
    config: Optional[ValidationConfig] = None,
) -> List[TimeSlot]:
    """
    Ordered slots for `day` under `rule`, each probed against `existing`.
    Empty when the rule does not apply.

    With a `config` a slot is available exactly when a booking of the slot's
    length there would pass the overlap and capacity checks (buffer, daily
    limit, stricter of policy and rule capacity). Without one only the rule's
    max_concurrent is applied.
    """
    if rule is None:
        return []

    slots: List[TimeSlot] = []
    for start in rule.slot_starts(day):
        end = start + rule.slot_duration
        if config is None:
            _, remaining = probe_slot(start, end, existing, rule.max_concurrent)
            reason = None if remaining else "No capacity left at this time"
        else:
            remaining, reason = slot_state(start, end, existing, config, rule)
        slots.append(
            TimeSlot(
                time=start,
                available=remaining > 0,
                conflict_reason=reason,
                remaining_capacity=remaining,
            )
        )
    return slots


def pick_rule(
    rules: Sequence[AvailabilityRulePublic], day: date
) -> Optional[AvailabilityRulePublic]:
    """Active rule for the weekday of `day` (exceptions are left to the rule)."""
    dow = weekday_index(day)
    for rule in rules:
        if rule.is_active and rule.day_of_week == dow:
            return rule
    return None


class SlotGenerator:
    """
    Loads rule + booking snapshot for a resource/day and derives the slots.
    Rules and day snapshots go through the injected cache.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], cache: ScheduleCache):
        self.sessionmaker = sessionmaker
        self.cache = cache

    async def load_rules(
        self, session: AsyncSession, resource_id: str
    ) -> List[AvailabilityRulePublic]:
        rules = self.cache.get_rules(resource_id)
        if rules is None:
            since = self.cache.begin_read()
            rows = await availability_repo.list_rules(
                session, resource_id=resource_id, active_only=True
            )
            rules = [AvailabilityRulePublic.model_validate(r) for r in rows]
            self.cache.set_rules(resource_id, rules, since=since)
        return rules

    async def load_rule(
        self, session: AsyncSession, resource_id: str, day: date
    ) -> Optional[AvailabilityRulePublic]:
        return pick_rule(await self.load_rules(session, resource_id), day)

    async def load_day(
        self, session: AsyncSession, resource_id: str, day: date, *, fresh: bool = False
    ) -> List[BookingPublic]:
        """
        Active bookings for resource/day. fresh=True bypasses the cache
        (admission reads must see the committed state).
        A snapshot is only cached if no write touched the day while it was read.
        """
        if not fresh:
            cached = self.cache.get_day(resource_id, day)
            if cached is not None:
                return cached
        since = self.cache.begin_read()
        rows = await booking_repo.list_for_day(session, resource_id=resource_id, day=day)
        bookings = [BookingPublic.model_validate(r) for r in rows]
        self.cache.set_day(resource_id, day, bookings, since=since)
        return bookings

    async def generate_slots(self, resource_id: str, day: date) -> List[TimeSlot]:
        try:
            async with self.sessionmaker() as session:
                rule = await self.load_rule(session, resource_id, day)
                if rule is None:
                    logger.debug(f"No active rule for {resource_id} on {day}")
                    return []
                config = await get_validation_config_svc(session, resource_id)
                existing = await self.load_day(session, resource_id, day)
        except SQLAlchemyError as exc:
            raise booking_repo.RepositoryError("repository_unavailable") from exc
        return build_slots(rule, day, existing, config)
