# booking_engine/modules/availability/repository.py
from __future__ import annotations

from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.modules.availability.models import AvailabilityRule, ValidationPolicy
from booking_engine.modules.availability.schemas import AvailabilityRuleIn

# Monday..Friday 09:00-17:00, 30 min slots, 15 min buffer, one at a time
DEFAULT_WEEK: tuple[AvailabilityRuleIn, ...] = tuple(
    AvailabilityRuleIn(
        day_of_week=dow,
        start_time=9 * 60,
        end_time=17 * 60,
        slot_duration=30,
        buffer_time=15,
        max_concurrent=1,
    )
    for dow in range(1, 6)
)


async def list_rules(
    session: AsyncSession, *, resource_id: str, active_only: bool = False
) -> Sequence[AvailabilityRule]:
    stmt = select(AvailabilityRule).where(AvailabilityRule.resource_id == resource_id)
    if active_only:
        stmt = stmt.where(AvailabilityRule.is_active.is_(True))
    stmt = stmt.order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time)
    rows = await session.execute(stmt)
    return rows.scalars().all()


async def replace_rules(
    session: AsyncSession, *, resource_id: str, rules: Iterable[AvailabilityRuleIn]
) -> Sequence[AvailabilityRule]:
    """
    Delete every rule of the resource and insert the new set in the same
    transaction. Caller commits.
    """
    await session.execute(
        delete(AvailabilityRule).where(AvailabilityRule.resource_id == resource_id)
    )
    created: list[AvailabilityRule] = []
    for rule in rules:
        row = AvailabilityRule(
            resource_id=resource_id,
            day_of_week=rule.day_of_week,
            start_time=rule.start_time,
            end_time=rule.end_time,
            slot_duration=rule.slot_duration,
            buffer_time=rule.buffer_time,
            max_concurrent=rule.max_concurrent,
            is_active=rule.is_active,
            exceptions=sorted(d.isoformat() for d in rule.exceptions),
        )
        session.add(row)
        created.append(row)
    await session.flush()
    return created


async def get_policy(session: AsyncSession, *, resource_id: str) -> Optional[ValidationPolicy]:
    stmt = select(ValidationPolicy).where(ValidationPolicy.resource_id == resource_id)
    return (await session.execute(stmt)).scalar_one_or_none()


async def upsert_policy(
    session: AsyncSession, *, resource_id: str, values: dict
) -> ValidationPolicy:
    policy = await get_policy(session, resource_id=resource_id)
    if policy is None:
        policy = ValidationPolicy(resource_id=resource_id, **values)
        session.add(policy)
    else:
        for k, v in values.items():
            setattr(policy, k, v)
    await session.flush()
    return policy
