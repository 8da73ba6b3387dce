# booking_engine/modules/availability/service.py
from __future__ import annotations

import logging
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.cache import ScheduleCache
from booking_engine.modules.availability import repository as availability_repo
from booking_engine.modules.availability.schemas import (
    AvailabilityRuleIn,
    AvailabilityRulePublic,
)
from booking_engine.modules.bookings.repository import RepositoryError
from booking_engine.modules.validation.schemas import ValidationConfig

logger = logging.getLogger(__name__)

_POLICY_FIELDS = tuple(ValidationConfig.model_fields)


def _to_public(rows) -> List[AvailabilityRulePublic]:
    return [AvailabilityRulePublic.model_validate(r) for r in rows]


async def list_availability_svc(
    session: AsyncSession, resource_id: str
) -> List[AvailabilityRulePublic]:
    try:
        rows = await availability_repo.list_rules(session, resource_id=resource_id)
    except SQLAlchemyError as exc:
        raise RepositoryError("availability_unavailable") from exc
    return _to_public(rows)


async def replace_availability_svc(
    session: AsyncSession,
    resource_id: str,
    rules: Iterable[AvailabilityRuleIn],
    *,
    cache: ScheduleCache,
) -> List[AvailabilityRulePublic]:
    """
    Replace every rule of a resource in one transaction, then drop the
    resource from the cache so slots are derived from the new rules.
    """
    rules = list(rules)
    try:
        rows = await availability_repo.replace_rules(
            session, resource_id=resource_id, rules=rules
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise RepositoryError("availability_write_failed") from exc
    finally:
        cache.invalidate_resource(resource_id)

    logger.info(f"Availability of {resource_id} replaced with {len(rules)} rule(s)")
    return _to_public(rows)


async def setup_default_availability_svc(
    session: AsyncSession, resource_id: str, *, cache: ScheduleCache
) -> List[AvailabilityRulePublic]:
    """
    Monday to Friday, 09:00-17:00, 30 min slots with 15 min buffer.
    """
    return await replace_availability_svc(
        session, resource_id, availability_repo.DEFAULT_WEEK, cache=cache
    )


async def get_validation_config_svc(session: AsyncSession, resource_id: str) -> ValidationConfig:
    """
    Stored policy of the resource, or the defaults when none is stored.
    """
    try:
        policy = await availability_repo.get_policy(session, resource_id=resource_id)
    except SQLAlchemyError as exc:
        raise RepositoryError("policy_unavailable") from exc
    if policy is None:
        return ValidationConfig()
    return ValidationConfig.model_validate(policy)


async def update_validation_config_svc(
    session: AsyncSession, resource_id: str, config: ValidationConfig
) -> ValidationConfig:
    values = {k: getattr(config, k) for k in _POLICY_FIELDS}
    try:
        policy = await availability_repo.upsert_policy(
            session, resource_id=resource_id, values=values
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise RepositoryError("policy_write_failed") from exc
    return ValidationConfig.model_validate(policy)
