"""Shared fixtures for booking engine tests."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from booking_engine.db.sql import build_sessionmaker, init_db
from booking_engine.dependencies import build_services, build_supervisor
from booking_engine.modules.availability.schemas import AvailabilityRuleIn, AvailabilityRulePublic
from booking_engine.modules.availability.service import (
    replace_availability_svc,
    update_validation_config_svc,
)
from booking_engine.modules.validation.schemas import ValidationConfig

from helpers import EARLY, RESOURCE, make_rule


@pytest.fixture
def monday_rule() -> AvailabilityRulePublic:
    """Mon 09:00-12:00, 30 min slots, no buffer, one at a time."""
    return make_rule()


@pytest.fixture
def relaxed_config() -> ValidationConfig:
    """No buffer, generous limits."""
    return ValidationConfig(require_buffer_time=False, max_bookings_per_day=20)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """SQLite file per test; every session gets its own connection."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def services(sessionmaker):
    return build_services(sessionmaker)


@pytest_asyncio.fixture
async def supervisor(sessionmaker, services):
    sup = build_supervisor(sessionmaker, services)
    sup.clock = lambda: EARLY
    yield sup
    sup.cancel_all()


@pytest_asyncio.fixture
async def session(sessionmaker):
    async with sessionmaker() as s:
        yield s


@pytest_asyncio.fixture
async def seeded(sessionmaker, services):
    """
    Resource with the Monday 09:00-12:00 rule and a no-buffer policy stored.
    """
    async with sessionmaker() as s:
        await replace_availability_svc(
            s,
            RESOURCE,
            [
                AvailabilityRuleIn(
                    day_of_week=1,
                    start_time="09:00",
                    end_time="12:00",
                    slot_duration=30,
                    buffer_time=0,
                    max_concurrent=1,
                )
            ],
            cache=services.cache,
        )
        await update_validation_config_svc(
            s, RESOURCE, ValidationConfig(require_buffer_time=False)
        )
    return RESOURCE
