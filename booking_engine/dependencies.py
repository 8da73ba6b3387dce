# booking_engine/dependencies.py
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from fastapi import Request

from booking_engine.core.cache import ScheduleCache
from booking_engine.modules.availability.slots import SlotGenerator
from booking_engine.modules.bookings.admission import AdmissionGate
from booking_engine.modules.bookings.feed import BookingChangeFeed
from booking_engine.modules.bookings.service import EngineServices
from booking_engine.modules.validation.supervisor import Supervisor


def build_services(sessionmaker: async_sessionmaker[AsyncSession]) -> EngineServices:
    """
    Wire the long-lived collaborators for one application instance.
    """
    cache = ScheduleCache()
    return EngineServices(
        gate=AdmissionGate(),
        slots=SlotGenerator(sessionmaker, cache),
        feed=BookingChangeFeed(),
    )


def build_supervisor(
    sessionmaker: async_sessionmaker[AsyncSession], services: EngineServices
) -> Supervisor:
    return Supervisor(sessionmaker, services.feed, services.slots)


def get_services(request: Request) -> EngineServices:
    return request.app.state.services


def get_supervisor(request: Request) -> Supervisor:
    return request.app.state.supervisor
