# booking_engine/modules/bookings/repository.py
from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.modules.bookings.models import ACTIVE_STATUSES, Booking, BookingStatus
from booking_engine.modules.bookings.schemas import BookingCandidate


class RepositoryError(Exception):
    """Storage unavailable or a write failed; the operation had no effect."""


# Statuses that no longer hold capacity
CLOSED_STATUSES = tuple(s.value for s in BookingStatus if s not in ACTIVE_STATUSES)


def _values(statuses: Iterable[BookingStatus | str]) -> list[str]:
    return [s.value if isinstance(s, BookingStatus) else str(s) for s in statuses]


async def get_by_id(session: AsyncSession, booking_id: UUID) -> Optional[Booking]:
    """
    Returns a Booking by primary key or None if not found.
    """
    return await session.get(Booking, booking_id)


async def list_for_day(
    session: AsyncSession,
    *,
    resource_id: str,
    day: date,
    statuses: Iterable[BookingStatus | str] = ACTIVE_STATUSES,
) -> Sequence[Booking]:
    """
    One range scan on (resource_id, date), ordered by start time.
    """
    stmt = (
        select(Booking)
        .where(
            Booking.resource_id == resource_id,
            Booking.date == day,
            Booking.status.in_(_values(statuses)),
        )
        .order_by(Booking.start_time, Booking.created_at)
    )
    return (await session.execute(stmt)).scalars().all()


async def list_client_history(
    session: AsyncSession, *, resource_id: str, client_email: str
) -> Sequence[Booking]:
    """
    Every booking (any status) a client has made with a resource.
    """
    stmt = (
        select(Booking)
        .where(
            Booking.resource_id == resource_id,
            Booking.client_email == client_email.strip().lower(),
        )
        .order_by(Booking.date, Booking.start_time)
    )
    return (await session.execute(stmt)).scalars().all()


async def list_for_resource(
    session: AsyncSession,
    *,
    resource_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    statuses: Optional[Iterable[BookingStatus | str]] = None,
    include_closed: bool = True,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[Sequence[Booking], int]:
    """
    Filtered listing for a resource. Returns (page, total).
    include_closed=False drops completed, cancelled and no_show bookings.
    """
    conds = [Booking.resource_id == resource_id]
    if date_from is not None:
        conds.append(Booking.date >= date_from)
    if date_to is not None:
        conds.append(Booking.date <= date_to)
    if statuses:
        conds.append(Booking.status.in_(_values(statuses)))
    if not include_closed:
        conds.append(Booking.status.not_in(CLOSED_STATUSES))

    total_stmt = select(func.count()).select_from(Booking).where(*conds)
    total = (await session.execute(total_stmt)).scalar_one()

    stmt = (
        select(Booking)
        .where(*conds)
        .order_by(Booking.date, Booking.start_time)
        .limit(limit)
        .offset(offset)
    )
    rows = (await session.execute(stmt)).scalars().all()
    return rows, total


async def insert_booking(session: AsyncSession, candidate: BookingCandidate) -> Booking:
    """
    Stage a new pending booking and flush so constraint errors surface here.
    Caller owns the transaction.
    """
    booking = Booking(
        resource_id=candidate.resource_id,
        service_id=candidate.service_id,
        service_name=candidate.service_name,
        date=candidate.date,
        start_time=candidate.start_time,
        end_time=candidate.end_time,
        duration_minutes=candidate.duration_minutes,
        client_name=candidate.client_name,
        client_email=candidate.client_email,
        client_phone=candidate.client_phone,
        notes=candidate.notes,
        price=candidate.price,
        status=BookingStatus.PENDING.value,
    )
    session.add(booking)
    await session.flush()
    await session.refresh(booking)
    return booking


async def update_status(
    session: AsyncSession, booking: Booking, status: BookingStatus
) -> Booking:
    booking.status = status.value
    await session.flush()
    await session.refresh(booking)
    return booking
