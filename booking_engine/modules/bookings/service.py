# booking_engine/modules/bookings/service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.cache import ScheduleCache
from booking_engine.modules.availability.service import get_validation_config_svc
from booking_engine.modules.availability.slots import SlotGenerator
from booking_engine.modules.bookings import repository as booking_repo
from booking_engine.modules.bookings.admission import AdmissionGate
from booking_engine.modules.bookings.feed import BookingChange, BookingChangeFeed, ChangeKind
from booking_engine.modules.bookings.lifecycle import check_transition
from booking_engine.modules.bookings.models import Booking, BookingStatus
from booking_engine.modules.bookings.repository import RepositoryError
from booking_engine.modules.bookings.schemas import (
    BookingCandidate,
    BookingListPage,
    BookingPublic,
)
from booking_engine.modules.validation.schemas import (
    BookingAccepted,
    BookingConflict,
    ValidationConfig,
    ValidationResult,
)
from booking_engine.modules.validation.validator import validate

logger = logging.getLogger(__name__)


# Custom errors for router mapping to HTTP
class ValidationRejected(Exception):
    """
    Candidate failed validation: one or more critical conflicts.
    Expected outcome, never retried automatically.
    """

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(", ".join(c.type.value for c in result.blocking) or "rejected")

    @property
    def conflicts(self) -> List[BookingConflict]:
        return self.result.blocking


class BookingNotFound(Exception):
    """
    No booking found
    """


@dataclass
class EngineServices:
    """
    Long-lived collaborators shared by requests and supervisors.
    Built once per application (see main.create_app), never a module global.
    """
    gate: AdmissionGate
    slots: SlotGenerator
    feed: BookingChangeFeed

    @property
    def cache(self) -> ScheduleCache:
        return self.slots.cache


def _to_public(booking: Booking) -> BookingPublic:
    return BookingPublic.model_validate(booking)


async def _load_context(
    session: AsyncSession,
    services: EngineServices,
    candidate: BookingCandidate,
    *,
    fresh: bool,
):
    rule = await services.slots.load_rule(session, candidate.resource_id, candidate.date)
    existing = await services.slots.load_day(
        session, candidate.resource_id, candidate.date, fresh=fresh
    )
    history_rows = await booking_repo.list_client_history(
        session,
        resource_id=candidate.resource_id,
        client_email=candidate.client_email,
    )
    history = [_to_public(r) for r in history_rows]
    config = await get_validation_config_svc(session, candidate.resource_id)
    return rule, existing, history, config


# VALIDATE (dry run)
async def validate_booking_svc(
    session: AsyncSession,
    candidate: BookingCandidate,
    *,
    services: EngineServices,
    config: Optional[ValidationConfig] = None,
    now: Optional[datetime] = None,
) -> ValidationResult:
    """
    Validate without writing anything. Uses cached snapshots.
    """
    try:
        rule, existing, history, stored = await _load_context(
            session, services, candidate, fresh=False
        )
    except SQLAlchemyError as exc:
        raise RepositoryError("repository_unavailable") from exc
    return validate(
        candidate, existing, config or stored, rule=rule, history=history, now=now
    )


# CREATE
async def create_booking_svc(
    session: AsyncSession,
    candidate: BookingCandidate,
    *,
    services: EngineServices,
    now: Optional[datetime] = None,
) -> BookingAccepted:
    """
    Admit a new booking.

    Logic:
    - Serialize on (resource_id, date): snapshot read, validation and commit
      happen while holding the admission turn.
    - Any critical conflict => ValidationRejected, nothing written.
    - Storage errors => RepositoryError, transaction rolled back (fail closed).
    - On commit: invalidate the day in the cache, publish an "added" change.
    """
    candidate = candidate.model_copy(update={"id": None})
    rid, day = candidate.resource_id, candidate.date

    async with services.gate.hold(rid, day):
        try:
            rule, existing, history, config = await _load_context(
                session, services, candidate, fresh=True
            )
            result = validate(candidate, existing, config, rule=rule, history=history, now=now)
            if not result.is_valid:
                logger.info(
                    f"Booking rejected for {rid} on {day} at {candidate.start_time}: "
                    f"{[c.type.value for c in result.blocking]}"
                )
                raise ValidationRejected(result)

            row = await booking_repo.insert_booking(session, candidate)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.error(f"Booking write failed for {rid} on {day}: {exc}")
            raise RepositoryError("repository_unavailable") from exc
        finally:
            services.cache.invalidate_day(rid, day)

    booking = _to_public(row)
    logger.info(f"Booking {booking.id} accepted for {rid} on {day}")
    services.feed.publish(BookingChange(kind=ChangeKind.ADDED, booking=booking))
    return BookingAccepted(
        booking=booking, warnings=result.warnings, suggestions=result.suggestions
    )


# TRANSITION
async def transition_booking_svc(
    session: AsyncSession,
    booking_id: UUID,
    target: BookingStatus,
    *,
    services: EngineServices,
    now: Optional[datetime] = None,
) -> BookingPublic:
    """
    Move a booking to `target` following the lifecycle table.
    Same-status requests succeed without writing (idempotent retries).
    Freeing capacity (cancelled / no_show) never re-validates other bookings.
    """
    try:
        booking = await booking_repo.get_by_id(session, booking_id)
    except SQLAlchemyError as exc:
        raise RepositoryError("repository_unavailable") from exc
    if booking is None:
        raise BookingNotFound("booking_not_found")

    if not check_transition(booking, target, now=now):
        return _to_public(booking)

    previous = booking.status
    try:
        await booking_repo.update_status(session, booking, target)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise RepositoryError("repository_unavailable") from exc
    finally:
        services.cache.invalidate_day(booking.resource_id, booking.date)

    public = _to_public(booking)
    logger.info(f"Booking {public.id}: {previous} -> {public.status.value}")
    services.feed.publish(BookingChange(kind=ChangeKind.MODIFIED, booking=public))
    return public


# LIST
async def list_bookings_svc(
    session: AsyncSession,
    resource_id: str,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    statuses: Optional[List[BookingStatus]] = None,
    include_closed: bool = True,
    limit: int = 50,
    offset: int = 0,
) -> BookingListPage:
    try:
        rows, total = await booking_repo.list_for_resource(
            session,
            resource_id=resource_id,
            date_from=date_from,
            date_to=date_to,
            statuses=statuses,
            include_closed=include_closed,
            limit=limit,
            offset=offset,
        )
    except SQLAlchemyError as exc:
        raise RepositoryError("repository_unavailable") from exc

    return BookingListPage(
        items=[_to_public(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
        has_next=offset + limit < total,
    )
