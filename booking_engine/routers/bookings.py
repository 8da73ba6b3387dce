# booking_engine/routers/bookings.py
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.db.sql import get_session
from booking_engine.dependencies import get_services
from booking_engine.modules.bookings.admission import AdmissionTimeout
from booking_engine.modules.bookings.lifecycle import InvalidTransition
from booking_engine.modules.bookings.models import BookingStatus
from booking_engine.modules.bookings.repository import RepositoryError
from booking_engine.modules.bookings.schemas import (
    BookingCandidate,
    BookingListPage,
    BookingPublic,
    BookingStatusUpdate,
)
from booking_engine.modules.bookings.service import (
    BookingNotFound,
    EngineServices,
    ValidationRejected,
    create_booking_svc,
    list_bookings_svc,
    transition_booking_svc,
    validate_booking_svc,
)
from booking_engine.modules.validation.schemas import BookingAccepted, ValidationResult

router = APIRouter(tags=["bookings"])


def _unavailable(exc: RepositoryError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc) or "repository_unavailable",
    )


# Implement /bookings/validate (POST)
@router.post(
    "/bookings/validate",
    response_model=ValidationResult,
    summary="Dry-run validation of a booking request (nothing is written)",
)
async def bookings_validate(
    payload: BookingCandidate,
    session: AsyncSession = Depends(get_session),
    services: EngineServices = Depends(get_services),
):
    try:
        return await validate_booking_svc(session, payload, services=services)
    except RepositoryError as e:
        raise _unavailable(e)


# Implement /bookings (POST)
@router.post(
    "/bookings",
    response_model=BookingAccepted,
    status_code=status.HTTP_201_CREATED,
    summary="Create booking (serialized admission per resource and day)",
)
async def bookings_create(
    payload: BookingCandidate,
    session: AsyncSession = Depends(get_session),
    services: EngineServices = Depends(get_services),
):
    try:
        return await create_booking_svc(session, payload, services=services)
    except ValidationRejected as e:
        # Render every blocking conflict, not a generic failure
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "booking_rejected",
                "conflicts": [c.model_dump(mode="json") for c in e.conflicts],
            },
        )
    except AdmissionTimeout:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="admission_timeout",
        )
    except RepositoryError as e:
        raise _unavailable(e)


# Implement /resources/{id}/bookings (GET)
@router.get(
    "/resources/{resource_id}/bookings",
    response_model=BookingListPage,
    summary="List bookings of a resource",
)
async def bookings_for_resource(
    resource_id: str,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    status_in: Optional[List[BookingStatus]] = Query(None, alias="status"),
    include_closed: bool = Query(True),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    try:
        return await list_bookings_svc(
            session,
            resource_id,
            date_from=date_from,
            date_to=date_to,
            statuses=status_in,
            include_closed=include_closed,
            limit=limit,
            offset=offset,
        )
    except RepositoryError as e:
        raise _unavailable(e)


# Implement /bookings/{id}/status (PUT)
@router.put(
    "/bookings/{booking_id}/status",
    response_model=BookingPublic,
    summary="Change booking status",
)
async def bookings_transition(
    booking_id: UUID,
    payload: BookingStatusUpdate,
    session: AsyncSession = Depends(get_session),
    services: EngineServices = Depends(get_services),
):
    try:
        return await transition_booking_svc(
            session, booking_id, payload.status, services=services
        )
    except BookingNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="booking_not_found",
        )
    except InvalidTransition as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except RepositoryError as e:
        raise _unavailable(e)
