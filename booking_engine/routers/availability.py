# booking_engine/routers/availability.py
from __future__ import annotations

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.db.sql import get_session
from booking_engine.dependencies import get_services
from booking_engine.modules.availability.schemas import (
    AvailabilityReplaceRequest,
    AvailabilityRulePublic,
    TimeSlot,
)
from booking_engine.modules.availability.service import (
    get_validation_config_svc,
    list_availability_svc,
    replace_availability_svc,
    setup_default_availability_svc,
    update_validation_config_svc,
)
from booking_engine.modules.bookings.repository import RepositoryError
from booking_engine.modules.bookings.service import EngineServices
from booking_engine.modules.validation.schemas import ValidationConfig

router = APIRouter(tags=["availability"])


def _unavailable(exc: RepositoryError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc) or "repository_unavailable",
    )


@router.get(
    "/resources/{resource_id}/slots",
    response_model=List[TimeSlot],
    summary="Bookable slots of a resource for one day",
)
async def resource_slots(
    resource_id: str,
    day: date = Query(..., alias="date"),
    services: EngineServices = Depends(get_services),
):
    try:
        return await services.slots.generate_slots(resource_id, day)
    except RepositoryError as e:
        raise _unavailable(e)


@router.get(
    "/resources/{resource_id}/availability",
    response_model=List[AvailabilityRulePublic],
)
async def availability_list(
    resource_id: str,
    session: AsyncSession = Depends(get_session),
):
    try:
        return await list_availability_svc(session, resource_id)
    except RepositoryError as e:
        raise _unavailable(e)


@router.put(
    "/resources/{resource_id}/availability",
    response_model=List[AvailabilityRulePublic],
    summary="Replace all availability rules of a resource",
)
async def availability_replace(
    resource_id: str,
    payload: AvailabilityReplaceRequest,
    session: AsyncSession = Depends(get_session),
    services: EngineServices = Depends(get_services),
):
    try:
        return await replace_availability_svc(
            session, resource_id, payload.rules, cache=services.cache
        )
    except RepositoryError as e:
        raise _unavailable(e)


@router.post(
    "/resources/{resource_id}/availability/default",
    response_model=List[AvailabilityRulePublic],
    status_code=status.HTTP_201_CREATED,
    summary="Install the default Monday-Friday schedule",
)
async def availability_default(
    resource_id: str,
    session: AsyncSession = Depends(get_session),
    services: EngineServices = Depends(get_services),
):
    try:
        return await setup_default_availability_svc(session, resource_id, cache=services.cache)
    except RepositoryError as e:
        raise _unavailable(e)


@router.get(
    "/resources/{resource_id}/validation-config",
    response_model=ValidationConfig,
)
async def validation_config_get(
    resource_id: str,
    session: AsyncSession = Depends(get_session),
):
    try:
        return await get_validation_config_svc(session, resource_id)
    except RepositoryError as e:
        raise _unavailable(e)


@router.put(
    "/resources/{resource_id}/validation-config",
    response_model=ValidationConfig,
)
async def validation_config_put(
    resource_id: str,
    payload: ValidationConfig,
    session: AsyncSession = Depends(get_session),
):
    try:
        return await update_validation_config_svc(session, resource_id, payload)
    except RepositoryError as e:
        raise _unavailable(e)
