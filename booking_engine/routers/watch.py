# booking_engine/routers/watch.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.db.sql import get_session
from booking_engine.dependencies import get_supervisor
from booking_engine.modules.availability.service import get_validation_config_svc
from booking_engine.modules.bookings.repository import RepositoryError
from booking_engine.modules.validation.supervisor import Supervisor, log_event

router = APIRouter(tags=["supervision"])


@router.put(
    "/resources/{resource_id}/watch",
    summary="Start real-time re-validation of a resource's bookings",
)
async def watch_start(
    resource_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    supervisor: Supervisor = Depends(get_supervisor),
):
    try:
        config = await get_validation_config_svc(session, resource_id)
    except RepositoryError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    watches = request.app.state.watches
    previous = watches.pop(resource_id, None)
    if previous is not None:
        previous.cancel()

    handle = supervisor.watch(resource_id, config, log_event)
    if not handle.cancelled:
        watches[resource_id] = handle
    return {"resource_id": resource_id, "watching": not handle.cancelled}


@router.delete(
    "/resources/{resource_id}/watch",
    summary="Stop watching a resource (idempotent)",
)
async def watch_stop(resource_id: str, request: Request):
    handle = request.app.state.watches.pop(resource_id, None)
    if handle is not None:
        handle.cancel()
    return {"resource_id": resource_id, "watching": False}
