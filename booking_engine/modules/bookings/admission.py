# booking_engine/modules/bookings/admission.py
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Dict, Tuple

from booking_engine.core.config import settings
from booking_engine.modules.bookings.repository import RepositoryError

logger = logging.getLogger(__name__)

Key = Tuple[str, date]


class AdmissionTimeout(RepositoryError):
    """
    Could not get the (resource, date) admission turn in time.
    """


class AdmissionGate:
    """
    Single-writer boundary per (resource_id, date).

    Every create-booking for the same resource and day runs its
    read -> validate -> commit under the same lock, so two requests can
    never both pass validation against a snapshot missing the other.
    Locks are dropped once nobody holds or waits for them.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = settings.ADMISSION_TIMEOUT_SECONDS if timeout is None else timeout
        self._locks: Dict[Key, asyncio.Lock] = {}
        self._users: Dict[Key, int] = {}

    @asynccontextmanager
    async def hold(self, resource_id: str, day: date) -> AsyncIterator[None]:
        key = (resource_id, day)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                logger.warning(f"Admission timeout for {resource_id} on {day}")
                raise AdmissionTimeout(f"admission_timeout_{resource_id}_{day}") from exc
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def active_keys(self) -> int:
        return len(self._locks)
