"""
In-process cache for availability rules and per-day booking snapshots.
Injected where needed; every write path invalidates what it touched.

Readers call `begin_read()` before querying the store and pass the token to
`set_rules` / `set_day`. A fill whose key was invalidated after the read began
is skipped, so a slow read can never put back data a write just replaced.
"""
from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any, Dict, Hashable, Optional, Tuple

from booking_engine.core.config import settings

logger = logging.getLogger(__name__)


class ScheduleCache:
    """TTL cache keyed by resource (rules) and (resource, date) (bookings)"""

    def __init__(self, ttl: float | None = None):
        self.ttl = settings.CACHE_TTL_SECONDS if ttl is None else ttl
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        # key -> monotonic time of its last invalidation
        self._invalidated: Dict[Hashable, float] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def begin_read(self) -> float:
        return time.monotonic()

    def _get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Cache MISS: {key}")
            return None
        expires_at, value = entry
        if expires_at < time.monotonic():
            del self._entries[key]
            logger.debug(f"Cache EXPIRED: {key}")
            return None
        logger.debug(f"Cache HIT: {key}")
        return value

    def _stale(self, since: float, now: float, *keys: Hashable) -> bool:
        if now - since > self.ttl:
            return True
        return any(self._invalidated.get(k, float("-inf")) >= since for k in keys)

    def _sweep(self, now: float) -> None:
        """Drop expired entries and invalidation marks no live read can need."""
        for key in [k for k, (expires_at, _) in self._entries.items() if expires_at < now]:
            del self._entries[key]
        horizon = now - self.ttl
        for key in [k for k, at in self._invalidated.items() if at < horizon]:
            del self._invalidated[key]

    def _set(self, key: Hashable, value: Any, since: float | None, guards: Tuple) -> None:
        if self.ttl <= 0:
            return
        now = time.monotonic()
        self._sweep(now)
        if since is not None and self._stale(since, now, *guards):
            logger.debug(f"Cache SKIP stale fill: {key}")
            return
        self._entries[key] = (now + self.ttl, value)

    def _mark(self, key: Hashable) -> None:
        self._invalidated[key] = time.monotonic()

    # Availability rules

    def get_rules(self, resource_id: str) -> Optional[Any]:
        return self._get(("rules", resource_id))

    def set_rules(self, resource_id: str, rules: Any, *, since: float | None = None) -> None:
        self._set(("rules", resource_id), rules, since, (("resource", resource_id),))

    def invalidate_resource(self, resource_id: str) -> None:
        """Drop rules and every cached day of the resource."""
        for key in [k for k in self._entries if k[1] == resource_id]:
            del self._entries[key]
        self._mark(("resource", resource_id))
        logger.debug(f"Cache INVALIDATE resource: {resource_id}")

    # Day snapshots

    def get_day(self, resource_id: str, day: date) -> Optional[Any]:
        return self._get(("day", resource_id, day))

    def set_day(
        self, resource_id: str, day: date, bookings: Any, *, since: float | None = None
    ) -> None:
        key = ("day", resource_id, day)
        self._set(key, bookings, since, (key, ("resource", resource_id)))

    def invalidate_day(self, resource_id: str, day: date) -> None:
        key = ("day", resource_id, day)
        self._entries.pop(key, None)
        self._mark(key)
        logger.debug(f"Cache INVALIDATE day: {resource_id} {day}")

    def clear(self) -> None:
        self._entries.clear()
        self._invalidated.clear()
