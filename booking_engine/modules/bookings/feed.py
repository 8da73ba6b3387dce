# booking_engine/modules/bookings/feed.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Set

from booking_engine.core.config import settings
from booking_engine.modules.bookings.schemas import BookingPublic

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"


@dataclass(frozen=True)
class BookingChange:
    kind: ChangeKind
    booking: BookingPublic


@dataclass(eq=False)
class Subscription:
    """
    Queue of changes for one resource. close() detaches it from the feed
    immediately; later publishes are not delivered.
    """
    feed: "BookingChangeFeed"
    resource_id: str
    queue: asyncio.Queue = field(repr=False)
    closed: bool = False

    async def get(self) -> BookingChange:
        return await self.queue.get()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.feed._detach(self)


class BookingChangeFeed:
    """
    In-process live feed of booking writes, fanned out per resource.
    The booking service publishes; supervisors subscribe.
    """

    def __init__(self, queue_size: int | None = None):
        self.queue_size = settings.WATCH_QUEUE_SIZE if queue_size is None else queue_size
        self._subs: Dict[str, Set[Subscription]] = {}

    def subscribe(self, resource_id: str) -> Subscription:
        sub = Subscription(
            feed=self,
            resource_id=resource_id,
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        self._subs.setdefault(resource_id, set()).add(sub)
        return sub

    def _detach(self, sub: Subscription) -> None:
        subs = self._subs.get(sub.resource_id)
        if not subs:
            return
        subs.discard(sub)
        if not subs:
            del self._subs[sub.resource_id]

    def subscriber_count(self, resource_id: str) -> int:
        return len(self._subs.get(resource_id, ()))

    def publish(self, change: BookingChange) -> None:
        for sub in list(self._subs.get(change.booking.resource_id, ())):
            try:
                sub.queue.put_nowait(change)
            except asyncio.QueueFull:
                # Slow watcher: drop this event rather than block writers
                logger.warning(
                    f"Change feed queue full for {sub.resource_id}; "
                    f"dropping {change.kind.value} of booking {change.booking.id}"
                )
