# booking_engine/modules/validation/supervisor.py
"""
Background re-validation of a resource's bookings as they change.

Each watch owns one feed subscription and one asyncio task. The task takes
change events off the subscription queue, re-validates the changed booking
against the current committed snapshot and reports what it finds. It is a
monitor, not a gate: errors are logged and the watch keeps going.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Set, Union

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_engine.modules.availability.slots import SlotGenerator
from booking_engine.modules.bookings import repository as booking_repo
from booking_engine.modules.bookings.feed import (
    BookingChange,
    BookingChangeFeed,
    Subscription,
)
from booking_engine.modules.bookings.models import ACTIVE_STATUSES
from booking_engine.modules.bookings.schemas import BookingPublic
from booking_engine.modules.validation.schemas import (
    BookingConflict,
    BookingSuggestion,
    BookingWarning,
    ValidationConfig,
)
from booking_engine.modules.validation.validator import validate

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    CONFLICT = "conflict"
    WARNING = "warning"
    SUGGESTION = "suggestion"


class ValidationEvent(BaseModel):
    """
    What the supervisor reports to the notification side.
    priority="high" marks conflicts between already-committed bookings,
    which need manual reconciliation.
    """
    kind: EventKind
    resource_id: str
    booking: BookingPublic
    priority: str = "normal"
    conflicts: List[BookingConflict] = Field(default_factory=list)
    warnings: List[BookingWarning] = Field(default_factory=list)
    suggestions: List[BookingSuggestion] = Field(default_factory=list)


EventHandler = Callable[[ValidationEvent], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class WatchHandle:
    """
    Returned by Supervisor.watch. cancel() is idempotent and releases the
    feed subscription before returning.
    """
    resource_id: str
    subscription: Optional[Subscription] = None
    task: Optional[asyncio.Task] = None
    cancelled: bool = False
    _on_cancel: Optional[Callable[["WatchHandle"], None]] = field(default=None, repr=False)

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self.subscription is not None:
            self.subscription.close()
        if self.task is not None and not self.task.done():
            self.task.cancel()
        if self._on_cancel is not None:
            self._on_cancel(self)

    async def wait_closed(self) -> None:
        if self.task is None:
            return
        try:
            await self.task
        except asyncio.CancelledError:
            pass


class Supervisor:
    """
    Per-resource watchers over the booking change feed.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        feed: BookingChangeFeed,
        slots: SlotGenerator,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.sessionmaker = sessionmaker
        self.feed = feed
        self.slots = slots
        self.clock = clock
        self._watches: Set[WatchHandle] = set()
        self._pending: Set[asyncio.Task] = set()

    def watch(
        self, resource_id: str, config: ValidationConfig, on_event: EventHandler
    ) -> WatchHandle:
        """
        Start watching `resource_id`. Must be called from a running event loop.
        With real-time checks disabled the handle is inert.
        """
        handle = WatchHandle(resource_id=resource_id, _on_cancel=self._watches.discard)
        if not config.enable_real_time_checks:
            handle.cancelled = True
            return handle

        handle.subscription = self.feed.subscribe(resource_id)
        handle.task = asyncio.create_task(
            self._run(handle.subscription, config, on_event),
            name=f"watch:{resource_id}",
        )
        self._watches.add(handle)
        logger.info(f"Watching bookings of {resource_id}")
        return handle

    def cancel_all(self) -> None:
        for handle in list(self._watches):
            handle.cancel()

    @property
    def active(self) -> int:
        return len(self._watches)

    async def _run(
        self, sub: Subscription, config: ValidationConfig, on_event: EventHandler
    ) -> None:
        while True:
            change = await sub.get()
            try:
                await self.check_change(change, config, on_event)
            except asyncio.CancelledError:
                raise
            except Exception:
                # Fail open: a missed pass is better than a dead monitor
                logger.exception(
                    f"Re-validation failed for booking {change.booking.id} "
                    f"of {sub.resource_id}; still watching"
                )

    async def check_change(
        self, change: BookingChange, config: ValidationConfig, on_event: EventHandler
    ) -> List[ValidationEvent]:
        """
        Re-validate one changed booking against the current snapshot and
        emit events. Returns the events for callers that want them.
        """
        booking = change.booking
        if booking.status not in ACTIVE_STATUSES:
            return []

        async with self.sessionmaker() as session:
            rule = await self.slots.load_rule(session, booking.resource_id, booking.date)
            existing = await self.slots.load_day(
                session, booking.resource_id, booking.date, fresh=True
            )
            history_rows = await booking_repo.list_client_history(
                session, resource_id=booking.resource_id, client_email=booking.client_email
            )
        history = [BookingPublic.model_validate(r) for r in history_rows]

        # The booking may have moved on since the event was queued
        current = next((b for b in existing if b.id == booking.id), None)
        if current is None:
            return []

        result = validate(current, existing, config, rule=rule, history=history, now=self.clock())

        events: List[ValidationEvent] = []
        if not result.is_valid and config.notify_on_conflict:
            logger.warning(
                f"Committed booking {current.id} of {current.resource_id} conflicts: "
                f"{[c.type.value for c in result.blocking]}"
            )
            events.append(
                ValidationEvent(
                    kind=EventKind.CONFLICT,
                    resource_id=current.resource_id,
                    booking=current,
                    priority="high",
                    conflicts=result.conflicts,
                )
            )
        if result.warnings and config.notify_on_warning:
            events.append(
                ValidationEvent(
                    kind=EventKind.WARNING,
                    resource_id=current.resource_id,
                    booking=current,
                    warnings=result.warnings,
                )
            )
        if result.suggestions and config.notify_on_suggestion:
            events.append(
                ValidationEvent(
                    kind=EventKind.SUGGESTION,
                    resource_id=current.resource_id,
                    booking=current,
                    suggestions=result.suggestions,
                )
            )

        for event in events:
            self._emit(on_event, event)
        return events

    def _emit(self, on_event: EventHandler, event: ValidationEvent) -> None:
        """Fire and forget; handler failures are logged, never raised."""
        try:
            outcome: Any = on_event(event)
        except Exception:
            logger.exception(f"Event handler failed for {event.kind.value} event")
            return
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._pending.add(task)
            task.add_done_callback(self._handler_done)

    def _handler_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Async event handler failed: {exc!r}")


def log_event(event: ValidationEvent) -> None:
    """
    Default notification sink: write the event to the log.
    Delivery channels (email/SMS) plug in as other handlers.
    """
    level = logging.WARNING if event.kind == EventKind.CONFLICT else logging.INFO
    details = event.conflicts or event.warnings or event.suggestions
    logger.log(
        level,
        f"[{event.priority}] {event.kind.value} on booking {event.booking.id} "
        f"of {event.resource_id}: {[d.message for d in details]}",
    )
