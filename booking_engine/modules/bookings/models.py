# booking_engine/modules/bookings/models.py
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from booking_engine.db.base import Base, RecordMixin, ResourceScopedMixin


class BookingStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that hold capacity
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class Booking(RecordMixin, ResourceScopedMixin, Base):
    """
    Booking of a resource for one time window on one day.
    Times are minutes of day; end_time = start_time + duration_minutes.
    """

    __tablename__ = "bookings"

    service_id: Mapped[str] = mapped_column(String(64), nullable=False)
    service_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[int] = mapped_column(Integer, nullable=False)
    end_time: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    client_name: Mapped[str] = mapped_column(String(120), nullable=False)
    client_email: Mapped[str] = mapped_column(String(254), nullable=False)
    client_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING.value,
        server_default=BookingStatus.PENDING.value,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)

    reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    confirmation_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_booking_time_order"),
        CheckConstraint("end_time = start_time + duration_minutes", name="ck_booking_duration"),
        # Range scans "bookings of resource R on day D"
        Index("ix_booking_resource_date_start", "resource_id", "date", "start_time"),
        Index("ix_booking_resource_email", "resource_id", "client_email"),
    )
