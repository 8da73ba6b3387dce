# booking_engine/modules/availability/models.py
from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Index,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from booking_engine.db.base import Base, RecordMixin, ResourceScopedMixin


class AvailabilityRule(RecordMixin, ResourceScopedMixin, Base):
    """
    Recurring weekly availability of a resource. One row = one weekday window.
    Times are minutes of day; exceptions is a list of ISO dates.
    """

    __tablename__ = "availability_rules"

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 = Sunday

    start_time: Mapped[int] = mapped_column(Integer, nullable=False)
    end_time: Mapped[int] = mapped_column(Integer, nullable=False)

    slot_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    buffer_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_concurrent: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    exceptions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_rule_time_order"),
        CheckConstraint("slot_duration > 0", name="ck_rule_slot_positive"),
        CheckConstraint("buffer_time >= 0", name="ck_rule_buffer_nonneg"),
        CheckConstraint("max_concurrent >= 1", name="ck_rule_capacity"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_rule_weekday"),
        Index("ix_rule_resource_day", "resource_id", "day_of_week"),
    )


class ValidationPolicy(RecordMixin, ResourceScopedMixin, Base):
    """
    Per-resource validation policy. Absent row => defaults.
    """

    __tablename__ = "validation_policies"

    allow_overlapping: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    require_buffer_time: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    buffer_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    max_bookings_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    max_bookings_per_slot: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    prevent_last_minute_bookings: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_minute_threshold_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    enable_real_time_checks: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_on_conflict: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_on_warning: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_on_suggestion: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("resource_id", name="uq_policy_resource"),
    )
