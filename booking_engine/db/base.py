# booking_engine/db/base.py
from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for the engine's tables."""

    pass


class RecordMixin:
    """
    Columns every stored record carries: a UUID4 key and server-side
    created/updated times. Listings order by created_at as a tiebreak.
    """

    id: Mapped[uuid.UUID] = mapped_column(default=uuid.uuid4, primary_key=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        nullable=False, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        nullable=False, server_default=func.now(), onupdate=func.now()
    )


class ResourceScopedMixin:
    """Rows that belong to one bookable resource (staff member, room, ...)."""

    resource_id: Mapped[str] = mapped_column(String(64), nullable=False)


__all__ = ["Base", "RecordMixin", "ResourceScopedMixin"]
