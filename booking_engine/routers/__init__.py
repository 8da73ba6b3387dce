# booking_engine/routers/__init__.py
from . import health
from . import availability
from . import bookings
from . import watch

__all__ = ["health", "availability", "bookings", "watch"]
