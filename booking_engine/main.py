# booking_engine/main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from booking_engine.core.config import settings
from booking_engine.core.logging import configure_logging
from booking_engine.db.sql import build_sessionmaker, engine as default_engine, init_db
from booking_engine.dependencies import build_services, build_supervisor
from booking_engine.routers import availability, bookings, health, watch


def create_app(engine: Optional[AsyncEngine] = None, *, create_tables: bool = True) -> FastAPI:
    """
    Build the API around one database engine.

    Every collaborator with state (admission gate, cache, change feed,
    supervisor) is created here and stored on app.state, so two apps never
    share them.
    """
    engine = engine or default_engine
    sessionmaker = build_sessionmaker(engine)
    services = build_services(sessionmaker)
    supervisor = build_supervisor(sessionmaker, services)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Create tables on startup; stop every watch on shutdown.
        """
        configure_logging()
        if create_tables:
            await init_db(engine)
        yield
        supervisor.cancel_all()
        app.state.watches.clear()

    app = FastAPI(
        title="Booking Validation Engine",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.sessionmaker = sessionmaker
    app.state.services = services
    app.state.supervisor = supervisor
    app.state.watches = {}

    # Routing
    app.include_router(health.router, prefix=settings.API_PREFIX, tags=["health"])
    app.include_router(availability.router, prefix=settings.API_PREFIX, tags=["availability"])
    app.include_router(bookings.router, prefix=settings.API_PREFIX, tags=["bookings"])
    app.include_router(watch.router, prefix=settings.API_PREFIX, tags=["supervision"])

    @app.get("/")
    def root():
        return {"message": "Booking validation engine running"}

    return app


app = create_app()
