# backend/salon_booking/main.py

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from .config import settings
from .database import create_engine_for, create_session_factory, init_models
from .errors import BookingError
from .logging_config import setup_logging
from .middleware.access_log import access_log_middleware
from .routers import audit_log, reservations, slots
from .routers import settings as settings_router
from .services import background
from .services.cache import CacheLayer, create_cache_layer, create_redis_client
from .services.events import Notifier, create_notifier
from .services.reservations import BookingCoordinator
from .services.slots.availability import AvailabilityService
from .services.slots.config import get_engine_config

logger = logging.getLogger(__name__)


def create_app(
    engine: Optional[AsyncEngine] = None,
    redis: Optional[Redis] = None,
    cache: Optional[CacheLayer] = None,
    notifier: Optional[Notifier] = None,
    create_tables: bool = True,
) -> FastAPI:
    """
    Build the API.

    Without arguments everything comes from Settings; tests pass their own
    engine / redis / cache / notifier.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        own_engine = engine is None
        own_redis = redis is None

        app_engine = engine
        if app_engine is None and settings.database_url:
            app_engine = create_engine_for(
                settings.resolved_database_url,
                busy_timeout=settings.database_busy_timeout,
            )
        app_redis = redis if redis is not None else create_redis_client()
        app_cache = cache or create_cache_layer(app_redis)

        if app_engine is not None and create_tables:
            await init_models(app_engine)

        session_factory = create_session_factory(app_engine) if app_engine is not None else None
        config = get_engine_config()
        availability = AvailabilityService(session_factory, app_cache, config)

        app.state.engine = app_engine
        app.state.session_factory = session_factory
        app.state.cache = app_cache
        app.state.notifier = notifier or create_notifier(app_redis)
        app.state.availability = availability
        app.state.coordinator = BookingCoordinator(
            session_factory,
            app_cache,
            availability,
            notifier=app.state.notifier,
            config=config,
        )

        app_cache.start_sweeper(settings.cache_sweep_interval)
        logger.info(
            f"Booking engine started (store={'configured' if app_engine else 'missing'}, "
            f"cache={app_cache.status()['tier']})"
        )
        try:
            yield
        finally:
            await app_cache.stop()
            await background.drain(timeout=settings.notification_timeout)
            if own_redis and app_redis is not None:
                await app_redis.aclose()
            if own_engine and app_engine is not None:
                await app_engine.dispose()

    app = FastAPI(title="Salon Booking API", lifespan=lifespan)
    app.middleware("http")(access_log_middleware)

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.as_dict()})

    @app.get("/health")
    async def health(request: Request):
        store = "missing"
        app_engine = request.app.state.engine
        if app_engine is not None:
            try:
                async with app_engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                store = "ok"
            except (SQLAlchemyError, OSError) as e:
                logger.warning(f"Health check: store unreachable: {e}")
                store = "unreachable"
        return {"store": store, "cache": request.app.state.cache.status()}

    app.include_router(slots.router)
    app.include_router(reservations.router)
    app.include_router(settings_router.router)
    app.include_router(audit_log.router)

    return app


def build_app() -> FastAPI:
    """Entry point for uvicorn: ``uvicorn salon_booking.main:build_app --factory``."""
    setup_logging(settings.log_level)
    return create_app()
