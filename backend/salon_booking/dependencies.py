# backend/salon_booking/dependencies.py
"""
FastAPI dependencies.

Services are built once in the app lifespan and kept on app.state.
Identity comes from the gateway headers (X-User-Id / X-User-Email /
X-User-Role); this service never authenticates on its own.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from .database import SessionFactory
from .middleware.access_log import client_ip
from .services.audit import Actor, RequestMeta
from .services.cache import CacheLayer
from .services.reservations import BookingCoordinator
from .services.slots.availability import AvailabilityService


def get_session_factory(request: Request) -> Optional[SessionFactory]:
    return request.app.state.session_factory


def get_cache(request: Request) -> CacheLayer:
    return request.app.state.cache


def get_availability(request: Request) -> AvailabilityService:
    return request.app.state.availability


def get_coordinator(request: Request) -> BookingCoordinator:
    return request.app.state.coordinator


def get_actor(request: Request) -> Actor:
    return Actor(
        user_id=request.headers.get("X-User-Id"),
        email=request.headers.get("X-User-Email"),
        role=request.headers.get("X-User-Role"),
    )


def get_request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        method=request.method,
        path=request.url.path,
        query=dict(request.query_params),
        ip=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        request_id=request.headers.get("X-Request-Id"),
    )


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if (actor.role or "").lower() != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return actor
