# backend/salon_booking/routers/settings.py
"""
Reservation settings.

GET /settings         - normalized settings (public)
GET /admin/settings   - stored document + normalized + validation (admin)
PUT /admin/settings   - full replace or narrow action (admin)
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from ..database import SessionFactory, run_transaction
from ..dependencies import (
    get_availability,
    get_cache,
    get_request_meta,
    get_session_factory,
    require_admin,
)
from ..schemas.settings import AdminSettingsRead, SettingsMutationRead
from ..services.audit import Actor, RequestMeta
from ..services.cache import CacheLayer
from ..services.settings import normalize, sanitize_for_write, validate
from ..services.settings.mutations import apply_settings_mutation
from ..services.settings.store import load_raw_settings
from ..services.slots.availability import AvailabilityService

router = APIRouter(tags=["settings"])


@router.get("/settings")
async def get_settings(
    availability: AvailabilityService = Depends(get_availability),
) -> dict[str, Any]:
    settings = await availability.get_settings()
    return sanitize_for_write(settings)


@router.get("/admin/settings", response_model=AdminSettingsRead)
async def get_admin_settings(
    session_factory: Optional[SessionFactory] = Depends(get_session_factory),
    _: Actor = Depends(require_admin),
):
    """Uncached read so the operator sees exactly what is stored."""
    stored = await run_transaction(session_factory, load_raw_settings)
    settings = normalize(stored)
    result = validate(settings)
    return AdminSettingsRead(
        stored=stored,
        settings=sanitize_for_write(settings),
        validation={
            "ok": result.ok,
            "errors": [e.as_dict() for e in result.errors],
        },
    )


@router.put("/admin/settings", response_model=SettingsMutationRead)
async def put_admin_settings(
    payload: dict[str, Any] = Body(...),
    session_factory: Optional[SessionFactory] = Depends(get_session_factory),
    cache: CacheLayer = Depends(get_cache),
    actor: Actor = Depends(require_admin),
    meta: RequestMeta = Depends(get_request_meta),
):
    result = await apply_settings_mutation(session_factory, cache, payload, actor, meta)
    return SettingsMutationRead(
        mode=result.mode,
        settings=result.document,
        changes=result.changes,
    )
