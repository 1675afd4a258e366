# backend/salon_booking/routers/audit_log.py

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select

from ..database import SessionFactory, run_transaction
from ..dependencies import get_session_factory, require_admin
from ..errors import NotFound
from ..models import AuditLog as DBAuditLog
from ..schemas.audit_log import AuditLogRead
from ..services.audit import Actor


router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/", response_model=list[AuditLogRead])
async def list_audit(
    event_type: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    limit: int = 50,
    session_factory: Optional[SessionFactory] = Depends(get_session_factory),
    _: Actor = Depends(require_admin),
):
    """
    Read-only audit log, newest first.

    Filters:
    - event_type (exact match)
    - actor_user_id
    - limit (default 50, max 200)
    """
    q = select(DBAuditLog)

    if event_type:
        q = q.where(DBAuditLog.event_type == event_type)

    if actor_user_id:
        q = q.where(DBAuditLog.actor_user_id == actor_user_id)

    q = q.order_by(DBAuditLog.created_at.desc(), DBAuditLog.id.desc()).limit(max(1, min(limit, 200)))

    async def work(session):
        result = await session.execute(q)
        return result.scalars().all()

    return await run_transaction(session_factory, work)


@router.get("/{id}", response_model=AuditLogRead)
async def get_audit(
    id: int,
    session_factory: Optional[SessionFactory] = Depends(get_session_factory),
    _: Actor = Depends(require_admin),
):
    obj = await run_transaction(session_factory, lambda session: session.get(DBAuditLog, id))
    if not obj:
        raise NotFound("Audit event not found.")
    return obj
