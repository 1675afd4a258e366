# backend/salon_booking/schemas/audit_log.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class AuditLogRead(BaseModel):
    id: int
    event_type: str

    actor_user_id: Optional[str] = None
    actor_email: Optional[str] = None
    actor_role: Optional[str] = None

    method: Optional[str] = None
    path: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None

    payload: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
