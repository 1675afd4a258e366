# backend/salon_booking/services/audit.py
"""
Audit trail for admin mutations.

build_audit_diff(before, after) → bounded list of {path, before, after}
  - equality is decided on the full values; truncation only shapes the output
  - objects are walked key by key down to max_depth
  - arrays are never walked: a changed array is summarized as
    {"length": n, "preview": [first max_array_preview items]}
  - secret-looking keys are redacted, emails/phones masked
  - at most max_changes entries

record_audit_event() writes one audit_log row. It is meant to run detached.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from ..database import SessionFactory, run_transaction
from ..models import AuditLog

logger = logging.getLogger(__name__)

MAX_DEPTH = 4
MAX_CHANGES = 80
MAX_ARRAY_PREVIEW = 20

REDACT_KEYS = re.compile(r"(password|secret|token|private[_-]?key|authorization|cookie)", re.I)
EMAIL_KEYS = re.compile(r"email", re.I)
PHONE_KEYS = re.compile(r"(phone|tel)", re.I)
REDACTED = "***REDACTED***"


@dataclass(frozen=True)
class Actor:
    """Identity forwarded by the gateway."""
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class RequestMeta:
    method: Optional[str] = None
    path: Optional[str] = None
    query: dict = field(default_factory=dict)
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None


# ── Diff ─────────────────────────────────────────────────────────────────


def build_audit_diff(
    before: Any,
    after: Any,
    max_depth: int = MAX_DEPTH,
    max_changes: int = MAX_CHANGES,
    max_array_preview: int = MAX_ARRAY_PREVIEW,
) -> list[dict]:
    changes: list[dict] = []
    _diff(before, after, "", max_depth, max_changes, max_array_preview, changes)
    return changes


def _diff(before, after, path, depth, max_changes, preview, changes):
    if len(changes) >= max_changes:
        return

    if _canonical(before) == _canonical(after):
        return

    before_json = _to_json(before, depth, preview)
    after_json = _to_json(after, depth, preview)

    if depth <= 0:
        changes.append(_change(path, before_json, after_json))
        return

    if isinstance(before, (list, tuple)) or isinstance(after, (list, tuple)):
        changes.append(_change(
            path,
            _array_summary(before if isinstance(before, (list, tuple)) else [], preview),
            _array_summary(after if isinstance(after, (list, tuple)) else [], preview),
        ))
        return

    if isinstance(before, dict) or isinstance(after, dict):
        before_obj = before if isinstance(before, dict) else {}
        after_obj = after if isinstance(after, dict) else {}
        for key in sorted(set(before_obj) | set(after_obj), key=str):
            if len(changes) >= max_changes:
                return
            next_path = f"{path}.{key}" if path else str(key)
            _diff(before_obj.get(key), after_obj.get(key), next_path, depth - 1, max_changes, preview, changes)
        return

    changes.append(_change(path, before_json, after_json))


def _change(path: str, before, after) -> dict:
    return {
        "path": path or "(root)",
        "before": _redact(path, before),
        "after": _redact(path, after),
    }


def _canonical(value: Any) -> str:
    """Untruncated JSON form used for equality; truncation is for display only."""
    return json.dumps(_to_json(value, math.inf, None), sort_keys=True)


def _to_json(value: Any, depth: float, preview: Optional[int]):
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        if depth <= 0:
            return []
        return [_to_json(item, depth - 1, preview) for item in value[:preview]]
    if isinstance(value, dict):
        if depth <= 0:
            return {}
        return {str(k): _to_json(v, depth - 1, preview) for k, v in value.items()}
    return str(value)


def _array_summary(values, preview: int) -> dict:
    return {
        "length": len(values),
        "preview": [_to_json(item, 1, preview) for item in list(values)[:preview]],
    }


def _redact(path: str, value):
    key = path.rsplit(".", 1)[-1]
    if REDACT_KEYS.search(key):
        return REDACTED if value else value

    if isinstance(value, str):
        if EMAIL_KEYS.search(key):
            name, sep, domain = value.partition("@")
            if not sep or not domain:
                return REDACTED
            return f"{name[:2]}***@{domain}"
        if PHONE_KEYS.search(key):
            digits = re.sub(r"\D", "", value)
            if len(digits) < 4:
                return REDACTED
            return f"***{digits[-4:]}"

    return value


# ── Record ───────────────────────────────────────────────────────────────


async def record_audit_event(
    session_factory: Optional[SessionFactory],
    event_type: str,
    actor: Actor,
    meta: RequestMeta,
    payload: dict,
) -> int:
    """Insert one audit_log row. Returns its id."""
    document = {**payload, "query": meta.query} if meta.query else payload

    async def work(session) -> int:
        entry = AuditLog(
            event_type=event_type,
            actor_user_id=actor.user_id,
            actor_email=actor.email,
            actor_role=actor.role,
            method=meta.method,
            path=meta.path,
            ip=meta.ip,
            user_agent=meta.user_agent,
            request_id=meta.request_id,
            payload=json.dumps(document, ensure_ascii=False, default=str),
        )
        session.add(entry)
        await session.flush()
        return entry.id

    audit_id = await run_transaction(session_factory, work)
    logger.info(f"Audit event {event_type} recorded (id={audit_id}, actor={actor.email or actor.user_id})")
    return audit_id
