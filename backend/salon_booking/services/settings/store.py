# backend/salon_booking/services/settings/store.py
"""
Persistence of the singleton settings document.

The stored document is untrusted: callers run it through ``normalize``.
"""

import json
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ...models import ReservationSettingsRecord

logger = logging.getLogger(__name__)

SETTINGS_ID = "reservation"


async def load_raw_settings(session: AsyncSession) -> Optional[dict]:
    """Stored document, or None when missing or unreadable."""
    record = await session.get(ReservationSettingsRecord, SETTINGS_ID)
    if record is None or not record.document:
        return None
    try:
        document = json.loads(record.document)
    except json.JSONDecodeError:
        logger.warning("Stored reservation settings are not valid JSON, using defaults")
        return None
    return document if isinstance(document, dict) else None


async def save_settings_document(session: AsyncSession, document: dict) -> None:
    """Write the sanitized document (caller owns the transaction)."""
    payload = json.dumps(document, ensure_ascii=False)
    record = await session.get(ReservationSettingsRecord, SETTINGS_ID)
    if record is None:
        session.add(ReservationSettingsRecord(id=SETTINGS_ID, document=payload))
    else:
        record.document = payload
    await session.flush()
