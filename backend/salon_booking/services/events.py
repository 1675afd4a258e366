# backend/salon_booking/services/events.py
"""
Event emitter for committed reservations.

Two channels, both best-effort and detached from the request:
- redis list `notifications_queue` (default events:p2p), consumed by the operator bot
- operator webhook (HTTP POST), when configured

A failed or slow channel is logged and dropped; the booking is already committed.
"""

import json
import logging
import time
from typing import Optional

import httpx
from redis.asyncio import Redis

from ..config import settings
from .background import spawn

logger = logging.getLogger(__name__)


class Notifier:
    """Fan-out of reservation events to the notification collaborators."""

    def __init__(
        self,
        redis: Optional[Redis] = None,
        queue: str = "events:p2p",
        webhook_url: Optional[str] = None,
        timeout: float = 3.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.redis = redis
        self.queue = queue
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.http_client = http_client

    def emit(self, event_type: str, payload: dict) -> None:
        """Schedule delivery on every configured channel and return immediately."""
        event = {
            "type": event_type,
            **payload,
            "ts": int(time.time()),
        }
        if self.redis is not None:
            spawn(self._push(event), name=f"notify-queue:{event_type}", timeout=self.timeout)
        if self.webhook_url:
            spawn(self._post(event), name=f"notify-webhook:{event_type}", timeout=self.timeout)

    async def _push(self, event: dict) -> None:
        await self.redis.rpush(self.queue, json.dumps(event, ensure_ascii=False, default=str))
        logger.info(f"Event emitted: {event['type']} → {self.queue}")

    async def _post(self, event: dict) -> None:
        if self.http_client is not None:
            response = await self.http_client.post(self.webhook_url, json=event)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=event)
        response.raise_for_status()
        logger.info(f"Event delivered: {event['type']} → operator webhook ({response.status_code})")


def create_notifier(redis: Optional[Redis] = None) -> Notifier:
    return Notifier(
        redis=redis,
        queue=settings.notifications_queue,
        webhook_url=settings.operator_webhook_url,
        timeout=settings.notification_timeout,
    )
