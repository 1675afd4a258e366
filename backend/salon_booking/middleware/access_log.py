# backend/salon_booking/middleware/access_log.py
# writes: method / path / status; IP / UA; processing time
# does NOT block the request; does NOT write to the database

import json
import logging
import time

from fastapi import Request

logger = logging.getLogger("salon_booking.access")


def client_ip(request: Request) -> str:
    return (
        request.headers.get("X-Real-IP")
        or (request.client.host if request.client else "")
    )


async def access_log_middleware(request: Request, call_next):
    start_ts = time.time()

    response = await call_next(request)

    duration_ms = int((time.time() - start_ts) * 1000)

    record = {
        "ts": int(start_ts),
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "ip": client_ip(request),
        "ua": request.headers.get("User-Agent", ""),
        "request_id": request.headers.get("X-Request-Id"),
        "duration_ms": duration_ms,
    }

    logger.info(json.dumps(record, ensure_ascii=False))

    return response
