# backend/salon_booking/services/background.py
"""
Detached tasks for best-effort side effects (notifications, audit writes).

spawn() returns immediately; the task runs under its own timeout and logs
its own failures. Nothing here can change the result of the operation that
spawned it.
"""

import asyncio
import logging
from typing import Awaitable, Optional

logger = logging.getLogger(__name__)

_tasks: set[asyncio.Task] = set()


def spawn(coro: Awaitable, name: str, timeout: Optional[float] = None) -> asyncio.Task:
    """Run ``coro`` detached. Failures and timeouts are logged, never raised."""
    task = asyncio.create_task(_guarded(coro, name, timeout), name=name)
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)
    return task


async def drain(timeout: Optional[float] = None) -> None:
    """Wait for detached tasks still running (shutdown, tests)."""
    pending = [task for task in _tasks if not task.done()]
    if not pending:
        return
    done, still_pending = await asyncio.wait(pending, timeout=timeout)
    for task in still_pending:
        task.cancel()
    if still_pending:
        logger.warning(f"Cancelled {len(still_pending)} background tasks on drain")


def pending_count() -> int:
    return sum(1 for task in _tasks if not task.done())


async def _guarded(coro: Awaitable, name: str, timeout: Optional[float]) -> None:
    try:
        if timeout:
            await asyncio.wait_for(coro, timeout)
        else:
            await coro
    except asyncio.TimeoutError:
        logger.warning(f"Background task {name} timed out after {timeout}s")
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception(f"Background task {name} failed")
