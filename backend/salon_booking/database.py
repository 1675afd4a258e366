import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import settings
from .errors import BackendUnavailable
from .models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionFactory = async_sessionmaker[AsyncSession]


def create_engine_for(database_url: str, busy_timeout: float = 15.0) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            connect_args={"timeout": busy_timeout},
        )
        _enable_sqlite_transactions(engine)
        return engine

    return create_async_engine(database_url, pool_pre_ping=True)


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """
    SQLite: every transaction takes the write lock up front (BEGIN IMMEDIATE),
    so two bookings can never both read "slot free" and then both write.
    The second writer waits up to busy_timeout for the first to finish.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection, _):
        # aiosqlite must not emit its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    return async_sessionmaker(bind=engine, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create missing tables (local/dev; production runs alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def is_write_conflict(exc: DBAPIError) -> bool:
    """True when the store rejected the unit because another writer won."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    message = str(orig).lower()

    if isinstance(exc, IntegrityError):
        return code == "23505" or "unique" in message
    if code in ("40001", "40P01"):
        return True
    return isinstance(exc, OperationalError) and ("locked" in message or "busy" in message)


async def run_transaction(
    session_factory: Optional[SessionFactory],
    work: Callable[[AsyncSession], Awaitable[T]],
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run ``work`` inside one atomic transaction.

    The whole unit is re-run when the store reports a write conflict, so
    every read inside ``work`` sees the winner's committed state on retry.
    Exceptions raised by ``work`` itself roll the transaction back and
    propagate unchanged.
    """
    if session_factory is None:
        raise BackendUnavailable("The reservation store is not configured.")

    attempts = max_attempts or settings.transaction_max_attempts

    for attempt in range(1, attempts + 1):
        try:
            async with session_factory() as session:
                async with session.begin():
                    return await work(session)
        except DBAPIError as e:
            if is_write_conflict(e):
                logger.info(f"Transaction conflict (attempt {attempt}/{attempts}): {e.orig}")
                await asyncio.sleep(min(0.05 * attempt, 0.5))
                continue
            if isinstance(e, (OperationalError, InterfaceError)) or e.connection_invalidated:
                logger.error(f"Reservation store unreachable: {e.orig}")
                raise BackendUnavailable() from e
            raise
        except (ConnectionError, OSError) as e:
            logger.error(f"Reservation store unreachable: {e}")
            raise BackendUnavailable() from e

    raise BackendUnavailable("The reservation store is busy. Please try again.")
