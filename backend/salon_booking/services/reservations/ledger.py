# backend/salon_booking/services/reservations/ledger.py
"""
Point ledger helpers.

Invariant: users.points == SUM(point_ledger.amount) for the user.
Every helper here appends the entry AND moves the balance, inside the
caller's transaction.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import PointLedger, Users
from ..slots.config import parse_date

logger = logging.getLogger(__name__)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Users]:
    result = await session.execute(
        select(Users).where(func.lower(Users.email) == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def append_entry(
    session: AsyncSession,
    user: Users,
    entry_type: str,
    amount: int,
    description: str,
    year: Optional[int] = None,
    reservation_id: Optional[str] = None,
) -> PointLedger:
    """Append a ledger entry and apply it to the user's balance."""
    entry = PointLedger(
        user_id=user.id,
        type=entry_type,
        amount=amount,
        year=year,
        description=description,
        reservation_id=reservation_id,
    )
    session.add(entry)
    user.points = (user.points or 0) + amount
    await session.flush()

    logger.info(f"Ledger {entry_type} {amount:+d} for user {user.id} (balance {user.points})")
    return entry


def is_birthday(birthday: Optional[str], today: date) -> bool:
    """
    True when the stored YYYY-MM-DD birthday falls on ``today`` (month/day).
    29 February birthdays are celebrated on 28 February in non-leap years.
    """
    born = parse_date(birthday) if birthday else None
    if born is None:
        return False
    if (born.month, born.day) == (today.month, today.day):
        return True
    if (born.month, born.day) == (2, 29) and (today.month, today.day) == (2, 28):
        try:
            date(today.year, 2, 29)
        except ValueError:
            return True
    return False


async def has_birthday_credit(session: AsyncSession, user_id: str, year: int) -> bool:
    result = await session.execute(
        select(PointLedger.id).where(
            PointLedger.user_id == user_id,
            PointLedger.type == "birthday",
            PointLedger.year == year,
        ).limit(1)
    )
    return result.first() is not None


async def apply_birthday_credit(
    session: AsyncSession,
    user: Users,
    today: date,
    amount: int,
) -> Optional[PointLedger]:
    """Credit the birthday bonus once per calendar year. None when not due."""
    if amount <= 0 or not is_birthday(user.birthday, today):
        return None
    if await has_birthday_credit(session, user.id, today.year):
        return None

    return await append_entry(
        session,
        user,
        "birthday",
        amount,
        description=f"Birthday bonus {today.year}",
        year=today.year,
    )
