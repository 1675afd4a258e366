from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()
metadata = Base.metadata

RESERVATION_STATUSES = ("pending", "confirmed", "completed", "cancelled")
LEDGER_TYPES = ("birthday", "use", "manual", "earn")


def _new_id() -> str:
    return uuid4().hex


class ReservationSettingsRecord(Base):
    """Singleton settings document, stored in its sanitized shape."""
    __tablename__ = 'reservation_settings'
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Text, primary_key=True)
    document = Column(Text, nullable=False, server_default=text("'{}'"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class Users(Base):
    __tablename__ = 'users'
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Text, primary_key=True, default=_new_id)
    email = Column(Text, nullable=False, unique=True)
    name = Column(Text)
    phone = Column(Text)
    birthday = Column(Text)  # YYYY-MM-DD
    points = Column(Integer, nullable=False, default=0, server_default=text('0'))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class Reservations(Base):
    __tablename__ = 'reservations'
    __table_args__ = (
        # An active reservation holds one seat of its slot; cancelled ones hold none.
        UniqueConstraint('date', 'time', 'slot_seat', name='uq_reservations_slot_seat'),
        Index('ix_reservations_date_status', 'date', 'status'),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Text, primary_key=True, default=_new_id)
    date = Column(Text, nullable=False)  # YYYY-MM-DD
    time = Column(Text, nullable=False)  # HH:MM
    slot_seat = Column(Integer)

    customer_id = Column(ForeignKey('users.id', ondelete='SET NULL'))
    customer_name = Column(Text, nullable=False)
    customer_email = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)

    service_type = Column(Text)
    service_name = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    maintenance_price = Column(Float, nullable=False, default=0.0, server_default=text('0'))
    total_price = Column(Float, nullable=False)
    points_used = Column(Integer, nullable=False, default=0, server_default=text('0'))
    final_price = Column(Float, nullable=False)

    status = Column(
        Enum(*RESERVATION_STATUSES, name='reservation_status'),
        nullable=False,
        default='pending',
        server_default=text("'pending'"),
    )
    intake_form = Column(Text)  # JSON
    notes = Column(Text)
    cancel_reason = Column(Text)
    cancelled_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class PointLedger(Base):
    """Append-only point movements. users.points == SUM(amount) per user."""
    __tablename__ = 'point_ledger'
    __table_args__ = (
        Index(
            'uq_point_ledger_birthday_year',
            'user_id',
            'year',
            unique=True,
            sqlite_where=text("type = 'birthday'"),
            postgresql_where=text("type = 'birthday'"),
        ),
        Index('ix_point_ledger_user', 'user_id'),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True)
    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    type = Column(Enum(*LEDGER_TYPES, name='point_ledger_type'), nullable=False)
    amount = Column(Integer, nullable=False)
    year = Column(Integer)
    description = Column(Text)
    reservation_id = Column(ForeignKey('reservations.id', ondelete='SET NULL'))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True)
    event_type = Column(Text, nullable=False)

    actor_user_id = Column(Text)
    actor_email = Column(Text)
    actor_role = Column(Text)

    method = Column(Text)
    path = Column(Text)
    ip = Column(Text)
    user_agent = Column(Text)
    request_id = Column(Text)

    payload = Column(Text)  # JSON
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
