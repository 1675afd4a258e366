"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

reservation_status = sa.Enum(
    "pending", "confirmed", "completed", "cancelled", name="reservation_status"
)
point_ledger_type = sa.Enum("birthday", "use", "manual", "earn", name="point_ledger_type")


def upgrade():
    op.create_table(
        "reservation_settings",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("document", sa.Text(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("name", sa.Text()),
        sa.Column("phone", sa.Text()),
        sa.Column("birthday", sa.Text()),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "reservations",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("date", sa.Text(), nullable=False),
        sa.Column("time", sa.Text(), nullable=False),
        sa.Column("slot_seat", sa.Integer()),
        sa.Column("customer_id", sa.Text(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("customer_name", sa.Text(), nullable=False),
        sa.Column("customer_email", sa.Text(), nullable=False),
        sa.Column("customer_phone", sa.Text(), nullable=False),
        sa.Column("service_type", sa.Text()),
        sa.Column("service_name", sa.Text(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("maintenance_price", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_price", sa.Float(), nullable=False),
        sa.Column("points_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("final_price", sa.Float(), nullable=False),
        sa.Column("status", reservation_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("intake_form", sa.Text()),
        sa.Column("notes", sa.Text()),
        sa.Column("cancel_reason", sa.Text()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("date", "time", "slot_seat", name="uq_reservations_slot_seat"),
    )
    op.create_index("ix_reservations_date_status", "reservations", ["date", "status"])

    op.create_table(
        "point_ledger",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Text(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", point_ledger_type, nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer()),
        sa.Column("description", sa.Text()),
        sa.Column("reservation_id", sa.Text(), sa.ForeignKey("reservations.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "uq_point_ledger_birthday_year",
        "point_ledger",
        ["user_id", "year"],
        unique=True,
        sqlite_where=sa.text("type = 'birthday'"),
        postgresql_where=sa.text("type = 'birthday'"),
    )
    op.create_index("ix_point_ledger_user", "point_ledger", ["user_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("actor_user_id", sa.Text()),
        sa.Column("actor_email", sa.Text()),
        sa.Column("actor_role", sa.Text()),
        sa.Column("method", sa.Text()),
        sa.Column("path", sa.Text()),
        sa.Column("ip", sa.Text()),
        sa.Column("user_agent", sa.Text()),
        sa.Column("request_id", sa.Text()),
        sa.Column("payload", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table("audit_log")
    op.drop_index("ix_point_ledger_user", table_name="point_ledger")
    op.drop_index("uq_point_ledger_birthday_year", table_name="point_ledger")
    op.drop_table("point_ledger")
    op.drop_index("ix_reservations_date_status", table_name="reservations")
    op.drop_table("reservations")
    op.drop_table("users")
    op.drop_table("reservation_settings")
    point_ledger_type.drop(op.get_bind(), checkfirst=True)
    reservation_status.drop(op.get_bind(), checkfirst=True)
