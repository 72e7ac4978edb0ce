"""Initial schema: wards, users, interview types, bishopric, calendar connections, appointments.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "wards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("stake", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="MEMBER"),
        sa.Column("ward_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["ward_id"], ["wards.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_ward_id"), "users", ["ward_id"], unique=False)

    op.create_table(
        "interview_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ward_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.ForeignKeyConstraint(["ward_id"], ["wards.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_interview_types_ward_id"), "interview_types", ["ward_id"], unique=False)

    op.create_table(
        "bishopric_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ward_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.String(), nullable=False),
        sa.Column("availability_code", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.ForeignKeyConstraint(["ward_id"], ["wards.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bishopric_members_ward_id"), "bishopric_members", ["ward_id"], unique=False)
    op.create_index(op.f("ix_bishopric_members_user_id"), "bishopric_members", ["user_id"], unique=True)

    op.create_table(
        "interview_type_bishopric",
        sa.Column("interview_type_id", sa.Integer(), nullable=False),
        sa.Column("bishopric_member_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["interview_type_id"], ["interview_types.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["bishopric_member_id"], ["bishopric_members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("interview_type_id", "bishopric_member_id"),
    )

    op.create_table(
        "calendar_connections",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("remote_account_id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("access_token", sa.String(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_calendar_connections_user_id"), "calendar_connections", ["user_id"], unique=True)

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ward_id", sa.Integer(), nullable=False),
        sa.Column("interview_type_id", sa.Integer(), nullable=False),
        sa.Column("bishopric_member_id", sa.Integer(), nullable=False),
        sa.Column("member_name", sa.String(), nullable=False),
        sa.Column("member_email", sa.String(), nullable=False),
        sa.Column("member_phone", sa.String(), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="SCHEDULED"),
        sa.Column("bishopric_event_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["ward_id"], ["wards.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["interview_type_id"], ["interview_types.id"]),
        sa.ForeignKeyConstraint(["bishopric_member_id"], ["bishopric_members.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_ward_id"), "appointments", ["ward_id"], unique=False)
    op.create_index(op.f("ix_appointments_bishopric_member_id"), "appointments", ["bishopric_member_id"], unique=False)
    op.create_index(op.f("ix_appointments_start_time"), "appointments", ["start_time"], unique=False)
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"], unique=False)
    op.create_index(
        "uq_appointments_member_start_scheduled",
        "appointments",
        ["bishopric_member_id", "start_time"],
        unique=True,
        postgresql_where=sa.text("status = 'SCHEDULED'"),
    )


def downgrade() -> None:
    op.drop_index("uq_appointments_member_start_scheduled", table_name="appointments")
    op.drop_index(op.f("ix_appointments_status"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_start_time"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_bishopric_member_id"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_ward_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_index(op.f("ix_calendar_connections_user_id"), table_name="calendar_connections")
    op.drop_table("calendar_connections")
    op.drop_table("interview_type_bishopric")
    op.drop_index(op.f("ix_bishopric_members_user_id"), table_name="bishopric_members")
    op.drop_index(op.f("ix_bishopric_members_ward_id"), table_name="bishopric_members")
    op.drop_table("bishopric_members")
    op.drop_index(op.f("ix_interview_types_ward_id"), table_name="interview_types")
    op.drop_table("interview_types")
    op.drop_index(op.f("ix_users_ward_id"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
    op.drop_table("wards")
