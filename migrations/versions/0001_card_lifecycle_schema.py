"""card lifecycle schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum(
    "receptionist",
    "doctor",
    "lab_technician",
    "pharmacist",
    "admin",
    "triage_officer",
    name="userrole",
)
gender = sa.Enum("male", "female", "other", name="gender")
card_status = sa.Enum("active", "expired", "suspended", "inactive", name="cardstatus")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password", sa.String(255), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("last_login_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "patients",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("patient_number", sa.String(50), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("gender", gender, nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("emergency_contact_name", sa.String(255), nullable=False),
        sa.Column("emergency_contact_phone", sa.String(20), nullable=False),
        sa.Column("medical_history", sa.Text(), nullable=True),
        sa.Column("allergies", sa.Text(), nullable=True),
        sa.Column("card_status", card_status, nullable=False),
        sa.Column("card_expiry_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("card_activated_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("daily_activation_required", sa.Boolean(), nullable=False),
        sa.Column("last_daily_activation", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_payment_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("payment_due_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "assigned_doctor_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_patients_id", "patients", ["id"], unique=True)
    op.create_index(
        "ix_patients_patient_number", "patients", ["patient_number"], unique=True
    )
    op.create_index("ix_patients_first_name", "patients", ["first_name"])
    op.create_index("ix_patients_last_name", "patients", ["last_name"])
    op.create_index("ix_patients_phone", "patients", ["phone"])
    op.create_index("ix_patients_card_status", "patients", ["card_status"])
    op.create_index(
        "ix_patients_daily_activation_required",
        "patients",
        ["daily_activation_required"],
    )
    op.create_index(
        "ix_patients_assigned_doctor_id", "patients", ["assigned_doctor_id"]
    )

    op.create_table(
        "card_policies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("card_validity_days", sa.Integer(), nullable=False),
        sa.Column("grace_period_days", sa.Integer(), nullable=False),
        sa.Column("auto_suspend", sa.Boolean(), nullable=False),
        sa.Column("payment_reminder_days", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column(
            "updated_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.CheckConstraint("id = 1", name="single_card_policy_row"),
        sa.CheckConstraint("card_validity_days >= 1", name="valid_card_validity"),
        sa.CheckConstraint("grace_period_days >= 0", name="valid_grace_period"),
        sa.CheckConstraint(
            "payment_reminder_days >= 0", name="valid_payment_reminder"
        ),
    )

    op.create_table(
        "card_sweep_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("trigger", sa.String(20), nullable=False),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("finished_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("scanned", sa.Integer(), nullable=False),
        sa.Column("deactivated", sa.Integer(), nullable=False),
        sa.Column("failed", sa.Integer(), nullable=False),
    )
    op.create_index(
        "ix_card_sweep_runs_started_at", "card_sweep_runs", ["started_at"]
    )
    op.create_index(
        "idx_card_sweep_runs_trigger_started",
        "card_sweep_runs",
        ["trigger", "started_at"],
    )


def downgrade() -> None:
    op.drop_table("card_sweep_runs")
    op.drop_table("card_policies")
    op.drop_table("patients")
    op.drop_table("users")
    card_status.drop(op.get_bind(), checkfirst=True)
    gender.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
