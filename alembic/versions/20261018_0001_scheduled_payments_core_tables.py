"""Scheduled payments core tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _payload_columns() -> list[sa.Column]:
    return [
        sa.Column("requested_by", sa.String(length=64), nullable=False),
        sa.Column("vendor_id", sa.String(length=64), nullable=True),
        sa.Column("vendor_name", sa.String(length=255), nullable=False),
        sa.Column("company_name", sa.String(length=255), nullable=False),
        sa.Column("company_branch", sa.String(length=255), nullable=True),
        sa.Column("category_id", sa.String(length=64), nullable=False),
        sa.Column("subcategory_id", sa.String(length=64), nullable=False),
        sa.Column("bank_name", sa.String(length=255), nullable=True),
        sa.Column("payment_mode", sa.String(length=16), nullable=True),
        sa.Column("advance_details", sa.String(length=32), nullable=True),
        sa.Column("total_outstanding", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("payment_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("balance_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("item_description", sa.Text(), nullable=False),
        sa.Column("quantity_checked_by", sa.String(length=255), nullable=True),
        sa.Column("quality_checked_by", sa.String(length=255), nullable=True),
        sa.Column("purchase_owner", sa.String(length=255), nullable=True),
        sa.Column("price_check_guaranteed_by", sa.String(length=255), nullable=True),
        sa.Column("lpr", sa.String(length=255), nullable=True),
        sa.Column("ioa", sa.String(length=255), nullable=True),
        sa.Column("cpp", sa.String(length=255), nullable=True),
    ]


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "scheduled_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scheduled_for", sa.Date(), nullable=False),
        sa.Column("schedule_status", sa.String(length=16), nullable=False, server_default="pending"),
        *_payload_columns(),
        sa.Column("urgency_level", sa.String(length=8), nullable=False, server_default="medium"),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("recurrence_pattern", sa.String(length=16), nullable=True),
        sa.Column("recurrence_end_type", sa.String(length=8), nullable=True),
        sa.Column("recurrence_end_after", sa.Integer(), nullable=True),
        sa.Column("recurrence_end_date", sa.Date(), nullable=True),
        sa.Column("execution_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_execution", sa.Date(), nullable=True),
        sa.Column("last_execution_date", sa.DateTime(), nullable=True),
        sa.Column("promoted_date", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("parent_payment_id", sa.Integer(), nullable=True),
        sa.Column("payment_id", sa.Integer(), nullable=True),
        *_timestamp_columns(),
        sa.CheckConstraint(
            "schedule_status IN ('pending','processed','cancelled')",
            name="ck_scheduled_payments_status",
        ),
        sa.CheckConstraint(
            "recurrence_pattern IS NULL OR recurrence_pattern IN ('weekly','monthly','quarterly','yearly')",
            name="ck_scheduled_payments_recurrence_pattern",
        ),
        sa.CheckConstraint(
            "recurrence_end_type IS NULL OR recurrence_end_type IN ('after','on','never')",
            name="ck_scheduled_payments_recurrence_end_type",
        ),
        sa.CheckConstraint("execution_count >= 0", name="ck_scheduled_payments_execution_count"),
    )
    op.create_index("ix_scheduled_payments_status", "scheduled_payments", ["schedule_status"])
    op.create_index("ix_scheduled_payments_scheduled_for", "scheduled_payments", ["scheduled_for"])
    op.create_index("ix_scheduled_payments_next_execution", "scheduled_payments", ["next_execution"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("scheduled_payment_id", sa.Integer(), nullable=True),
        *_payload_columns(),
        *_timestamp_columns(),
        sa.ForeignKeyConstraint(["scheduled_payment_id"], ["scheduled_payments.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status IN ('pending','approved','rejected','processed','query_raised')",
            name="ck_payments_status",
        ),
    )
    op.create_index("ix_payments_scheduled_payment_id", "payments", ["scheduled_payment_id"])

    op.create_table(
        "scheduled_payment_executions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scheduled_payment_id", sa.Integer(), nullable=False),
        sa.Column("execution_number", sa.Integer(), nullable=False),
        sa.Column("occurrence_date", sa.Date(), nullable=False),
        sa.Column("execution_date", sa.DateTime(), nullable=False),
        sa.Column("payment_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["scheduled_payment_id"], ["scheduled_payments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"], ondelete="SET NULL"),
        sa.UniqueConstraint(
            "scheduled_payment_id",
            "execution_number",
            name="uq_scheduled_payment_executions_number",
        ),
    )

    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("job_name", sa.String(length=64), nullable=False),
        sa.Column("run_date", sa.Date(), nullable=False),
        sa.Column("trigger", sa.String(length=32), nullable=False, server_default="manual"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("job_name", "run_date", name="uq_job_runs_name_run_date"),
    )


def downgrade() -> None:
    op.drop_table("job_runs")
    op.drop_table("scheduled_payment_executions")
    op.drop_index("ix_payments_scheduled_payment_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_scheduled_payments_next_execution", table_name="scheduled_payments")
    op.drop_index("ix_scheduled_payments_scheduled_for", table_name="scheduled_payments")
    op.drop_index("ix_scheduled_payments_status", table_name="scheduled_payments")
    op.drop_table("scheduled_payments")
