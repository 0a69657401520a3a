from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vendorpay.models.base import Base, TimestampMixin


SCHEDULE_STATUSES = ("pending", "processed", "cancelled")
RECURRENCE_PATTERNS = ("weekly", "monthly", "quarterly", "yearly")
RECURRENCE_END_TYPES = ("after", "on", "never")
PAYMENT_MODES = ("net_banking", "upi")
ADVANCE_DETAILS = ("tax_invoice", "advance_(bill/PI)", "advance", "others")
URGENCY_LEVELS = ("low", "medium", "high")


class ScheduledPayment(TimestampMixin, Base):
    __tablename__ = "scheduled_payments"
    __table_args__ = (
        CheckConstraint(
            "schedule_status IN ('pending','processed','cancelled')",
            name="ck_scheduled_payments_status",
        ),
        CheckConstraint(
            "recurrence_pattern IS NULL OR recurrence_pattern IN ('weekly','monthly','quarterly','yearly')",
            name="ck_scheduled_payments_recurrence_pattern",
        ),
        CheckConstraint(
            "recurrence_end_type IS NULL OR recurrence_end_type IN ('after','on','never')",
            name="ck_scheduled_payments_recurrence_end_type",
        ),
        CheckConstraint("execution_count >= 0", name="ck_scheduled_payments_execution_count"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    scheduled_for: Mapped[date] = mapped_column(Date, nullable=False)
    schedule_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    requested_by: Mapped[str] = mapped_column(String(64), nullable=False)

    vendor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subcategory_id: Mapped[str] = mapped_column(String(64), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_mode: Mapped[str | None] = mapped_column(String(16), nullable=True)
    advance_details: Mapped[str | None] = mapped_column(String(32), nullable=True)
    total_outstanding: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    payment_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    balance_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    item_description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity_checked_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quality_checked_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    purchase_owner: Mapped[str | None] = mapped_column(String(255), nullable=True)
    price_check_guaranteed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lpr: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ioa: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cpp: Mapped[str | None] = mapped_column(String(255), nullable=True)
    urgency_level: Mapped[str] = mapped_column(String(8), nullable=False, default="medium")

    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_pattern: Mapped[str | None] = mapped_column(String(16), nullable=True)
    recurrence_end_type: Mapped[str | None] = mapped_column(String(8), nullable=True)
    recurrence_end_after: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recurrence_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    execution_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_execution: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_execution_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    promoted_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # Plain ids; payments.scheduled_payment_id is the enforced link.
    parent_payment_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payment_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    executions: Mapped[list["ScheduledPaymentExecution"]] = relationship(
        back_populates="scheduled_payment",
        cascade="all, delete-orphan",
        order_by="ScheduledPaymentExecution.execution_number",
    )


class ScheduledPaymentExecution(Base):
    __tablename__ = "scheduled_payment_executions"
    __table_args__ = (
        UniqueConstraint(
            "scheduled_payment_id",
            "execution_number",
            name="uq_scheduled_payment_executions_number",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    scheduled_payment_id: Mapped[int] = mapped_column(
        ForeignKey("scheduled_payments.id", ondelete="CASCADE"), nullable=False
    )
    execution_number: Mapped[int] = mapped_column(Integer, nullable=False)
    occurrence_date: Mapped[date] = mapped_column(Date, nullable=False)
    execution_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    payment_id: Mapped[int | None] = mapped_column(ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), server_default=func.now(), nullable=False
    )

    scheduled_payment: Mapped[ScheduledPayment] = relationship(back_populates="executions")
