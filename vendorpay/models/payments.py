from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vendorpay.models.base import Base, TimestampMixin


PAYMENT_STATUSES = ("pending", "approved", "rejected", "processed", "query_raised")


class Payment(TimestampMixin, Base):
    """Payment request awaiting approval, issued by executing a schedule."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','approved','rejected','processed','query_raised')",
            name="ck_payments_status",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    payment_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    requested_by: Mapped[str] = mapped_column(String(64), nullable=False)
    scheduled_payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("scheduled_payments.id", ondelete="SET NULL"), nullable=True
    )

    vendor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subcategory_id: Mapped[str] = mapped_column(String(64), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_mode: Mapped[str | None] = mapped_column(String(16), nullable=True)
    advance_details: Mapped[str | None] = mapped_column(String(32), nullable=True)
    total_outstanding: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
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
