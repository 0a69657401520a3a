from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from vendorpay.models.scheduled_payments import ScheduledPayment
from vendorpay.services.date_engine import today_window, week_window


@dataclass(frozen=True)
class DashboardStats:
    total: int
    pending: int
    processed: int
    cancelled: int
    total_amount: Decimal
    pending_amount: Decimal
    processed_amount: Decimal
    recurring_count: int
    upcoming_today: int
    upcoming_this_week: int
    executed_today: int
    executed_this_week: int


def _amount(row: ScheduledPayment) -> Decimal:
    return Decimal(str(row.payment_amount))


def _awaiting_execution(row: ScheduledPayment, today: date) -> bool:
    if row.schedule_status == "pending":
        return True
    return (
        row.is_recurring
        and row.schedule_status == "processed"
        and row.next_execution is not None
        and row.next_execution <= today
    )


def compute_dashboard_stats(rows: list[ScheduledPayment], *, now: datetime) -> DashboardStats:
    today = now.date()
    day = today_window(today)
    week = week_window(today)
    # "Pending" also counts recurring schedules whose next occurrence is already due.
    return DashboardStats(
        total=len(rows),
        pending=sum(1 for row in rows if _awaiting_execution(row, today)),
        processed=sum(1 for row in rows if row.schedule_status == "processed"),
        cancelled=sum(1 for row in rows if row.schedule_status == "cancelled"),
        total_amount=sum((_amount(row) for row in rows), start=Decimal("0.00")),
        pending_amount=sum(
            (_amount(row) for row in rows if row.schedule_status == "pending"),
            start=Decimal("0.00"),
        ),
        processed_amount=sum(
            (_amount(row) for row in rows if row.schedule_status == "processed"),
            start=Decimal("0.00"),
        ),
        recurring_count=sum(1 for row in rows if row.is_recurring),
        upcoming_today=sum(
            1 for row in rows if row.schedule_status == "pending" and day.contains(row.scheduled_for)
        ),
        upcoming_this_week=sum(
            1 for row in rows if row.schedule_status == "pending" and week.contains(row.scheduled_for)
        ),
        executed_today=sum(1 for row in rows if day.contains(row.last_execution_date)),
        executed_this_week=sum(1 for row in rows if week.contains(row.last_execution_date)),
    )


def get_dashboard_stats(session: Session, *, now: datetime) -> DashboardStats:
    rows = session.scalars(select(ScheduledPayment)).all()
    return compute_dashboard_stats(list(rows), now=now)
