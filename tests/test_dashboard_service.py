from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from vendorpay.models.scheduled_payments import ScheduledPayment
from vendorpay.services.dashboard_service import get_dashboard_stats


NOW = datetime(2026, 5, 12, 14, 0)


def _row(amount: str, **fields) -> ScheduledPayment:
    return ScheduledPayment(
        requested_by="user-1",
        vendor_name="Vendor",
        company_name="Northwind",
        category_id="cat",
        subcategory_id="sub",
        payment_amount=Decimal(amount),
        balance_amount=Decimal("0.00"),
        total_outstanding=Decimal(amount),
        item_description="Item",
        **fields,
    )


def test_dashboard_stats_counts_and_windows(session: Session) -> None:
    session.add_all(
        [
            _row("100.00", scheduled_for=date(2026, 5, 12), schedule_status="pending"),
            _row("200.00", scheduled_for=date(2026, 5, 18), schedule_status="pending"),
            _row("300.00", scheduled_for=date(2026, 5, 19), schedule_status="pending"),
            _row(
                "50.00",
                scheduled_for=date(2026, 4, 12),
                schedule_status="processed",
                is_recurring=True,
                recurrence_pattern="monthly",
                recurrence_end_type="never",
                execution_count=1,
                next_execution=date(2026, 5, 12),
                last_execution_date=datetime(2026, 4, 12, 9, 0),
            ),
            _row(
                "75.00",
                scheduled_for=date(2026, 5, 5),
                schedule_status="processed",
                is_recurring=True,
                recurrence_pattern="weekly",
                recurrence_end_type="never",
                execution_count=2,
                next_execution=date(2026, 5, 19),
                last_execution_date=datetime(2026, 5, 12, 0, 0),
            ),
            _row(
                "25.00",
                scheduled_for=date(2026, 5, 11),
                schedule_status="processed",
                execution_count=1,
                last_execution_date=datetime(2026, 5, 11, 23, 59),
            ),
            _row("40.00", scheduled_for=date(2026, 5, 12), schedule_status="cancelled"),
        ]
    )
    session.commit()

    stats = get_dashboard_stats(session, now=NOW)

    assert stats.total == 7
    assert stats.pending == 4  # three pending plus the recurring one due today
    assert stats.processed == 3
    assert stats.cancelled == 1
    assert stats.total_amount == Decimal("790.00")
    assert stats.pending_amount == Decimal("600.00")
    assert stats.processed_amount == Decimal("150.00")
    assert stats.recurring_count == 2
    assert stats.upcoming_today == 1
    assert stats.upcoming_this_week == 2
    assert stats.executed_today == 1
    assert stats.executed_this_week == 1


def test_dashboard_stats_empty(session: Session) -> None:
    stats = get_dashboard_stats(session, now=NOW)
    assert stats.total == 0
    assert stats.total_amount == Decimal("0.00")
    assert stats.executed_today == 0
