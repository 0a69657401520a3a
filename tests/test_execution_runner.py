from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from conftest import make_input
from vendorpay.models.jobs import JobRun
from vendorpay.models.payments import Payment
from vendorpay.models.scheduled_payments import ScheduledPayment
from vendorpay.services import execution_runner, lifecycle_service
from vendorpay.services.execution_runner import (
    list_due_schedule_ids,
    run_due_executions,
    run_due_executions_once_per_day,
    run_due_executions_once_per_day_in_session_if_ready,
)
from vendorpay.services.lifecycle_service import cancel_scheduled_payment
from vendorpay.services.scheduled_payments_service import create_scheduled_payment


TODAY = date(2025, 3, 1)


def test_due_ids_cover_pending_and_recurring_processed(session: Session) -> None:
    due_now = create_scheduled_payment(session, make_input(), today=TODAY)
    later = create_scheduled_payment(session, make_input(scheduled_for=date(2025, 3, 9)), today=TODAY)
    cancelled = create_scheduled_payment(session, make_input(), today=TODAY)
    cancel_scheduled_payment(session, scheduled_payment_id=cancelled.id, now=datetime(2025, 3, 1, 7, 0))

    assert list_due_schedule_ids(session, today=TODAY) == [due_now.id]
    assert set(list_due_schedule_ids(session, today=date(2025, 3, 9))) == {due_now.id, later.id}


def test_run_due_executions_advances_and_catches_up(session: Session) -> None:
    weekly = create_scheduled_payment(
        session,
        make_input(
            is_recurring=True,
            recurrence_pattern="weekly",
            recurrence_end_type="never",
        ),
        today=TODAY,
    )
    one_time = create_scheduled_payment(session, make_input(scheduled_for=date(2025, 3, 10)), today=TODAY)

    result = run_due_executions(session, now=datetime(2025, 3, 15, 6, 0))

    assert result.due_count == 2
    assert result.executed_count == 4  # weekly for 3/1, 3/8, 3/15 plus the one-time payment
    assert result.conflict_count == 0
    assert result.error_count == 0
    weekly_after = session.get(ScheduledPayment, weekly.id)
    assert weekly_after.execution_count == 3
    assert weekly_after.next_execution == date(2025, 3, 22)
    assert session.get(ScheduledPayment, one_time.id).schedule_status == "processed"
    assert len(session.scalars(select(Payment)).all()) == 4

    rerun = run_due_executions(session, now=datetime(2025, 3, 15, 18, 0))
    assert rerun.due_count == 0
    assert rerun.executed_count == 0


def test_once_per_day_guard(session: Session) -> None:
    create_scheduled_payment(session, make_input(), today=TODAY)

    first = run_due_executions_once_per_day(session, now=datetime(2025, 3, 1, 6, 0))
    second = run_due_executions_once_per_day(session, now=datetime(2025, 3, 1, 12, 0))

    assert first.ran is True
    assert first.run_result is not None
    assert first.run_result.executed_count == 1
    assert second.ran is False
    assert second.run_result is None


def test_guard_reports_not_ready_without_tables(tmp_path) -> None:
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker

    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}", future=True)
    with sessionmaker(bind=engine, future=True)() as empty:
        assert run_due_executions_once_per_day_in_session_if_ready(empty, now=datetime(2025, 3, 1)) is None


def test_catch_up_counts_executions_committed_before_a_failure(session: Session, monkeypatch) -> None:
    weekly = create_scheduled_payment(
        session,
        make_input(is_recurring=True, recurrence_pattern="weekly", recurrence_end_type="never"),
        today=TODAY,
    )
    original_insert = lifecycle_service._insert_payment_record
    calls = []

    def _fail_third_insert(session, schedule, *, now):
        calls.append(schedule.id)
        if len(calls) == 3:
            raise OperationalError("INSERT INTO payments", {}, Exception("database is locked"))
        return original_insert(session, schedule, now=now)

    monkeypatch.setattr(lifecycle_service, "_insert_payment_record", _fail_third_insert)
    result = run_due_executions(session, now=datetime(2025, 3, 20, 6, 0))

    assert result.due_count == 1
    assert result.executed_count == 2
    assert result.error_count == 1
    assert result.conflict_count == 0
    assert len(session.scalars(select(Payment)).all()) == result.executed_count
    stored = session.get(ScheduledPayment, weekly.id)
    assert stored.execution_count == 2
    assert stored.next_execution == date(2025, 3, 15)


def test_guard_is_released_when_the_run_blows_up(session: Session, monkeypatch) -> None:
    create_scheduled_payment(session, make_input(), today=TODAY)

    def _explode(session, *, now):
        raise RuntimeError("runner crashed")

    monkeypatch.setattr(execution_runner, "run_due_executions", _explode)
    with pytest.raises(RuntimeError, match="runner crashed"):
        run_due_executions_once_per_day(session, now=datetime(2025, 3, 1, 6, 0))
    assert session.scalars(select(JobRun)).all() == []

    monkeypatch.undo()
    retry = run_due_executions_once_per_day(session, now=datetime(2025, 3, 1, 9, 0))
    assert retry.ran is True
    assert retry.run_result is not None
    assert retry.run_result.executed_count == 1
    assert len(session.scalars(select(JobRun)).all()) == 1
