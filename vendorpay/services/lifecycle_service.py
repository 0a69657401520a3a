from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vendorpay.models.payments import Payment
from vendorpay.models.scheduled_payments import ScheduledPayment, ScheduledPaymentExecution
from vendorpay.services.errors import SchedulePersistenceError, ScheduleStateConflictError
from vendorpay.services.recurrence_engine import is_past_end, occurrence_date
from vendorpay.services.scheduled_payments_service import get_scheduled_payment, to_recurrence_spec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    scheduled_payment_id: int
    payment_id: int
    execution_number: int
    occurrence_date: date
    executed_at: datetime
    next_execution: date | None

    @property
    def exhausted(self) -> bool:
        return self.next_execution is None


def is_exhausted(schedule: ScheduledPayment) -> bool:
    return schedule.schedule_status == "processed" and schedule.next_execution is None


def is_terminal(schedule: ScheduledPayment) -> bool:
    return schedule.schedule_status == "cancelled" or is_exhausted(schedule)


def current_due_date(schedule: ScheduledPayment) -> date:
    """Date of the occurrence the schedule is waiting to execute."""
    if schedule.schedule_status == "cancelled":
        raise ScheduleStateConflictError(f"Scheduled payment {schedule.id} is cancelled")
    if schedule.schedule_status == "pending":
        return schedule.scheduled_for
    if schedule.next_execution is None:
        raise ScheduleStateConflictError(f"Scheduled payment {schedule.id} has no remaining occurrences")
    if (
        schedule.recurrence_end_after is not None
        and schedule.execution_count >= schedule.recurrence_end_after
    ):
        raise ScheduleStateConflictError(f"Scheduled payment {schedule.id} has reached its occurrence limit")
    return schedule.next_execution


def next_execution_after(schedule: ScheduledPayment, *, executed_count: int) -> date | None:
    if not schedule.is_recurring or not schedule.recurrence_pattern:
        return None
    candidate = occurrence_date(schedule.scheduled_for, schedule.recurrence_pattern, executed_count)
    if is_past_end(to_recurrence_spec(schedule), index=executed_count, candidate=candidate):
        return None
    return candidate


def _insert_payment_record(session: Session, schedule: ScheduledPayment, *, now: datetime) -> Payment:
    payment = Payment(
        payment_date=now.date(),
        issued_at=now,
        status="pending",
        requested_by=schedule.requested_by,
        scheduled_payment_id=schedule.id,
        vendor_id=schedule.vendor_id,
        vendor_name=schedule.vendor_name,
        company_name=schedule.company_name,
        company_branch=schedule.company_branch,
        category_id=schedule.category_id,
        subcategory_id=schedule.subcategory_id,
        bank_name=schedule.bank_name,
        payment_mode=schedule.payment_mode,
        advance_details=schedule.advance_details,
        total_outstanding=schedule.total_outstanding,
        payment_amount=schedule.payment_amount,
        balance_amount=schedule.balance_amount,
        item_description=schedule.item_description,
        quantity_checked_by=schedule.quantity_checked_by,
        quality_checked_by=schedule.quality_checked_by,
        purchase_owner=schedule.purchase_owner,
        price_check_guaranteed_by=schedule.price_check_guaranteed_by,
        lpr=schedule.lpr,
        ioa=schedule.ioa,
        cpp=schedule.cpp,
    )
    session.add(payment)
    session.flush()
    return payment


def execute_scheduled_payment(
    session: Session,
    *,
    scheduled_payment_id: int,
    now: datetime,
) -> ExecutionResult:
    """Turn the due occurrence into a payment request and advance the schedule.

    The payment row, the execution history row and the schedule update are
    committed together. The schedule update only applies while status and
    execution count still match what was read, so a concurrent Execute or
    Cancel makes this call fail with ScheduleStateConflictError.
    """
    schedule = get_scheduled_payment(session, scheduled_payment_id)
    due_date = current_due_date(schedule)
    if due_date > now.date():
        raise ScheduleStateConflictError(
            f"Scheduled payment {schedule.id} is not due until {due_date.isoformat()}"
        )

    expected_status = schedule.schedule_status
    expected_count = schedule.execution_count
    execution_number = expected_count + 1
    next_execution = next_execution_after(schedule, executed_count=execution_number)

    try:
        payment = _insert_payment_record(session, schedule, now=now)
        payment_id = payment.id
        result = session.execute(
            update(ScheduledPayment)
            .where(
                ScheduledPayment.id == schedule.id,
                ScheduledPayment.schedule_status == expected_status,
                ScheduledPayment.execution_count == expected_count,
            )
            .values(
                schedule_status="processed",
                execution_count=execution_number,
                last_execution_date=now,
                promoted_date=now,
                next_execution=next_execution,
                payment_id=payment_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.rollback()
            raise ScheduleStateConflictError(
                f"Scheduled payment {scheduled_payment_id} changed while executing; refresh and retry"
            )
        session.add(
            ScheduledPaymentExecution(
                scheduled_payment_id=scheduled_payment_id,
                execution_number=execution_number,
                occurrence_date=due_date,
                execution_date=now,
                payment_id=payment_id,
            )
        )
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise SchedulePersistenceError(f"Failed to execute scheduled payment {scheduled_payment_id}") from exc

    logger.info(
        "Scheduled payment executed scheduled_payment_id=%s execution_number=%s occurrence_date=%s payment_id=%s next_execution=%s",
        scheduled_payment_id,
        execution_number,
        due_date,
        payment_id,
        next_execution,
    )
    if next_execution is None:
        logger.info("Scheduled payment exhausted scheduled_payment_id=%s", scheduled_payment_id)
    return ExecutionResult(
        scheduled_payment_id=scheduled_payment_id,
        payment_id=payment_id,
        execution_number=execution_number,
        occurrence_date=due_date,
        executed_at=now,
        next_execution=next_execution,
    )


def cancel_scheduled_payment(
    session: Session,
    *,
    scheduled_payment_id: int,
    now: datetime,
) -> ScheduledPayment:
    schedule = get_scheduled_payment(session, scheduled_payment_id)
    if schedule.schedule_status == "cancelled":
        raise ScheduleStateConflictError(f"Scheduled payment {schedule.id} is already cancelled")
    if is_exhausted(schedule):
        raise ScheduleStateConflictError(f"Scheduled payment {schedule.id} has no remaining occurrences")

    try:
        result = session.execute(
            update(ScheduledPayment)
            .where(
                ScheduledPayment.id == schedule.id,
                ScheduledPayment.schedule_status == schedule.schedule_status,
                ScheduledPayment.execution_count == schedule.execution_count,
            )
            .values(schedule_status="cancelled", next_execution=None, cancelled_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.rollback()
            raise ScheduleStateConflictError(
                f"Scheduled payment {scheduled_payment_id} changed while cancelling; refresh and retry"
            )
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise SchedulePersistenceError(f"Failed to cancel scheduled payment {scheduled_payment_id}") from exc

    session.refresh(schedule)
    logger.info(
        "Scheduled payment cancelled scheduled_payment_id=%s execution_count=%s",
        schedule.id,
        schedule.execution_count,
    )
    return schedule
