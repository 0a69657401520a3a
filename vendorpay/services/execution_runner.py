from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import logging

from sqlalchemy import and_, delete, inspect, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vendorpay.db import SessionLocal
from vendorpay.models.jobs import JobRun
from vendorpay.models.scheduled_payments import ScheduledPayment
from vendorpay.services.errors import ScheduleError, SchedulePersistenceError, ScheduleStateConflictError
from vendorpay.services.lifecycle_service import execute_scheduled_payment

logger = logging.getLogger(__name__)


RUN_DUE_EXECUTIONS_JOB_NAME = "run_due_executions"
REQUIRED_TABLES = {"scheduled_payments", "payments", "scheduled_payment_executions", "job_runs"}


@dataclass(frozen=True)
class DueExecutionRunResult:
    run_date: date
    due_count: int
    executed_count: int
    conflict_count: int
    error_count: int


@dataclass(frozen=True)
class GuardedDueExecutionRunResult:
    job_name: str
    run_date: date
    ran: bool
    run_result: DueExecutionRunResult | None


def list_due_schedule_ids(session: Session, *, today: date) -> list[int]:
    stmt = (
        select(ScheduledPayment.id)
        .where(
            or_(
                and_(
                    ScheduledPayment.schedule_status == "pending",
                    ScheduledPayment.scheduled_for <= today,
                ),
                and_(
                    ScheduledPayment.schedule_status == "processed",
                    ScheduledPayment.next_execution.is_not(None),
                    ScheduledPayment.next_execution <= today,
                ),
            )
        )
        .order_by(ScheduledPayment.id.asc())
    )
    return list(session.scalars(stmt).all())


def _execute_until_current(
    session: Session,
    *,
    scheduled_payment_id: int,
    now: datetime,
) -> tuple[int, ScheduleError | None]:
    """Execute every occurrence of one schedule that is due by ``now``.

    Returns how many executions committed and the error that stopped the
    catch-up, if any. Executions committed before the error stay committed.
    """
    executed = 0
    while True:
        try:
            result = execute_scheduled_payment(session, scheduled_payment_id=scheduled_payment_id, now=now)
        except (ScheduleStateConflictError, SchedulePersistenceError) as exc:
            return executed, exc
        executed += 1
        if result.next_execution is None or result.next_execution > now.date():
            return executed, None


def run_due_executions(session: Session, *, now: datetime) -> DueExecutionRunResult:
    today = now.date()
    due_ids = list_due_schedule_ids(session, today=today)
    executed_count = 0
    conflict_count = 0
    error_count = 0

    for scheduled_payment_id in due_ids:
        executed, failure = _execute_until_current(session, scheduled_payment_id=scheduled_payment_id, now=now)
        executed_count += executed
        if isinstance(failure, ScheduleStateConflictError):
            conflict_count += 1
            logger.info(
                "Due execution skipped scheduled_payment_id=%s executed=%s reason=%s",
                scheduled_payment_id,
                executed,
                failure,
            )
        elif failure is not None:
            error_count += 1
            logger.error(
                "Due execution failed scheduled_payment_id=%s executed=%s",
                scheduled_payment_id,
                executed,
                exc_info=failure,
            )

    logger.info(
        "Due executions completed run_date=%s due=%s executed=%s conflicts=%s errors=%s",
        today,
        len(due_ids),
        executed_count,
        conflict_count,
        error_count,
    )
    return DueExecutionRunResult(
        run_date=today,
        due_count=len(due_ids),
        executed_count=executed_count,
        conflict_count=conflict_count,
        error_count=error_count,
    )


def try_mark_daily_job_run(session: Session, *, job_name: str, run_date: date, trigger: str) -> bool:
    session.add(JobRun(job_name=job_name, run_date=run_date, trigger=trigger))
    try:
        session.commit()
        return True
    except IntegrityError:
        session.rollback()
        return False


def release_daily_job_run(session: Session, *, job_name: str, run_date: date) -> None:
    # Lets a later trigger on the same day retry a run that blew up.
    session.execute(delete(JobRun).where(JobRun.job_name == job_name, JobRun.run_date == run_date))
    session.commit()
    logger.warning("Daily job guard released job=%s run_date=%s", job_name, run_date)


def run_due_executions_once_per_day(
    session: Session,
    *,
    now: datetime,
    trigger: str = "manual",
) -> GuardedDueExecutionRunResult:
    today = now.date()
    did_mark = try_mark_daily_job_run(
        session,
        job_name=RUN_DUE_EXECUTIONS_JOB_NAME,
        run_date=today,
        trigger=trigger,
    )
    if not did_mark:
        logger.info("Due execution guard skip job=%s run_date=%s", RUN_DUE_EXECUTIONS_JOB_NAME, today)
        return GuardedDueExecutionRunResult(
            job_name=RUN_DUE_EXECUTIONS_JOB_NAME,
            run_date=today,
            ran=False,
            run_result=None,
        )

    try:
        run_result = run_due_executions(session, now=now)
    except Exception:
        session.rollback()
        release_daily_job_run(session, job_name=RUN_DUE_EXECUTIONS_JOB_NAME, run_date=today)
        raise
    return GuardedDueExecutionRunResult(
        job_name=RUN_DUE_EXECUTIONS_JOB_NAME,
        run_date=today,
        ran=True,
        run_result=run_result,
    )


def run_due_executions_once_per_day_in_session_if_ready(
    session: Session,
    *,
    now: datetime,
    trigger: str = "manual",
) -> GuardedDueExecutionRunResult | None:
    inspector = inspect(session.bind)
    tables = set(inspector.get_table_names())
    if not REQUIRED_TABLES.issubset(tables):
        logger.debug("Due execution readiness check failed tables=%s", ",".join(sorted(tables)))
        return None
    return run_due_executions_once_per_day(session, now=now, trigger=trigger)


def run_due_executions_once_per_day_if_ready(
    *,
    now: datetime,
    trigger: str = "startup",
) -> GuardedDueExecutionRunResult | None:
    with SessionLocal() as session:
        return run_due_executions_once_per_day_in_session_if_ready(session, now=now, trigger=trigger)
