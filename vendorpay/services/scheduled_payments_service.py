from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import logging
import math

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vendorpay.models.scheduled_payments import (
    ADVANCE_DETAILS,
    PAYMENT_MODES,
    RECURRENCE_END_TYPES,
    RECURRENCE_PATTERNS,
    SCHEDULE_STATUSES,
    URGENCY_LEVELS,
    ScheduledPayment,
    ScheduledPaymentExecution,
)
from vendorpay.services.date_engine import DayWindow, today_window, week_window
from vendorpay.services.errors import (
    SchedulePersistenceError,
    ScheduleNotFoundError,
    ScheduleValidationError,
)
from vendorpay.services.recurrence_engine import RecurrenceSpec

logger = logging.getLogger(__name__)


DEFAULT_MAX_RECURRENCE_END_AFTER = 100
SORTABLE_FIELDS = {
    "created_at": ScheduledPayment.created_at,
    "scheduled_for": ScheduledPayment.scheduled_for,
    "next_execution": ScheduledPayment.next_execution,
    "payment_amount": ScheduledPayment.payment_amount,
    "vendor_name": ScheduledPayment.vendor_name,
    "schedule_status": ScheduledPayment.schedule_status,
}
UPCOMING_FILTERS = ("today", "week")


@dataclass(frozen=True)
class CreateScheduledPaymentInput:
    requested_by: str
    scheduled_for: date
    vendor_name: str
    company_name: str
    category_id: str
    subcategory_id: str
    payment_amount: Decimal
    item_description: str
    vendor_id: str | None = None
    company_branch: str | None = None
    bank_name: str | None = None
    payment_mode: str | None = None
    advance_details: str | None = None
    total_outstanding: Decimal | None = None
    quantity_checked_by: str | None = None
    quality_checked_by: str | None = None
    purchase_owner: str | None = None
    price_check_guaranteed_by: str | None = None
    lpr: str | None = None
    ioa: str | None = None
    cpp: str | None = None
    urgency_level: str = "medium"
    is_recurring: bool = False
    recurrence_pattern: str | None = None
    recurrence_end_type: str | None = None
    recurrence_end_after: int | None = None
    recurrence_end_date: date | None = None
    parent_payment_id: int | None = None


@dataclass(frozen=True)
class ScheduleListFilters:
    statuses: tuple[str, ...] = ()
    is_recurring: bool | None = None
    q: str | None = None
    upcoming: str | None = None


@dataclass(frozen=True)
class ScheduledPaymentPage:
    rows: list[ScheduledPayment]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if not self.total_count:
            return 0
        return math.ceil(self.total_count / self.page_size)


def to_recurrence_spec(schedule: ScheduledPayment) -> RecurrenceSpec:
    return RecurrenceSpec(
        scheduled_for=schedule.scheduled_for,
        is_recurring=schedule.is_recurring,
        recurrence_pattern=schedule.recurrence_pattern,
        recurrence_end_type=schedule.recurrence_end_type,
        recurrence_end_after=schedule.recurrence_end_after,
        recurrence_end_date=schedule.recurrence_end_date,
    )


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _require(value: str | None, label: str) -> str:
    cleaned = _clean(value)
    if cleaned is None:
        raise ScheduleValidationError(f"{label} is required")
    return cleaned


def validate_recurrence(
    spec: RecurrenceSpec,
    *,
    max_end_after: int = DEFAULT_MAX_RECURRENCE_END_AFTER,
) -> RecurrenceSpec:
    """Check the recurrence fields and return them normalized.

    Fields that do not apply to the chosen end condition are dropped, and a
    non-recurring spec comes back with every recurrence field cleared.
    """
    if spec.scheduled_for is None:
        raise ScheduleValidationError("Schedule date is required")
    if not spec.is_recurring:
        return RecurrenceSpec(scheduled_for=spec.scheduled_for, is_recurring=False)

    if not spec.recurrence_pattern:
        raise ScheduleValidationError("Recurrence pattern is required")
    if spec.recurrence_pattern not in RECURRENCE_PATTERNS:
        raise ScheduleValidationError(f"Unsupported recurrence_pattern: {spec.recurrence_pattern}")
    if not spec.recurrence_end_type:
        raise ScheduleValidationError("End condition is required")
    if spec.recurrence_end_type not in RECURRENCE_END_TYPES:
        raise ScheduleValidationError(f"Unsupported recurrence_end_type: {spec.recurrence_end_type}")

    end_after = None
    end_date = None
    if spec.recurrence_end_type == "after":
        if spec.recurrence_end_after is None:
            raise ScheduleValidationError("Number of occurrences is required")
        if spec.recurrence_end_after < 1:
            raise ScheduleValidationError("Number of occurrences must be at least 1")
        if spec.recurrence_end_after > max_end_after:
            raise ScheduleValidationError(f"Number of occurrences cannot exceed {max_end_after}")
        end_after = spec.recurrence_end_after
    elif spec.recurrence_end_type == "on":
        if spec.recurrence_end_date is None:
            raise ScheduleValidationError("End date is required")
        if spec.recurrence_end_date <= spec.scheduled_for:
            raise ScheduleValidationError("End date must be after the schedule date")
        end_date = spec.recurrence_end_date

    return RecurrenceSpec(
        scheduled_for=spec.scheduled_for,
        is_recurring=True,
        recurrence_pattern=spec.recurrence_pattern,
        recurrence_end_type=spec.recurrence_end_type,
        recurrence_end_after=end_after,
        recurrence_end_date=end_date,
    )


def _validate_payload(data: CreateScheduledPaymentInput) -> tuple[Decimal, Decimal]:
    if data.payment_amount <= 0:
        raise ScheduleValidationError("Payment amount must be greater than zero")
    total_outstanding = data.total_outstanding if data.total_outstanding is not None else Decimal("0.00")
    if total_outstanding < 0:
        raise ScheduleValidationError("Total outstanding must be non-negative")
    if data.payment_mode is not None and data.payment_mode not in PAYMENT_MODES:
        raise ScheduleValidationError(f"Unsupported payment_mode: {data.payment_mode}")
    if data.advance_details is not None and data.advance_details not in ADVANCE_DETAILS:
        raise ScheduleValidationError(f"Unsupported advance_details: {data.advance_details}")
    if data.urgency_level not in URGENCY_LEVELS:
        raise ScheduleValidationError(f"Unsupported urgency_level: {data.urgency_level}")
    return total_outstanding, total_outstanding - data.payment_amount


def create_scheduled_payment(
    session: Session,
    data: CreateScheduledPaymentInput,
    *,
    today: date,
    max_end_after: int = DEFAULT_MAX_RECURRENCE_END_AFTER,
) -> ScheduledPayment:
    requested_by = _require(data.requested_by, "Requested by")
    vendor_name = _require(data.vendor_name, "Vendor name")
    company_name = _require(data.company_name, "Company name")
    category_id = _require(data.category_id, "Category")
    subcategory_id = _require(data.subcategory_id, "Subcategory")
    item_description = _require(data.item_description, "Item description")
    if data.scheduled_for < today:
        raise ScheduleValidationError("Schedule date cannot be in the past")
    total_outstanding, balance_amount = _validate_payload(data)
    recurrence = validate_recurrence(
        RecurrenceSpec(
            scheduled_for=data.scheduled_for,
            is_recurring=data.is_recurring,
            recurrence_pattern=data.recurrence_pattern,
            recurrence_end_type=data.recurrence_end_type,
            recurrence_end_after=data.recurrence_end_after,
            recurrence_end_date=data.recurrence_end_date,
        ),
        max_end_after=max_end_after,
    )

    schedule = ScheduledPayment(
        scheduled_for=data.scheduled_for,
        schedule_status="pending",
        requested_by=requested_by,
        vendor_id=_clean(data.vendor_id),
        vendor_name=vendor_name,
        company_name=company_name,
        company_branch=_clean(data.company_branch),
        category_id=category_id,
        subcategory_id=subcategory_id,
        bank_name=_clean(data.bank_name),
        payment_mode=data.payment_mode,
        advance_details=data.advance_details,
        total_outstanding=total_outstanding,
        payment_amount=data.payment_amount,
        balance_amount=balance_amount,
        item_description=item_description,
        quantity_checked_by=_clean(data.quantity_checked_by),
        quality_checked_by=_clean(data.quality_checked_by),
        purchase_owner=_clean(data.purchase_owner),
        price_check_guaranteed_by=_clean(data.price_check_guaranteed_by),
        lpr=_clean(data.lpr),
        ioa=_clean(data.ioa),
        cpp=_clean(data.cpp),
        urgency_level=data.urgency_level,
        is_recurring=recurrence.is_recurring,
        recurrence_pattern=recurrence.recurrence_pattern,
        recurrence_end_type=recurrence.recurrence_end_type,
        recurrence_end_after=recurrence.recurrence_end_after,
        recurrence_end_date=recurrence.recurrence_end_date,
        execution_count=0,
        next_execution=None,
        parent_payment_id=data.parent_payment_id,
    )
    session.add(schedule)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise SchedulePersistenceError("Failed to create scheduled payment") from exc
    session.refresh(schedule)
    logger.info(
        "Scheduled payment created scheduled_payment_id=%s scheduled_for=%s is_recurring=%s pattern=%s end_type=%s",
        schedule.id,
        schedule.scheduled_for,
        schedule.is_recurring,
        schedule.recurrence_pattern,
        schedule.recurrence_end_type,
    )
    return schedule


def get_scheduled_payment(session: Session, scheduled_payment_id: int) -> ScheduledPayment:
    schedule = session.get(ScheduledPayment, scheduled_payment_id)
    if schedule is None:
        raise ScheduleNotFoundError(f"Scheduled payment {scheduled_payment_id} not found")
    return schedule


def _in_window(column, window: DayWindow):  # type: ignore[no-untyped-def]
    return and_(column >= window.start, column < window.end)


def _apply_list_filters(stmt: Select, filters: ScheduleListFilters, *, today: date) -> Select:
    for status in filters.statuses:
        if status not in SCHEDULE_STATUSES:
            raise ScheduleValidationError(f"Unsupported status filter: {status}")
    if filters.statuses:
        stmt = stmt.where(ScheduledPayment.schedule_status.in_(filters.statuses))

    if filters.is_recurring is not None:
        stmt = stmt.where(ScheduledPayment.is_recurring.is_(filters.is_recurring))

    if filters.q:
        like = f"%{filters.q.strip()}%"
        if like != "%%":
            stmt = stmt.where(
                or_(
                    ScheduledPayment.vendor_name.ilike(like),
                    ScheduledPayment.item_description.ilike(like),
                )
            )

    if filters.upcoming:
        if filters.upcoming not in UPCOMING_FILTERS:
            raise ScheduleValidationError(f"Unsupported upcoming filter: {filters.upcoming}")
        window = today_window(today) if filters.upcoming == "today" else week_window(today)
        wants_pending = not filters.statuses or "pending" in filters.statuses
        wants_processed = not filters.statuses or "processed" in filters.statuses
        pending_due = and_(
            ScheduledPayment.schedule_status == "pending",
            _in_window(ScheduledPayment.scheduled_for, window),
        )
        processed_due = and_(
            ScheduledPayment.schedule_status == "processed",
            _in_window(ScheduledPayment.next_execution, window),
        )
        if wants_pending and wants_processed:
            stmt = stmt.where(or_(pending_due, processed_due))
        elif wants_pending:
            stmt = stmt.where(pending_due)
        elif wants_processed:
            stmt = stmt.where(processed_due)

    return stmt


def list_scheduled_payments_page(
    session: Session,
    *,
    filters: ScheduleListFilters,
    today: date,
    page: int = 1,
    page_size: int = 10,
    sort_field: str = "created_at",
    sort_direction: str = "desc",
) -> ScheduledPaymentPage:
    if sort_field not in SORTABLE_FIELDS:
        raise ScheduleValidationError(f"Unsupported sort field: {sort_field}")
    if sort_direction not in {"asc", "desc"}:
        raise ScheduleValidationError(f"Unsupported sort direction: {sort_direction}")
    page = max(page, 1)
    page_size = max(page_size, 1)

    column = SORTABLE_FIELDS[sort_field]
    if sort_direction == "asc":
        order = (column.asc(), ScheduledPayment.id.asc())
    else:
        order = (column.desc(), ScheduledPayment.id.desc())

    stmt = _apply_list_filters(select(ScheduledPayment), filters, today=today)
    rows = session.scalars(stmt.order_by(*order).offset((page - 1) * page_size).limit(page_size)).all()
    count_stmt = _apply_list_filters(select(func.count()).select_from(ScheduledPayment), filters, today=today)
    total_count = int(session.scalar(count_stmt) or 0)
    return ScheduledPaymentPage(rows=list(rows), total_count=total_count, page=page, page_size=page_size)


def list_executions(session: Session, *, scheduled_payment_id: int) -> list[ScheduledPaymentExecution]:
    get_scheduled_payment(session, scheduled_payment_id)
    return list(
        session.scalars(
            select(ScheduledPaymentExecution)
            .where(ScheduledPaymentExecution.scheduled_payment_id == scheduled_payment_id)
            .order_by(ScheduledPaymentExecution.execution_number.asc())
        ).all()
    )
