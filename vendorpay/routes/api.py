from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vendorpay.config import get_settings
from vendorpay.db import get_db_session
from vendorpay.models.scheduled_payments import ScheduledPayment, ScheduledPaymentExecution
from vendorpay.services.dashboard_service import get_dashboard_stats
from vendorpay.services.date_engine import local_now
from vendorpay.services.errors import (
    SchedulePersistenceError,
    ScheduleNotFoundError,
    ScheduleStateConflictError,
    ScheduleValidationError,
)
from vendorpay.services.execution_runner import run_due_executions, run_due_executions_once_per_day
from vendorpay.services.lifecycle_service import cancel_scheduled_payment, execute_scheduled_payment
from vendorpay.services.recurrence_engine import (
    RecurrenceSpec,
    estimate_occurrence_count,
    minimum_end_date,
    project_occurrences,
    suggest_end_date,
)
from vendorpay.services.scheduled_payments_service import (
    CreateScheduledPaymentInput,
    ScheduleListFilters,
    create_scheduled_payment,
    get_scheduled_payment,
    list_executions,
    list_scheduled_payments_page,
    validate_recurrence,
)

api_router = APIRouter(tags=["api"])

PatternLiteral = Literal["weekly", "monthly", "quarterly", "yearly"]
EndTypeLiteral = Literal["after", "on", "never"]


class ScheduledPaymentCreateRequest(BaseModel):
    requested_by: str = Field(min_length=1, max_length=64)
    scheduled_for: date
    vendor_id: str | None = None
    vendor_name: str = Field(min_length=1, max_length=255)
    company_name: str = Field(min_length=1, max_length=255)
    company_branch: str | None = None
    category_id: str = Field(min_length=1, max_length=64)
    subcategory_id: str = Field(min_length=1, max_length=64)
    bank_name: str | None = None
    payment_mode: Literal["net_banking", "upi"] | None = None
    advance_details: Literal["tax_invoice", "advance_(bill/PI)", "advance", "others"] | None = None
    total_outstanding: Decimal | None = Field(default=None, ge=0)
    payment_amount: Decimal = Field(gt=0)
    item_description: str = Field(min_length=1)
    quantity_checked_by: str | None = None
    quality_checked_by: str | None = None
    purchase_owner: str | None = None
    price_check_guaranteed_by: str | None = None
    lpr: str | None = None
    ioa: str | None = None
    cpp: str | None = None
    urgency_level: Literal["low", "medium", "high"] = "medium"
    is_recurring: bool = False
    recurrence_pattern: PatternLiteral | None = None
    recurrence_end_type: EndTypeLiteral | None = None
    recurrence_end_after: int | None = None
    recurrence_end_date: date | None = None
    parent_payment_id: int | None = None
    today: date | None = None


class ScheduledPaymentResponse(BaseModel):
    id: int
    scheduled_for: date
    schedule_status: str
    requested_by: str
    vendor_id: str | None
    vendor_name: str
    company_name: str
    company_branch: str | None
    category_id: str
    subcategory_id: str
    bank_name: str | None
    payment_mode: str | None
    advance_details: str | None
    total_outstanding: Decimal
    payment_amount: Decimal
    balance_amount: Decimal
    item_description: str
    urgency_level: str
    is_recurring: bool
    recurrence_pattern: str | None
    recurrence_end_type: str | None
    recurrence_end_after: int | None
    recurrence_end_date: date | None
    execution_count: int
    next_execution: date | None
    last_execution_date: datetime | None
    promoted_date: datetime | None
    cancelled_at: datetime | None
    parent_payment_id: int | None
    payment_id: int | None

    @classmethod
    def from_model(cls, schedule: ScheduledPayment) -> "ScheduledPaymentResponse":
        return cls(
            id=schedule.id,
            scheduled_for=schedule.scheduled_for,
            schedule_status=schedule.schedule_status,
            requested_by=schedule.requested_by,
            vendor_id=schedule.vendor_id,
            vendor_name=schedule.vendor_name,
            company_name=schedule.company_name,
            company_branch=schedule.company_branch,
            category_id=schedule.category_id,
            subcategory_id=schedule.subcategory_id,
            bank_name=schedule.bank_name,
            payment_mode=schedule.payment_mode,
            advance_details=schedule.advance_details,
            total_outstanding=Decimal(str(schedule.total_outstanding)),
            payment_amount=Decimal(str(schedule.payment_amount)),
            balance_amount=Decimal(str(schedule.balance_amount)),
            item_description=schedule.item_description,
            urgency_level=schedule.urgency_level,
            is_recurring=schedule.is_recurring,
            recurrence_pattern=schedule.recurrence_pattern,
            recurrence_end_type=schedule.recurrence_end_type,
            recurrence_end_after=schedule.recurrence_end_after,
            recurrence_end_date=schedule.recurrence_end_date,
            execution_count=schedule.execution_count,
            next_execution=schedule.next_execution,
            last_execution_date=schedule.last_execution_date,
            promoted_date=schedule.promoted_date,
            cancelled_at=schedule.cancelled_at,
            parent_payment_id=schedule.parent_payment_id,
            payment_id=schedule.payment_id,
        )


class ScheduledPaymentPageResponse(BaseModel):
    rows: list[ScheduledPaymentResponse]
    total_count: int
    total_pages: int
    page: int
    page_size: int


class PreviewRequest(BaseModel):
    scheduled_for: date | None = None
    is_recurring: bool = True
    recurrence_pattern: PatternLiteral | None = None
    recurrence_end_type: EndTypeLiteral | None = None
    recurrence_end_after: int | None = None
    recurrence_end_date: date | None = None
    max_results: int | None = Field(default=None, ge=1, le=100)


class ExecuteRequest(BaseModel):
    now: datetime | None = None


class CancelRequest(BaseModel):
    now: datetime | None = None


class RunDueExecutionsRequest(BaseModel):
    now: datetime | None = None


def _resolve_now(value: datetime | None) -> datetime:
    return value or local_now(get_settings().timezone)


def _serialize_execution(row: ScheduledPaymentExecution) -> dict[str, object]:
    return {
        "execution_number": row.execution_number,
        "occurrence_date": row.occurrence_date.isoformat(),
        "execution_date": row.execution_date.isoformat(),
        "payment_id": row.payment_id,
    }


def _serialize_run_result(result) -> dict[str, object]:
    return {
        "run_date": result.run_date.isoformat(),
        "due_count": result.due_count,
        "executed_count": result.executed_count,
        "conflict_count": result.conflict_count,
        "error_count": result.error_count,
    }


def _load_schedule(db: Session, scheduled_payment_id: int) -> ScheduledPayment:
    try:
        return get_scheduled_payment(db, scheduled_payment_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@api_router.get("/health")
def health_check(db: Session = Depends(get_db_session)) -> dict[str, str]:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=503, detail="database unavailable") from exc
    return {"status": "ok"}


@api_router.post("/scheduled-payments", response_model=ScheduledPaymentResponse, status_code=201)
def scheduled_payments_create(
    payload: ScheduledPaymentCreateRequest,
    db: Session = Depends(get_db_session),
) -> ScheduledPaymentResponse:
    settings = get_settings()
    data = CreateScheduledPaymentInput(
        **payload.model_dump(exclude={"today"}),
    )
    try:
        schedule = create_scheduled_payment(
            db,
            data,
            today=payload.today or local_now(settings.timezone).date(),
            max_end_after=settings.max_recurrence_end_after,
        )
    except ScheduleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SchedulePersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return ScheduledPaymentResponse.from_model(schedule)


@api_router.get("/scheduled-payments", response_model=ScheduledPaymentPageResponse)
def scheduled_payments_list(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    sort_field: str = Query(default="created_at"),
    sort_direction: Literal["asc", "desc"] = Query(default="desc"),
    q: str | None = Query(default=None),
    status: list[str] = Query(default=[]),
    is_recurring: bool | None = Query(default=None),
    upcoming: Literal["today", "week"] | None = Query(default=None),
    today: date | None = Query(default=None),
    db: Session = Depends(get_db_session),
) -> ScheduledPaymentPageResponse:
    try:
        result = list_scheduled_payments_page(
            db,
            filters=ScheduleListFilters(
                statuses=tuple(status),
                is_recurring=is_recurring,
                q=q,
                upcoming=upcoming,
            ),
            today=today or local_now(get_settings().timezone).date(),
            page=page,
            page_size=page_size,
            sort_field=sort_field,
            sort_direction=sort_direction,
        )
    except ScheduleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ScheduledPaymentPageResponse(
        rows=[ScheduledPaymentResponse.from_model(row) for row in result.rows],
        total_count=result.total_count,
        total_pages=result.total_pages,
        page=result.page,
        page_size=result.page_size,
    )


@api_router.get("/scheduled-payments/dashboard")
def scheduled_payments_dashboard(
    now: datetime | None = Query(default=None),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    stats = get_dashboard_stats(db, now=_resolve_now(now))
    return {
        "total": stats.total,
        "pending": stats.pending,
        "processed": stats.processed,
        "cancelled": stats.cancelled,
        "total_amount": str(stats.total_amount),
        "pending_amount": str(stats.pending_amount),
        "processed_amount": str(stats.processed_amount),
        "recurring_count": stats.recurring_count,
        "upcoming_today": stats.upcoming_today,
        "upcoming_this_week": stats.upcoming_this_week,
        "executed_today": stats.executed_today,
        "executed_this_week": stats.executed_this_week,
    }


@api_router.post("/scheduled-payments/preview")
def scheduled_payments_preview(payload: PreviewRequest) -> dict[str, object]:
    settings = get_settings()
    spec = RecurrenceSpec(
        scheduled_for=payload.scheduled_for,
        is_recurring=payload.is_recurring,
        recurrence_pattern=payload.recurrence_pattern,
        recurrence_end_type=payload.recurrence_end_type,
        recurrence_end_after=payload.recurrence_end_after,
        recurrence_end_date=payload.recurrence_end_date,
    )
    errors: list[str] = []
    try:
        validate_recurrence(spec, max_end_after=settings.max_recurrence_end_after)
    except ScheduleValidationError as exc:
        errors.append(str(exc))

    occurrences = project_occurrences(spec, payload.max_results or settings.preview_occurrences)
    suggested = None
    minimum = None
    if payload.scheduled_for is not None:
        minimum = minimum_end_date(payload.scheduled_for).isoformat()
        if payload.recurrence_pattern is not None:
            suggested = suggest_end_date(payload.scheduled_for, payload.recurrence_pattern).isoformat()
    return {
        "occurrences": [value.isoformat() for value in occurrences],
        "estimated_occurrence_count": estimate_occurrence_count(spec),
        "suggested_end_date": suggested,
        "minimum_end_date": minimum,
        "errors": errors,
    }


@api_router.get("/scheduled-payments/{scheduled_payment_id}", response_model=ScheduledPaymentResponse)
def scheduled_payments_detail(
    scheduled_payment_id: int,
    db: Session = Depends(get_db_session),
) -> ScheduledPaymentResponse:
    return ScheduledPaymentResponse.from_model(_load_schedule(db, scheduled_payment_id))


@api_router.post("/scheduled-payments/{scheduled_payment_id}/cancel", response_model=ScheduledPaymentResponse)
def scheduled_payments_cancel(
    scheduled_payment_id: int,
    payload: CancelRequest,
    db: Session = Depends(get_db_session),
) -> ScheduledPaymentResponse:
    try:
        schedule = cancel_scheduled_payment(
            db,
            scheduled_payment_id=scheduled_payment_id,
            now=_resolve_now(payload.now),
        )
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ScheduleStateConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SchedulePersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return ScheduledPaymentResponse.from_model(schedule)


@api_router.post("/scheduled-payments/{scheduled_payment_id}/execute")
def scheduled_payments_execute(
    scheduled_payment_id: int,
    payload: ExecuteRequest,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    try:
        result = execute_scheduled_payment(
            db,
            scheduled_payment_id=scheduled_payment_id,
            now=_resolve_now(payload.now),
        )
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ScheduleStateConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SchedulePersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    schedule = _load_schedule(db, scheduled_payment_id)
    return {
        "scheduled_payment_id": result.scheduled_payment_id,
        "payment_id": result.payment_id,
        "execution_number": result.execution_number,
        "occurrence_date": result.occurrence_date.isoformat(),
        "executed_at": result.executed_at.isoformat(),
        "next_execution": None if result.next_execution is None else result.next_execution.isoformat(),
        "exhausted": result.exhausted,
        "schedule_status": schedule.schedule_status,
        "execution_count": schedule.execution_count,
    }


@api_router.get("/scheduled-payments/{scheduled_payment_id}/executions")
def scheduled_payments_executions(
    scheduled_payment_id: int,
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    try:
        rows = list_executions(db, scheduled_payment_id=scheduled_payment_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [_serialize_execution(row) for row in rows]


@api_router.post("/admin/run-due-executions")
def run_due_executions_api(payload: RunDueExecutionsRequest, db: Session = Depends(get_db_session)) -> dict[str, object]:
    result = run_due_executions(db, now=_resolve_now(payload.now))
    return _serialize_run_result(result)


@api_router.post("/admin/run-due-executions-once-today")
def run_due_executions_once_today_api(
    payload: RunDueExecutionsRequest,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    guarded = run_due_executions_once_per_day(db, now=_resolve_now(payload.now), trigger="admin")
    response: dict[str, object] = {
        "job_name": guarded.job_name,
        "run_date": guarded.run_date.isoformat(),
        "ran": guarded.ran,
    }
    if guarded.run_result is not None:
        response.update(_serialize_run_result(guarded.run_result))
    return response
