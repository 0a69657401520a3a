from __future__ import annotations

from collections.abc import Generator
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session, sessionmaker

import vendorpay.models  # noqa: F401
from vendorpay.db import build_engine, create_session_factory
from vendorpay.models.base import Base
from vendorpay.services.scheduled_payments_service import CreateScheduledPaymentInput


BASE_INPUT = CreateScheduledPaymentInput(
    requested_by="user-1",
    scheduled_for=date(2025, 3, 1),
    vendor_name="Acme Supplies",
    company_name="Northwind",
    company_branch="Pune",
    category_id="cat-raw",
    subcategory_id="sub-steel",
    payment_amount=Decimal("1500.00"),
    total_outstanding=Decimal("4000.00"),
    item_description="Steel rods batch",
    bank_name="HDFC",
    payment_mode="net_banking",
    advance_details="tax_invoice",
    price_check_guaranteed_by="Priya",
)


def make_input(**overrides) -> CreateScheduledPaymentInput:
    return replace(BASE_INPUT, **overrides)


@pytest.fixture
def session_factory(tmp_path) -> sessionmaker:
    engine = build_engine(f"sqlite:///{tmp_path / 'vendorpay_test.db'}", busy_timeout_ms=2000)
    Base.metadata.create_all(engine)
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
