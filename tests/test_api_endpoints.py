from __future__ import annotations

from fastapi.testclient import TestClient

from vendorpay.db import get_db_session
from vendorpay.main import app


CREATE_PAYLOAD = {
    "requested_by": "user-7",
    "scheduled_for": "2025-03-01",
    "vendor_name": "Acme Supplies",
    "company_name": "Northwind",
    "company_branch": "Pune",
    "category_id": "cat-raw",
    "subcategory_id": "sub-steel",
    "payment_amount": "1500.00",
    "total_outstanding": "4000.00",
    "item_description": "Steel rods batch",
    "payment_mode": "upi",
    "is_recurring": True,
    "recurrence_pattern": "weekly",
    "recurrence_end_type": "after",
    "recurrence_end_after": 2,
    "today": "2025-03-01",
}


def _client(session_factory, monkeypatch) -> TestClient:
    monkeypatch.setenv("RUN_STARTUP_JOBS", "0")

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = override_get_db
    return TestClient(app)


def test_schedule_lifecycle_over_http(session_factory, monkeypatch) -> None:
    try:
        with _client(session_factory, monkeypatch) as client:
            created = client.post("/api/scheduled-payments", json=CREATE_PAYLOAD)
            assert created.status_code == 201
            body = created.json()
            assert body["schedule_status"] == "pending"
            assert body["execution_count"] == 0
            assert body["next_execution"] is None
            assert body["balance_amount"] == "2500.00"
            schedule_id = body["id"]
            assert "X-Request-ID" in created.headers

            first = client.post(
                f"/api/scheduled-payments/{schedule_id}/execute",
                json={"now": "2025-03-01T09:00:00"},
            )
            assert first.status_code == 200
            assert first.json()["next_execution"] == "2025-03-08"
            assert first.json()["schedule_status"] == "processed"

            second = client.post(
                f"/api/scheduled-payments/{schedule_id}/execute",
                json={"now": "2025-03-08T09:00:00"},
            )
            assert second.status_code == 200
            assert second.json()["exhausted"] is True
            assert second.json()["execution_count"] == 2

            third = client.post(
                f"/api/scheduled-payments/{schedule_id}/execute",
                json={"now": "2025-03-15T09:00:00"},
            )
            assert third.status_code == 409

            cancel = client.post(f"/api/scheduled-payments/{schedule_id}/cancel", json={})
            assert cancel.status_code == 409

            executions = client.get(f"/api/scheduled-payments/{schedule_id}/executions")
            assert executions.status_code == 200
            assert [row["execution_number"] for row in executions.json()] == [1, 2]

            detail = client.get(f"/api/scheduled-payments/{schedule_id}")
            assert detail.status_code == 200
            assert detail.json()["execution_count"] == 2
    finally:
        app.dependency_overrides.clear()


def test_create_validation_cancel_and_not_found(session_factory, monkeypatch) -> None:
    try:
        with _client(session_factory, monkeypatch) as client:
            bad_end = client.post(
                "/api/scheduled-payments",
                json={
                    **CREATE_PAYLOAD,
                    "recurrence_end_type": "on",
                    "recurrence_end_after": None,
                    "recurrence_end_date": "2025-02-01",
                },
            )
            assert bad_end.status_code == 400
            assert "End date must be after" in bad_end.json()["detail"]

            created = client.post("/api/scheduled-payments", json={**CREATE_PAYLOAD, "is_recurring": False})
            assert created.status_code == 201
            schedule_id = created.json()["id"]
            assert created.json()["recurrence_pattern"] is None

            cancelled = client.post(
                f"/api/scheduled-payments/{schedule_id}/cancel",
                json={"now": "2025-03-01T08:00:00"},
            )
            assert cancelled.status_code == 200
            assert cancelled.json()["schedule_status"] == "cancelled"

            again = client.post(f"/api/scheduled-payments/{schedule_id}/cancel", json={})
            assert again.status_code == 409

            missing = client.get("/api/scheduled-payments/999")
            assert missing.status_code == 404
            missing_execute = client.post("/api/scheduled-payments/999/execute", json={})
            assert missing_execute.status_code == 404
    finally:
        app.dependency_overrides.clear()


def test_listing_dashboard_and_due_runner(session_factory, monkeypatch) -> None:
    try:
        with _client(session_factory, monkeypatch) as client:
            client.post("/api/scheduled-payments", json=CREATE_PAYLOAD)
            client.post(
                "/api/scheduled-payments",
                json={**CREATE_PAYLOAD, "vendor_name": "Bolt Traders", "is_recurring": False, "scheduled_for": "2025-03-04"},
            )

            listed = client.get(
                "/api/scheduled-payments",
                params={"status": ["pending"], "upcoming": "today", "today": "2025-03-01"},
            )
            assert listed.status_code == 200
            assert listed.json()["total_count"] == 1
            assert listed.json()["rows"][0]["vendor_name"] == "Acme Supplies"

            searched = client.get("/api/scheduled-payments", params={"q": "bolt"})
            assert [row["vendor_name"] for row in searched.json()["rows"]] == ["Bolt Traders"]

            bad_sort = client.get("/api/scheduled-payments", params={"sort_field": "secret"})
            assert bad_sort.status_code == 400

            run = client.post("/api/admin/run-due-executions-once-today", json={"now": "2025-03-01T06:00:00"})
            assert run.status_code == 200
            assert run.json()["ran"] is True
            assert run.json()["executed_count"] == 1

            rerun = client.post("/api/admin/run-due-executions-once-today", json={"now": "2025-03-01T07:00:00"})
            assert rerun.json()["ran"] is False

            stats = client.get("/api/scheduled-payments/dashboard", params={"now": "2025-03-01T10:00:00"})
            assert stats.status_code == 200
            payload = stats.json()
            assert payload["total"] == 2
            assert payload["processed"] == 1
            assert payload["executed_today"] == 1
            assert payload["upcoming_this_week"] == 1
            assert payload["total_amount"] == "3000.00"
    finally:
        app.dependency_overrides.clear()


def test_preview_endpoint(monkeypatch) -> None:
    monkeypatch.setenv("RUN_STARTUP_JOBS", "0")
    with TestClient(app) as client:
        preview = client.post(
            "/api/scheduled-payments/preview",
            json={
                "scheduled_for": "2024-01-31",
                "recurrence_pattern": "monthly",
                "recurrence_end_type": "on",
                "recurrence_end_date": "2024-06-30",
                "max_results": 3,
            },
        )
        assert preview.status_code == 200
        body = preview.json()
        assert body["occurrences"] == ["2024-01-31", "2024-02-29", "2024-03-31"]
        assert body["estimated_occurrence_count"] == 6
        assert body["suggested_end_date"] == "2024-07-31"
        assert body["minimum_end_date"] == "2024-02-01"
        assert body["errors"] == []

        not_recurring = client.post(
            "/api/scheduled-payments/preview",
            json={"scheduled_for": "2024-01-31", "is_recurring": False},
        )
        assert not_recurring.json()["occurrences"] == []
        assert not_recurring.json()["estimated_occurrence_count"] is None

        backwards = client.post(
            "/api/scheduled-payments/preview",
            json={
                "scheduled_for": "2025-01-01",
                "recurrence_pattern": "weekly",
                "recurrence_end_type": "on",
                "recurrence_end_date": "2024-12-04",
            },
        )
        assert backwards.json()["estimated_occurrence_count"] == 1
        assert backwards.json()["occurrences"] == ["2025-01-01"]
        assert backwards.json()["errors"] == ["End date must be after the schedule date"]


def test_health_echoes_request_id(session_factory, monkeypatch) -> None:
    try:
        with _client(session_factory, monkeypatch) as client:
            response = client.get("/api/health", headers={"X-Request-ID": "req-abc"})
            assert response.status_code == 200
            assert response.json() == {"status": "ok"}
            assert response.headers["X-Request-ID"] == "req-abc"
    finally:
        app.dependency_overrides.clear()
