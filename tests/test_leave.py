from __future__ import annotations

from datetime import date, datetime

import pytest

from app.services import leave_service
from app.services.leave_service import accrual_amount, available, count_working_days
from conftest import data


def test_working_days_skip_weekends_and_holidays():
    # Mon 2024-03-04 .. Sun 2024-03-10
    assert count_working_days(date(2024, 3, 4), date(2024, 3, 10), set()) == 5
    assert count_working_days(date(2024, 3, 4), date(2024, 3, 10), {"2024-03-06", "2024-03-09"}) == 4
    assert count_working_days(date(2024, 3, 9), date(2024, 3, 10), set()) == 0


def test_available_balance():
    entry = {"allocated": 12, "additional": 2, "carried_over": 3, "used": 4, "pending": 1.5}
    assert available(entry) == 11.5


def test_accrual_is_prorated_in_join_year():
    settings = {"monthly_accrual_amount": 2, "is_prorated_first_year": True}
    assert accrual_amount(settings, {}, date(2024, 4, 10), date(2024, 5, 1)) == 1.5
    assert accrual_amount(settings, {}, date(2020, 4, 10), date(2024, 5, 1)) == 2


def test_accrual_respects_limit():
    settings = {"monthly_accrual_amount": 2, "max_accrual_limit": 13, "is_prorated_first_year": False}
    assert accrual_amount(settings, {"allocated": 12}, None, date(2024, 5, 1)) == 1
    assert accrual_amount(settings, {"allocated": 14}, None, date(2024, 5, 1)) == 0


def test_half_day_must_be_single_date(client):
    r = client.post("/api/leave/request", json={
        "employee": "x", "type": "ANNUAL", "start_date": "2024-03-04", "end_date": "2024-03-05",
        "is_half_day": True, "reason": "Errand",
    })
    assert r.status_code == 400


@pytest.fixture
def employee(client, make_employee):
    employee = make_employee()
    r = client.post("/api/leave/balance/initialize", json={
        "employee": employee["_id"], "year": 2024,
        "balances": [{"type": "ANNUAL", "allocated": 12, "max_carry_over": 5}],
    })
    assert r.status_code == 201
    return employee


def request_leave(client, employee_id, start, end, type="ANNUAL", **extra):
    return client.post("/api/leave/request", json={
        "employee": employee_id, "type": type, "start_date": start, "end_date": end, "reason": "Family trip", **extra,
    })


def annual(balance):
    return next(b for b in balance["balances"] if b["type"] == "ANNUAL")


def test_initialize_fills_every_type(client, employee):
    balance = data(client.get(f"/api/leave/balance/{employee['_id']}?year=2024"))
    assert len(balance["balances"]) == 10
    assert annual(balance)["available"] == 12
    assert balance["last_calculation_date"] is None

    again = client.post("/api/leave/balance/initialize", json={"employee": employee["_id"], "year": 2024})
    assert again.status_code == 400


def test_request_approve_and_balance(client, employee):
    client.post("/api/schedules/holiday", json={"name": "Nyepi", "date": "2024-03-06", "is_recurring": False})

    leave = data(request_leave(client, employee["_id"], "2024-03-04", "2024-03-08"))
    assert leave["duration"] == 4
    assert leave["status"] == "PENDING"
    assert annual(data(client.get(f"/api/leave/balance/{employee['_id']}?year=2024")))["pending"] == 4

    overlap = request_leave(client, employee["_id"], "2024-03-08", "2024-03-11")
    assert overlap.status_code == 400

    r = client.post(f"/api/leave/{leave['_id']}/approve-reject", json={"status": "APPROVED", "notes": "Enjoy"})
    approved = data(r)
    assert approved["status"] == "APPROVED"
    assert approved["approval_history"][0]["approver_role"] == "admin"

    entry = annual(data(client.get(f"/api/leave/balance/{employee['_id']}?year=2024")))
    assert entry["used"] == 4 and entry["pending"] == 0 and entry["available"] == 8

    decided = client.post(f"/api/leave/{leave['_id']}/approve-reject", json={"status": "REJECTED"})
    assert decided.status_code == 400

    # already started
    assert client.post(f"/api/leave/{leave['_id']}/cancel").status_code == 400


def test_insufficient_balance_except_unpaid(client, employee):
    r = request_leave(client, employee["_id"], "2024-04-01", "2024-04-30")
    assert r.status_code == 400
    assert "Insufficient" in r.json()["message"]

    unpaid = request_leave(client, employee["_id"], "2024-04-01", "2024-04-30", type="UNPAID")
    assert unpaid.status_code == 201
    assert data(unpaid)["duration"] == 22


def test_weekend_only_request_is_rejected(client, employee):
    assert request_leave(client, employee["_id"], "2024-03-09", "2024-03-10").status_code == 400


def test_half_day_and_cancel_releases_pending(client, employee):
    leave = data(request_leave(client, employee["_id"], "2024-03-04", "2024-03-04", is_half_day=True))
    assert leave["duration"] == 0.5

    cancelled = data(client.post(f"/api/leave/{leave['_id']}/cancel", json={"reason": "Plans changed"}))
    assert cancelled["status"] == "CANCELLED"
    assert cancelled["approval_history"][-1]["notes"] == "Plans changed"
    assert annual(data(client.get(f"/api/leave/balance/{employee['_id']}?year=2024")))["pending"] == 0

    assert client.post(f"/api/leave/{leave['_id']}/cancel").status_code == 400


def test_rejection_releases_pending(client, employee):
    leave = data(request_leave(client, employee["_id"], "2024-03-04", "2024-03-05"))
    client.post(f"/api/leave/{leave['_id']}/approve-reject", json={"status": "REJECTED"})
    entry = annual(data(client.get(f"/api/leave/balance/{employee['_id']}?year=2024")))
    assert entry["pending"] == 0 and entry["used"] == 0

    listed = data(client.get(f"/api/leave/employee/{employee['_id']}?status=REJECTED"))
    assert [l["_id"] for l in listed] == [leave["_id"]]


def test_adjustment(client, employee):
    r = client.post(f"/api/leave/balance/{employee['_id']}/adjust", json={
        "year": 2024, "type": "ANNUAL", "amount": 2, "reason": "Overtime compensation",
    })
    balance = data(r)
    assert annual(balance)["additional"] == 2
    assert annual(balance)["available"] == 14
    assert balance["accrual_history"][-1]["reason"] == "ADJUSTMENT"

    zero = client.post(f"/api/leave/balance/{employee['_id']}/adjust", json={
        "year": 2024, "type": "ANNUAL", "amount": 0, "reason": "Nothing",
    })
    assert zero.status_code == 400


def test_monthly_accrual_runs_once_per_month(client, make_employee):
    employee = make_employee()
    client.post("/api/leave/balance/initialize", json={
        "employee": employee["_id"], "year": 2024,
        "accrual_settings": {"is_monthly_accrual": True, "monthly_accrual_amount": 1.5},
    })

    first = data(client.post("/api/leave/accruals/calculate", json={"calculation_date": "2024-05-15"}))
    assert len(first) == 1
    assert annual(first[0])["additional"] == 1.5
    assert first[0]["last_calculation_date"] == "2024-05-15"
    assert first[0]["accrual_history"][0]["reason"] == "MONTHLY_ACCRUAL"

    same_month = data(client.post("/api/leave/accruals/calculate", json={"calculation_date": "2024-05-31"}))
    assert same_month == []

    next_month = data(client.post("/api/leave/accruals/calculate", json={"calculation_date": "2024-06-01"}))
    assert annual(next_month[0])["additional"] == 3


def test_carryover_caps_and_opens_next_year(client, employee):
    leave = data(request_leave(client, employee["_id"], "2024-03-04", "2024-03-08"))
    client.post(f"/api/leave/{leave['_id']}/approve-reject", json={"status": "APPROVED"})

    bad = client.post("/api/leave/carryover", json={"from_year": 2024, "to_year": 2024})
    assert bad.status_code == 400

    created = data(client.post("/api/leave/carryover", json={"from_year": 2024, "to_year": 2025}))
    assert len(created) == 1
    entry = annual(created[0])
    assert entry["allocated"] == 12
    assert entry["carried_over"] == 5
    assert entry["carry_over_expiry"] == "2025-06-30"
    assert [h["reason"] for h in created[0]["accrual_history"]] == ["ANNUAL_ALLOCATION", "CARRYOVER"]

    assert data(client.post("/api/leave/carryover", json={"from_year": 2024, "to_year": 2025})) == []


def test_cancelling_future_approved_leave_releases_used(client, employee, monkeypatch):
    monkeypatch.setattr(leave_service, "get_local_now", lambda: datetime(2024, 3, 1, 9, 0))

    leave = data(request_leave(client, employee["_id"], "2024-03-11", "2024-03-12"))
    client.post(f"/api/leave/{leave['_id']}/approve-reject", json={"status": "APPROVED"})
    assert annual(data(client.get(f"/api/leave/balance/{employee['_id']}?year=2024")))["used"] == 2

    cancelled = data(client.post(f"/api/leave/{leave['_id']}/cancel", json={"reason": "Trip postponed"}))
    assert cancelled["status"] == "CANCELLED"
    entry = annual(data(client.get(f"/api/leave/balance/{employee['_id']}?year=2024")))
    assert entry["used"] == 0 and entry["pending"] == 0 and entry["available"] == 12
